from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class UnitOut(BaseModel):
    """A bookable unit as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    unit_number: str
    unit_type: str
    capacity: int
    nightly_rate: Decimal
    status: str
    created_at: datetime
    updated_at: datetime
