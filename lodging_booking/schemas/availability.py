from pydantic import BaseModel, Field

from lodging_booking.schemas.units import UnitOut


class AvailabilityPage(BaseModel):
    """
    One page of units free for a date range, cheapest first.
    """

    units: list[UnitOut]
    nights: int = Field(..., description="Number of nights in the requested stay")
    page: int
    page_size: int
    total: int = Field(..., description="Matching units across all pages")
