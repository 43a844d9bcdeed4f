from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PaymentIntentPayload(BaseModel):
    """
    Schema for requesting a payment intent. Amount defaults to the
    reservation total and currency to the configured default.
    """

    reservation_id: UUID = Field(..., description="Reservation to charge")
    amount: Optional[Decimal] = Field(None, description="Amount in major units, e.g. 216.00")
    currency: Optional[str] = Field(None, description="ISO currency code, e.g. usd")


class PaymentIntentOut(BaseModel):
    intent_id: str
    client_secret: str


class PaymentEventAck(BaseModel):
    received: bool = True
    kind: str
    outcome: str = Field(..., description="applied, duplicate, dropped or ignored")
