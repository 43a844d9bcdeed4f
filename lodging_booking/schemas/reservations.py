from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ReservationCreatePayload(BaseModel):
    """
    Schema for booking a unit. Dates are ISO strings validated by the service
    so that every field error is reported together.
    """

    unit_id: int = Field(..., description="Unit to book")
    check_in: str = Field(..., description="Check-in date, YYYY-MM-DD")
    check_out: str = Field(..., description="Check-out date, YYYY-MM-DD (exclusive)")
    guests: int = Field(..., description="Party size")
    first_name: str = Field("", description="Guest first name")
    last_name: str = Field("", description="Guest last name")
    email: str = Field("", description="Guest email")
    phone_number: Optional[str] = Field(None, description="Guest phone number")
    special_requests: Optional[str] = Field(None, description="Free-text guest requests")


class TransitionPayload(BaseModel):
    status: str = Field(..., description="Target status, e.g. confirmed or checked-in")
    reason: Optional[str] = Field(None, description="Cancellation reason, when cancelling")


class CancelPayload(BaseModel):
    reason: Optional[str] = Field(None, description="Cancellation reason")


class ReservationOut(BaseModel):
    id: UUID
    confirmation_code: str
    unit_id: int
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    special_requests: Optional[str] = None
    check_in: date
    check_out: date
    guest_count: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    paid: bool
    status: str
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReservationPage(BaseModel):
    reservations: list[ReservationOut]
    page: int
    page_size: int
    total: int
