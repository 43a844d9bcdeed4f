# models/reservations.py

from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lodging_booking.config import SCHEMA
from lodging_booking.models.base import Base

RESERVATION_STATUSES = ("pending", "confirmed", "checked_in", "checked_out", "cancelled")
ACTIVE_STATUSES = ("pending", "confirmed", "checked_in")

NO_OVERLAP_CONSTRAINT = "ex_reservations_unit_no_overlap"


class Reservation(Base):
    """
    ORM model for a guest's claim on a unit over [check_in, check_out).

    Status changes only through the reservation state machine; rows are never
    deleted, cancellation is a terminal status. Two active reservations for the
    same unit can never overlap: besides the per-unit lock taken at creation,
    the table carries a gist exclusion constraint over (unit_id, daterange).
    """

    __tablename__ = "reservations"
    __table_args__ = (
        UniqueConstraint("confirmation_code", name="uq_reservations_confirmation_code"),
        CheckConstraint("check_in < check_out", name="ck_reservations_dates_ordered"),
        CheckConstraint("guest_count >= 1", name="ck_reservations_guest_count_positive"),
        CheckConstraint("tax >= 0", name="ck_reservations_tax_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'checked_in', 'checked_out', 'cancelled')",
            name="ck_reservations_status",
        ),
        {"schema": SCHEMA},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()"))
    confirmation_code = Column(String(16), nullable=False)
    unit_id = Column(
        Integer,
        ForeignKey(f"{SCHEMA}.units.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone_number = Column(String(32), nullable=True)
    special_requests = Column(String, nullable=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guest_count = Column(Integer, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    paid = Column(Boolean, nullable=False, server_default=text("FALSE"))
    status = Column(String(16), nullable=False, server_default="pending", index=True)
    cancellation_reason = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


# Requires the btree_gist extension for the equality arm on unit_id
event.listen(
    Reservation.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE {SCHEMA}.reservations ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (unit_id WITH =, daterange(check_in, check_out, '[)') WITH &&) "
        "WHERE (status IN ('pending', 'confirmed', 'checked_in'))"
    ).execute_if(dialect="postgresql"),
)
