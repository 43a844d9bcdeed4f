"""SQLAlchemy model for bookable lodging units."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from lodging_booking.config import SCHEMA
from lodging_booking.models.base import Base

UNIT_STATUSES = ("available", "occupied", "cleaning", "maintenance")


class Unit(Base):
    """
    ORM model for a bookable room or suite.

    Rows are owned by catalog management; the booking core only reads them and
    takes a row lock on a unit while creating a reservation against it.
    """

    __tablename__ = "units"
    __table_args__ = (
        CheckConstraint("capacity >= 1", name="ck_units_capacity_positive"),
        CheckConstraint("nightly_rate >= 0", name="ck_units_rate_non_negative"),
        CheckConstraint(
            "status IN ('available', 'occupied', 'cleaning', 'maintenance')",
            name="ck_units_status",
        ),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True)
    unit_number = Column(String(32), nullable=False, unique=True)
    unit_type = Column(String(64), nullable=False, index=True)
    capacity = Column(Integer, nullable=False)
    nightly_rate = Column(Numeric(10, 2), nullable=False)
    status = Column(String(16), nullable=False, server_default="available")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
