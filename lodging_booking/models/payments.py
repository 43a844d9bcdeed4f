from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lodging_booking.config import SCHEMA
from lodging_booking.models.base import Base

PAYMENT_STATUSES = ("pending", "completed", "failed")

PENDING_PAYMENT_INDEX = "uq_payments_reservation_pending"


class PaymentRecord(Base):
    """
    ORM model for one payment attempt against a reservation.

    Each row is keyed by the processor's intent id, so a retried intent
    creation for the same processor intent never produces a second row. A
    reservation holds at most one pending row; it may own several rows only
    when earlier intents failed. Rows are never overwritten by later intents.
    """

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="ck_payments_status"
        ),
        Index(
            PENDING_PAYMENT_INDEX,
            "reservation_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{SCHEMA}.reservations.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    processor_intent_id = Column(String(255), nullable=False, unique=True)
    # Handed back when a checkout retry finds this intent still pending
    client_secret = Column(String(255), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(16), nullable=False, server_default="pending")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
