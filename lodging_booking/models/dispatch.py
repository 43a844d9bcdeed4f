from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lodging_booking.config import SCHEMA
from lodging_booking.models.base import Base


class DispatchLedgerEntry(Base):
    """
    ORM model for the idempotent dispatch ledger.

    One row per idempotency key. A worker marks the row 'sending' before it runs
    the action and records 'sent' or 'failed' afterwards. The outcome may move
    from 'failed' to 'sent' on a later retry, but once 'sent' the row is never
    rewritten and the action behind the key is never invoked again.
    """

    __tablename__ = "dispatch_ledger"
    __table_args__ = (
        CheckConstraint(
            "outcome IN ('sending', 'sent', 'failed')", name="ck_dispatch_ledger_outcome"
        ),
        {"schema": SCHEMA},
    )

    idempotency_key = Column(String(255), primary_key=True)
    reservation_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{SCHEMA}.reservations.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    kind = Column(String(64), nullable=False)
    outcome = Column(String(16), nullable=False)
    attempts = Column(Integer, nullable=False, server_default="0")
    last_error = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
