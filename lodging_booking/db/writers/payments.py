from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection

from lodging_booking.models.payments import PaymentRecord
from lodging_booking.utils.datetime import utc_now


def insert_pending_payment(
    conn: Connection,
    reservation_id: UUID,
    intent_id: str,
    amount: Decimal,
    currency: str,
    client_secret: Optional[str] = None,
) -> bool:
    """
    Persist a pending payment record for a processor intent.

    Uses ON CONFLICT DO NOTHING on processor_intent_id, so a retried creation
    that the processor answered with the same intent leaves the existing row
    (whatever its status) alone.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (UUID): Owning reservation.
        intent_id (str): Processor intent id.
        amount (Decimal): Charge amount in major units.
        currency (str): ISO currency code, lower case.
        client_secret (Optional[str]): Processor secret the checkout page confirms with.

    Returns:
        bool: True if a new row was written, False if the intent was already recorded.
    """
    now = utc_now()
    stmt = (
        insert(PaymentRecord)
        .values(
            reservation_id=reservation_id,
            processor_intent_id=intent_id,
            amount=amount,
            currency=currency,
            client_secret=client_secret,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["processor_intent_id"])
    )
    return conn.execute(stmt).rowcount > 0


def update_payment_status(
    conn: Connection, intent_id: str, expected_status: str, new_status: str
) -> Optional[dict[str, Any]]:
    """
    Compare-and-set the status of a payment record.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        intent_id (str): Processor intent id.
        expected_status (str): Status read before deciding on the write.
        new_status (str): Status to write.

    Returns:
        Optional[dict[str, Any]]: Updated row, or None if the status had changed.
    """
    stmt = (
        update(PaymentRecord)
        .where(
            PaymentRecord.processor_intent_id == intent_id,
            PaymentRecord.status == expected_status,
        )
        .values(status=new_status, updated_at=utc_now())
        .returning(*PaymentRecord.__table__.c)
    )
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None
