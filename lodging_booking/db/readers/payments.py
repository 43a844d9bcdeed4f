from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.engine import Connection

from lodging_booking.models.payments import PaymentRecord


def get_payment_by_intent(
    conn: Connection, intent_id: str, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch the payment record for a processor intent.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        intent_id (str): Processor-issued intent id.
        for_update (bool): Lock the row until the transaction ends.

    Returns:
        Optional[dict[str, Any]]: Payment row or None if the intent is unknown.
    """
    stmt = select(PaymentRecord).where(PaymentRecord.processor_intent_id == intent_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def list_payments_for_reservation(
    conn: Connection, reservation_id: UUID
) -> list[dict[str, Any]]:
    """
    List every payment attempt for a reservation, oldest first.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (UUID): Reservation ID.

    Returns:
        list[dict[str, Any]]: Payment rows.
    """
    stmt = (
        select(PaymentRecord)
        .where(PaymentRecord.reservation_id == reservation_id)
        .order_by(PaymentRecord.created_at, PaymentRecord.id)
    )
    return [dict(row) for row in conn.execute(stmt).mappings()]
