from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import insert, update
from sqlalchemy.engine import Connection

from lodging_booking.models.reservations import Reservation
from lodging_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_reservation(conn: Connection, row: dict[str, Any]) -> dict[str, Any]:
    """
    Insert a new reservation row.

    The caller is expected to hold the unit lock and to have checked for
    overlaps; the exclusion constraint still rejects a conflicting row.

    Args:
        conn (Connection): Connection inside the creating transaction.
        row (dict[str, Any]): Column values, including id and confirmation_code.

    Returns:
        dict[str, Any]: The stored row as returned by the database.
    """
    now = utc_now()
    values = {**row, "created_at": now, "updated_at": now}
    stmt = insert(Reservation).values(values).returning(*Reservation.__table__.c)
    return dict(conn.execute(stmt).mappings().one())


def update_reservation_status(
    conn: Connection,
    reservation_id: UUID,
    expected_status: str,
    new_status: str,
    cancellation_reason: Optional[str] = None,
) -> Optional[dict[str, Any]]:
    """
    Compare-and-set the status of a reservation.

    The row is only written if its status is still expected_status, so a
    concurrent transition that landed first makes this one a no-op.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (UUID): Reservation ID.
        expected_status (str): Status read before deciding on the transition.
        new_status (str): Status to write.
        cancellation_reason (Optional[str]): Stored when moving to cancelled.

    Returns:
        Optional[dict[str, Any]]: Updated row, or None if the status had changed.
    """
    values: dict[str, Any] = {"status": new_status, "updated_at": utc_now()}
    if cancellation_reason is not None:
        values["cancellation_reason"] = cancellation_reason

    stmt = (
        update(Reservation)
        .where(Reservation.id == reservation_id, Reservation.status == expected_status)
        .values(**values)
        .returning(*Reservation.__table__.c)
    )
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def mark_reservation_paid(conn: Connection, reservation_id: UUID) -> bool:
    """
    Set paid = true on a reservation. Leaves status untouched.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (UUID): Reservation ID.

    Returns:
        bool: True if the flag flipped, False if it was already set.
    """
    stmt = (
        update(Reservation)
        .where(Reservation.id == reservation_id, Reservation.paid.is_(False))
        .values(paid=True, updated_at=utc_now())
    )
    flipped = conn.execute(stmt).rowcount > 0
    if flipped:
        logger.info("reservation_marked_paid", reservation_id=str(reservation_id))
    return flipped
