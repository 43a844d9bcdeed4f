from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Connection

from lodging_booking.models.units import Unit


def list_units(
    conn: Connection,
    unit_type: Optional[str] = None,
    min_capacity: Optional[int] = None,
) -> list[dict[str, Any]]:
    """
    Read the unit catalog, optionally filtered.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        unit_type (Optional[str]): Case-insensitive unit type to match.
        min_capacity (Optional[int]): Only units holding at least this many guests.

    Returns:
        list[dict[str, Any]]: Unit rows ordered by unit number.
    """
    stmt = select(Unit)
    if unit_type:
        stmt = stmt.where(func.lower(Unit.unit_type) == unit_type.lower())
    if min_capacity is not None:
        stmt = stmt.where(Unit.capacity >= min_capacity)
    stmt = stmt.order_by(Unit.unit_number)

    return [dict(row) for row in conn.execute(stmt).mappings()]


def get_unit(conn: Connection, unit_id: int) -> Optional[dict[str, Any]]:
    """
    Fetch a single unit.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        unit_id (int): Unit ID.

    Returns:
        Optional[dict[str, Any]]: The unit row, or None if it does not exist.
    """
    row = conn.execute(select(Unit).where(Unit.id == unit_id)).mappings().fetchone()
    return dict(row) if row else None


def lock_unit(conn: Connection, unit_id: int) -> Optional[dict[str, Any]]:
    """
    Fetch a unit and hold a row lock on it until the surrounding transaction ends.

    This is the per-unit serialization point for reservation creation: every
    creation against the same unit queues here, so the overlap check and the
    insert that follow run one at a time per unit. The wait is bounded by the
    transaction's lock_timeout.

    Args:
        conn (Connection): Connection inside an open transaction.
        unit_id (int): Unit ID to lock.

    Returns:
        Optional[dict[str, Any]]: The unit row, or None if it does not exist.
    """
    row = (
        conn.execute(select(Unit).where(Unit.id == unit_id).with_for_update())
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None
