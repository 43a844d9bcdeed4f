"""Queries for units that are free over a requested date range."""

from datetime import date
from typing import Any, Optional

from sqlalchemy import and_, func, not_, select
from sqlalchemy.engine import Connection

from lodging_booking.db.readers.reservations import active_overlap
from lodging_booking.models.reservations import Reservation
from lodging_booking.models.units import Unit


def search_available_units(
    conn: Connection,
    check_in: date,
    check_out: date,
    guests: int,
    unit_type: Optional[str],
    limit: int,
    offset: int,
) -> tuple[list[dict[str, Any]], int]:
    """
    Find units that fit the party and have no active reservation overlapping the range.

    Call inside a single REPEATABLE READ transaction so the page and the count
    come from the same snapshot.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        check_in (date): Requested check-in.
        check_out (date): Requested check-out.
        guests (int): Party size; units need capacity >= guests.
        unit_type (Optional[str]): Case-insensitive unit type filter.
        limit (int): Page size.
        offset (int): Rows to skip.

    Returns:
        tuple[list[dict[str, Any]], int]: Units ordered by nightly rate then id,
        and the total count before pagination.
    """
    conflicting = (
        select(Reservation.id)
        .where(Reservation.unit_id == Unit.id, active_overlap(check_in, check_out))
        .exists()
    )

    criteria = [Unit.capacity >= guests, not_(conflicting)]
    if unit_type:
        criteria.append(func.lower(Unit.unit_type) == unit_type.lower())

    page_stmt = (
        select(Unit)
        .where(and_(*criteria))
        .order_by(Unit.nightly_rate.asc(), Unit.id.asc())
        .limit(limit)
        .offset(offset)
    )
    count_stmt = select(func.count()).select_from(Unit).where(and_(*criteria))

    units = [dict(row) for row in conn.execute(page_stmt).mappings()]
    total = int(conn.execute(count_stmt).scalar() or 0)
    return units, total
