from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import ColumnElement

from lodging_booking.models.reservations import ACTIVE_STATUSES, Reservation

LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """
    Build a LIKE pattern matching term anywhere, with wildcards in term escaped.

    Args:
        term (str): Raw user search text.

    Returns:
        str: Pattern for use with ``escape=LIKE_ESCAPE``.
    """
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def active_overlap(check_in: date, check_out: date) -> ColumnElement[bool]:
    """
    Build the half-open overlap predicate against active reservations.

    Two ranges [a, b) and [c, d) overlap iff a < d AND b > c. A reservation that
    ends on the day another begins does not overlap it.

    Args:
        check_in (date): Requested check-in.
        check_out (date): Requested check-out.

    Returns:
        ColumnElement[bool]: Predicate over the reservations table.
    """
    return and_(
        Reservation.status.in_(ACTIVE_STATUSES),
        Reservation.check_in < check_out,
        Reservation.check_out > check_in,
    )


def has_overlapping_reservation(
    conn: Connection, unit_id: int, check_in: date, check_out: date
) -> bool:
    """
    Check whether an active reservation on the unit overlaps [check_in, check_out).

    Only authoritative when called while holding the unit lock.

    Args:
        conn (Connection): Connection inside the creating transaction.
        unit_id (int): Unit ID.
        check_in (date): Requested check-in.
        check_out (date): Requested check-out.

    Returns:
        bool: True if a conflicting reservation exists.
    """
    stmt = select(
        exists().where(Reservation.unit_id == unit_id, active_overlap(check_in, check_out))
    )
    return bool(conn.execute(stmt).scalar())


def get_reservation(
    conn: Connection, reservation_id: UUID, for_update: bool = False
) -> Optional[dict[str, Any]]:
    """
    Fetch a reservation by id.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        reservation_id (UUID): Reservation ID.
        for_update (bool): Lock the row until the transaction ends.

    Returns:
        Optional[dict[str, Any]]: Reservation row or None.
    """
    stmt = select(Reservation).where(Reservation.id == reservation_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = conn.execute(stmt).mappings().fetchone()
    return dict(row) if row else None


def get_reservation_by_code(
    conn: Connection, confirmation_code: str
) -> Optional[dict[str, Any]]:
    """
    Fetch a reservation by its guest-facing confirmation code.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        confirmation_code (str): Code handed to the guest at booking time.

    Returns:
        Optional[dict[str, Any]]: Reservation row or None.
    """
    row = (
        conn.execute(
            select(Reservation).where(Reservation.confirmation_code == confirmation_code.upper())
        )
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None


def list_reservations(
    conn: Connection,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[dict[str, Any]], int]:
    """
    List reservations newest first, with optional status and free-text filters.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        status (Optional[str]): Exact status to match.
        search (Optional[str]): Case-insensitive substring over first name,
            last name and email.
        limit (int): Page size.
        offset (int): Rows to skip.

    Returns:
        tuple[list[dict[str, Any]], int]: The page of rows and the total match count.
    """
    filters = []
    if status:
        filters.append(Reservation.status == status)
    if search:
        pattern = contains_pattern(search)
        filters.append(
            or_(
                Reservation.first_name.ilike(pattern, escape=LIKE_ESCAPE),
                Reservation.last_name.ilike(pattern, escape=LIKE_ESCAPE),
                Reservation.email.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )

    page_stmt = (
        select(Reservation)
        .where(*filters)
        .order_by(Reservation.created_at.desc(), Reservation.id)
        .limit(limit)
        .offset(offset)
    )
    count_stmt = select(func.count()).select_from(Reservation).where(*filters)

    rows = [dict(row) for row in conn.execute(page_stmt).mappings()]
    total = int(conn.execute(count_stmt).scalar() or 0)
    return rows, total
