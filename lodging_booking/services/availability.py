"""Availability search over units and active reservations."""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Engine

from lodging_booking.db.readers.availability import search_available_units
from lodging_booking.metrics import availability_search_duration
from lodging_booking.services.validation import validate_page, validate_stay

logger = structlog.get_logger(__name__)


def search_availability(
    engine: Engine,
    check_in: Any,
    check_out: Any,
    guests: Any,
    unit_type: Optional[str] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """
    List units free for the whole requested range, cheapest first.

    The page and the total are read from one REPEATABLE READ snapshot, so a
    reservation committed mid-search cannot make them disagree. The result is
    advisory: a unit listed here can still be taken before creation runs.

    Args:
        engine: SQLAlchemy Engine
        check_in: Check-in date (ISO string or date)
        check_out: Check-out date (ISO string or date), exclusive
        guests: Party size
        unit_type: Optional case-insensitive unit type filter
        page: 1-based page number
        page_size: Items per page (max 100)
        today: Override for the current date

    Returns:
        dict[str, Any]: {"units", "page", "page_size", "total", "nights"}

    Raises:
        ValidationError: Bad dates, party size or pagination
    """
    stay = validate_stay(check_in, check_out, guests, today)
    page, page_size = validate_page(page, page_size)

    started = time.perf_counter()
    with engine.connect().execution_options(isolation_level="REPEATABLE READ") as conn:
        with conn.begin():
            units, total = search_available_units(
                conn,
                stay.check_in,
                stay.check_out,
                stay.guests,
                unit_type=(unit_type or "").strip() or None,
                limit=page_size,
                offset=(page - 1) * page_size,
            )
    elapsed = time.perf_counter() - started
    availability_search_duration.observe(elapsed)

    logger.debug(
        "availability_searched",
        check_in=stay.check_in.isoformat(),
        check_out=stay.check_out.isoformat(),
        guests=stay.guests,
        total=total,
        duration_ms=round(elapsed * 1000, 1),
    )
    return {
        "units": units,
        "page": page,
        "page_size": page_size,
        "total": total,
        "nights": stay.nights,
    }
