from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.engine import Engine

from lodging_booking.dependencies import get_db_engine
from lodging_booking.errors import BookingError
from lodging_booking.routes._error_helpers import to_http_exception
from lodging_booking.schemas.availability import AvailabilityPage
from lodging_booking.services.availability import search_availability

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/availability", response_model=AvailabilityPage)
def availability_endpoint(
    check_in: Optional[str] = Query(None, description="Check-in date, YYYY-MM-DD"),
    check_out: Optional[str] = Query(None, description="Check-out date, YYYY-MM-DD"),
    guests: Optional[int] = Query(None, description="Party size"),
    unit_type: Optional[str] = Query(None, description="Case-insensitive unit type"),
    page: int = Query(1, description="1-based page number"),
    page_size: int = Query(20, description="Units per page, max 100"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Search units free for the whole stay that fit the party.

    The result is a snapshot; a listed unit can still be booked by someone
    else before this caller creates a reservation.

    Args:
        check_in: Check-in date
        check_out: Check-out date (exclusive)
        guests: Party size
        unit_type: Optional unit type filter
        page: Page number
        page_size: Page size
        engine: Database engine (injected)

    Returns:
        dict: Page of units with total count
    """
    try:
        return search_availability(
            engine,
            check_in=check_in,
            check_out=check_out,
            guests=guests,
            unit_type=unit_type,
            page=page,
            page_size=page_size,
        )
    except BookingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("availability_search_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
