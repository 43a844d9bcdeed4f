from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from lodging_booking.config import DEFAULT_TAX_RATE
from lodging_booking.dependencies import get_db_engine, get_notification_sender
from lodging_booking.errors import BookingError
from lodging_booking.routes._error_helpers import to_http_exception
from lodging_booking.schemas.reservations import (
    CancelPayload,
    ReservationCreatePayload,
    ReservationOut,
    ReservationPage,
    TransitionPayload,
)
from lodging_booking.services.notifications import NotificationSender
from lodging_booking.services.pricing import percentage_tax
from lodging_booking.services.reservations import (
    cancel_reservation,
    create_reservation,
    fetch_reservation,
    fetch_reservation_by_code,
    search_reservations,
    transition_reservation,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/reservations", status_code=status.HTTP_201_CREATED, response_model=ReservationOut)
def create_reservation_endpoint(
    payload: ReservationCreatePayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Book a unit for a date range.

    Returns 409 when the unit was taken for overlapping dates in the meantime
    and 503 when the unit is momentarily locked by another booking; the client
    may resubmit in that case.

    Args:
        payload: Unit, dates, party size and guest details
        engine: Database engine (injected)

    Returns:
        dict: The pending reservation with its price breakdown
    """
    try:
        return create_reservation(
            engine,
            unit_id=payload.unit_id,
            guest={
                "first_name": payload.first_name,
                "last_name": payload.last_name,
                "email": payload.email,
                "phone_number": payload.phone_number,
                "special_requests": payload.special_requests,
            },
            check_in=payload.check_in,
            check_out=payload.check_out,
            guests=payload.guests,
            tax_policy=percentage_tax(DEFAULT_TAX_RATE),
        )
    except BookingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("reservation_creation_failed", unit_id=payload.unit_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations", response_model=ReservationPage)
def list_reservations_endpoint(
    status_filter: Optional[str] = Query(None, alias="status", description="Reservation status"),
    search: Optional[str] = Query(None, description="Match on guest first/last name or email"),
    page: int = Query(1, description="1-based page number"),
    page_size: int = Query(20, description="Reservations per page, max 100"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    List reservations, newest first.
    """
    try:
        return search_reservations(
            engine, status=status_filter, search=search, page=page, page_size=page_size
        )
    except BookingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("reservation_list_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/by-code/{confirmation_code}", response_model=ReservationOut)
def get_reservation_by_code_endpoint(
    confirmation_code: str, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    try:
        return fetch_reservation_by_code(engine, confirmation_code)
    except BookingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("reservation_fetch_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/reservations/{reservation_id}", response_model=ReservationOut)
def get_reservation_endpoint(
    reservation_id: UUID, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    try:
        return fetch_reservation(engine, reservation_id)
    except BookingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(
            "reservation_fetch_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/transition", response_model=ReservationOut)
def transition_reservation_endpoint(
    reservation_id: UUID,
    payload: TransitionPayload,
    background_tasks: BackgroundTasks,
    engine: Engine = Depends(get_db_engine),
    sender: NotificationSender = Depends(get_notification_sender),
) -> dict[str, Any]:
    """
    Move a reservation to a new status.

    Confirming or cancelling schedules the matching guest notification in the
    background once the change is committed.

    Args:
        reservation_id: Reservation ID
        payload: Target status and optional cancellation reason
        background_tasks: FastAPI background task runner
        engine: Database engine (injected)
        sender: Notification transport (injected)

    Returns:
        dict: The updated reservation
    """
    try:
        return transition_reservation(
            engine,
            reservation_id,
            payload.status,
            reason=payload.reason,
            schedule=background_tasks.add_task,
            sender=sender,
        )
    except BookingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(
            "reservation_transition_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationOut)
def cancel_reservation_endpoint(
    reservation_id: UUID,
    background_tasks: BackgroundTasks,
    payload: Optional[CancelPayload] = None,
    engine: Engine = Depends(get_db_engine),
    sender: NotificationSender = Depends(get_notification_sender),
) -> dict[str, Any]:
    try:
        return cancel_reservation(
            engine,
            reservation_id,
            reason=payload.reason if payload else None,
            schedule=background_tasks.add_task,
            sender=sender,
        )
    except BookingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(
            "reservation_cancel_failed", reservation_id=str(reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")
