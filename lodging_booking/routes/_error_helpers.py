"""
Translation of booking-core errors into HTTP responses.

Route handlers catch BookingError and re-raise the HTTPException built here;
anything else is logged and reported as a 500 by the handler itself.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status

from lodging_booking.errors import (
    BookingError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ProcessorError,
    TransientError,
    ValidationError,
)

RETRY_AFTER_SECONDS = "1"


def _detail(err: BookingError) -> dict[str, Any]:
    detail: dict[str, Any] = {"message": err.message}
    detail.update({key: str(value) for key, value in err.context.items()})
    return detail


def to_http_exception(err: BookingError) -> HTTPException:
    """
    Map a booking-core error to the HTTPException a route should raise.

    Args:
        err: Error raised by a service

    Returns:
        HTTPException: 400, 404, 409, 502 or 503 with a JSON detail
    """
    detail = _detail(err)

    if isinstance(err, ValidationError):
        detail["errors"] = err.errors
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    if isinstance(err, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    if isinstance(err, InvalidTransitionError):
        detail["current_status"] = err.current
        detail["requested_status"] = err.requested
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
    if isinstance(err, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
    if isinstance(err, TransientError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )
    if isinstance(err, ProcessorError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
