"""Unit tests for mapping booking-core errors to HTTP responses."""

import pytest

from lodging_booking.errors import (
    AlreadyPaidError,
    BookingError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ProcessorError,
    TransientError,
    ValidationError,
)
from lodging_booking.routes._error_helpers import to_http_exception


@pytest.mark.unit
def test_validation_error_is_400_with_field_errors() -> None:
    exc = to_http_exception(ValidationError({"check_out": "check_out must be after check_in"}))

    assert exc.status_code == 400
    assert exc.detail["errors"] == {"check_out": "check_out must be after check_in"}


@pytest.mark.unit
@pytest.mark.parametrize(
    "err,status_code",
    [
        (ConflictError("taken", unit_id=4), 409),
        (AlreadyPaidError("paid", reservation_id="r-1"), 409),
        (NotFoundError("missing", reservation_id="r-1"), 404),
        (ProcessorError("rejected"), 502),
        (BookingError("unexpected"), 500),
    ],
)
def test_status_codes(err: BookingError, status_code: int) -> None:
    exc = to_http_exception(err)

    assert exc.status_code == status_code
    assert exc.detail["message"] == err.message


@pytest.mark.unit
def test_context_identifiers_are_exposed_as_strings() -> None:
    exc = to_http_exception(ConflictError("taken", unit_id=4))

    assert exc.detail == {"message": "taken", "unit_id": "4"}


@pytest.mark.unit
def test_invalid_transition_reports_both_statuses() -> None:
    exc = to_http_exception(InvalidTransitionError("checked_out", "confirmed"))

    assert exc.status_code == 409
    assert exc.detail["current_status"] == "checked_out"
    assert exc.detail["requested_status"] == "confirmed"


@pytest.mark.unit
def test_transient_error_asks_client_to_retry() -> None:
    exc = to_http_exception(TransientError("unit busy", unit_id=2))

    assert exc.status_code == 503
    assert exc.headers == {"Retry-After": "1"}
