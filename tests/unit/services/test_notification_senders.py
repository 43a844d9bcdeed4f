"""Unit tests for notification senders and reservation notifications."""

import uuid
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests

from lodging_booking.errors import TransientError
from lodging_booking.services.notifications import (
    HttpNotificationSender,
    LoggingNotificationSender,
    get_notification_sender,
    notify_reservation_event,
    reservation_payload,
)

RESERVATION_ID = uuid.UUID("7d7c2a52-1f0e-4a0c-9d51-2f8a8a4c9f10")

RESERVATION = {
    "id": RESERVATION_ID,
    "confirmation_code": "K7Q2M9XA4B",
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
    "unit_id": 3,
    "check_in": date(2025, 6, 1),
    "check_out": date(2025, 6, 3),
    "total": Decimal("216.00"),
    "status": "confirmed",
    "cancellation_reason": None,
}


def make_response(status_code: int) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = "relay says no"
    return response


@pytest.mark.unit
@patch("lodging_booking.services.notifications.requests.post")
def test_http_sender_posts_notification(mock_post: Any) -> None:
    mock_post.return_value = make_response(202)
    sender = HttpNotificationSender("https://relay.test/notify", timeout=5)

    assert sender.send("booking-confirmed", "ada@example.com", {"a": 1}) is True

    mock_post.assert_called_once_with(
        "https://relay.test/notify",
        json={"kind": "booking-confirmed", "recipient": "ada@example.com", "payload": {"a": 1}},
        timeout=5,
    )


@pytest.mark.unit
@pytest.mark.parametrize("status_code", [429, 500, 503])
@patch("lodging_booking.services.notifications.requests.post")
def test_http_sender_raises_transient_on_server_errors(mock_post: Any, status_code: int) -> None:
    mock_post.return_value = make_response(status_code)
    sender = HttpNotificationSender("https://relay.test/notify")

    with pytest.raises(TransientError):
        sender.send("booking-confirmed", "ada@example.com", {})


@pytest.mark.unit
@patch("lodging_booking.services.notifications.requests.post")
def test_http_sender_raises_transient_on_timeout(mock_post: Any) -> None:
    mock_post.side_effect = requests.Timeout("slow relay")
    sender = HttpNotificationSender("https://relay.test/notify")

    with pytest.raises(TransientError):
        sender.send("booking-cancelled", "ada@example.com", {})


@pytest.mark.unit
@patch("lodging_booking.services.notifications.requests.post")
def test_http_sender_reports_client_error_as_failure(mock_post: Any) -> None:
    mock_post.return_value = make_response(400)
    sender = HttpNotificationSender("https://relay.test/notify")

    assert sender.send("booking-confirmed", "ada@example.com", {}) is False


@pytest.mark.unit
def test_get_notification_sender_picks_transport() -> None:
    with patch("lodging_booking.services.notifications.NOTIFICATION_WEBHOOK_URL", ""):
        assert isinstance(get_notification_sender(), LoggingNotificationSender)
    with patch(
        "lodging_booking.services.notifications.NOTIFICATION_WEBHOOK_URL", "https://relay.test"
    ):
        sender = get_notification_sender()
        assert isinstance(sender, HttpNotificationSender)
        assert sender.url == "https://relay.test"


@pytest.mark.unit
def test_reservation_payload_is_json_safe() -> None:
    payload = reservation_payload(RESERVATION)

    assert payload == {
        "reservation_id": str(RESERVATION_ID),
        "confirmation_code": "K7Q2M9XA4B",
        "guest_name": "Ada Lovelace",
        "unit_id": 3,
        "check_in": "2025-06-01",
        "check_out": "2025-06-03",
        "total": "216.00",
        "status": "confirmed",
        "cancellation_reason": None,
    }


@pytest.mark.unit
@patch("lodging_booking.services.notifications.dispatch", return_value=True)
def test_notify_reservation_event_goes_through_ledger(mock_dispatch: Any) -> None:
    engine = MagicMock()
    sender = MagicMock()
    sender.send.return_value = True

    assert notify_reservation_event(engine, "booking-confirmed", RESERVATION, sender) is True

    kwargs = mock_dispatch.call_args.kwargs
    assert kwargs["key"] == f"booking-confirmed:{RESERVATION_ID}"
    assert kwargs["kind"] == "booking-confirmed"
    assert kwargs["reservation_id"] == RESERVATION_ID

    # The action is deferred until the ledger decides to run it
    sender.send.assert_not_called()
    assert kwargs["action"]() is True
    sender.send.assert_called_once_with(
        "booking-confirmed", "ada@example.com", reservation_payload(RESERVATION)
    )
