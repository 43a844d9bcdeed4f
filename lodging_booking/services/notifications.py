"""
Notification senders used as dispatch actions.

The transport is pluggable: HttpNotificationSender POSTs to a configured
webhook (an email/SMS relay), LoggingNotificationSender only logs.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol
from uuid import UUID

import requests
import structlog
from sqlalchemy.engine import Engine

from lodging_booking.config import NOTIFICATION_WEBHOOK_URL
from lodging_booking.errors import TransientError
from lodging_booking.services.dispatch import dispatch, dispatch_key

logger = structlog.get_logger(__name__)

NOTIFICATION_TIMEOUT_SECONDS = 10


class NotificationSender(Protocol):
    def send(self, kind: str, recipient: str, payload: dict[str, Any]) -> bool: ...


class LoggingNotificationSender:
    """Sender that records the notification in the log and reports success."""

    def send(self, kind: str, recipient: str, payload: dict[str, Any]) -> bool:
        logger.info("notification_logged", kind=kind, recipient=recipient, payload=payload)
        return True


class HttpNotificationSender:
    """
    Sender that POSTs notifications to an HTTP relay.

    Timeouts, connection errors and 5xx/429 responses raise TransientError so
    the dispatch ledger retries them; other non-2xx responses count as a
    plain failure.
    """

    def __init__(self, url: str, timeout: float = NOTIFICATION_TIMEOUT_SECONDS):
        self.url = url
        self.timeout = timeout

    def send(self, kind: str, recipient: str, payload: dict[str, Any]) -> bool:
        try:
            response = requests.post(
                self.url,
                json={"kind": kind, "recipient": recipient, "payload": payload},
                timeout=self.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise TransientError("Notification relay unreachable", kind=kind) from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(
                "Notification relay unavailable", kind=kind, status_code=response.status_code
            )
        if not response.ok:
            logger.warning(
                "notification_rejected",
                kind=kind,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        return True


def get_notification_sender() -> NotificationSender:
    if NOTIFICATION_WEBHOOK_URL:
        return HttpNotificationSender(NOTIFICATION_WEBHOOK_URL)
    return LoggingNotificationSender()


def reservation_payload(reservation: dict[str, Any]) -> dict[str, Any]:
    """Build the notification payload for a reservation row (JSON-safe)."""
    return {
        "reservation_id": str(reservation["id"]),
        "confirmation_code": reservation["confirmation_code"],
        "guest_name": f"{reservation['first_name']} {reservation['last_name']}",
        "unit_id": reservation["unit_id"],
        "check_in": reservation["check_in"].isoformat(),
        "check_out": reservation["check_out"].isoformat(),
        "total": str(reservation["total"]),
        "status": reservation["status"],
        "cancellation_reason": reservation.get("cancellation_reason"),
    }


def notify_reservation_event(
    engine: Engine,
    kind: str,
    reservation: dict[str, Any],
    sender: Optional[NotificationSender] = None,
) -> bool:
    """
    Send a reservation notification through the dispatch ledger.

    Args:
        engine: SQLAlchemy Engine
        kind: "booking-confirmed", "booking-cancelled" or "payment-notification"
        reservation: Reservation row the notification is about
        sender: Transport; defaults to the configured sender

    Returns:
        bool: True if delivered now or previously.
    """
    transport = sender or get_notification_sender()
    reservation_id: UUID = reservation["id"]
    payload = reservation_payload(reservation)

    return dispatch(
        engine,
        key=dispatch_key(kind, reservation_id),
        kind=kind,
        reservation_id=reservation_id,
        action=lambda: transport.send(kind, reservation["email"], payload),
    )
