"""
FastAPI dependency injection providers.

Routes receive the engine, the payment processor and the notification sender
through Depends, so tests can swap any of them via app.dependency_overrides.

Testing Example:
    >>> from unittest.mock import Mock
    >>> from fastapi.testclient import TestClient
    >>>
    >>> app.dependency_overrides[get_payment_processor] = lambda: Mock()
    >>> client = TestClient(app)
    >>> response = client.post("/payments/intents", json={...})
"""

from __future__ import annotations

from typing import Generator

from sqlalchemy.engine import Engine

from lodging_booking.config import STRIPE_SECRET_KEY
from lodging_booking.db.engine import engine
from lodging_booking.network.processor import PaymentProcessor, StripePaymentProcessor
from lodging_booking.services.notifications import (
    NotificationSender,
    get_notification_sender as build_notification_sender,
)


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine
    """
    yield engine


def get_payment_processor() -> PaymentProcessor:
    """Provide the configured payment processor client."""
    return StripePaymentProcessor(STRIPE_SECRET_KEY)


def get_notification_sender() -> NotificationSender:
    """Provide the configured notification transport."""
    return build_notification_sender()
