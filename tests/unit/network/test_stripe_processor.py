"""Unit tests for the Stripe-backed payment processor client."""

from decimal import Decimal
from typing import Any
from unittest.mock import patch

import pytest
import stripe

from lodging_booking.errors import ProcessorError, TransientError
from lodging_booking.network.processor import StripePaymentProcessor, to_minor_units

CREATE = "lodging_booking.network.processor.stripe.PaymentIntent.create"


@pytest.mark.unit
@pytest.mark.parametrize(
    "amount,currency,expected",
    [
        (Decimal("216.00"), "usd", 21600),
        (Decimal("0.5"), "eur", 50),
        (Decimal("19.999"), "usd", 2000),
        (Decimal("1500"), "JPY", 1500),
    ],
)
def test_to_minor_units(amount: Decimal, currency: str, expected: int) -> None:
    assert to_minor_units(amount, currency) == expected


@pytest.mark.unit
@patch(CREATE, return_value={"id": "pi_123", "client_secret": "pi_123_secret_abc"})
def test_create_intent_sends_minor_units_and_metadata(mock_create: Any) -> None:
    processor = StripePaymentProcessor("sk_test_123", timeout=2)

    intent = processor.create_intent(
        Decimal("216.00"),
        "USD",
        metadata={"reservation_id": "r-1"},
        receipt_email="ada@example.com",
        idempotency_key="retry-1",
    )

    assert intent.intent_id == "pi_123"
    assert intent.client_secret == "pi_123_secret_abc"
    mock_create.assert_called_once_with(
        amount=21600,
        currency="usd",
        metadata={"reservation_id": "r-1"},
        automatic_payment_methods={"enabled": True},
        api_key="sk_test_123",
        receipt_email="ada@example.com",
        idempotency_key="retry-1",
    )


@pytest.mark.unit
@patch(CREATE, return_value={"id": "pi_1", "client_secret": "s"})
def test_create_intent_omits_optional_params(mock_create: Any) -> None:
    StripePaymentProcessor("sk_test_123").create_intent(Decimal("10"), "usd", metadata={})

    kwargs = mock_create.call_args.kwargs
    assert "receipt_email" not in kwargs
    assert "idempotency_key" not in kwargs


@pytest.mark.unit
@patch(CREATE, side_effect=stripe.APIConnectionError("Request timed out"))
def test_connection_error_is_transient(mock_create: Any) -> None:
    with pytest.raises(TransientError):
        StripePaymentProcessor("sk_test_123").create_intent(Decimal("10"), "usd", metadata={})


@pytest.mark.unit
@patch(CREATE, side_effect=stripe.InvalidRequestError("Amount too small", param="amount"))
def test_rejected_request_is_processor_error(mock_create: Any) -> None:
    with pytest.raises(ProcessorError):
        StripePaymentProcessor("sk_test_123").create_intent(Decimal("0.1"), "usd", metadata={})
