"""
Payment processor client.

Wraps Stripe PaymentIntents behind a narrow protocol so the payment service
never touches the SDK directly and tests can substitute a fake.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Protocol

import stripe
import structlog

from lodging_booking.config import PROCESSOR_TIMEOUT_SECONDS
from lodging_booking.errors import ProcessorError, TransientError
from lodging_booking.metrics import processor_latency
from lodging_booking.services.pricing import CENT

logger = structlog.get_logger(__name__)

# ISO 4217 currencies Stripe charges without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga", "pyg", "rwf",
     "ugx", "vnd", "vuv", "xaf", "xof", "xpf"}
)


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    client_secret: str


class PaymentProcessor(Protocol):
    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        receipt_email: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent: ...


def to_minor_units(amount: Decimal, currency: str) -> int:
    """
    Convert a major-unit amount to the integer the processor expects.

    Args:
        amount (Decimal): Amount in major units, e.g. Decimal("216.00").
        currency (str): ISO currency code.

    Returns:
        int: 21600 for USD, 216 for JPY.
    """
    if currency.lower() in ZERO_DECIMAL_CURRENCIES:
        return int(amount.quantize(Decimal("1")))
    return int((amount.quantize(CENT) * 100).to_integral_value())


class StripePaymentProcessor:
    """
    PaymentProcessor backed by the Stripe API.

    Network failures and timeouts surface as TransientError so the caller can
    resubmit; any other Stripe error surfaces as ProcessorError.
    """

    def __init__(self, api_key: str, timeout: float = PROCESSOR_TIMEOUT_SECONDS):
        self.api_key = api_key
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    def create_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        receipt_email: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        params: dict[str, Any] = {
            "amount": to_minor_units(amount, currency),
            "currency": currency.lower(),
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
            "api_key": self.api_key,
        }
        if receipt_email:
            params["receipt_email"] = receipt_email
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        started = time.perf_counter()
        try:
            intent = stripe.PaymentIntent.create(**params)
        except stripe.APIConnectionError as e:
            logger.warning("processor_unreachable", error=str(e), metadata=metadata)
            raise TransientError("Payment processor unreachable, please retry") from e
        except stripe.RateLimitError as e:
            logger.warning("processor_rate_limited", metadata=metadata)
            raise TransientError("Payment processor is busy, please retry") from e
        except stripe.StripeError as e:
            logger.error(
                "processor_request_failed",
                error=getattr(e, "user_message", None) or str(e),
                code=getattr(e, "code", None),
                metadata=metadata,
            )
            raise ProcessorError("Payment processor rejected the request") from e
        finally:
            processor_latency.observe(time.perf_counter() - started)

        return PaymentIntent(intent_id=intent["id"], client_secret=intent["client_secret"])
