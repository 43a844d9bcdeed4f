"""Payment intent issuance and the processor webhook receiver."""

import json
from typing import Any, Optional

import stripe
import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.engine import Engine

from lodging_booking.config import STRIPE_WEBHOOK_SECRET, WEBHOOK_ALLOW_UNSIGNED
from lodging_booking.dependencies import (
    get_db_engine,
    get_notification_sender,
    get_payment_processor,
)
from lodging_booking.errors import BookingError
from lodging_booking.network.processor import PaymentProcessor
from lodging_booking.routes._error_helpers import to_http_exception
from lodging_booking.schemas.payment_events import parse_payment_event
from lodging_booking.schemas.payments import (
    PaymentEventAck,
    PaymentIntentOut,
    PaymentIntentPayload,
)
from lodging_booking.services.notifications import NotificationSender
from lodging_booking.services.payments import apply_payment_event, create_payment_intent

router = APIRouter()
logger = structlog.get_logger(__name__)


def verify_signature(payload: str, signature: Optional[str]) -> bool:
    """
    Verify the processor's webhook signature against the signing secret.

    Without a configured secret nothing verifies, unless WEBHOOK_ALLOW_UNSIGNED
    is set for local development.

    Args:
        payload: Raw request body
        signature: Stripe-Signature header value

    Returns:
        bool: True if the signature is valid or unsigned delivery is allowed
    """
    if not STRIPE_WEBHOOK_SECRET:
        return WEBHOOK_ALLOW_UNSIGNED
    if not signature:
        return False
    try:
        stripe.WebhookSignature.verify_header(payload, signature, STRIPE_WEBHOOK_SECRET)
    except stripe.SignatureVerificationError:
        return False
    return True


@router.post(
    "/payments/intents",
    status_code=status.HTTP_201_CREATED,
    response_model=PaymentIntentOut,
)
def create_intent_endpoint(
    payload: PaymentIntentPayload,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    engine: Engine = Depends(get_db_engine),
    processor: PaymentProcessor = Depends(get_payment_processor),
) -> dict[str, str]:
    """
    Issue a payment intent for a reservation.

    Returns the pending intent when one already exists for the same amount.
    Returns 409 if the reservation is already paid, cancelled or checked out,
    or has a pending intent for a different amount. Returns 503 if the
    processor timed out (nothing is recorded; resubmit with the same
    Idempotency-Key).

    Args:
        payload: Reservation id, optional amount and currency
        idempotency_key: Client retry key forwarded to the processor
        engine: Database engine (injected)
        processor: Payment processor client (injected)

    Returns:
        dict: intent_id and client_secret for the checkout page
    """
    try:
        return create_payment_intent(
            engine,
            payload.reservation_id,
            amount=payload.amount,
            currency=payload.currency,
            processor=processor,
            idempotency_key=idempotency_key,
        )
    except BookingError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(
            "payment_intent_failed", reservation_id=str(payload.reservation_id), error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/payments/webhook", response_model=PaymentEventAck)
async def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    engine: Engine = Depends(get_db_engine),
    sender: NotificationSender = Depends(get_notification_sender),
) -> Any:
    """
    Receive processor payment events.

    Answers 503 when no signing secret is configured and unsigned delivery
    is not explicitly allowed. Every verified event is acknowledged with 200,
    including events for unknown intents and kinds this service ignores. Only
    an internal failure answers 500, which makes the processor redeliver.
    """
    if not STRIPE_WEBHOOK_SECRET and not WEBHOOK_ALLOW_UNSIGNED:
        logger.error("payment_webhook_secret_missing")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Webhook signing secret is not configured",
        )

    raw_body = (await request.body()).decode("utf-8", errors="replace")

    if not verify_signature(raw_body, stripe_signature):
        logger.warning("payment_webhook_signature_invalid")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        body = json.loads(raw_body)
    except json.JSONDecodeError:
        logger.warning("payment_webhook_invalid_json", body=raw_body[:200])
        raise HTTPException(status_code=400, detail="Invalid JSON")

    event = parse_payment_event(body)

    try:
        return await run_in_threadpool(
            apply_payment_event, engine, event, background_tasks.add_task, sender
        )
    except Exception as e:
        logger.exception(
            "payment_webhook_failed", kind=event.kind, intent_id=event.intent_id, error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")
