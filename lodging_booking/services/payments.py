"""
Payment intent issuance and processor event reconciliation.

A reservation's paid flag is only ever set from a payment-succeeded event,
in the same transaction that moves its PaymentRecord to completed.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from lodging_booking.config import DEFAULT_CURRENCY
from lodging_booking.db.readers.payments import (
    get_payment_by_intent,
    list_payments_for_reservation,
)
from lodging_booking.db.readers.reservations import get_reservation
from lodging_booking.db.writers.payments import insert_pending_payment, update_payment_status
from lodging_booking.db.writers.reservations import mark_reservation_paid
from lodging_booking.errors import (
    AlreadyPaidError,
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from lodging_booking.metrics import payment_events, payment_intents
from lodging_booking.models.payments import PENDING_PAYMENT_INDEX
from lodging_booking.network.processor import PaymentProcessor
from lodging_booking.schemas.payment_events import (
    PaymentEvent,
    PaymentFailed,
    PaymentSucceeded,
)
from lodging_booking.services.notifications import NotificationSender
from lodging_booking.services.pricing import to_money
from lodging_booking.services.reservations import Scheduler, schedule_notification
from lodging_booking.services.state_machine import ReservationStatus

logger = structlog.get_logger(__name__)

CURRENCY_PATTERN = re.compile(r"^[a-z]{3}$")

PAYMENT_NOTIFICATION = "payment-notification"

UNPAYABLE_STATUSES = frozenset(
    {ReservationStatus.CANCELLED.value, ReservationStatus.CHECKED_OUT.value}
)


def _validate_charge(amount: Any, currency: Optional[str]) -> tuple[Optional[Decimal], str]:
    errors: dict[str, str] = {}
    parsed_amount: Optional[Decimal] = None
    if amount is not None:
        try:
            parsed_amount = to_money(Decimal(str(amount)))
        except (InvalidOperation, ValueError):
            errors["amount"] = "amount must be a decimal number"
        else:
            if parsed_amount <= 0:
                errors["amount"] = "amount must be greater than 0"

    code = (currency or DEFAULT_CURRENCY).strip().lower()
    if not CURRENCY_PATTERN.match(code):
        errors["currency"] = "currency must be a 3-letter ISO code"

    if errors:
        raise ValidationError(errors)
    return parsed_amount, code


def _check_payable(reservation: Optional[dict[str, Any]], reservation_id: UUID) -> dict[str, Any]:
    if reservation is None:
        raise NotFoundError(
            f"Reservation {reservation_id} not found", reservation_id=str(reservation_id)
        )
    if reservation["paid"]:
        payment_intents.labels(outcome="rejected").inc()
        raise AlreadyPaidError(
            "Reservation is already paid", reservation_id=str(reservation_id)
        )
    if reservation["status"] in UNPAYABLE_STATUSES:
        payment_intents.labels(outcome="rejected").inc()
        raise ConflictError(
            f"Cannot take payment for a {reservation['status']} reservation",
            reservation_id=str(reservation_id),
        )
    return reservation


def _pending_payment(conn: Connection, reservation_id: UUID) -> Optional[dict[str, Any]]:
    for record in list_payments_for_reservation(conn, reservation_id):
        if record["status"] == "pending":
            return record
    return None


def _reuse_pending(
    pending: dict[str, Any], amount: Decimal, currency: str, reservation_id: UUID
) -> dict[str, str]:
    if pending["amount"] != amount or pending["currency"] != currency:
        payment_intents.labels(outcome="rejected").inc()
        raise ConflictError(
            "A payment for this reservation is already in progress",
            reservation_id=str(reservation_id),
            intent_id=pending["processor_intent_id"],
        )
    payment_intents.labels(outcome="reused").inc()
    logger.info(
        "payment_intent_reused",
        reservation_id=str(reservation_id),
        intent_id=pending["processor_intent_id"],
    )
    return {
        "intent_id": pending["processor_intent_id"],
        "client_secret": pending["client_secret"],
    }


def create_payment_intent(
    engine: Engine,
    reservation_id: UUID,
    amount: Any,
    currency: Optional[str],
    processor: PaymentProcessor,
    idempotency_key: Optional[str] = None,
) -> dict[str, str]:
    """
    Issue a processor payment intent for a reservation and record it as pending.

    A reservation holds at most one pending intent. While one is pending,
    further requests for the same amount and currency get that intent back
    without a processor call; a different amount or currency is a conflict.
    A new intent is issued only once the earlier one has failed.

    The processor call happens outside any transaction. A timeout leaves no
    PaymentRecord behind; resubmitting with the same idempotency key makes the
    processor return the same intent, which is then recorded once. The record
    is written with the reservation row locked, and the pending check is
    repeated there, so two concurrent requests cannot both record an intent.

    Args:
        engine: SQLAlchemy Engine
        reservation_id: Reservation to charge
        amount: Amount in major units; defaults to the reservation total
        currency: ISO currency code; defaults to DEFAULT_CURRENCY
        processor: Payment processor client
        idempotency_key: Client-supplied key forwarded to the processor

    Returns:
        dict[str, str]: {"intent_id", "client_secret"}

    Raises:
        ValidationError: Bad amount or currency
        NotFoundError: Unknown reservation
        AlreadyPaidError: Reservation is already paid
        ConflictError: Reservation is cancelled or checked out, or another
            intent with different terms is still pending
        TransientError: Processor unreachable or timed out
    """
    charge_amount, charge_currency = _validate_charge(amount, currency)

    with engine.connect() as conn:
        reservation = _check_payable(get_reservation(conn, reservation_id), reservation_id)
        pending = _pending_payment(conn, reservation_id)

    if charge_amount is None:
        charge_amount = to_money(reservation["total"])
    if pending is not None:
        return _reuse_pending(pending, charge_amount, charge_currency, reservation_id)

    try:
        intent = processor.create_intent(
            charge_amount,
            charge_currency,
            metadata={
                "reservation_id": str(reservation_id),
                "confirmation_code": reservation["confirmation_code"],
            },
            receipt_email=reservation["email"],
            idempotency_key=idempotency_key,
        )
    except TransientError:
        payment_intents.labels(outcome="timeout").inc()
        raise
    except Exception:
        payment_intents.labels(outcome="error").inc()
        raise

    with engine.begin() as conn:
        _check_payable(get_reservation(conn, reservation_id, for_update=True), reservation_id)
        pending = _pending_payment(conn, reservation_id)
        if pending is not None and pending["processor_intent_id"] != intent.intent_id:
            # A concurrent request recorded its intent first; ours is never handed out
            logger.warning(
                "payment_intent_superseded",
                reservation_id=str(reservation_id),
                intent_id=pending["processor_intent_id"],
                unused_intent_id=intent.intent_id,
            )
            return _reuse_pending(pending, charge_amount, charge_currency, reservation_id)

        try:
            created = insert_pending_payment(
                conn,
                reservation_id,
                intent.intent_id,
                charge_amount,
                charge_currency,
                intent.client_secret,
            )
        except IntegrityError as e:
            if PENDING_PAYMENT_INDEX not in str(e.orig):
                raise
            payment_intents.labels(outcome="rejected").inc()
            raise ConflictError(
                "A payment for this reservation is already in progress",
                reservation_id=str(reservation_id),
            ) from e

    outcome = "created" if created else "duplicate"
    payment_intents.labels(outcome=outcome).inc()
    logger.info(
        "payment_intent_issued",
        reservation_id=str(reservation_id),
        intent_id=intent.intent_id,
        amount=str(charge_amount),
        currency=charge_currency,
        outcome=outcome,
    )
    return {"intent_id": intent.intent_id, "client_secret": intent.client_secret}


def _apply_succeeded(engine: Engine, event: PaymentSucceeded) -> tuple[str, Optional[dict]]:
    with engine.begin() as conn:
        record = get_payment_by_intent(conn, event.intent_id, for_update=True)
        if record is None:
            return "dropped", None

        reservation_id = record["reservation_id"]
        if record["status"] == "completed":
            # Heal a paid flag left unset by an earlier partial failure
            mark_reservation_paid(conn, reservation_id)
            return "duplicate", None

        updated = update_payment_status(conn, event.intent_id, record["status"], "completed")
        if updated is None:
            return "duplicate", None
        mark_reservation_paid(conn, reservation_id)
        return "applied", get_reservation(conn, reservation_id)


def _apply_failed(engine: Engine, event: PaymentFailed) -> str:
    with engine.begin() as conn:
        record = get_payment_by_intent(conn, event.intent_id, for_update=True)
        if record is None:
            return "dropped"
        if record["status"] == "failed":
            return "duplicate"
        if record["status"] == "completed":
            # A completed charge is never reverted by a late failure event
            return "ignored"

        updated = update_payment_status(conn, event.intent_id, record["status"], "failed")
        return "applied" if updated is not None else "duplicate"


def apply_payment_event(
    engine: Engine,
    event: PaymentEvent,
    schedule: Optional[Scheduler] = None,
    sender: Optional[NotificationSender] = None,
) -> dict[str, Any]:
    """
    Apply a verified processor event to payment and reservation state.

    Re-delivery of an event already applied is a no-op. Events for unknown
    intents are logged and dropped; they are acknowledged, never errored.

    Args:
        engine: SQLAlchemy Engine
        event: Parsed payment event
        schedule: add_task-style scheduler for the payment notification
        sender: Notification transport for the payment notification

    Returns:
        dict[str, Any]: Acknowledgement {"received": True, "kind", "outcome"}
    """
    reservation = None
    if isinstance(event, PaymentSucceeded):
        outcome, reservation = _apply_succeeded(engine, event)
    elif isinstance(event, PaymentFailed):
        outcome = _apply_failed(engine, event)
    else:
        outcome = "ignored"

    payment_events.labels(kind=event.kind, outcome=outcome).inc()
    log = logger.warning if outcome == "dropped" else logger.info
    log(
        "payment_event_processed",
        kind=event.kind,
        raw_kind=getattr(event, "raw_kind", None),
        intent_id=event.intent_id,
        outcome=outcome,
    )

    if reservation is not None:
        schedule_notification(engine, PAYMENT_NOTIFICATION, reservation, schedule, sender)

    return {"received": True, "kind": event.kind, "outcome": outcome}
