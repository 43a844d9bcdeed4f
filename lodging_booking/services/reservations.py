"""
Reservation store: race-free creation, state transitions, and read paths.

Creation serializes per unit: the unit row is locked (bounded by
lock_timeout) before the overlap check, and the lock is held through the
insert until commit. The gist exclusion constraint on the reservations table
backs this up at the storage level. Creation is never retried internally; a
caller that gets TransientError may resubmit.
"""

from __future__ import annotations

import secrets
import string
import uuid
from datetime import date
from typing import Any, Callable, Optional
from uuid import UUID

import structlog
from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError

from lodging_booking.config import UNIT_LOCK_TIMEOUT_MS
from lodging_booking.db.readers.reservations import (
    get_reservation,
    get_reservation_by_code,
    has_overlapping_reservation,
    list_reservations,
)
from lodging_booking.db.readers.units import lock_unit
from lodging_booking.db.writers.reservations import insert_reservation, update_reservation_status
from lodging_booking.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from lodging_booking.metrics import reservation_transitions, reservations_created
from lodging_booking.models.reservations import NO_OVERLAP_CONSTRAINT
from lodging_booking.services.notifications import NotificationSender, notify_reservation_event
from lodging_booking.services.pricing import TaxPolicy, quote_stay
from lodging_booking.services.state_machine import (
    DISPATCH_ON_ENTER,
    ReservationStatus,
    ensure_transition,
    parse_status,
)
from lodging_booking.services.validation import validate_booking, validate_page

logger = structlog.get_logger(__name__)

CONFIRMATION_CODE_ALPHABET = string.ascii_uppercase + string.digits
CONFIRMATION_CODE_LENGTH = 10
CONFIRMATION_CODE_ATTEMPTS = 5

DEFAULT_CANCELLATION_REASON = "cancelled by operator"

# PostgreSQL SQLSTATEs
LOCK_NOT_AVAILABLE = "55P03"
EXCLUSION_VIOLATION = "23P01"

Scheduler = Callable[..., Any]


def generate_confirmation_code() -> str:
    """Return a random, human-shareable confirmation code such as 'K7Q2M9XA4B'."""
    return "".join(
        secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH)
    )


def _sqlstate(err: Exception) -> Optional[str]:
    return getattr(getattr(err, "orig", None), "pgcode", None)


def _constraint_name(err: Exception) -> Optional[str]:
    diag = getattr(getattr(err, "orig", None), "diag", None)
    return getattr(diag, "constraint_name", None)


def _insert_with_unique_code(
    conn: Connection, row: dict[str, Any], unit_id: int
) -> dict[str, Any]:
    for attempt in range(1, CONFIRMATION_CODE_ATTEMPTS + 1):
        row["confirmation_code"] = generate_confirmation_code()
        try:
            with conn.begin_nested():
                return insert_reservation(conn, row)
        except IntegrityError as e:
            constraint = _constraint_name(e) or ""
            if _sqlstate(e) == EXCLUSION_VIOLATION or constraint == NO_OVERLAP_CONSTRAINT:
                raise ConflictError(
                    "Unit is no longer available for the selected dates", unit_id=unit_id
                ) from e
            if "confirmation_code" not in constraint:
                raise
            logger.warning("confirmation_code_collision", attempt=attempt)

    raise TransientError("Could not allocate a confirmation code", unit_id=unit_id)


def create_reservation(
    engine: Engine,
    unit_id: int,
    guest: dict[str, Any],
    check_in: Any,
    check_out: Any,
    guests: Any,
    tax_policy: TaxPolicy,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """
    Create a pending reservation if the unit is still free for the dates.

    Args:
        engine: SQLAlchemy Engine
        unit_id: Unit to book
        guest: first_name, last_name, email, optional phone_number/special_requests
        check_in: Check-in date (ISO string or date)
        check_out: Check-out date (ISO string or date), exclusive
        guests: Party size
        tax_policy: Policy computing tax from the subtotal
        today: Override for the current date

    Returns:
        dict[str, Any]: The stored reservation row.

    Raises:
        ValidationError: Bad input, or party larger than the unit's capacity
        NotFoundError: Unknown unit
        ConflictError: An active reservation already overlaps the dates
        TransientError: The unit lock could not be acquired in time
    """
    try:
        normalized_guest, stay = validate_booking(guest, check_in, check_out, guests, today)
    except ValidationError:
        reservations_created.labels(outcome="invalid").inc()
        raise

    try:
        with engine.begin() as conn:
            conn.execute(text(f"SET LOCAL lock_timeout = '{int(UNIT_LOCK_TIMEOUT_MS)}ms'"))

            unit = lock_unit(conn, unit_id)
            if unit is None:
                reservations_created.labels(outcome="not_found").inc()
                raise NotFoundError(f"Unit {unit_id} not found", unit_id=unit_id)

            if stay.guests > unit["capacity"]:
                reservations_created.labels(outcome="invalid").inc()
                raise ValidationError.for_field(
                    "guests",
                    f"Unit {unit_id} holds at most {unit['capacity']} guests",
                    unit_id=unit_id,
                )

            if has_overlapping_reservation(conn, unit_id, stay.check_in, stay.check_out):
                reservations_created.labels(outcome="conflict").inc()
                raise ConflictError(
                    "Unit is no longer available for the selected dates", unit_id=unit_id
                )

            quote = quote_stay(unit["nightly_rate"], stay.nights, tax_policy)
            row = {
                "id": uuid.uuid4(),
                "unit_id": unit_id,
                **normalized_guest,
                "check_in": stay.check_in,
                "check_out": stay.check_out,
                "guest_count": stay.guests,
                "subtotal": quote.subtotal,
                "tax": quote.tax,
                "total": quote.total,
                "paid": False,
                "status": ReservationStatus.PENDING.value,
            }
            try:
                reservation = _insert_with_unique_code(conn, row, unit_id)
            except ConflictError:
                reservations_created.labels(outcome="conflict").inc()
                raise
    except OperationalError as e:
        if _sqlstate(e) != LOCK_NOT_AVAILABLE:
            raise
        reservations_created.labels(outcome="busy").inc()
        logger.warning("unit_lock_timeout", unit_id=unit_id, timeout_ms=UNIT_LOCK_TIMEOUT_MS)
        raise TransientError("Unit is busy, please try again", unit_id=unit_id) from e

    reservations_created.labels(outcome="created").inc()
    logger.info(
        "reservation_created",
        reservation_id=str(reservation["id"]),
        unit_id=unit_id,
        check_in=stay.check_in.isoformat(),
        check_out=stay.check_out.isoformat(),
        total=str(reservation["total"]),
    )
    return reservation


def _run_now(func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    try:
        func(*args, **kwargs)
    except Exception:
        logger.exception("dispatch_invocation_failed", func=getattr(func, "__name__", "?"))


def schedule_notification(
    engine: Engine,
    kind: str,
    reservation: dict[str, Any],
    schedule: Optional[Scheduler] = None,
    sender: Optional[NotificationSender] = None,
) -> None:
    """
    Hand a reservation notification to the dispatch ledger.

    Args:
        engine: SQLAlchemy Engine
        kind: Dispatch kind
        reservation: Reservation row after the triggering change committed
        schedule: add_task-style callable (e.g. BackgroundTasks.add_task); runs
            inline when omitted. A failing dispatch never propagates.
        sender: Notification transport; defaults to the configured sender
    """
    (schedule or _run_now)(notify_reservation_event, engine, kind, reservation, sender)


def transition_reservation(
    engine: Engine,
    reservation_id: UUID,
    new_status: str,
    reason: Optional[str] = None,
    schedule: Optional[Scheduler] = None,
    sender: Optional[NotificationSender] = None,
) -> dict[str, Any]:
    """
    Move a reservation to a new status according to the state machine.

    Entering 'confirmed' triggers a booking-confirmed dispatch and entering
    'cancelled' a booking-cancelled dispatch, both after the change commits.

    Args:
        engine: SQLAlchemy Engine
        reservation_id: Reservation ID
        new_status: Target status ("checked-in" and "checked_in" both accepted)
        reason: Cancellation reason; defaults to "cancelled by operator"
        schedule: add_task-style scheduler for the dispatch
        sender: Notification transport for the dispatch

    Returns:
        dict[str, Any]: The updated reservation row.

    Raises:
        ValidationError: Unknown status value
        NotFoundError: Unknown reservation
        InvalidTransitionError: Move not allowed from the current status
    """
    try:
        target = parse_status(new_status)
    except ValueError:
        raise ValidationError.for_field("status", f"Unknown status '{new_status}'")

    with engine.begin() as conn:
        current_row = get_reservation(conn, reservation_id)
        if current_row is None:
            raise NotFoundError(
                f"Reservation {reservation_id} not found", reservation_id=str(reservation_id)
            )

        current = ReservationStatus(current_row["status"])
        ensure_transition(current, target, str(reservation_id))

        cancellation_reason = None
        if target is ReservationStatus.CANCELLED:
            cancellation_reason = (reason or "").strip() or DEFAULT_CANCELLATION_REASON

        updated = update_reservation_status(
            conn, reservation_id, current.value, target.value, cancellation_reason
        )
        if updated is None:
            # Another writer moved the reservation between our read and write
            latest = get_reservation(conn, reservation_id)
            raise InvalidTransitionError(
                latest["status"] if latest else current.value,
                target.value,
                reservation_id=str(reservation_id),
            )

    reservation_transitions.labels(from_status=current.value, to_status=target.value).inc()
    logger.info(
        "reservation_transitioned",
        reservation_id=str(reservation_id),
        from_status=current.value,
        to_status=target.value,
    )

    kind = DISPATCH_ON_ENTER.get(target)
    if kind:
        schedule_notification(engine, kind, updated, schedule, sender)
    return updated


def cancel_reservation(
    engine: Engine,
    reservation_id: UUID,
    reason: Optional[str] = None,
    schedule: Optional[Scheduler] = None,
    sender: Optional[NotificationSender] = None,
) -> dict[str, Any]:
    """
    Cancel a reservation. Cancelling an already-cancelled reservation is rejected.

    Raises:
        NotFoundError: Unknown reservation
        InvalidTransitionError: Reservation is already cancelled or checked out
    """
    return transition_reservation(
        engine, reservation_id, ReservationStatus.CANCELLED.value, reason, schedule, sender
    )


def fetch_reservation(engine: Engine, reservation_id: UUID) -> dict[str, Any]:
    with engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)
    if reservation is None:
        raise NotFoundError(
            f"Reservation {reservation_id} not found", reservation_id=str(reservation_id)
        )
    return reservation


def fetch_reservation_by_code(engine: Engine, confirmation_code: str) -> dict[str, Any]:
    with engine.connect() as conn:
        reservation = get_reservation_by_code(conn, confirmation_code)
    if reservation is None:
        raise NotFoundError(
            "Reservation not found", confirmation_code=confirmation_code.upper()
        )
    return reservation


def search_reservations(
    engine: Engine,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> dict[str, Any]:
    """
    List reservations with optional status and guest free-text filters.

    Returns:
        dict[str, Any]: {"reservations", "page", "page_size", "total"}
    """
    page, page_size = validate_page(page, page_size)

    status_value = None
    if status:
        try:
            status_value = parse_status(status).value
        except ValueError:
            raise ValidationError.for_field("status", f"Unknown status '{status}'")

    with engine.connect() as conn:
        rows, total = list_reservations(
            conn,
            status=status_value,
            search=(search or "").strip() or None,
            limit=page_size,
            offset=(page - 1) * page_size,
        )

    return {"reservations": rows, "page": page, "page_size": page_size, "total": total}
