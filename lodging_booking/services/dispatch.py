"""
Idempotent dispatch ledger.

Every one-shot side effect tied to a reservation event (a confirmation email,
a cancellation notice, a payment receipt) goes through dispatch(). The ledger
row for the event's key is checked before the action runs; once a 'sent'
outcome is recorded, repeated triggers for that key return immediately
without invoking the action again. A 'failed' outcome does not block later
attempts.

Concurrency: a short transaction under an advisory lock on the key checks the
ledger and claims the key by marking it 'sending'. The action then runs with no
connection or transaction held, and a second short transaction records the
outcome. A worker that finds a live claim leaves the key alone, so two workers
racing on the same key cannot both invoke the action. A claim older than
DISPATCH_CLAIM_TTL_SECONDS belongs to a worker that died mid-send and may be
taken over.
"""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Any, Callable, Optional
from uuid import UUID

import requests
import structlog
from sqlalchemy.engine import Engine

from lodging_booking.config import (
    DISPATCH_BACKOFF_SECONDS,
    DISPATCH_CLAIM_TTL_SECONDS,
    DISPATCH_MAX_ATTEMPTS,
)
from lodging_booking.db.readers.dispatch import acquire_dispatch_lock, get_ledger_entry
from lodging_booking.db.writers.dispatch import claim_dispatch, record_dispatch_outcome
from lodging_booking.errors import TransientError
from lodging_booking.metrics import dispatch_attempts
from lodging_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

SENDING = "sending"
SENT = "sent"
FAILED = "failed"

Action = Callable[[], bool]


def dispatch_key(kind: str, reservation_id: Optional[UUID | str]) -> str:
    """
    Derive the idempotency key for a logical event.

    Args:
        kind: Dispatch kind, e.g. "booking-confirmed".
        reservation_id: Reservation the event belongs to.

    Returns:
        str: Deterministic key; the same (kind, reservation) always maps to it.
    """
    return f"{kind}:{reservation_id if reservation_id is not None else '-'}"


def is_retryable(err: Exception) -> bool:
    """
    Decide whether a failed action attempt is worth retrying.

    Args:
        err: Exception raised by the action.

    Returns:
        bool: True for timeouts and connection-level failures.
    """
    return isinstance(err, (TransientError, requests.Timeout, requests.ConnectionError))


def _invoke_with_retry(
    action: Action,
    kind: str,
    max_attempts: int,
    backoff_seconds: float,
) -> tuple[str, int, Optional[str]]:
    attempts = 0
    last_error: Optional[str] = None

    while attempts < max_attempts:
        attempts += 1
        try:
            if action():
                dispatch_attempts.labels(kind=kind, outcome=SENT).inc()
                return SENT, attempts, None
            last_error = "action reported failure"
        except Exception as err:
            last_error = str(err) or type(err).__name__
            if not is_retryable(err):
                logger.exception("dispatch_action_failed", kind=kind, attempt=attempts)
                dispatch_attempts.labels(kind=kind, outcome=FAILED).inc()
                return FAILED, attempts, last_error

        dispatch_attempts.labels(kind=kind, outcome=FAILED).inc()
        logger.warning(
            "dispatch_attempt_failed", kind=kind, attempt=attempts, error=last_error
        )
        if attempts < max_attempts:
            time.sleep(backoff_seconds * attempts)

    return FAILED, attempts, last_error


def claim_is_live(entry: Optional[dict[str, Any]], ttl_seconds: int) -> bool:
    """
    Tell whether another worker is still running the action for a ledger entry.

    Args:
        entry: Ledger row, or None if the key was never dispatched.
        ttl_seconds: Age after which a 'sending' claim counts as abandoned.

    Returns:
        bool: True for a 'sending' row claimed less than ttl_seconds ago.
    """
    if entry is None or entry["outcome"] != SENDING:
        return False
    return entry["updated_at"] > utc_now() - timedelta(seconds=ttl_seconds)


def dispatch(
    engine: Engine,
    key: str,
    kind: str,
    reservation_id: Optional[UUID],
    action: Action,
    max_attempts: int = DISPATCH_MAX_ATTEMPTS,
    backoff_seconds: float = DISPATCH_BACKOFF_SECONDS,
    claim_ttl_seconds: int = DISPATCH_CLAIM_TTL_SECONDS,
) -> bool:
    """
    Run a one-shot side effect at most once per idempotency key.

    Args:
        engine: SQLAlchemy Engine
        key: Idempotency key, normally dispatch_key(kind, reservation_id)
        kind: Dispatch kind recorded in the ledger
        reservation_id: Reservation the side effect belongs to
        action: Zero-argument callable returning True on success
        max_attempts: Attempts before giving up on transient failures
        backoff_seconds: Base backoff; attempt n waits backoff_seconds × n
        claim_ttl_seconds: Age after which another worker's claim is taken over

    Returns:
        bool: True if the side effect has been delivered (now or earlier).
            False if it failed, or another worker is delivering it right now.
    """
    with engine.begin() as conn:
        acquire_dispatch_lock(conn, key)

        entry = get_ledger_entry(conn, key)
        if entry is not None and entry["outcome"] == SENT:
            logger.info("dispatch_suppressed", key=key, kind=kind)
            dispatch_attempts.labels(kind=kind, outcome="suppressed").inc()
            return True
        if claim_is_live(entry, claim_ttl_seconds):
            logger.info("dispatch_in_flight", key=key, kind=kind)
            dispatch_attempts.labels(kind=kind, outcome="in_flight").inc()
            return False

        claim_dispatch(conn, key=key, kind=kind, reservation_id=reservation_id)

    outcome, attempts, last_error = _invoke_with_retry(
        action, kind, max_attempts, backoff_seconds
    )

    with engine.begin() as conn:
        acquire_dispatch_lock(conn, key)
        record_dispatch_outcome(
            conn,
            key=key,
            kind=kind,
            reservation_id=reservation_id,
            outcome=outcome,
            attempts=attempts,
            last_error=last_error,
        )

    if outcome == SENT:
        logger.info("dispatch_sent", key=key, kind=kind, attempts=attempts)
    else:
        logger.error("dispatch_failed", key=key, kind=kind, attempts=attempts, error=last_error)
    return outcome == SENT
