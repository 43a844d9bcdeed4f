from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection

from lodging_booking.models.dispatch import DispatchLedgerEntry
from lodging_booking.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def record_dispatch_outcome(
    conn: Connection,
    key: str,
    kind: str,
    reservation_id: Optional[UUID],
    outcome: str,
    attempts: int,
    last_error: Optional[str] = None,
) -> None:
    """
    Upsert the final ledger entry for a key, never overwriting a 'sent' outcome.

    Args:
        conn (Connection): Connection holding the key's dispatch lock.
        key (str): Idempotency key.
        kind (str): Dispatch kind, e.g. "booking-confirmed".
        reservation_id (Optional[UUID]): Reservation the dispatch belongs to.
        outcome (str): "sent" or "failed".
        attempts (int): Attempts made by this dispatch call.
        last_error (Optional[str]): Error text of the final failed attempt.
    """
    now = utc_now()
    stmt = insert(DispatchLedgerEntry).values(
        idempotency_key=key,
        reservation_id=reservation_id,
        kind=kind,
        outcome=outcome,
        attempts=attempts,
        last_error=last_error,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["idempotency_key"],
        set_={
            "outcome": stmt.excluded.outcome,
            "attempts": DispatchLedgerEntry.attempts + stmt.excluded.attempts,
            "last_error": stmt.excluded.last_error,
            "updated_at": stmt.excluded.updated_at,
        },
        where=DispatchLedgerEntry.outcome != "sent",
    )
    conn.execute(stmt)

    logger.debug("dispatch_outcome_recorded", key=key, outcome=outcome, attempts=attempts)


def claim_dispatch(
    conn: Connection,
    key: str,
    kind: str,
    reservation_id: Optional[UUID],
) -> None:
    """
    Mark a key 'sending' so other workers leave it alone while the action runs.

    The claim's updated_at is its start time. A 'sent' row is never claimed.

    Args:
        conn (Connection): Connection holding the key's dispatch lock.
        key (str): Idempotency key.
        kind (str): Dispatch kind, e.g. "booking-confirmed".
        reservation_id (Optional[UUID]): Reservation the dispatch belongs to.
    """
    now = utc_now()
    stmt = insert(DispatchLedgerEntry).values(
        idempotency_key=key,
        reservation_id=reservation_id,
        kind=kind,
        outcome="sending",
        attempts=0,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["idempotency_key"],
        set_={"outcome": stmt.excluded.outcome, "updated_at": stmt.excluded.updated_at},
        where=DispatchLedgerEntry.outcome != "sent",
    )
    conn.execute(stmt)

    logger.debug("dispatch_claimed", key=key)
