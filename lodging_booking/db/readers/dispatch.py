from typing import Any, Optional

from sqlalchemy import select, text
from sqlalchemy.engine import Connection

from lodging_booking.models.dispatch import DispatchLedgerEntry


def acquire_dispatch_lock(conn: Connection, key: str) -> None:
    """
    Serialize dispatches for one idempotency key.

    Takes a transaction-scoped advisory lock derived from the key. A second
    dispatcher for the same key blocks here until the first commits, then sees
    its claim or its recorded outcome.

    Args:
        conn (Connection): Connection inside an open transaction.
        key (str): Idempotency key.
    """
    conn.execute(text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"), {"key": key})


def get_ledger_entry(conn: Connection, key: str) -> Optional[dict[str, Any]]:
    """
    Fetch the ledger entry for an idempotency key.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        key (str): Idempotency key.

    Returns:
        Optional[dict[str, Any]]: Ledger row or None if the key was never dispatched.
    """
    row = (
        conn.execute(select(DispatchLedgerEntry).where(DispatchLedgerEntry.idempotency_key == key))
        .mappings()
        .fetchone()
    )
    return dict(row) if row else None
