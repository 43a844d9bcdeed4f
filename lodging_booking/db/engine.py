"""
SQLAlchemy engine singleton with production-ready connection pooling.

Reservation creation holds a row lock for the length of one short
transaction, and dispatch holds an advisory lock while a notification is
sent, so the pool is sized for several concurrent writers per worker.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from lodging_booking.config import DATABASE_URL

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set.")

engine: Engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,  # detect stale connections
    pool_recycle=3600,
    echo=False,
)


def check_engine_health() -> bool:
    """
    Check if database engine is healthy and connections are working.

    Used by the /ready endpoint to verify database connectivity before
    allowing traffic to the service.

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
