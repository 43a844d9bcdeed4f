"""
Shared fixtures for integration tests against a real PostgreSQL.

Tests are skipped when DATABASE_URL does not point at a reachable server.
Tables are created with Base.metadata.create_all and emptied before each test.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Generator

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine

from lodging_booking.config import SCHEMA
from lodging_booking.db.engine import check_engine_health, engine
from lodging_booking.models.base import Base
from lodging_booking.models.dispatch import DispatchLedgerEntry  # noqa: F401
from lodging_booking.models.payments import PaymentRecord  # noqa: F401
from lodging_booking.models.reservations import Reservation  # noqa: F401
from lodging_booking.models.units import Unit  # noqa: F401


@pytest.fixture(scope="session")
def db_engine() -> Generator[Engine, None, None]:
    """Create the schema once per session, or skip if PostgreSQL is unreachable."""
    if not check_engine_health():
        pytest.skip("PostgreSQL is not reachable at DATABASE_URL")

    with engine.begin() as conn:
        conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}"))
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS pgcrypto"))
    Base.metadata.create_all(engine)

    yield engine


@pytest.fixture(autouse=True)
def clean_tables(db_engine: Engine) -> Generator[None, None, None]:
    with db_engine.begin() as conn:
        conn.execute(
            text(
                f"TRUNCATE {SCHEMA}.dispatch_ledger, {SCHEMA}.payments, "
                f"{SCHEMA}.reservations, {SCHEMA}.units RESTART IDENTITY CASCADE"
            )
        )
    yield


@pytest.fixture
def make_unit(db_engine: Engine) -> Callable[..., int]:
    """
    Factory inserting a unit and returning its id.

    Example:
        >>> unit_id = make_unit("101", "suite", capacity=2, nightly_rate="100.00")
    """

    def _make(
        unit_number: str,
        unit_type: str = "suite",
        capacity: int = 2,
        nightly_rate: Any = "100.00",
    ) -> int:
        with db_engine.begin() as conn:
            return int(
                conn.execute(
                    text(
                        f"""
                        INSERT INTO {SCHEMA}.units (unit_number, unit_type, capacity, nightly_rate)
                        VALUES (:unit_number, :unit_type, :capacity, :nightly_rate)
                        RETURNING id
                        """
                    ),
                    {
                        "unit_number": unit_number,
                        "unit_type": unit_type,
                        "capacity": capacity,
                        "nightly_rate": Decimal(str(nightly_rate)),
                    },
                ).scalar_one()
            )

    return _make
