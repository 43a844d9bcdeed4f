"""Create units, reservations, payments and dispatch ledger

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2025-05-02 10:14:08.118204

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f1c9a2b7d40"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "lodging"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("unit_number", sa.String(32), nullable=False, unique=True),
        sa.Column("unit_type", sa.String(64), nullable=False, index=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("nightly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="available"),
        *_timestamps(),
        sa.CheckConstraint("capacity >= 1", name="ck_units_capacity_positive"),
        sa.CheckConstraint("nightly_rate >= 0", name="ck_units_rate_non_negative"),
        sa.CheckConstraint(
            "status IN ('available', 'occupied', 'cleaning', 'maintenance')",
            name="ck_units_status",
        ),
        schema=SCHEMA,
    )

    op.create_table(
        "reservations",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("confirmation_code", sa.String(16), nullable=False),
        sa.Column(
            "unit_id",
            sa.Integer(),
            sa.ForeignKey(f"{SCHEMA}.units.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, index=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("special_requests", sa.String(), nullable=True),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("guest_count", sa.Integer(), nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False),
        sa.Column("tax", sa.Numeric(10, 2), nullable=False),
        sa.Column("total", sa.Numeric(10, 2), nullable=False),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending", index=True),
        sa.Column("cancellation_reason", sa.String(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("confirmation_code", name="uq_reservations_confirmation_code"),
        sa.CheckConstraint("check_in < check_out", name="ck_reservations_dates_ordered"),
        sa.CheckConstraint("guest_count >= 1", name="ck_reservations_guest_count_positive"),
        sa.CheckConstraint("tax >= 0", name="ck_reservations_tax_non_negative"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'checked_in', 'checked_out', 'cancelled')",
            name="ck_reservations_status",
        ),
        schema=SCHEMA,
    )

    # No two active reservations on one unit may overlap
    op.execute(
        f"ALTER TABLE {SCHEMA}.reservations ADD CONSTRAINT ex_reservations_unit_no_overlap "
        "EXCLUDE USING gist (unit_id WITH =, daterange(check_in, check_out, '[)') WITH &&) "
        "WHERE (status IN ('pending', 'confirmed', 'checked_in'))"
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "reservation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(f"{SCHEMA}.reservations.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("processor_intent_id", sa.String(255), nullable=False, unique=True),
        sa.Column("client_secret", sa.String(255), nullable=True),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed')", name="ck_payments_status"
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "uq_payments_reservation_pending",
        "payments",
        ["reservation_id"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "dispatch_ledger",
        sa.Column("idempotency_key", sa.String(255), primary_key=True),
        sa.Column(
            "reservation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(f"{SCHEMA}.reservations.id", ondelete="RESTRICT"),
            nullable=True,
            index=True,
        ),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("outcome", sa.String(16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "outcome IN ('sending', 'sent', 'failed')", name="ck_dispatch_ledger_outcome"
        ),
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("dispatch_ledger", schema=SCHEMA)
    op.drop_table("payments", schema=SCHEMA)
    op.drop_table("reservations", schema=SCHEMA)
    op.drop_table("units", schema=SCHEMA)
