"""add dispatch queue and dead-letter tables

Revision ID: 8b61e05a47c2
Revises: 3f2a9c71d0e4
Create Date: 2025-10-21 09:14:03.518230

"""

# pylint: disable=invalid-name

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from eventrelay.adapters.db.sa_types import BIGINT_PK, PORTABLE_JSON, UTCDateTime

# pylint: disable=no-member

# revision identifiers, used by Alembic.
revision: str = "8b61e05a47c2"
down_revision: str | Sequence[str] | None = "3f2a9c71d0e4"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

DISPATCHES = "domain_event_dispatches"
DEAD_LETTERS = "domain_event_dead_letters"


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        DISPATCHES,
        sa.Column("id", BIGINT_PK, sa.Identity(always=False, start=1), nullable=False),
        sa.Column("event_id", BIGINT_PK, nullable=False),
        sa.Column(
            "status", sa.String(length=20), nullable=False, server_default="pending"
        ),
        sa.Column(
            "delivery_channel",
            sa.String(length=50),
            nullable=False,
            server_default="webhook",
        ),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="12"),
        sa.Column("available_at", UTCDateTime(), nullable=True),
        sa.Column("locked_at", UTCDateTime(), nullable=True),
        sa.Column("locked_by", sa.String(length=128), nullable=True),
        sa.Column("delivered_at", UTCDateTime(), nullable=True),
        sa.Column("failed_at", UTCDateTime(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_error_at", UTCDateTime(), nullable=True),
        sa.Column("payload_checksum", sa.String(length=100), nullable=True),
        sa.Column("metadata", PORTABLE_JSON, nullable=False),
        sa.Column("dry_run", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column(
            "created_at",
            UTCDateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            UTCDateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'delivering', 'delivered', 'failed')",
            name=op.f("ck_domain_event_dispatches_valid_status"),
        ),
        sa.CheckConstraint(
            "(locked_at IS NULL AND locked_by IS NULL)"
            " OR (locked_at IS NOT NULL AND locked_by IS NOT NULL)",
            name=op.f("ck_domain_event_dispatches_lock_pair"),
        ),
        sa.CheckConstraint(
            "status <> 'delivering' OR locked_at IS NOT NULL",
            name=op.f("ck_domain_event_dispatches_delivering_locked"),
        ),
        sa.CheckConstraint(
            "status <> 'pending' OR (available_at IS NOT NULL AND locked_at IS NULL)",
            name=op.f("ck_domain_event_dispatches_pending_available"),
        ),
        sa.CheckConstraint(
            "status <> 'delivered' OR (delivered_at IS NOT NULL AND locked_at IS NULL)",
            name=op.f("ck_domain_event_dispatches_delivered_stamped"),
        ),
        sa.CheckConstraint(
            "status <> 'failed' OR (failed_at IS NOT NULL"
            " AND available_at IS NULL AND locked_at IS NULL)",
            name=op.f("ck_domain_event_dispatches_failed_stamped"),
        ),
        sa.CheckConstraint(
            "attempts >= 0",
            name=op.f("ck_domain_event_dispatches_attempts_non_negative"),
        ),
        sa.CheckConstraint(
            "max_attempts >= 1",
            name=op.f("ck_domain_event_dispatches_max_attempts_positive"),
        ),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["domain_events.id"],
            name=op.f("fk_domain_event_dispatches_event_id_domain_events"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_domain_event_dispatches")),
        comment="Dispatch queue: one row per delivery obligation of a domain event.",
    )
    op.create_index(
        op.f("ix_domain_event_dispatches_status_available_at_id"),
        DISPATCHES,
        ["status", "available_at", "id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_domain_event_dispatches_event_id"),
        DISPATCHES,
        ["event_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_domain_event_dispatches_status_locked_at"),
        DISPATCHES,
        ["status", "locked_at"],
        unique=False,
    )

    op.create_table(
        DEAD_LETTERS,
        sa.Column("id", BIGINT_PK, sa.Identity(always=False, start=1), nullable=False),
        sa.Column("dispatch_id", BIGINT_PK, nullable=False),
        sa.Column("event_id", BIGINT_PK, nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("failure_reason", sa.String(length=200), nullable=False),
        sa.Column("failure_message", sa.Text(), nullable=False),
        sa.Column("event_payload", PORTABLE_JSON, nullable=True),
        sa.Column("metadata", PORTABLE_JSON, nullable=False),
        sa.Column(
            "created_at",
            UTCDateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(
            ["dispatch_id"],
            [f"{DISPATCHES}.id"],
            name="fk_dead_letters_dispatch_id",
        ),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["domain_events.id"],
            name=op.f("fk_domain_event_dead_letters_event_id_domain_events"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_domain_event_dead_letters")),
        comment="Append-only record of terminally failed dispatches.",
    )
    op.create_index(
        op.f("ix_domain_event_dead_letters_dispatch_id"),
        DEAD_LETTERS,
        ["dispatch_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_domain_event_dead_letters_event_type"),
        DEAD_LETTERS,
        ["event_type"],
        unique=False,
    )
    op.create_index(
        op.f("ix_domain_event_dead_letters_created_at"),
        DEAD_LETTERS,
        ["created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index(
        op.f("ix_domain_event_dead_letters_created_at"), table_name=DEAD_LETTERS
    )
    op.drop_index(
        op.f("ix_domain_event_dead_letters_event_type"), table_name=DEAD_LETTERS
    )
    op.drop_index(
        op.f("ix_domain_event_dead_letters_dispatch_id"), table_name=DEAD_LETTERS
    )
    op.drop_table(DEAD_LETTERS)

    op.drop_index(
        op.f("ix_domain_event_dispatches_status_locked_at"), table_name=DISPATCHES
    )
    op.drop_index(op.f("ix_domain_event_dispatches_event_id"), table_name=DISPATCHES)
    op.drop_index(
        op.f("ix_domain_event_dispatches_status_available_at_id"),
        table_name=DISPATCHES,
    )
    op.drop_table(DISPATCHES)
