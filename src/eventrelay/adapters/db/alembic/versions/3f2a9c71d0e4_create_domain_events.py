"""Create domain_events table

Revision ID: 3f2a9c71d0e4
Revises:
Create Date: 2025-10-20

"""

# pylint: disable=invalid-name

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from eventrelay.adapters.db.sa_types import BIGINT_PK, PORTABLE_JSON, UTCDateTime

# pylint: disable=no-member

# revision identifiers, used by Alembic.
revision: str = "3f2a9c71d0e4"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""
    dialect = op.get_bind().dialect.name

    op.create_table(
        "domain_events",
        sa.Column(
            "id",
            BIGINT_PK,
            sa.Identity(always=False, start=1),
            nullable=False,
            comment="Surrogate id; monotonically assigned, never reused.",
        ),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=100), nullable=False),
        sa.Column(
            "event_type",
            sa.String(length=100),
            nullable=False,
            comment="Dotted taxonomy, e.g. community.donation.completed.",
        ),
        sa.Column("payload", PORTABLE_JSON, nullable=True),
        sa.Column("performed_by", sa.String(length=100), nullable=True),
        sa.Column(
            "created_at",
            UTCDateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_domain_events")),
        comment="Append-only domain event log.",
    )
    op.create_index(
        op.f("ix_domain_events_entity_type_entity_id"),
        "domain_events",
        ["entity_type", "entity_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_domain_events_event_type"),
        "domain_events",
        ["event_type"],
        unique=False,
    )
    op.create_index(
        op.f("ix_domain_events_created_at"),
        "domain_events",
        ["created_at"],
        unique=False,
    )

    # ---- APPEND-ONLY ENFORCEMENT ----
    if dialect == "postgresql":  # pylint: disable=magic-value-comparison
        op.execute(
            """
            CREATE OR REPLACE FUNCTION domain_events_forbid_mod() RETURNS trigger
            LANGUAGE plpgsql AS $$
            BEGIN
              RAISE EXCEPTION 'domain_events is append-only; % not allowed', TG_OP
              USING ERRCODE = '0A000'; -- feature_not_supported
            END;
            $$;
            """
        )
        op.execute(
            """
            CREATE TRIGGER tr_domain_events_append_only
            BEFORE UPDATE OR DELETE ON domain_events
            FOR EACH ROW
            EXECUTE FUNCTION domain_events_forbid_mod();
            """
        )
    else:
        op.execute(
            """
            CREATE TRIGGER tr_domain_events_no_update
            BEFORE UPDATE ON domain_events
            BEGIN
              SELECT RAISE(ABORT, 'domain_events is append-only; UPDATE not allowed');
            END;
            """
        )
        op.execute(
            """
            CREATE TRIGGER tr_domain_events_no_delete
            BEFORE DELETE ON domain_events
            BEGIN
              SELECT RAISE(ABORT, 'domain_events is append-only; DELETE not allowed');
            END;
            """
        )


def downgrade() -> None:
    """Downgrade schema."""
    dialect = op.get_bind().dialect.name

    if dialect == "postgresql":  # pylint: disable=magic-value-comparison,R6103
        op.execute(
            "DROP TRIGGER IF EXISTS tr_domain_events_append_only ON domain_events;"
        )
        op.execute("DROP FUNCTION IF EXISTS domain_events_forbid_mod();")
    else:
        op.execute("DROP TRIGGER IF EXISTS tr_domain_events_no_delete;")
        op.execute("DROP TRIGGER IF EXISTS tr_domain_events_no_update;")

    op.drop_index(op.f("ix_domain_events_created_at"), table_name="domain_events")
    op.drop_index(op.f("ix_domain_events_event_type"), table_name="domain_events")
    op.drop_index(
        op.f("ix_domain_events_entity_type_entity_id"), table_name="domain_events"
    )
    op.drop_table("domain_events")
