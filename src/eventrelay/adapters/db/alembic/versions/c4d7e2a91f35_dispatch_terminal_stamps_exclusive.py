"""forbid a dispatch row from being both delivered and failed

Revision ID: c4d7e2a91f35
Revises: 8b61e05a47c2
Create Date: 2025-11-04 16:42:17.204511

"""

# pylint: disable=invalid-name

from collections.abc import Sequence

from alembic import op

# pylint: disable=no-member

# revision identifiers, used by Alembic.
revision: str = "c4d7e2a91f35"
down_revision: str | Sequence[str] | None = "8b61e05a47c2"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

DISPATCHES = "domain_event_dispatches"
CONSTRAINT = "ck_domain_event_dispatches_delivered_failed_exclusive"


def upgrade() -> None:
    """Upgrade schema."""

    # SQLite cannot add a CHECK in place; batch mode rebuilds the table there
    with op.batch_alter_table(DISPATCHES) as batch_op:
        batch_op.create_check_constraint(
            op.f(CONSTRAINT), "delivered_at IS NULL OR failed_at IS NULL"
        )


def downgrade() -> None:
    """Downgrade schema."""

    with op.batch_alter_table(DISPATCHES) as batch_op:
        batch_op.drop_constraint(op.f(CONSTRAINT), type_="check")
