"""Event log, dispatch queue and dead-letter schema.

Tables:

- ``domain_events``: the append-only log. One row per domain event.
- ``domain_event_dispatches``: the mutable dispatch queue. One row per
  delivery obligation; several rows may reference the same event.
- ``domain_event_dead_letters``: append-only record of terminal failures.

Constraints on ``domain_event_dispatches`` (enforced here):

| Constraint                                   | Purpose                          |
|----------------------------------------------|----------------------------------|
| CHECK(status IN (...))                       | closed set of statuses           |
| CHECK(lock fields both null or both set)     | a lease has a holder and a start |
| CHECK(delivering => locked)                  | in-flight rows are leased        |
| CHECK(pending => available, unlocked)        | claimable rows are due-able      |
| CHECK(delivered => delivered_at, unlocked)   | terminal success is stamped      |
| CHECK(failed => failed_at, unavailable)      | terminal failure is never due    |
| CHECK(attempts >= 0), CHECK(max_attempts >= 1) | counter sanity                 |

Append-only enforcement for ``domain_events`` is applied in migrations
(triggers), so tables created with ``metadata.create_all`` do not carry it.
"""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Identity,
    Index,
    Integer,
    String,
    Table,
    Text,
    false,
    text,
)

from eventrelay.adapters.db.metadata import metadata
from eventrelay.adapters.db.sa_types import BIGINT_PK, PORTABLE_JSON, UTCDateTime

__all__ = ["dead_letters", "dispatches", "domain_events"]

domain_events = Table(
    "domain_events",
    metadata,
    Column(
        "id",
        BIGINT_PK,
        Identity(start=1),
        primary_key=True,
        comment="Surrogate id; monotonically assigned, never reused.",
    ),
    Column("entity_type", String(100), nullable=False),
    Column("entity_id", String(100), nullable=False),
    Column(
        "event_type",
        String(100),
        nullable=False,
        comment="Dotted taxonomy, e.g. community.donation.completed.",
    ),
    Column("payload", PORTABLE_JSON, nullable=True),
    Column("performed_by", String(100), nullable=True),
    Column(
        "created_at",
        UTCDateTime(),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Index(None, "entity_type", "entity_id"),
    Index(None, "event_type"),
    Index(None, "created_at"),
    comment="Append-only domain event log.",
)

dispatches = Table(
    "domain_event_dispatches",
    metadata,
    Column("id", BIGINT_PK, Identity(start=1), primary_key=True),
    Column(
        "event_id",
        BIGINT_PK,
        ForeignKey("domain_events.id"),
        nullable=False,
    ),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column(
        "delivery_channel", String(50), nullable=False, server_default="webhook"
    ),
    Column("attempts", Integer, nullable=False, server_default="0"),
    Column("max_attempts", Integer, nullable=False, server_default="12"),
    Column("available_at", UTCDateTime(), nullable=True),
    Column("locked_at", UTCDateTime(), nullable=True),
    Column("locked_by", String(128), nullable=True),
    Column("delivered_at", UTCDateTime(), nullable=True),
    Column("failed_at", UTCDateTime(), nullable=True),
    Column("last_error", Text, nullable=True),
    Column("last_error_at", UTCDateTime(), nullable=True),
    Column("payload_checksum", String(100), nullable=True),
    Column("metadata", PORTABLE_JSON, nullable=False),
    Column("dry_run", Boolean, nullable=False, server_default=false()),
    Column("trace_id", String(64), nullable=True),
    Column("correlation_id", String(64), nullable=True),
    Column(
        "created_at",
        UTCDateTime(),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "updated_at",
        UTCDateTime(),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    CheckConstraint(
        "status IN ('pending', 'delivering', 'delivered', 'failed')",
        name="valid_status",
    ),
    CheckConstraint(
        "(locked_at IS NULL AND locked_by IS NULL)"
        " OR (locked_at IS NOT NULL AND locked_by IS NOT NULL)",
        name="lock_pair",
    ),
    CheckConstraint(
        "status <> 'delivering' OR locked_at IS NOT NULL",
        name="delivering_locked",
    ),
    CheckConstraint(
        "status <> 'pending' OR (available_at IS NOT NULL AND locked_at IS NULL)",
        name="pending_available",
    ),
    CheckConstraint(
        "status <> 'delivered' OR (delivered_at IS NOT NULL AND locked_at IS NULL)",
        name="delivered_stamped",
    ),
    CheckConstraint(
        "status <> 'failed' OR (failed_at IS NOT NULL"
        " AND available_at IS NULL AND locked_at IS NULL)",
        name="failed_stamped",
    ),
    CheckConstraint(
        "delivered_at IS NULL OR failed_at IS NULL",
        name="delivered_failed_exclusive",
    ),
    CheckConstraint("attempts >= 0", name="attempts_non_negative"),
    CheckConstraint("max_attempts >= 1", name="max_attempts_positive"),
    Index(None, "status", "available_at", "id"),
    Index(None, "event_id"),
    Index(None, "status", "locked_at"),
    comment="Dispatch queue: one row per delivery obligation of a domain event.",
)

dead_letters = Table(
    "domain_event_dead_letters",
    metadata,
    Column("id", BIGINT_PK, Identity(start=1), primary_key=True),
    Column(
        "dispatch_id",
        BIGINT_PK,
        ForeignKey("domain_event_dispatches.id", name="fk_dead_letters_dispatch_id"),
        nullable=False,
    ),
    Column(
        "event_id",
        BIGINT_PK,
        ForeignKey("domain_events.id"),
        nullable=False,
    ),
    Column("event_type", String(100), nullable=False),
    Column("attempts", Integer, nullable=False),
    Column("failure_reason", String(200), nullable=False),
    Column("failure_message", Text, nullable=False),
    Column("event_payload", PORTABLE_JSON, nullable=True),
    Column("metadata", PORTABLE_JSON, nullable=False),
    Column(
        "created_at",
        UTCDateTime(),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Index(None, "dispatch_id"),
    Index(None, "event_type"),
    Index(None, "created_at"),
    comment="Append-only record of terminally failed dispatches.",
)
