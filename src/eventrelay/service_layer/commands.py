"""Module defining Commands."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from eventrelay.interfaces.dispatch_queue import DEFAULT_STUCK_TIMEOUT_MINUTES


@dataclass(frozen=True)
class Command:
    """Base class for all commands."""


@dataclass(frozen=True)
class RecordDomainEvent(Command):
    """Command to append a domain event (and, by default, enqueue its dispatch)."""

    entity_type: str
    entity_id: str
    event_type: str
    payload: dict[str, Any] | None = None
    performed_by: str | None = None
    enqueue_dispatch: bool = True
    available_at: datetime | None = None
    dispatch_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RecoverStuckDispatches(Command):
    """Command to return expired dispatch leases to the queue."""

    timeout_minutes: int = DEFAULT_STUCK_TIMEOUT_MINUTES
    worker_id: str | None = None
