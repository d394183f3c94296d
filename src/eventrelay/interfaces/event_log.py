"""Event log interfaces for EVENTRELAY.

This module defines:
- The `NewDomainEvent` DTO producers hand to the log.
- The persisted, immutable `DomainEvent` record.
- `AppendOptions`, controlling the dispatch entry created alongside an append.
- The `EventLog` port (framework-free ABC).

Layering & dependency rules:
- Lives under `eventrelay.interfaces`. Do NOT import from adapters, bootstrap, or entrypoints.
- Safe to import from service layer and adapters.

Contract overview
-----------------
Append:
- `entity_type`, `entity_id` and `event_type` are required and non-blank;
  otherwise `PreconditionError`.
- `id` and `created_at` are assigned by the store. `id` is never reused.
- Unless `AppendOptions.enqueue_dispatch` is False, one dispatch entry is
  enqueued against the **same connection/transaction**, so the business
  mutation, the event row and its dispatch eligibility commit or roll back
  together (transactional outbox).

Reads:
- `find_by_id(id)` returns the record or None.
- `read_since(after_id=0, limit=None)` yields events ascending by id.

Immutability:
- There are no update or delete operations. Relational backends also reject
  UPDATE/DELETE on the event table with triggers (see migrations).
"""

from __future__ import annotations

import abc
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .dispatch_queue import DispatchStatus


@dataclass(frozen=True, slots=True)
class NewDomainEvent:
    """A domain event as described by a producer, before persistence."""

    entity_type: str
    entity_id: str
    event_type: str  # dotted taxonomy, e.g. "community.donation.completed"
    payload: dict[str, Any] | None = None
    performed_by: str | None = None


@dataclass(frozen=True, slots=True)
class DomainEvent:
    """An immutable, persisted domain event."""

    id: int
    entity_type: str
    entity_id: str
    event_type: str
    payload: dict[str, Any] | None
    performed_by: str | None
    created_at: datetime


@dataclass(frozen=True, slots=True)
class AppendOptions:
    """Options for `EventLog.append`.

    Attributes:
        enqueue_dispatch: Create a dispatch entry in the same transaction.
        available_at: Override the entry's first eligibility instant.
        dispatch_status: Override the entry's initial status.
        dispatch_metadata: Initial metadata document for the entry.
    """

    enqueue_dispatch: bool = True
    available_at: datetime | None = None
    dispatch_status: DispatchStatus | None = None
    dispatch_metadata: dict[str, Any] | None = None


class EventLog(abc.ABC):
    """Append-only store of domain events."""

    @abc.abstractmethod
    def append(
        self, event: NewDomainEvent, options: AppendOptions | None = None
    ) -> DomainEvent:
        """Persist one event and, by default, enqueue its dispatch.

        Args:
            event: The event to record.
            options: Dispatch overrides; defaults to `AppendOptions()`.

        Returns:
            The stored event with `id` and `created_at` assigned.

        Raises:
            PreconditionError: If `entity_type`, `entity_id` or `event_type`
                is missing or blank.
        """

    @abc.abstractmethod
    def find_by_id(self, event_id: int) -> DomainEvent | None:
        """Return the event with the given id, or None if there is none."""

    @abc.abstractmethod
    def read_since(
        self, after_id: int = 0, limit: int | None = None
    ) -> Iterable[DomainEvent]:
        """Yield events with id > `after_id`, ascending.

        Args:
            after_id: The id to read after; 0 starts with the first event.
            limit: Maximum number of events to return. None returns all.

        Raises:
            ValueError: If after_id < 0 or limit is not None and limit < 1.
        """
