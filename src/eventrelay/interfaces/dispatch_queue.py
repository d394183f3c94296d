"""Dispatch queue interfaces for EVENTRELAY.

The dispatch queue holds one mutable `DispatchEntry` per delivery obligation
of a `DomainEvent`. Workers claim due entries under a lease, then either
acknowledge or fail them. A recovery sweep hands abandoned leases back.

State machine
-------------

    pending --claim--> delivering --acknowledge--> delivered   (terminal)
                                  --fail---------> pending     (retry, same row)
                                  --fail(terminal)> failed     (terminal)
                                  --recover_stuck-> pending    (lease expired)

Invariants (checked on every `DispatchEntry`):
- `locked_at` and `locked_by` are both set or both None.
- `delivering` => lease set.
- `delivered` => `delivered_at` set, lease cleared.
- `failed` => `failed_at` set, `available_at` None, lease cleared.
- `pending` => lease cleared, `available_at` set.

Concurrency:
- `claim` is the only contended operation. Concurrent callers always get
  disjoint batches: rows leased by another claimer are skipped, never
  waited on.
- Delivery is at-least-once. A worker that dies holding a lease keeps the
  entry `delivering` until `recover_stuck` returns it to `pending`.

Policy left to callers:
- `max_attempts` is advisory. The queue never terminates an entry on its own;
  see `eventrelay.service_layer.retry` for an opt-in wrapper.
- The default retry delay is a fixed 60 seconds. Callers wanting
  exponential backoff pass `next_available_at` to `fail`.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import DispatchStateError

if TYPE_CHECKING:
    from .event_log import DomainEvent

DEFAULT_DELIVERY_CHANNEL = "webhook"
DEFAULT_MAX_ATTEMPTS = 12
DEFAULT_RETRY_DELAY = timedelta(seconds=60)
DEFAULT_STUCK_TIMEOUT_MINUTES = 15


class DispatchStatus(str, Enum):
    """Lifecycle status of a dispatch entry."""

    PENDING = "pending"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True for statuses an entry never leaves."""
        return self in (DispatchStatus.DELIVERED, DispatchStatus.FAILED)


@dataclass(frozen=True, slots=True)
class DispatchEntry:
    """One delivery obligation for a domain event."""

    # pylint: disable=too-many-instance-attributes

    id: int
    event_id: int
    status: DispatchStatus
    delivery_channel: str
    attempts: int
    max_attempts: int
    available_at: datetime | None
    payload_checksum: str | None
    metadata: dict[str, Any] = field(default_factory=dict)
    locked_at: datetime | None = None
    locked_by: str | None = None
    delivered_at: datetime | None = None
    failed_at: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None
    dry_run: bool = False
    trace_id: str | None = None
    correlation_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.status, DispatchStatus):
            object.__setattr__(self, "status", DispatchStatus(self.status))

        leased = self.locked_at is not None
        if leased != (self.locked_by is not None):
            raise DispatchStateError(
                f"dispatch {self.id}: locked_at and locked_by must be set together"
            )
        if self.delivered_at is not None and self.failed_at is not None:
            raise DispatchStateError(
                f"dispatch {self.id}: cannot be both delivered and failed"
            )
        match self.status:
            case DispatchStatus.DELIVERING if not leased:
                raise DispatchStateError(f"dispatch {self.id}: delivering without a lease")
            case DispatchStatus.PENDING if leased or self.available_at is None:
                raise DispatchStateError(
                    f"dispatch {self.id}: pending requires available_at and no lease"
                )
            case DispatchStatus.DELIVERED if leased or self.delivered_at is None:
                raise DispatchStateError(
                    f"dispatch {self.id}: delivered requires delivered_at and no lease"
                )
            case DispatchStatus.FAILED if (
                leased or self.failed_at is None or self.available_at is not None
            ):
                raise DispatchStateError(
                    f"dispatch {self.id}: failed requires failed_at, no availability and no lease"
                )

    @property
    def is_leased(self) -> bool:
        """True while a worker holds this entry."""
        return self.locked_at is not None


@dataclass(frozen=True, slots=True)
class EnqueueOptions:
    """Options for `DispatchQueue.enqueue`.

    Attributes:
        available_at: First instant the entry may be claimed (default: now).
        status: Initial status. `DELIVERING` is rejected since no worker holds
            the new entry; `DELIVERED`/`FAILED` stamp their terminal timestamp.
        metadata: Initial metadata document.
        attempts: Initial attempt count (floored at 0).
        max_attempts: Advisory ceiling (floored at 1).
        delivery_channel: Free-form label of the downstream channel.
        payload_checksum: Idempotency token; synthesized from the event
            content when omitted.
        dry_run: Pass-through flag for consumers.
        trace_id: Pass-through tracing id.
        correlation_id: Pass-through correlation id.
    """

    # pylint: disable=too-many-instance-attributes

    available_at: datetime | None = None
    status: DispatchStatus = DispatchStatus.PENDING
    metadata: dict[str, Any] | None = None
    attempts: int = 0
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delivery_channel: str = DEFAULT_DELIVERY_CHANNEL
    payload_checksum: str | None = None
    dry_run: bool = False
    trace_id: str | None = None
    correlation_id: str | None = None


class DispatchQueue(abc.ABC):
    """Durable, lease-based work queue of dispatch entries."""

    @abc.abstractmethod
    def enqueue(
        self, event: DomainEvent, options: EnqueueOptions | None = None
    ) -> DispatchEntry:
        """Create a new dispatch entry for `event`.

        No duplicate suppression: enqueuing the same event twice creates two
        independent entries.

        Raises:
            PreconditionError: If the event has no id, or the requested
                initial status is `DELIVERING`.
        """

    @abc.abstractmethod
    def claim(
        self, limit: int, worker_id: str, now: datetime | None = None
    ) -> list[DispatchEntry]:
        """Lease up to `limit` due entries for `worker_id`.

        Selects `pending` entries with `available_at <= now`, earliest-due and
        lowest-id first, skipping rows leased by concurrent claimers. Every
        selected row is flipped to `delivering` with `locked_at=now` and
        `locked_by=worker_id` as one atomic unit of work.

        Args:
            limit: Maximum batch size. Values < 1 yield an empty batch.
            worker_id: Identifier of the claiming worker.
            now: Claim instant; defaults to the store's clock.

        Returns:
            The claimed entries as they were immediately before the flip,
            ordered by `(available_at, id)`. Possibly fewer than `limit`.

        Raises:
            PreconditionError: If `worker_id` is missing.
        """

    @abc.abstractmethod
    def acknowledge(
        self,
        dispatch_id: int,
        delivered_at: datetime | None = None,
        metadata_patch: dict[str, Any] | None = None,
    ) -> DispatchEntry | None:
        """Mark an entry delivered.

        Sets `delivered_at` (default now), increments `attempts`, clears the
        lease and merge-patches `metadata`.

        Returns:
            The updated entry, or None if no entry has that id or the entry
            is already `delivered` or `failed` (it is then left untouched).

        Raises:
            PreconditionError: If `dispatch_id` is missing.
        """

    @abc.abstractmethod
    def fail(  # pylint: disable=too-many-arguments
        self,
        dispatch_id: int,
        error: BaseException | str | None,
        next_available_at: datetime | None = None,
        terminal: bool = False,
        metadata_patch: dict[str, Any] | None = None,
    ) -> DispatchEntry | None:
        """Record a failed delivery attempt.

        Stores the (truncated) error message. A terminal failure moves the
        entry to `failed` and clears `available_at`; otherwise it returns to
        `pending`, due at `next_available_at` or now + 60 seconds. Always
        increments `attempts`, clears the lease and merge-patches `metadata`.

        Returns:
            The updated entry, or None if no entry has that id or the entry
            is already `delivered` or `failed` (it is then left untouched).

        Raises:
            PreconditionError: If `dispatch_id` is missing.
        """

    @abc.abstractmethod
    def recover_stuck(
        self,
        timeout_minutes: int = DEFAULT_STUCK_TIMEOUT_MINUTES,
        worker_id: str | None = None,
    ) -> list[DispatchEntry]:
        """Return abandoned leases to `pending`.

        Affects `delivering` entries whose `locked_at` is strictly older than
        now - `timeout_minutes`, optionally only those held by `worker_id`.
        `available_at` is left as it was, so the entries are due at once.

        Returns:
            The recovered entries in their new `pending` state, by id.
        """

    @abc.abstractmethod
    def count_pending(self) -> int:
        """Return the number of `pending` entries (due or not)."""

    @abc.abstractmethod
    def get(self, dispatch_id: int) -> DispatchEntry | None:
        """Return the entry with the given id, or None."""
