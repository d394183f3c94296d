"""Reference dispatcher: drains the dispatch queue into a publisher.

The dispatcher is an optional caller of the queue, not part of it. Each
`tick` claims a batch under this worker's id and processes it entry by
entry; `recover` periodically hands abandoned leases back to `pending`.
`run` drives both on a polling loop until told to stop.

Per entry (`process_dispatch`):

- event lookup fails   -> `fail` with the fixed 60 second retry delay
- event is missing     -> `acknowledge` with ``{"reason": "missing_event"}``
- publish succeeds     -> `acknowledge` with the attempt number and publish id
- publish raises       -> `fail_with_retry_policy` (exponential backoff); on
  the last attempt the entry is failed terminally and a dead letter is filed

Every step runs in its own unit of work, so one bad entry never rolls back
the others. Delivery is at-least-once: a crash between publish and
acknowledge leaves the entry leased until `recover` reclaims it.

Outcomes, publish latency and queue depth are exported through
`eventrelay.service_layer.metrics`.
"""

from __future__ import annotations

import logging
import threading
import time
import traceback
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

from eventrelay.config import DispatcherSettings
from eventrelay.domain import utc_now
from eventrelay.interfaces.dead_letters import NewDeadLetter
from eventrelay.interfaces.dispatch_queue import DEFAULT_RETRY_DELAY, DispatchEntry
from eventrelay.interfaces.event_log import DomainEvent
from eventrelay.interfaces.unit_of_work import AbstractUnitOfWork

from .metrics import DispatchMetrics, default_metrics
from .retry import BackoffPolicy, ExponentialBackoff, fail_with_retry_policy

logger = logging.getLogger(__name__)

MAX_STACK_LENGTH = 4000
MISSING_EVENT_REASON = "missing_event"


class Publisher(Protocol):  # pylint: disable=too-few-public-methods
    """Downstream sink for domain events."""

    def publish(
        self, event: DomainEvent, *, correlation_id: str, metadata: dict[str, Any]
    ) -> str | None:
        """Deliver one event; return a downstream id if there is one.

        Raising marks the attempt as failed.
        """


class LoggingPublisher:  # pylint: disable=too-few-public-methods
    """Publisher that only logs what it would deliver."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def publish(
        self, event: DomainEvent, *, correlation_id: str, metadata: dict[str, Any]
    ) -> str | None:
        self.log.info(
            "Publish %s (event %s, %s/%s) correlation_id=%s",
            event.event_type,
            event.id,
            metadata.get("entity_type"),
            metadata.get("entity_id"),
            correlation_id,
        )
        return correlation_id


class Outcome(str, Enum):
    """What `process_dispatch` did with one entry."""

    DELIVERED = "delivered"
    MISSING_EVENT = "missing_event"
    RETRY = "retry"
    FAILED = "failed"


@dataclass(frozen=True)
class TickReport:
    """Summary of one `tick`."""

    pending: int = 0
    dead_letters: int | None = None
    claimed: int = 0
    outcomes: Counter = field(default_factory=Counter)


class DomainEventDispatcher:
    """Polls the dispatch queue and publishes claimed events.

    Args:
        uow: Unit of work giving access to the event log, queue and
            dead letters. Entered once per step.
        publisher: Where events are delivered.
        settings: Loop and retry tunables.
        backoff: Retry delay policy. Defaults to exponential backoff built
            from `settings`.
        clock: Source of "now" for retry scheduling.
        metrics: Prometheus collectors to update. Defaults to the
            process-wide `default_metrics()`.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        uow: AbstractUnitOfWork,
        publisher: Publisher,
        settings: DispatcherSettings | None = None,
        backoff: BackoffPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
        metrics: DispatchMetrics | None = None,
    ) -> None:
        self.uow = uow
        self.publisher = publisher
        self.settings = settings or DispatcherSettings()
        self.backoff = backoff or ExponentialBackoff.from_settings(self.settings)
        self.clock = clock
        self.metrics = metrics or default_metrics()

    @property
    def worker_id(self) -> str:
        return self.settings.worker_id

    # ------------------------------------------------------------------ #
    # Loop
    # ------------------------------------------------------------------ #

    def run(self, stop: threading.Event | None = None, once: bool = False) -> None:
        """Poll until `stop` is set (or a single pass when `once`)."""
        if not self.settings.enabled:
            logger.info("Domain event dispatcher disabled by configuration")
            return

        stop = stop or threading.Event()
        logger.info(
            "Domain event dispatcher started: worker=%s poll=%.1fs batch=%d max_attempts=%d",
            self.worker_id,
            self.settings.poll_interval_seconds,
            self.settings.batch_size,
            self.settings.max_attempts,
        )

        if once:
            self._guarded(self.recover, "Domain event dispatcher recovery failed")
            self._guarded(self.tick, "Domain event dispatch tick failed")
            return

        next_recovery = time.monotonic() + self.settings.recover_interval_seconds
        while not stop.is_set():
            self._guarded(self.tick, "Domain event dispatch tick failed")
            if time.monotonic() >= next_recovery:
                self._guarded(self.recover, "Domain event dispatcher recovery failed")
                next_recovery = (
                    time.monotonic() + self.settings.recover_interval_seconds
                )
            stop.wait(self.settings.poll_interval_seconds)

        logger.info("Domain event dispatcher stopped: worker=%s", self.worker_id)

    @staticmethod
    def _guarded(step: Callable[[], object], message: str) -> None:
        try:
            step()
        except Exception:  # pylint: disable=broad-except
            logger.exception(message)

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def tick(self) -> TickReport:
        """Claim one batch and process every entry in it."""
        with self.uow:
            pending = self.uow.dispatch_queue.count_pending()
            claimed = self.uow.dispatch_queue.claim(
                self.settings.batch_size, self.worker_id
            )
            self.uow.commit()

        dead_letters = self._count_dead_letters()
        self.metrics.set_backlog(pending, dead_letters)
        logger.debug(
            "Tick: pending=%d dead_letters=%s claimed=%d",
            pending,
            dead_letters,
            len(claimed),
        )

        outcomes: Counter = Counter()
        for entry in claimed:
            outcomes[self.process_dispatch(entry)] += 1

        return TickReport(
            pending=pending,
            dead_letters=dead_letters,
            claimed=len(claimed),
            outcomes=outcomes,
        )

    def recover(self) -> list[DispatchEntry]:
        """Return every expired lease (any worker) to `pending`."""
        with self.uow:
            recovered = self.uow.dispatch_queue.recover_stuck(
                timeout_minutes=self.settings.recover_timeout_minutes
            )
            self.uow.commit()
        if recovered:
            logger.warning(
                "Recovered %d stuck domain event dispatch(es)", len(recovered)
            )
        return recovered

    def process_dispatch(self, entry: DispatchEntry) -> Outcome:
        """Deliver one claimed entry and record the result."""
        try:
            with self.uow:
                event = self.uow.event_log.find_by_id(entry.event_id)
        except Exception as error:  # pylint: disable=broad-except
            logger.exception("Failed to load domain event for dispatch %s", entry.id)
            with self.uow:
                self.uow.dispatch_queue.fail(
                    entry.id, error, next_available_at=self.clock() + DEFAULT_RETRY_DELAY
                )
                self.uow.commit()
            self.metrics.record_failure(None, terminal=False)
            self.metrics.record_attempt(None, Outcome.RETRY.value)
            return Outcome.RETRY

        if event is None:
            logger.warning(
                "Domain event %s missing for dispatch %s; acknowledging",
                entry.event_id,
                entry.id,
            )
            with self.uow:
                self.uow.dispatch_queue.acknowledge(
                    entry.id, metadata_patch={"reason": MISSING_EVENT_REASON}
                )
                self.uow.commit()
            self.metrics.record_attempt(None, Outcome.MISSING_EVENT.value)
            return Outcome.MISSING_EVENT

        attempt = entry.attempts + 1
        started = time.perf_counter()
        try:
            publish_id = self.publisher.publish(
                event,
                correlation_id=f"domain-event-{event.id}",
                metadata={
                    "entity_type": event.entity_type,
                    "entity_id": event.entity_id,
                    "performed_by": event.performed_by,
                },
            )
        except Exception as error:  # pylint: disable=broad-except
            self.metrics.observe_duration(event.event_type, time.perf_counter() - started)
            outcome = self._record_failure(entry, event, error)
            self.metrics.record_attempt(event.event_type, outcome.value)
            return outcome
        self.metrics.observe_duration(event.event_type, time.perf_counter() - started)

        with self.uow:
            self.uow.dispatch_queue.acknowledge(
                entry.id, metadata_patch={"attempts": attempt, "publish_id": publish_id}
            )
            self.uow.commit()
        logger.debug("Delivered dispatch %s (event %s)", entry.id, event.id)
        self.metrics.record_attempt(event.event_type, Outcome.DELIVERED.value)
        return Outcome.DELIVERED

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _record_failure(
        self, entry: DispatchEntry, event: DomainEvent, error: Exception
    ) -> Outcome:
        with self.uow:
            decision = fail_with_retry_policy(
                self.uow.dispatch_queue,
                entry,
                error,
                backoff=self.backoff,
                max_attempts=min(entry.max_attempts, self.settings.max_attempts),
                now=self.clock(),
            )
            self.uow.commit()
        self.metrics.record_failure(event.event_type, decision.terminal)

        if not decision.terminal:
            logger.warning(
                "Dispatch %s attempt %d failed; retrying in %.0fs: %s",
                entry.id,
                decision.attempt,
                decision.backoff_seconds,
                error,
            )
            return Outcome.RETRY

        logger.error(
            "Dispatch %s failed terminally after %d attempt(s): %s",
            entry.id,
            decision.attempt,
            error,
        )
        self._file_dead_letter(entry, event, error, decision.attempt)
        return Outcome.FAILED

    def _file_dead_letter(
        self, entry: DispatchEntry, event: DomainEvent, error: Exception, attempt: int
    ) -> None:
        stack = "".join(traceback.format_exception(error))[:MAX_STACK_LENGTH]
        dead_letter = NewDeadLetter(
            dispatch_id=entry.id,
            event_id=event.id,
            event_type=event.event_type,
            attempts=attempt,
            failure_reason=str(getattr(error, "code", None) or type(error).__name__),
            failure_message=str(error) or repr(error),
            event_payload=event.payload or {},
            metadata={
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "performed_by": event.performed_by,
                "stack": stack,
            },
        )
        try:
            with self.uow:
                self.uow.dead_letters.record(dead_letter)
                self.uow.commit()
        except Exception:  # pylint: disable=broad-except
            logger.exception(
                "Failed to persist dead-letter entry for dispatch %s", entry.id
            )

    def _count_dead_letters(self) -> int | None:
        try:
            with self.uow:
                return self.uow.dead_letters.count()
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to count domain event dead letters")
            return None
