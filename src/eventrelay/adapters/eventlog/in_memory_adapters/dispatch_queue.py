"""In-memory DispatchQueue implementation.

Rows are column-name keyed dicts in `InMemoryEventLogData.dispatches`. Every
operation holds the shared mutex, so a claim selects and flips its batch
atomically and concurrent claims are disjoint. `acknowledge` and `fail` leave
`delivered` and `failed` entries untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from eventrelay.domain import utc_now
from eventrelay.interfaces.dispatch_queue import (
    DEFAULT_STUCK_TIMEOUT_MINUTES,
    DispatchEntry,
    DispatchQueue,
    DispatchStatus,
    EnqueueOptions,
)
from eventrelay.interfaces.errors import require
from eventrelay.interfaces.event_log import DomainEvent

from ..mapping import (
    acknowledge_values,
    claim_values,
    enqueue_values,
    fail_values,
    recover_values,
    row_to_dispatch,
)
from .store import InMemoryEventLogData

logger = logging.getLogger(__name__)


class InMemoryDispatchQueue(DispatchQueue):
    """In-memory DispatchQueue for tests and non-durable use."""

    def __init__(
        self,
        data: InMemoryEventLogData | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._data = data if data is not None else InMemoryEventLogData()
        self.clock = clock

    def enqueue(
        self, event: DomainEvent, options: EnqueueOptions | None = None
    ) -> DispatchEntry:
        values = enqueue_values(event, options or EnqueueOptions(), self.clock())
        with self._data.lock:
            row = {"id": next(self._data.dispatch_ids), **values}
            self._data.dispatches[row["id"]] = row
            return row_to_dispatch(row)

    def claim(
        self, limit: int, worker_id: str, now: datetime | None = None
    ) -> list[DispatchEntry]:
        require(worker_id, "worker_id")
        if limit < 1:
            return []
        now = now or self.clock()

        with self._data.lock:
            due = sorted(
                (
                    row
                    for row in self._data.dispatches.values()
                    if row["status"] == DispatchStatus.PENDING.value
                    and row["available_at"] <= now
                ),
                key=lambda row: (row["available_at"], row["id"]),
            )[:limit]
            snapshot = [row_to_dispatch(row) for row in due]
            for row in due:
                row.update(claim_values(worker_id, now))
        return snapshot

    def acknowledge(
        self,
        dispatch_id: int,
        delivered_at: datetime | None = None,
        metadata_patch: dict[str, Any] | None = None,
    ) -> DispatchEntry | None:
        require(dispatch_id, "dispatch_id")
        with self._data.lock:
            if (row := self._data.dispatches.get(dispatch_id)) is None:
                return None
            now = self.clock()
            values = acknowledge_values(
                row["metadata"], delivered_at or now, metadata_patch, now
            )
            return self._apply_attempt(row, values)

    def fail(  # pylint: disable=too-many-arguments
        self,
        dispatch_id: int,
        error: BaseException | str | None,
        next_available_at: datetime | None = None,
        terminal: bool = False,
        metadata_patch: dict[str, Any] | None = None,
    ) -> DispatchEntry | None:
        require(dispatch_id, "dispatch_id")
        with self._data.lock:
            if (row := self._data.dispatches.get(dispatch_id)) is None:
                return None
            values = fail_values(
                row["metadata"],
                error,
                next_available_at,
                terminal,
                metadata_patch,
                self.clock(),
            )
            return self._apply_attempt(row, values)

    def recover_stuck(
        self,
        timeout_minutes: int = DEFAULT_STUCK_TIMEOUT_MINUTES,
        worker_id: str | None = None,
    ) -> list[DispatchEntry]:
        now = self.clock()
        cutoff = now - timedelta(minutes=timeout_minutes)
        recovered = []
        with self._data.lock:
            for dispatch_id in sorted(self._data.dispatches):
                row = self._data.dispatches[dispatch_id]
                if row["status"] != DispatchStatus.DELIVERING.value:
                    continue
                if row["locked_at"] >= cutoff:
                    continue
                if worker_id and row["locked_by"] != worker_id:
                    continue
                row.update(recover_values(now))
                recovered.append(row_to_dispatch(row))
        return recovered

    def count_pending(self) -> int:
        with self._data.lock:
            return sum(
                1
                for row in self._data.dispatches.values()
                if row["status"] == DispatchStatus.PENDING.value
            )

    def get(self, dispatch_id: int) -> DispatchEntry | None:
        with self._data.lock:
            if (row := self._data.dispatches.get(dispatch_id)) is None:
                return None
            return row_to_dispatch(row)

    @staticmethod
    def _apply_attempt(
        row: dict[str, Any], values: dict[str, Any]
    ) -> DispatchEntry | None:
        if DispatchStatus(row["status"]).is_terminal:
            logger.warning(
                "Dispatch %s is already %s; leaving it untouched",
                row["id"],
                row["status"],
            )
            return None
        row.update(values)
        row["attempts"] += 1
        return row_to_dispatch(row)
