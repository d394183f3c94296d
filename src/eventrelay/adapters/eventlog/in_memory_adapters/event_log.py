"""In-memory EventLog implementation.

Events are kept in insertion (id) order. The same-transaction enqueue is
emulated by holding the shared mutex across the event insert and the enqueue,
and by validating the dispatch options before anything is stored.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime

from eventrelay.domain import utc_now
from eventrelay.interfaces.dispatch_queue import DispatchQueue
from eventrelay.interfaces.event_log import (
    AppendOptions,
    DomainEvent,
    EventLog,
    NewDomainEvent,
)

from ..mapping import enqueue_options_for, event_insert_values, initial_status
from .dispatch_queue import InMemoryDispatchQueue
from .store import InMemoryEventLogData


class InMemoryEventLog(EventLog):
    """In-memory EventLog for tests and non-durable use."""

    def __init__(
        self,
        data: InMemoryEventLogData | None = None,
        dispatch_queue: DispatchQueue | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._data = data if data is not None else InMemoryEventLogData()
        self.clock = clock
        self.dispatch_queue = dispatch_queue or InMemoryDispatchQueue(
            self._data, clock=clock
        )

    def append(
        self, event: NewDomainEvent, options: AppendOptions | None = None
    ) -> DomainEvent:
        options = options or AppendOptions()
        with self._data.lock:
            values = event_insert_values(event, self.clock())
            enqueue_options = enqueue_options_for(options)
            if options.enqueue_dispatch:
                initial_status(enqueue_options)

            stored = DomainEvent(id=next(self._data.event_ids), **values)
            self._data.events.append(stored)

            if options.enqueue_dispatch:
                self.dispatch_queue.enqueue(stored, enqueue_options)
        return stored

    def find_by_id(self, event_id: int) -> DomainEvent | None:
        with self._data.lock:
            for event in self._data.events:
                if event.id == event_id:
                    return event
        return None

    def read_since(
        self, after_id: int = 0, limit: int | None = None
    ) -> Iterable[DomainEvent]:
        if after_id < 0:
            raise ValueError("after_id must be >= 0")
        if limit is not None and limit < 1:
            raise ValueError("limit cannot be <= 0")

        with self._data.lock:
            matching = [e for e in self._data.events if e.id > after_id]
        if limit is not None:
            matching = matching[:limit]
        yield from matching
