"""In-memory shared data store for the event log adapters."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any

from eventrelay.interfaces.event_log import DomainEvent


@dataclass(slots=True)
class InMemoryEventLogData:
    """Shared in-memory backing store.

    A single instance should be passed to the event log, dispatch queue and
    dead-letter adapters so that they see one another's writes, like tables
    in one database.

    Dispatch and dead-letter rows are column-name keyed dicts, mirroring the
    relational tables, so the same value builders apply to both backends.
    """

    # ascending by id
    events: list[DomainEvent] = field(default_factory=list)

    # keyed by dispatch id
    dispatches: dict[int, dict[str, Any]] = field(default_factory=dict)

    # ascending by id
    dead_letters: list[dict[str, Any]] = field(default_factory=list)

    event_ids: itertools.count = field(default_factory=lambda: itertools.count(1))
    dispatch_ids: itertools.count = field(default_factory=lambda: itertools.count(1))
    dead_letter_ids: itertools.count = field(
        default_factory=lambda: itertools.count(1)
    )

    lock: threading.RLock = field(default_factory=threading.RLock)
