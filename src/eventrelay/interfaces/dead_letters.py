"""Dead-letter store interface.

When a dispatch fails terminally, the dispatcher files a copy of the event
and the failure diagnostics here so operators can inspect and replay it
without digging through the dispatch queue.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class NewDeadLetter:
    """A terminal dispatch failure, before persistence."""

    # pylint: disable=too-many-instance-attributes

    dispatch_id: int
    event_id: int
    event_type: str
    attempts: int
    failure_reason: str
    failure_message: str
    event_payload: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DeadLetter:
    """A persisted dead-letter record."""

    # pylint: disable=too-many-instance-attributes

    id: int
    dispatch_id: int
    event_id: int
    event_type: str
    attempts: int
    failure_reason: str
    failure_message: str
    event_payload: dict[str, Any] | None
    metadata: dict[str, Any]
    created_at: datetime


class DeadLetterStore(abc.ABC):
    """Append-only record of terminally failed dispatches."""

    @abc.abstractmethod
    def record(self, dead_letter: NewDeadLetter) -> DeadLetter:
        """Persist a dead letter and return it with id and timestamp."""

    @abc.abstractmethod
    def count(self) -> int:
        """Return the number of stored dead letters."""

    @abc.abstractmethod
    def list_recent(self, limit: int = 50) -> list[DeadLetter]:
        """Return up to `limit` dead letters, newest first.

        Raises:
            ValueError: If limit < 1.
        """
