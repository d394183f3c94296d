"""In-memory DeadLetterStore implementation."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from eventrelay.domain import utc_now
from eventrelay.interfaces.dead_letters import DeadLetter, DeadLetterStore, NewDeadLetter

from ..mapping import dead_letter_insert_values, row_to_dead_letter
from .store import InMemoryEventLogData


class InMemoryDeadLetterStore(DeadLetterStore):
    """In-memory DeadLetterStore for tests and non-durable use."""

    def __init__(
        self,
        data: InMemoryEventLogData | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._data = data if data is not None else InMemoryEventLogData()
        self.clock = clock

    def record(self, dead_letter: NewDeadLetter) -> DeadLetter:
        values = dead_letter_insert_values(dead_letter, self.clock())
        with self._data.lock:
            row = {"id": next(self._data.dead_letter_ids), **values}
            self._data.dead_letters.append(row)
        return row_to_dead_letter(row)

    def count(self) -> int:
        with self._data.lock:
            return len(self._data.dead_letters)

    def list_recent(self, limit: int = 50) -> list[DeadLetter]:
        if limit < 1:
            raise ValueError("limit cannot be <= 0")
        with self._data.lock:
            newest_first = sorted(
                self._data.dead_letters,
                key=lambda row: (row["created_at"], row["id"]),
                reverse=True,
            )
        return [row_to_dead_letter(row) for row in newest_first[:limit]]
