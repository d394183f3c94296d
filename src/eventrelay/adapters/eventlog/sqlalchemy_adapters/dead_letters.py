"""SQLAlchemy-backed DeadLetterStore adapter."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy import func, insert, select
from sqlalchemy.engine import Connection

from eventrelay.domain import utc_now
from eventrelay.interfaces.dead_letters import DeadLetter, DeadLetterStore, NewDeadLetter

from ..mapping import dead_letter_insert_values, row_to_dead_letter
from ..schema import dead_letters


class SqlAlchemyDeadLetterStore(DeadLetterStore):
    """Dead letters persisted in ``domain_event_dead_letters``."""

    def __init__(
        self, connection: Connection, clock: Callable[[], datetime] = utc_now
    ):
        self.connection = connection
        self.clock = clock

    def record(self, dead_letter: NewDeadLetter) -> DeadLetter:
        values = dead_letter_insert_values(dead_letter, self.clock())
        row = (
            self.connection.execute(
                insert(dead_letters).values(values).returning(dead_letters)
            )
            .mappings()
            .one()
        )
        return row_to_dead_letter(row)

    def count(self) -> int:
        stmt = select(func.count()).select_from(dead_letters)
        return int(self.connection.execute(stmt).scalar_one())

    def list_recent(self, limit: int = 50) -> list[DeadLetter]:
        if limit < 1:
            raise ValueError("limit cannot be <= 0")
        stmt = (
            select(dead_letters)
            .order_by(dead_letters.c.created_at.desc(), dead_letters.c.id.desc())
            .limit(limit)
        )
        return [
            row_to_dead_letter(row)
            for row in self.connection.execute(stmt).mappings().all()
        ]
