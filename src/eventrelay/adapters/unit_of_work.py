"""Unit of Work implementations for EVENTRELAY.

- `SqlAlchemyUnitOfWork`: opens one Connection per `with` block and binds the
  event log, dispatch queue and dead-letter store to it, so everything done
  inside the block commits or rolls back together.
- `InMemoryUnitOfWork`: binds the in-memory adapters to one shared
  `InMemoryEventLogData`. Writes are visible immediately; commit and rollback
  only record that they were called.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from eventrelay.adapters.eventlog.in_memory_adapters import (
    InMemoryDeadLetterStore,
    InMemoryDispatchQueue,
    InMemoryEventLog,
    InMemoryEventLogData,
)
from eventrelay.adapters.eventlog.sqlalchemy_adapters import (
    SqlAlchemyDeadLetterStore,
    SqlAlchemyDispatchQueue,
    SqlAlchemyEventLog,
)
from eventrelay.domain import utc_now
from eventrelay.interfaces.unit_of_work import AbstractUnitOfWork

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """SQLAlchemy-backed Unit of Work."""

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utc_now):
        self.engine = engine
        self.clock = clock
        self.connection: Connection

    def __enter__(self):
        self.connection = self.engine.connect()
        self.dispatch_queue = SqlAlchemyDispatchQueue(self.connection, clock=self.clock)
        self.event_log = SqlAlchemyEventLog(
            self.connection, dispatch_queue=self.dispatch_queue, clock=self.clock
        )
        self.dead_letters = SqlAlchemyDeadLetterStore(self.connection, clock=self.clock)
        return super().__enter__()

    def __exit__(self, *args):
        super().__exit__(*args)
        self.connection.close()

    def commit(self):
        self.connection.commit()

    def rollback(self):
        self.connection.rollback()


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """In-memory Unit of Work for tests and prototyping."""

    def __init__(
        self,
        data: InMemoryEventLogData | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.data = data if data is not None else InMemoryEventLogData()
        self.dispatch_queue = InMemoryDispatchQueue(self.data, clock=clock)
        self.event_log = InMemoryEventLog(
            self.data, dispatch_queue=self.dispatch_queue, clock=clock
        )
        self.dead_letters = InMemoryDeadLetterStore(self.data, clock=clock)
        self.commits = 0
        self.rollbacks = 0

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1
