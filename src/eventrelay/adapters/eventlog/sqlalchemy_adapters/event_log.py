"""SQLAlchemy-backed EventLog adapter.

Appends insert one row into ``domain_events`` and, unless told otherwise,
enqueue a dispatch entry through the dispatch queue bound to the **same**
connection. Nothing is committed here; the unit of work owns the
transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime

from sqlalchemy import Select, insert, select
from sqlalchemy.engine import Connection

from eventrelay.domain import utc_now
from eventrelay.interfaces.dispatch_queue import DispatchQueue
from eventrelay.interfaces.event_log import (
    AppendOptions,
    DomainEvent,
    EventLog,
    NewDomainEvent,
)

from ..mapping import enqueue_options_for, event_insert_values, row_to_event
from ..schema import domain_events
from .dispatch_queue import SqlAlchemyDispatchQueue

logger = logging.getLogger(__name__)


class SqlAlchemyEventLog(EventLog):
    """SQLAlchemy-backed EventLog.

    Args:
        connection: Connection whose transaction the append joins.
        dispatch_queue: Queue used for the same-transaction enqueue. Defaults
            to a `SqlAlchemyDispatchQueue` on `connection`.
        clock: Source of `created_at` timestamps.
    """

    def __init__(
        self,
        connection: Connection,
        dispatch_queue: DispatchQueue | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.connection = connection
        self.clock = clock
        self.dispatch_queue = dispatch_queue or SqlAlchemyDispatchQueue(
            connection, clock=clock
        )

    def append(
        self, event: NewDomainEvent, options: AppendOptions | None = None
    ) -> DomainEvent:
        options = options or AppendOptions()
        values = event_insert_values(event, self.clock())

        row = (
            self.connection.execute(
                insert(domain_events).values(values).returning(domain_events)
            )
            .mappings()
            .one()
        )
        stored = row_to_event(row)
        logger.debug(
            "Appended event %s (%s) for %s/%s",
            stored.id,
            stored.event_type,
            stored.entity_type,
            stored.entity_id,
        )

        if options.enqueue_dispatch:
            self.dispatch_queue.enqueue(stored, enqueue_options_for(options))

        return stored

    def find_by_id(self, event_id: int) -> DomainEvent | None:
        stmt = select(domain_events).where(domain_events.c.id == event_id)
        if (row := self.connection.execute(stmt).mappings().one_or_none()) is None:
            return None
        return row_to_event(row)

    def read_since(
        self, after_id: int = 0, limit: int | None = None
    ) -> Iterable[DomainEvent]:
        if after_id < 0:
            raise ValueError("after_id must be >= 0")
        if limit is not None and limit < 1:
            raise ValueError("limit cannot be <= 0")

        stmt: Select = (
            select(domain_events)
            .where(domain_events.c.id > after_id)
            .order_by(domain_events.c.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        rows = self.connection.execute(stmt).mappings().all()
        for row in rows:
            yield row_to_event(row)
