"""SQLAlchemy-backed DispatchQueue adapter.

Claiming
--------
`claim` runs one code path on both supported backends:

1. ``SELECT`` the due ``pending`` candidates ordered by ``(available_at, id)``.
   On PostgreSQL the select carries ``FOR UPDATE SKIP LOCKED``, so rows
   already locked by a concurrent claimer are skipped rather than waited on.
2. ``UPDATE`` the candidates to ``delivering``, guarded by
   ``status = 'pending' AND available_at <= :now``, returning the ids that
   actually flipped.

On SQLite there are no row locks. Writers are serialized by the database
lock, so a second claimer's guarded ``UPDATE`` runs only after the first one
commits and then matches none of the rows the first one took. Either way
concurrent claims are disjoint; on SQLite a loser may get a short batch.

Metadata patches
----------------
`acknowledge` and `fail` read the stored metadata (``FOR UPDATE`` on
PostgreSQL), merge the patch in Python with `merge_patch`, and write the
result back, so merge semantics are identical on every backend. Entries that
are already `delivered` or `failed` are left untouched and yield None.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Connection

from eventrelay.adapters.db.dialects import DialectName
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
from ..schema import dispatches

logger = logging.getLogger(__name__)

_MISSING = object()
_OPEN_STATUSES = (DispatchStatus.PENDING.value, DispatchStatus.DELIVERING.value)


class SqlAlchemyDispatchQueue(DispatchQueue):
    """DispatchQueue implementation that supports both Postgres and SQLite."""

    def __init__(
        self, connection: Connection, clock: Callable[[], datetime] = utc_now
    ):
        self.connection = connection
        self.clock = clock
        self.dialect = DialectName.from_sqlalchemy(connection)

    # --- producer side ---

    def enqueue(
        self, event: DomainEvent, options: EnqueueOptions | None = None
    ) -> DispatchEntry:
        values = enqueue_values(event, options or EnqueueOptions(), self.clock())
        row = (
            self.connection.execute(
                insert(dispatches).values(values).returning(dispatches)
            )
            .mappings()
            .one()
        )
        entry = row_to_dispatch(row)
        logger.debug(
            "Enqueued dispatch %s for event %s (%s)",
            entry.id,
            entry.event_id,
            entry.status.value,
        )
        return entry

    # --- consumer side ---

    def claim(
        self, limit: int, worker_id: str, now: datetime | None = None
    ) -> list[DispatchEntry]:
        require(worker_id, "worker_id")
        if limit < 1:
            return []
        now = now or self.clock()

        candidates = (
            select(dispatches)
            .where(
                dispatches.c.status == DispatchStatus.PENDING.value,
                dispatches.c.available_at <= now,
            )
            .order_by(dispatches.c.available_at.asc(), dispatches.c.id.asc())
            .limit(limit)
        )
        if self.dialect.supports_skip_locked:
            candidates = candidates.with_for_update(skip_locked=True)

        snapshot = self.connection.execute(candidates).mappings().all()
        if not snapshot:
            return []

        flipped = set(
            self.connection.execute(
                update(dispatches)
                .where(
                    dispatches.c.id.in_([row["id"] for row in snapshot]),
                    dispatches.c.status == DispatchStatus.PENDING.value,
                    dispatches.c.available_at <= now,
                )
                .values(claim_values(worker_id, now))
                .returning(dispatches.c.id)
            )
            .scalars()
            .all()
        )
        claimed = [row_to_dispatch(row) for row in snapshot if row["id"] in flipped]
        logger.debug(
            "Worker %s claimed %d of %d candidate dispatch(es)",
            worker_id,
            len(claimed),
            len(snapshot),
        )
        return claimed

    def acknowledge(
        self,
        dispatch_id: int,
        delivered_at: datetime | None = None,
        metadata_patch: dict[str, Any] | None = None,
    ) -> DispatchEntry | None:
        require(dispatch_id, "dispatch_id")
        if (stored := self._stored_metadata(dispatch_id)) is _MISSING:
            return None
        now = self.clock()
        values = acknowledge_values(stored, delivered_at or now, metadata_patch, now)  # type: ignore[arg-type]
        return self._apply_attempt(dispatch_id, values)

    def fail(  # pylint: disable=too-many-arguments
        self,
        dispatch_id: int,
        error: BaseException | str | None,
        next_available_at: datetime | None = None,
        terminal: bool = False,
        metadata_patch: dict[str, Any] | None = None,
    ) -> DispatchEntry | None:
        require(dispatch_id, "dispatch_id")
        if (stored := self._stored_metadata(dispatch_id)) is _MISSING:
            return None
        values = fail_values(
            stored,  # type: ignore[arg-type]
            error,
            next_available_at,
            terminal,
            metadata_patch,
            self.clock(),
        )
        return self._apply_attempt(dispatch_id, values)

    def recover_stuck(
        self,
        timeout_minutes: int = DEFAULT_STUCK_TIMEOUT_MINUTES,
        worker_id: str | None = None,
    ) -> list[DispatchEntry]:
        now = self.clock()
        cutoff = now - timedelta(minutes=timeout_minutes)

        stmt = update(dispatches).where(
            dispatches.c.status == DispatchStatus.DELIVERING.value,
            dispatches.c.locked_at < cutoff,
        )
        if worker_id:
            stmt = stmt.where(dispatches.c.locked_by == worker_id)

        rows = (
            self.connection.execute(
                stmt.values(recover_values(now)).returning(dispatches)
            )
            .mappings()
            .all()
        )
        recovered = sorted((row_to_dispatch(row) for row in rows), key=lambda e: e.id)
        if recovered:
            logger.info(
                "Recovered %d stuck dispatch(es) older than %d minute(s)",
                len(recovered),
                timeout_minutes,
            )
        return recovered

    def count_pending(self) -> int:
        stmt = (
            select(func.count())
            .select_from(dispatches)
            .where(dispatches.c.status == DispatchStatus.PENDING.value)
        )
        return int(self.connection.execute(stmt).scalar_one())

    def get(self, dispatch_id: int) -> DispatchEntry | None:
        stmt = select(dispatches).where(dispatches.c.id == dispatch_id)
        if (row := self.connection.execute(stmt).mappings().one_or_none()) is None:
            return None
        return row_to_dispatch(row)

    # --- internals ---

    def _stored_metadata(self, dispatch_id: int) -> Any:
        """Return the stored metadata document.

        Unknown ids and entries already delivered or failed yield `_MISSING`.
        """
        stmt = select(dispatches.c["metadata"], dispatches.c.status).where(
            dispatches.c.id == dispatch_id
        )
        if self.dialect.supports_skip_locked:
            stmt = stmt.with_for_update()
        if (row := self.connection.execute(stmt).one_or_none()) is None:
            return _MISSING
        if DispatchStatus(row.status).is_terminal:
            logger.warning(
                "Dispatch %s is already %s; leaving it untouched",
                dispatch_id,
                row.status,
            )
            return _MISSING
        return row[0]

    def _apply_attempt(
        self, dispatch_id: int, values: dict[str, Any]
    ) -> DispatchEntry | None:
        stmt = (
            update(dispatches)
            .where(
                dispatches.c.id == dispatch_id,
                dispatches.c.status.in_(_OPEN_STATUSES),
            )
            .values({**values, "attempts": dispatches.c.attempts + 1})
            .returning(dispatches)
        )
        if (row := self.connection.execute(stmt).mappings().one_or_none()) is None:
            return None
        entry = row_to_dispatch(row)
        logger.debug(
            "Dispatch %s -> %s after %d attempt(s)",
            entry.id,
            entry.status.value,
            entry.attempts,
        )
        return entry
