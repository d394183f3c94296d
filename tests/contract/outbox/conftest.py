"""Pytest fixtures for event log / dispatch queue / dead-letter contract tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

import pytest

from eventrelay.adapters.unit_of_work import InMemoryUnitOfWork, SqlAlchemyUnitOfWork
from eventrelay.interfaces.dispatch_queue import DispatchEntry
from eventrelay.interfaces.event_log import AppendOptions, DomainEvent

if TYPE_CHECKING:
    from eventrelay.interfaces.unit_of_work import AbstractUnitOfWork
    from tests.helpers.clock import FrozenClock

BACKENDS = ["memory", "sqlite_engine_memory", "sqlite_engine_file", "postgres_engine"]

# pylint: disable=redefined-outer-name


@pytest.fixture(params=BACKENDS)
def uow(request: pytest.FixtureRequest, clock: FrozenClock) -> AbstractUnitOfWork:
    """Return a fresh unit of work for the requested backend.

    Current params:
      - `"memory"` -> `InMemoryUnitOfWork` (non-durable)
      - `"sqlite_engine_memory"` -> SQLite in-memory via `metadata.create_all`
      - `"sqlite_engine_file"` -> SQLite file migrated with Alembic
      - `"postgres_engine"` -> Postgres 17 (Testcontainers; skipped without Docker)

    Every backend shares the test's `clock`, so timestamps are predictable.
    """
    if request.param == "memory":
        return InMemoryUnitOfWork(clock=clock)
    return SqlAlchemyUnitOfWork(request.getfixturevalue(request.param), clock=clock)


@pytest.fixture
def append(uow: AbstractUnitOfWork, make_new_event) -> Callable[..., DomainEvent]:
    """Append (and commit) one event; keyword args go to `AppendOptions`."""

    def _append(event=None, **options) -> DomainEvent:
        with uow:
            stored = uow.event_log.append(
                event or make_new_event(), AppendOptions(**options)
            )
            uow.commit()
        return stored

    return _append


@pytest.fixture
def claim(uow: AbstractUnitOfWork) -> Callable[..., list[DispatchEntry]]:
    """Claim (and commit) one batch."""

    def _claim(limit: int = 10, worker_id: str = "worker-a", now=None):
        with uow:
            claimed = uow.dispatch_queue.claim(limit, worker_id, now)
            uow.commit()
        return claimed

    return _claim


@pytest.fixture
def get_entry(uow: AbstractUnitOfWork) -> Callable[[int], DispatchEntry | None]:
    """Read one dispatch entry by id."""

    def _get(dispatch_id: int) -> DispatchEntry | None:
        with uow:
            return uow.dispatch_queue.get(dispatch_id)

    return _get
