"""PostgreSQL fixtures for EVENTRELAY.

Every Postgres test talks to a throwaway ``postgres:17`` container started
with Testcontainers. `pg_url` is shared by the session and migrated once;
`pg_url_base` gives a test its own blank server for onboarding and
migration checks. Tests needing either are skipped when Docker is down.
"""

from __future__ import annotations

import contextlib
import re
from collections.abc import Iterator
from typing import TYPE_CHECKING

import docker
import pytest
from alembic import command
from sqlalchemy import text

from eventrelay import config
from eventrelay.adapters.db.engine import make_engine

try:
    from testcontainers.postgres import (
        PostgresContainer,  # pyright: ignore[reportMissingTypeStubs]
    )
except Exception:  # pragma: no cover # pylint: disable=broad-except
    PostgresContainer = (  # pylint: disable=invalid-name
        None  # will skip if not installed
    )

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

# pylint: disable=redefined-outer-name

POSTGRES_IMAGE = "postgres:17"
PG_FIXTURES = ("postgres_engine", "pg_url", "pg_url_base")

# children first so the foreign keys never complain
TRUNCATE_SQL = (
    "TRUNCATE TABLE domain_event_dead_letters, domain_event_dispatches, "
    "domain_events RESTART IDENTITY CASCADE"
)


def _docker_available() -> bool:
    try:
        docker.from_env().ping()
    except Exception:  # pylint: disable=broad-except
        return False
    return True


DOCKER_UP = _docker_available()


def pytest_collection_modifyitems(items):
    """Skip every test that needs a Postgres container when Docker is down."""
    if DOCKER_UP:
        return
    skip = pytest.mark.skip(reason="Docker/Testcontainers backend not available")
    for item in items:
        needs_pg = any(name in PG_FIXTURES for name in getattr(item, "fixturenames", ()))
        # engine-indirect parametrizations carry the fixture name in the id
        if needs_pg or "postgres" in item.nodeid:
            item.add_marker(skip)


@contextlib.contextmanager
def _postgres_server() -> Iterator[str]:
    """Start a container and yield its psycopg 3 URL."""
    if PostgresContainer is None:
        pytest.skip("testcontainers not installed")

    with PostgresContainer(
        image=POSTGRES_IMAGE,
        username="eventrelay",
        password="abc123",
        dbname="eventrelay",
    ) as pg:
        # testcontainers hands out psycopg2 URLs
        yield re.sub(r"\+psycopg2\b", "+psycopg", pg.get_connection_url())


@pytest.fixture
def pg_url_base() -> Iterator[str]:
    """URL of a fresh, unmigrated Postgres server owned by this test."""
    with _postgres_server() as url:
        yield url


@pytest.fixture(scope="session")
def pg_url() -> Iterator[str]:
    """URL of the session's Postgres server, migrated to head once."""
    with _postgres_server() as url:
        command.upgrade(config.build_alembic_config(url), "head")
        yield url


@pytest.fixture
def postgres_engine(pg_url: str) -> Iterator[Engine]:
    """Engine on the session server; the outbox tables are emptied afterwards.

    Identities are restarted too, so every test sees ids starting at 1.
    """
    eng = make_engine(pg_url)
    try:
        yield eng
    finally:
        with eng.begin() as conn:
            conn.execute(text(TRUNCATE_SQL))
        eng.dispose()
