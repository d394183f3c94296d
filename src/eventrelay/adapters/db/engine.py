"""Database engine factory.

Every Engine in EVENTRELAY comes from `make_engine` so connections are
configured consistently:

- **SQLite**: connection PRAGMAs enforce foreign keys, enable WAL, and set a
  busy timeout. Writers on SQLite are serialized by the database lock; the
  busy timeout makes a second claimer wait for the first to commit instead
  of failing with ``database is locked``.
- **PostgreSQL**: no tuning; row locks (``FOR UPDATE SKIP LOCKED``) handle
  claimer contention.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, make_url

if TYPE_CHECKING:
    from sqlite3 import Connection as SQLiteConnection

    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

SQLITE_NAMES = {"sqlite", "sqlite+pysqlite"}
SQLITE_BUSY_TIMEOUT_MS = 30_000


def is_sqlite(url: str | URL) -> bool:
    """Return True if the given SQLAlchemy URL or string corresponds to SQLite."""
    u = make_url(str(url))
    return u.get_backend_name() in SQLITE_NAMES


def make_engine(
    url: str | URL,
    *,
    echo: bool = False,
    busy_timeout_ms: int = SQLITE_BUSY_TIMEOUT_MS,
) -> Engine:
    """Create a SQLAlchemy Engine for the given URL.

    If the backend is SQLite, applies these PRAGMAs on every new connection:
        - ``foreign_keys=ON`` (dispatch entries reference their event)
        - ``journal_mode=WAL`` (readers never block the writer)
        - ``synchronous=NORMAL`` (balanced durability)
        - ``busy_timeout=<busy_timeout_ms>`` (wait for the write lock)

    Args:
        url: Database connection URL (str or :class:`URL`).
        echo: If True, log SQL statements.
        busy_timeout_ms: SQLite only. How long a writer waits for the
            database lock before giving up.

    Returns:
        Engine: Configured SQLAlchemy Engine.
    """

    engine = create_engine(url, echo=echo)
    logger.debug(
        "Created engine for %s", engine.url.render_as_string(hide_password=True)
    )

    if is_sqlite(url):

        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn: SQLiteConnection, conn_record):  # type: ignore #pylint: disable=W0613
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON;")
            cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA synchronous=NORMAL;")
            cur.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)};")
            cur.close()

    return engine
