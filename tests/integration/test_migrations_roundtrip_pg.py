"""Alembic round-trip smoke test for PostgreSQL.

This test validates that our migrations can *upgrade to head* and *downgrade to base*
cleanly on a real PostgreSQL 17 instance. It uses Testcontainers to provision a
temporary server, creates a scratch database via an AUTOCOMMIT admin connection,
then:

  1) runs `alembic upgrade head`,
  2) asserts the outbox tables exist and accept an append through the unit of
     work (JSONB adapts),
  3) runs `alembic downgrade base`,
  4) asserts the tables and the trigger function are dropped.

We operate on a per-test scratch DB so the container’s default DB remains intact.
"""

import re
import uuid

from alembic import command
from sqlalchemy import create_engine, text

from eventrelay import config
from eventrelay.adapters.db.engine import make_engine
from eventrelay.adapters.unit_of_work import SqlAlchemyUnitOfWork

# mypy: disable-error-code=no-untyped-def

TABLES = ("domain_events", "domain_event_dispatches", "domain_event_dead_letters")


def _drop_database(admin, name: str) -> None:
    with admin.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
        conn.execute(
            text(
                "SELECT pg_terminate_backend(pid) FROM pg_stat_activity "
                "WHERE datname = :d AND pid <> pg_backend_pid()"
            ),
            {"d": name},
        )
        conn.execute(text(f"DROP DATABASE IF EXISTS {name}"))


def test_alembic_downgrade_upgrade_roundtrip_postgres(pg_url_base, make_new_event):
    """Upgrade → assert → Downgrade → assert on a scratch Postgres database."""
    base_url = pg_url_base

    # Use the 'postgres' DB for admin ops (not the DB we’ll drop)
    admin_url = re.sub(r"/[^/]+$", "/postgres", base_url)
    scratch = f"eventrelay_rt_{uuid.uuid4().hex[:8]}"
    admin = create_engine(admin_url, pool_pre_ping=True)

    _drop_database(admin, scratch)
    with admin.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
        conn.execute(text(f"CREATE DATABASE {scratch}"))

    url = re.sub(r"/[^/]+$", f"/{scratch}", base_url)

    # upgrade -> assert -> downgrade -> assert
    command.upgrade(config.build_alembic_config(url), "head")
    eng = make_engine(url)
    with eng.begin() as c:
        for table in TABLES:
            assert c.execute(
                text("SELECT to_regclass(:t) IS NOT NULL"), {"t": f"public.{table}"}
            ).scalar(), f"{table} should exist after upgrade"

    uow = SqlAlchemyUnitOfWork(eng)
    with uow:
        stored = uow.event_log.append(make_new_event(payload={"nested": {"ok": True}}))
        uow.commit()
    with uow:
        assert uow.event_log.find_by_id(stored.id).payload == {"nested": {"ok": True}}

    command.downgrade(config.build_alembic_config(url), "base")
    with eng.begin() as c:
        for table in TABLES:
            assert not c.execute(
                text("SELECT to_regclass(:t) IS NOT NULL"), {"t": f"public.{table}"}
            ).scalar(), f"{table} should be dropped"
        assert not c.execute(
            text(
                "SELECT EXISTS (SELECT 1 FROM pg_proc "
                "WHERE proname = 'domain_events_forbid_mod')"
            )
        ).scalar()

    eng.dispose()
    _drop_database(admin, scratch)
    admin.dispose()
