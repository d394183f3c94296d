"""``eventrelay db``: create and inspect the outbox tables.

Migrations only move forward. Rolling back would drop the event log, which
is append-only, so there is no ``downgrade`` or ``stamp`` here; use Alembic
directly with `eventrelay.config.build_alembic_config` if you really must.

Alembic's own listings go to stdout; notices and prompts go to stderr. Every
command except ``heads`` and plain ``history`` needs ``EVENTRELAY_DB_URL``.
"""

from __future__ import annotations

import sys
from enum import Enum
from typing import TYPE_CHECKING

import click
import click_extra as clickx
from alembic import command
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect

from eventrelay import config
from eventrelay.adapters.db.engine import make_engine
from eventrelay.adapters.eventlog import schema

from .helpers import error, fields, resolve_db_url, sanitize_url, success, warn

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

UPGRADE_SCHEMA_WARNING = (
    "This will create or alter the outbox tables (event log, dispatch queue,\n"
    "dead letters). Back up the database first if it holds live events."
)

UPGRADE_SCHEMA_INSTRUCTIONS = "Run 'eventrelay db upgrade' to update the schema."

verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="List each revision with its parent, path and creation date.",
)


@click.group(cls=clickx.ExtraGroup)
def db() -> None:
    """Create and inspect the outbox tables."""


@db.command()
@verbose_option
def current(verbose: bool) -> None:
    """Print the revision the outbox database is at."""
    cfg = config.build_alembic_config(db_url=resolve_db_url(), stdout=sys.stdout)
    command.current(cfg, verbose=verbose)


@db.command()
@verbose_option
def heads(verbose: bool) -> None:
    """Print the newest revision shipped with this release."""
    command.heads(config.build_alembic_config(stdout=sys.stdout), verbose=verbose)


@db.command()
@verbose_option
@click.option(
    "--indicate-current",
    "-i",
    is_flag=True,
    help="Mark the revision the database is at (needs EVENTRELAY_DB_URL).",
)
def history(verbose: bool, indicate_current: bool) -> None:
    """Print every shipped revision, newest first."""
    url = resolve_db_url() if indicate_current else None
    cfg = config.build_alembic_config(db_url=url, stdout=sys.stdout)
    command.history(cfg, verbose=verbose, indicate_current=indicate_current)


@db.command()
@click.option("--sql", is_flag=True, help="Print the DDL instead of running it.")
@click.option("--force", is_flag=True, help="Skip the confirmation prompt.")
def upgrade(sql: bool, force: bool) -> None:
    """Bring the outbox tables up to the newest revision."""
    url = resolve_db_url()
    cfg = config.build_alembic_config(db_url=url, stdout=sys.stdout)
    if not force and not sql:
        warn(UPGRADE_SCHEMA_WARNING)
        click.secho(f"db: {click.style(sanitize_url(url), underline=True)}", err=True)
        click.confirm("Are you sure you want to proceed?", abort=True, err=True)
    command.upgrade(cfg, revision="head", sql=sql)
    if not sql:
        success("Upgrade complete!")


class MigrationStatus(Enum):
    """Where the database stands relative to the newest shipped revision."""

    UP_TO_DATE = "up to date"
    OUT_OF_DATE = "out of date"
    UNINITIALIZED = "uninitialized"


def migration_status(current_rev: str | None, head_rev: str | None) -> MigrationStatus:
    """Classify the current revision against the head revision."""
    if current_rev == head_rev:
        return MigrationStatus.UP_TO_DATE
    if current_rev is None:
        return MigrationStatus.UNINITIALIZED
    return MigrationStatus.OUT_OF_DATE


def _revisions(engine: Engine, url: str) -> tuple[str | None, str | None]:
    """Return ``(current, head)``; `head` comes from the packaged scripts."""
    with engine.connect() as conn:
        current_rev = MigrationContext.configure(conn).get_current_revision()
    head_rev = ScriptDirectory.from_config(
        config.build_alembic_config(db_url=url)
    ).get_current_head()
    return current_rev, head_rev


def _missing_tables(engine: Engine) -> list[str]:
    present = set(inspect(engine).get_table_names())
    return sorted(set(schema.metadata.tables) - present)


@db.command()
def status() -> None:
    """Check connectivity, schema revision and outbox tables."""
    try:
        url = resolve_db_url()
    except click.ClickException as e:
        error("Cannot connect to database")
        click.echo(e.format_message())
        return

    engine = make_engine(url)
    try:
        success("Database reachable")
        backend = engine.dialect.name
        rev, head = _revisions(engine, url)
        missing = _missing_tables(engine)
    finally:
        engine.dispose()

    state = migration_status(rev, head)
    revision = f"{rev} ({state.value})" if rev is not None else state.value
    tables = "all present" if not missing else "missing " + ", ".join(missing)
    fields(
        [
            ("Backend", backend),
            ("URL", sanitize_url(url)),
            ("Schema", revision),
            ("Tables", tables),
        ]
    )

    if state is not MigrationStatus.UP_TO_DATE:
        warn(UPGRADE_SCHEMA_INSTRUCTIONS)
