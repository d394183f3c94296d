"""``eventrelay dispatch``: inspect the dispatch queue and run the dispatcher.

The bundled dispatcher publishes to the log (see `LoggingPublisher`). Real
deployments build their own with `eventrelay.bootstrap.build_dispatcher`
and a publisher of their choice.
"""

from __future__ import annotations

import logging
import threading

import click
import click_extra as clickx
import prometheus_client
from pydantic import ValidationError

from eventrelay import config
from eventrelay.bootstrap import bootstrap, build_dispatcher
from eventrelay.interfaces.dispatch_queue import (
    DEFAULT_STUCK_TIMEOUT_MINUTES,
    DispatchEntry,
)
from eventrelay.logging import log_dispatcher_settings, tag_worker
from eventrelay.service_layer.commands import RecoverStuckDispatches

from .helpers import error, fields, resolve_db_url, success, to_json, warn

logger = logging.getLogger(__name__)


@click.group(cls=clickx.ExtraGroup)
def dispatch() -> None:
    """Inspect the dispatch queue and run the dispatcher."""


@dispatch.command()
def pending() -> None:
    """Show queue depth: pending entries and dead letters."""
    uow = bootstrap(resolve_db_url()).uow
    with uow:
        n_pending = uow.dispatch_queue.count_pending()
        n_dead = uow.dead_letters.count()
    fields([("Pending", n_pending), ("Dead letters", n_dead)])


@dispatch.command()
@click.argument("dispatch_id", type=click.IntRange(min=1))
def show(dispatch_id: int) -> None:
    """Show the dispatch entry with id DISPATCH_ID."""
    uow = bootstrap(resolve_db_url()).uow
    with uow:
        entry = uow.dispatch_queue.get(dispatch_id)
    if entry is None:
        error(f"No dispatch entry with id {dispatch_id}")
        raise click.exceptions.Exit(1)
    click.echo(to_json(entry))


@dispatch.command()
@click.option(
    "--timeout-minutes",
    type=click.IntRange(min=0),
    default=DEFAULT_STUCK_TIMEOUT_MINUTES,
    show_default=True,
    help="Recover leases older than this many minutes.",
)
@click.option("--worker-id", help="Only recover leases held by this worker.")
def recover(timeout_minutes: int, worker_id: str | None) -> None:
    """Return expired dispatch leases to the queue."""
    container = bootstrap(resolve_db_url())
    recovered: list[DispatchEntry] = container.message_bus.handle(  # type: ignore[assignment]
        RecoverStuckDispatches(timeout_minutes=timeout_minutes, worker_id=worker_id)
    )
    count = len(recovered)
    success(f"Recovered {count} dispatch entr{'y' if count == 1 else 'ies'}")
    for entry in recovered:
        click.echo(f"{entry.id}\tevent={entry.event_id}")


@dispatch.command(name="dead-letters")
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=50,
    show_default=True,
    help="Maximum number of dead letters to list.",
)
def dead_letters(limit: int) -> None:
    """List the most recent dead letters, newest first."""
    uow = bootstrap(resolve_db_url()).uow
    with uow:
        found = uow.dead_letters.list_recent(limit)
    click.echo(to_json(found))


@dispatch.command()
@click.option("--once", is_flag=True, help="Run a single recovery and tick, then exit.")
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    help="Override EVENTRELAY_DISPATCH_BATCH_SIZE.",
)
@click.option("--worker-id", help="Override EVENTRELAY_DISPATCH_WORKER_ID.")
@click.option(
    "--metrics-port",
    type=click.IntRange(min=1, max=65535),
    help="Serve Prometheus metrics on this port while running.",
)
def run(
    once: bool, batch_size: int | None, worker_id: str | None, metrics_port: int | None
) -> None:
    """Run the reference dispatcher (publishes to the log)."""
    overrides: dict[str, object] = {}
    if batch_size is not None:
        overrides["batch_size"] = batch_size
    if worker_id:
        overrides["worker_id"] = worker_id
    try:
        settings = config.DispatcherSettings(**overrides)  # type: ignore[arg-type]
    except ValidationError as e:
        raise click.ClickException(config.describe_settings_error(e)) from e

    if not settings.enabled:
        warn("Dispatcher disabled (EVENTRELAY_DISPATCH_ENABLED is false)")
        return

    tag_worker(settings.worker_id)
    log_dispatcher_settings(logger, settings)
    if metrics_port is not None:
        prometheus_client.start_http_server(metrics_port)
        logger.info("Serving Prometheus metrics on port %d", metrics_port)

    dispatcher = build_dispatcher(
        bootstrap(resolve_db_url()).uow, settings=settings
    )
    stop = threading.Event()
    try:
        dispatcher.run(stop=stop, once=once)
    except KeyboardInterrupt:
        stop.set()
        warn("Interrupted; dispatcher stopped")
