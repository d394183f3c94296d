"""``eventrelay events``: append and inspect domain events.

Records go to **stdout** as JSON so they can be piped; notices go to stderr.
"""

from __future__ import annotations

import json
from typing import Any

import click
import click_extra as clickx

from eventrelay.bootstrap import bootstrap
from eventrelay.interfaces.errors import PreconditionError
from eventrelay.interfaces.event_log import DomainEvent
from eventrelay.service_layer.commands import RecordDomainEvent

from .helpers import error, resolve_db_url, success, to_json


class JsonObject(click.ParamType):
    """A JSON object given on the command line."""

    name = "json"

    def convert(self, value: Any, param, ctx) -> dict[str, Any]:
        if isinstance(value, dict):
            return value
        try:
            document = json.loads(value)
        except json.JSONDecodeError as e:
            self.fail(f"not valid JSON: {e.msg}", param, ctx)
        if not isinstance(document, dict):
            self.fail("must be a JSON object", param, ctx)
        return document


@click.group(cls=clickx.ExtraGroup)
def events() -> None:
    """Append and inspect domain events."""


@events.command()
@click.argument("entity_type")
@click.argument("entity_id")
@click.argument("event_type")
@click.option("--payload", type=JsonObject(), help="Event payload as a JSON object.")
@click.option("--performed-by", help="Actor who caused the event.")
@click.option(
    "--dispatch/--no-dispatch",
    "enqueue_dispatch",
    default=True,
    show_default=True,
    help="Enqueue a dispatch entry in the same transaction.",
)
def append(  # pylint: disable=too-many-arguments, too-many-positional-arguments
    entity_type: str,
    entity_id: str,
    event_type: str,
    payload: dict[str, Any] | None,
    performed_by: str | None,
    enqueue_dispatch: bool,
) -> None:
    """Append one event to the log.

    EVENT_TYPE is a dotted name such as ``community.donation.completed``.
    """
    container = bootstrap(resolve_db_url())
    try:
        stored: DomainEvent = container.message_bus.handle(  # type: ignore[assignment]
            RecordDomainEvent(
                entity_type=entity_type,
                entity_id=entity_id,
                event_type=event_type,
                payload=payload,
                performed_by=performed_by,
                enqueue_dispatch=enqueue_dispatch,
            )
        )
    except PreconditionError as e:
        raise click.UsageError(str(e)) from e
    success(f"Recorded event {stored.id}")
    click.echo(to_json(stored))


@events.command()
@click.argument("event_id", type=click.IntRange(min=1))
def show(event_id: int) -> None:
    """Show the event with id EVENT_ID."""
    uow = bootstrap(resolve_db_url()).uow
    with uow:
        stored = uow.event_log.find_by_id(event_id)
    if stored is None:
        error(f"No event with id {event_id}")
        raise click.exceptions.Exit(1)
    click.echo(to_json(stored))


@events.command(name="list")
@click.option(
    "--after-id",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Only list events with a greater id.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=50,
    show_default=True,
    help="Maximum number of events to list.",
)
def list_events(after_id: int, limit: int) -> None:
    """List events in id order."""
    uow = bootstrap(resolve_db_url()).uow
    with uow:
        found = list(uow.event_log.read_since(after_id=after_id, limit=limit))
    click.echo(to_json(found))
