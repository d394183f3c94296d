"""Bootstrap the message bus, unit of work and dispatcher."""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from eventrelay import config
from eventrelay.adapters.db.engine import make_engine
from eventrelay.adapters.unit_of_work import SqlAlchemyUnitOfWork
from eventrelay.interfaces.unit_of_work import AbstractUnitOfWork
from eventrelay.service_layer.dispatcher import (
    DomainEventDispatcher,
    LoggingPublisher,
    Publisher,
)
from eventrelay.service_layer.handlers import COMMAND_HANDLERS
from eventrelay.service_layer.messagebus import MessageBus
from eventrelay.service_layer.metrics import DispatchMetrics

if TYPE_CHECKING:
    from eventrelay.service_layer.commands import Command


@dataclass(frozen=True)
class AppContainer:
    """Wired application services."""

    uow: AbstractUnitOfWork
    message_bus: MessageBus


def build_write_uow(url: str) -> AbstractUnitOfWork:
    """Build a new unit of work for write operations."""
    return SqlAlchemyUnitOfWork(make_engine(url))


def build_message_bus(
    uow: AbstractUnitOfWork,
    command_handlers: Mapping[type[Command], Callable[..., object]] | None = None,
) -> MessageBus:
    """Build a message bus with injected dependencies."""
    handlers = COMMAND_HANDLERS if command_handlers is None else command_handlers
    dependencies = {"uow": uow}
    injected_command_handlers = {
        command_type: inject_dependencies(handler, dependencies)
        for command_type, handler in handlers.items()
    }
    return MessageBus(uow, command_handlers=injected_command_handlers)


def build_dispatcher(
    uow: AbstractUnitOfWork,
    publisher: Publisher | None = None,
    settings: config.DispatcherSettings | None = None,
    metrics: DispatchMetrics | None = None,
) -> DomainEventDispatcher:
    """Build the reference dispatcher; logs instead of delivering by default."""
    return DomainEventDispatcher(
        uow,
        publisher or LoggingPublisher(),
        settings or config.DispatcherSettings(),
        metrics=metrics,
    )


def bootstrap(url: str | None = None) -> AppContainer:
    """Wire the application against `url` (default: `EVENTRELAY_DB_URL`)."""
    uow = build_write_uow(url or config.get_db_url())
    return AppContainer(uow=uow, message_bus=build_message_bus(uow))


def inject_dependencies(
    handler: Callable, dependencies: Mapping[str, object]
) -> Callable:
    """Bind the dependencies a handler asks for by parameter name."""
    params = inspect.signature(handler).parameters
    deps = {
        name: dependency for name, dependency in dependencies.items() if name in params
    }
    return functools.partial(handler, **deps)
