"""Test the bootstrap function."""

from collections.abc import Callable

import pytest
from prometheus_client import CollectorRegistry

from eventrelay import config
from eventrelay.adapters.unit_of_work import SqlAlchemyUnitOfWork
from eventrelay.bootstrap import bootstrap
from eventrelay.bootstrap.bootstrap import (
    build_dispatcher,
    build_message_bus,
    build_write_uow,
    inject_dependencies,
)
from eventrelay.interfaces.unit_of_work import AbstractUnitOfWork
from eventrelay.service_layer import commands
from eventrelay.service_layer.commands import Command
from eventrelay.service_layer.dispatcher import DomainEventDispatcher, LoggingPublisher
from eventrelay.service_layer.metrics import DispatchMetrics, default_metrics

# pylint: disable=redefined-outer-name
# pylint: disable=unused-argument
# pylint: disable=too-few-public-methods
# pylint: disable=magic-value-comparison


@pytest.fixture()
def setenvvar(monkeypatch, sqlite_url_file):
    """Point EVENTRELAY_DB_URL at a migrated temp SQLite file."""
    monkeypatch.setenv(config.DB_URL_ENV_VAR, sqlite_url_file)


@pytest.fixture()
def migrated(setenvvar, sqlite_engine_file):
    """Run migrations for the URL in the environment."""
    return sqlite_engine_file


class FakeUnitOfWork(AbstractUnitOfWork):
    """A test unit of work for testing purposes."""

    def __init__(self):
        self.committed = False

    def commit(self):
        self.committed = True

    def rollback(self):
        pass


class CustomCommand(Command):
    """A custom command for testing."""


class TestBuildWriteUoW:
    """Tests for the build_write_uow function."""

    @staticmethod
    def test_build_write_uow_returns_uow():
        """Test that build_write_uow returns a concrete UOW instance."""
        uow = build_write_uow(url="sqlite:///:memory:")
        assert isinstance(uow, SqlAlchemyUnitOfWork)
        assert str(uow.engine.url) == "sqlite:///:memory:"


class TestBuildMessageBus:
    """Tests for the build_message_bus function."""

    @staticmethod
    def test_build_message_bus_injects_uow():
        """Test that build_message_bus injects the unit of work into handlers."""
        uow = FakeUnitOfWork()

        def sample_handler(cmd: Command, uow: FakeUnitOfWork):
            assert uow is not None
            with uow:
                uow.commit()

        command_handlers: dict[type[Command], Callable[..., None]] = {
            Command: sample_handler,
        }

        bus = build_message_bus(uow, command_handlers)
        bus.handle(Command())
        assert bus.uow.committed is True

    @staticmethod
    def test_forwards_message_to_handler():
        """Test that the message bus forwards messages to the correct handler."""
        uow = FakeUnitOfWork()

        handled_commands = []

        def sample_handler(cmd: CustomCommand, uow: FakeUnitOfWork):
            handled_commands.append(cmd)

        bus = build_message_bus(uow, {CustomCommand: sample_handler})
        command_instance = CustomCommand()
        bus.handle(command_instance)

        assert handled_commands == [command_instance]

    @staticmethod
    def test_default_handlers_are_registered():
        """Without explicit handlers the bus knows every command."""
        bus = build_message_bus(FakeUnitOfWork())
        # pylint: disable=protected-access
        assert set(bus._command_handlers) == {
            commands.RecordDomainEvent,
            commands.RecoverStuckDispatches,
        }


class TestInjectDependencies:
    """Tests for inject_dependencies."""

    @staticmethod
    def test_only_requested_dependencies_are_bound():
        def handler(cmd, uow):
            return cmd, uow

        bound = inject_dependencies(handler, {"uow": "U", "clock": "C"})
        assert bound.keywords == {"uow": "U"}
        assert bound("cmd") == ("cmd", "U")


class TestBuildDispatcher:
    """Tests for build_dispatcher."""

    @staticmethod
    def test_defaults_to_logging_publisher_and_env_settings(monkeypatch):
        monkeypatch.setenv("EVENTRELAY_DISPATCH_BATCH_SIZE", "7")
        dispatcher = build_dispatcher(FakeUnitOfWork())
        assert isinstance(dispatcher, DomainEventDispatcher)
        assert isinstance(dispatcher.publisher, LoggingPublisher)
        assert dispatcher.settings.batch_size == 7

    @staticmethod
    def test_explicit_settings_win(monkeypatch):
        monkeypatch.setenv("EVENTRELAY_DISPATCH_BATCH_SIZE", "7")
        settings = config.DispatcherSettings(batch_size=3, worker_id="w-1")
        dispatcher = build_dispatcher(FakeUnitOfWork(), settings=settings)
        assert dispatcher.settings is settings
        assert dispatcher.worker_id == "w-1"

    @staticmethod
    def test_metrics_default_to_process_collectors():
        dispatcher = build_dispatcher(FakeUnitOfWork())
        assert dispatcher.metrics is default_metrics()

    @staticmethod
    def test_explicit_metrics_win():
        metrics = DispatchMetrics(CollectorRegistry())
        dispatcher = build_dispatcher(FakeUnitOfWork(), metrics=metrics)
        assert dispatcher.metrics is metrics


class TestBootstrap:
    """Tests for the bootstrap function."""

    @staticmethod
    def test_returns_app_container(setenvvar):
        """Test that bootstrap returns an AppContainer instance."""
        app_container = bootstrap()
        assert app_container.message_bus is not None
        assert app_container.message_bus.uow is app_container.uow
        assert isinstance(app_container.uow, SqlAlchemyUnitOfWork)

    @staticmethod
    def test_missing_url_raises(monkeypatch):
        monkeypatch.delenv(config.DB_URL_ENV_VAR, raising=False)
        with pytest.raises(config.DatabaseUrlNotSetError):
            bootstrap()

    @staticmethod
    def test_records_event_end_to_end(migrated, make_record_command):
        """The wired bus records an event in the configured database."""
        app = bootstrap()
        stored = app.message_bus.handle(make_record_command())

        with app.uow:
            assert app.uow.event_log.find_by_id(stored.id) == stored
            assert app.uow.dispatch_queue.count_pending() == 1
