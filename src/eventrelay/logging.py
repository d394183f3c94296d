"""Logging helpers used by the EVENTRELAY CLI and dispatcher.

This module provides utilities for configuring console logging with Rich,
an in-memory "flight recorder" that buffers log records and writes them to
disk on flush, and a filter that annotates records with a short prefix used
by console formatting. Dispatcher workers additionally get their worker id
stamped on every record so interleaved output from several workers stays
readable.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from collections.abc import Mapping
from logging.handlers import MemoryHandler
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TypeAlias

import alembic
import sqlalchemy
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from logging import Logger

    from eventrelay.config import DispatcherSettings

# pylint: disable=too-few-public-methods

PROJECT_PREFIX = "eventrelay"
DEFAULT_LOGGER_LEVELS: dict[str, int] = {
    "sqlalchemy": logging.WARNING,
    "alembic": logging.WARNING,
}


class PrefixFilter(logging.Filter):
    """Annotate log records with a short bracketed prefix.

    Third-party records get their top-level package name (e.g. "[sqlalchemy]").
    Project records get the worker id when one is configured, otherwise an
    empty prefix. The filter always returns True to allow the record through.
    """

    def __init__(self, worker_id: str | None = None) -> None:
        super().__init__()
        self.worker_id = worker_id

    def filter(self, record: logging.LogRecord) -> bool:
        """Attach a prefix to the record and allow it through.

        Args:
            record: The LogRecord being processed.

        Returns:
            bool: Always True (record is not filtered out).
        """
        if not record.name.startswith(PROJECT_PREFIX):
            # e.g. "sqlalchemy.engine.Engine" -> "[sqlalchemy]"
            record.prefix = f"[{record.name.split('.')[0]}]"
        elif self.worker_id:
            record.prefix = f"<{self.worker_id}>"
        else:
            record.prefix = ""
        return True


def config_console_handler(
    level: int = logging.INFO,
    debug_mode: bool = False,
    color: bool = True,
    worker_id: str | None = None,
) -> RichHandler:
    """Configure and return a RichHandler for console output.

    The handler writes to stderr so stdout stays machine-readable. In debug
    mode the handler is set to DEBUG and includes timestamps and source
    locations; otherwise a short prefix is applied to each line.

    Args:
        level: Minimum level for console output (overridden to DEBUG in debug_mode).
        debug_mode: When True, enable debug formatting (show_path, timestamps).
        color: Enable color output when True.
        worker_id: Optional dispatcher worker id shown as the prefix of
            project log lines.

    Returns:
        RichHandler: Configured handler suitable to attach to the root logger.
    """

    # Keep in step with click-extra's --color / --no-color option
    ColorSystem: TypeAlias = Literal["auto", "standard", "256", "truecolor", "windows"]
    color_system: ColorSystem | None = "auto" if color else None
    console = Console(color_system=color_system, stderr=True)

    if debug_mode:
        level = logging.DEBUG

    handler = RichHandler(
        level=level,
        console=console,
        rich_tracebacks=True,
        show_time=debug_mode,
        show_path=debug_mode,
        enable_link_path=debug_mode,
    )

    fmt = "%(prefix)s %(message)s" if not debug_mode else "%(name)s: %(message)s"
    handler.setFormatter(logging.Formatter(fmt=fmt))
    if not debug_mode:
        handler.addFilter(PrefixFilter(worker_id))

    return handler


def config_flight_recorder(
    path: Path,
    capacity: int = 2000,
    flush_level: int = logging.WARNING,
    flush_on_close: bool = False,
) -> MemoryHandler:
    """Configure and return an in-memory flight recorder backed by a file.

    The flight recorder buffers up to `capacity` log records and flushes
    them to the file when a record at `flush_level` or higher is emitted
    (or on close if `flush_on_close` is True). A dispatcher that hits a
    terminal delivery failure therefore leaves the preceding DEBUG trail
    of claims and retries on disk.

    Args:
        path: Destination file path for flushed records.
        capacity: Number of records to buffer in memory.
        flush_level: Level at or above which the buffer will be flushed.
        flush_on_close: If True, flush the buffer when the handler is closed.

    Returns:
        MemoryHandler: A memory-backed handler with a FileHandler target.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(process)d:%(threadName)s] %(levelname)s %(name)s:%(lineno)d: %(message)s"
        )
    )

    return MemoryHandler(
        capacity=capacity,
        flushLevel=flush_level,
        target=file_handler,
        flushOnClose=flush_on_close,
    )


def configure_root_logging(
    handlers: list[logging.Handler], logger_levels: Mapping[str, int]
) -> None:
    """Install `handlers` on the root logger and apply per-logger levels.

    The root logger captures every level; the handlers do the filtering.
    Any existing logging configuration is replaced.

    Args:
        handlers: Handlers to attach to the root logger.
        logger_levels: Mapping of logger names to minimum numeric levels.
    """
    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    for name, lvl in logger_levels.items():
        logging.getLogger(name).setLevel(lvl)


def log_startup(  # pylint: disable=too-many-arguments
    logger: Logger,
    *,
    app_version: str,
    level: int,
    handlers: list[logging.Handler],
    log_path: Path | None,
    flight_recorder: bool,
    flight_capacity: int | None,
    force_flush_fr: bool,
    logger_levels: Mapping[str, int],
) -> None:
    """Log a one-line startup summary and detailed DEBUG diagnostics.

    Args:
        logger: Logger used to emit startup messages.
        app_version: Application version string to display.
        level: Effective console logging level (numeric).
        handlers: Active logging handlers attached to the root logger.
        log_path: Path to the flight-recorder output file, or None.
        flight_recorder: Whether the in-memory flight recorder is enabled.
        flight_capacity: Configured capacity of the flight recorder buffer, or None.
        force_flush_fr: Whether the flight recorder is configured to flush on close.
        logger_levels: Mapping of logger names to their configured numeric levels.
    """

    logger.info(
        "EVENTRELAY %s (console=%s, flight-recorder=%s)",
        app_version,
        logging.getLevelName(level),
        "ON" if flight_recorder else "OFF",
    )

    logger.debug("Python: %s", sys.version.split()[0])
    logger.debug("Platform: %s %s", platform.system(), platform.release())
    logger.debug("PID: %s", os.getpid())
    logger.debug("CWD: %s", Path.cwd())
    logger.debug("Alembic: %s", alembic.__version__)
    logger.debug("SQLAlchemy: %s", sqlalchemy.__version__)
    logger.debug("Handlers: %s", [type(h).__name__ for h in handlers])
    if flight_recorder:
        logger.debug(
            "Flight recorder: path=%s, capacity=%s, flush_on_close=%s",
            str(log_path) if log_path else "<none>",
            flight_capacity,
            force_flush_fr,
        )
    logger.debug(
        "Per-logger overrides: %s",
        {name: logging.getLevelName(lvl) for name, lvl in logger_levels.items()}
        or "<none>",
    )


def log_dispatcher_settings(logger: Logger, settings: DispatcherSettings) -> None:
    """Log the effective dispatcher tunables at startup.

    Args:
        logger: Logger used to emit the summary.
        settings: The clamped settings the dispatcher will run with.
    """
    logger.info(
        "Dispatcher %s: batch_size=%s, poll=%.1fs, max_attempts=%s",
        settings.worker_id,
        settings.batch_size,
        settings.poll_interval_seconds,
        settings.max_attempts,
    )
    logger.debug(
        "Backoff: initial=%.0fs, max=%.0fs, x%.2f, jitter=%.2f",
        settings.initial_backoff_seconds,
        settings.max_backoff_seconds,
        settings.backoff_multiplier,
        settings.jitter_ratio,
    )
    logger.debug(
        "Recovery: every %.0fs, lease timeout %s min",
        settings.recover_interval_seconds,
        settings.recover_timeout_minutes,
    )


def tag_worker(worker_id: str, root: logging.Logger | None = None) -> None:
    """Stamp `worker_id` on every `PrefixFilter` attached to the root handlers.

    Called once a dispatcher knows its worker id, after logging is configured.

    Args:
        worker_id: Identifier shown in front of project records.
        root: Logger whose handlers are updated; defaults to the root logger.
    """
    for handler in (root or logging.getLogger()).handlers:
        for flt in handler.filters:
            if isinstance(flt, PrefixFilter):
                flt.worker_id = worker_id
