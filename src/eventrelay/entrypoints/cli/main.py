"""``eventrelay``: operate a transactional outbox from the command line.

The top-level group only sets up logging; the work happens in three groups:

- ``eventrelay db`` migrates the outbox tables and reports schema state.
- ``eventrelay events`` appends domain events and reads the log back.
- ``eventrelay dispatch`` watches the queue and runs the reference dispatcher.

Logging has two sinks. The console shows WARNING and above unless ``-v`` or
``-q`` move the threshold. The crash log (``--log-path``) is written from an
in-memory ring of DEBUG records whenever something goes wrong, so a failed
dispatcher run always leaves its recent history on disk.

Examples
    $ eventrelay db upgrade
    $ eventrelay events append donation don-17 community.donation.completed
    $ eventrelay -v dispatch run --once --batch-size 20
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click
import click_extra as clickx
from platformdirs import user_log_dir

from eventrelay import __version__
from eventrelay.logging import (
    config_console_handler,
    config_flight_recorder,
    configure_root_logging,
    log_startup,
)

from .db import db as db_group
from .dispatch import dispatch as dispatch_group
from .events import events as events_group
from .helpers.log_level_parser import parse_log_level

if TYPE_CHECKING:
    from logging import Handler

logger = logging.getLogger(__name__)


HELP = """Operate an EVENTRELAY outbox.

    Application code appends domain events and their delivery obligations in
    one database transaction. Dispatcher workers lease the due obligations,
    publish each event, then either acknowledge it, schedule a retry with
    backoff or file a dead letter once the attempts run out.
    """

EPILOG = """\b
Environment:
  EVENTRELAY_DB_URL            SQLAlchemy URL of the outbox database
  EVENTRELAY_DISPATCH_<FIELD>  dispatcher tunables, e.g. _BATCH_SIZE=20
"""

DEFAULT_LOG_PATH = (
    Path(user_log_dir("eventrelay", appauthor=False, ensure_exists=True))
    / "latest.log"
)
QUIET_THIRD_PARTY = ("sqlalchemy=WARNING", "alembic=WARNING")

# console threshold before -v / -q are applied
BASE_CONSOLE_LEVEL = logging.WARNING


LOGGING_OPTIONS = (
    click.option(
        "--verbose",
        "-v",
        "verbose_count",
        count=True,
        default=0,
        help="Show more on the console: -v adds INFO, -vv adds DEBUG.",
    ),
    click.option(
        "--quiet",
        "-q",
        "quiet_count",
        count=True,
        default=0,
        help="Show less on the console: -q keeps ERROR only, -qq CRITICAL only.",
    ),
    click.option(
        "--debug/--no-debug",
        default=False,
        help="Tag every console record with the file and line that emitted it.",
    ),
    click.option(
        "--log-path",
        type=click.Path(dir_okay=False, path_type=Path),
        default=DEFAULT_LOG_PATH,
        envvar="EVENTRELAY_LOG_PATH",
        show_default=True,
        show_envvar=True,
        help="Crash log written from the in-memory record buffer.",
    ),
    click.option(
        "--flight-recorder-capacity",
        type=click.IntRange(min=1),
        default=2000,
        hidden=True,
        envvar="EVENTRELAY_FLIGHT_RECORDER_CAPACITY",
        show_envvar=True,
        help="Number of recent log records kept for the crash log.",
    ),
    click.option(
        "--flight-recorder/--no-flight-recorder",
        "flight_recorder",
        default=True,
        show_envvar=True,
        help=(
            "Buffer recent DEBUG records in memory and dump them to --log-path "
            "as soon as a WARNING is logged. Independent of -v/-q."
        ),
    ),
    click.option(
        "--force-flush/--no-force-flush",
        "force_flush_flight_recorder",
        default=False,
        show_default=True,
        show_envvar=True,
        help="Also dump the buffer to --log-path when the command exits cleanly.",
    ),
    click.option(
        "-L",
        "--logger-level",
        "logger_levels",
        multiple=True,
        callback=parse_log_level,
        default=QUIET_THIRD_PARTY,
        show_default=True,
        show_envvar=True,
        help=(
            "Pin a logger to a minimum level, as NAME=LEVEL. Affects the console "
            "and the crash log alike. Repeat the flag or pass a comma list, "
            "e.g. -L eventrelay.service_layer=DEBUG,sqlalchemy.engine=INFO."
        ),
    ),
)


def logging_options(command: Callable[..., Any]) -> Callable[..., Any]:
    """Attach `LOGGING_OPTIONS` to `command`, first option on top."""
    for option in reversed(LOGGING_OPTIONS):
        command = option(command)
    return command


def console_level(verbose_count: int, quiet_count: int) -> int:
    """Console threshold after ``-v``/``-q``, kept within DEBUG..CRITICAL."""
    level = BASE_CONSOLE_LEVEL - 10 * verbose_count + 10 * quiet_count
    return max(logging.DEBUG, min(logging.CRITICAL, level))


@clickx.extra_group(
    version=__version__,
    help=HELP,
    epilog=EPILOG,
    params=[
        clickx.ColorOption(show_envvar=True),
        clickx.TimerOption(show_envvar=True),
        clickx.ExtraVersionOption(),
    ],
)
@logging_options
@clickx.pass_context
def eventrelay(  # pylint: disable=too-many-arguments, too-many-positional-arguments
    ctx: click.Context,
    verbose_count: int,
    quiet_count: int,
    debug: bool,
    log_path: Path,
    flight_recorder_capacity: int,
    flight_recorder: bool,
    force_flush_flight_recorder: bool,
    logger_levels: dict[str, int],
) -> None:
    """Operate an EVENTRELAY outbox."""
    level = console_level(verbose_count, quiet_count)

    # ctx.color is None unless --color/--no-color was given
    handlers: list[Handler] = [
        config_console_handler(
            level=level, debug_mode=debug, color=ctx.color is not False
        )
    ]
    if flight_recorder:
        handlers.append(
            config_flight_recorder(
                path=log_path,
                capacity=flight_recorder_capacity,
                flush_on_close=force_flush_flight_recorder,
            )
        )
    configure_root_logging(handlers, logger_levels)

    log_startup(
        logger,
        app_version=__version__,
        level=level,
        handlers=handlers,
        log_path=log_path,
        flight_recorder=flight_recorder,
        flight_capacity=flight_recorder_capacity if flight_recorder else None,
        force_flush_fr=force_flush_flight_recorder,
        logger_levels=logger_levels,
    )

    # flushes the crash log buffer and closes file handlers
    ctx.call_on_close(logging.shutdown)


eventrelay.add_command(db_group)
eventrelay.add_command(events_group)
eventrelay.add_command(dispatch_group)
