"""End-to-end tests for the global options of the `eventrelay` command.

Verbosity flags, logger-level overrides, debug formatting and the flight
recorder are exercised through the test-only `relay-demo` command; the last
section runs the real dispatcher against a SQLite outbox.
"""

import re
from pathlib import Path

import pytest

from eventrelay.entrypoints.cli.main import eventrelay

# pylint: disable=unused-argument, redefined-outer-name

LOG_FILE = "flight_recorder.log"


def assert_in_output(pattern: str, output: str) -> None:
    """Fail unless the regex `pattern` matches somewhere in `output`."""
    if not re.search(pattern, output, re.MULTILINE):
        raise AssertionError(f"Pattern '{pattern}' not found in output:\n{output}")


def assert_not_in_output(pattern: str, output: str) -> None:
    """Fail if the regex `pattern` matches anywhere in `output`."""
    if re.search(pattern, output, re.MULTILINE):
        raise AssertionError(f"Pattern '{pattern}' found in output:\n{output}")


def _run(runner, *args, env=None):
    result = runner.invoke(eventrelay, list(args), env=env)
    assert result.exit_code == 0, result.output
    return result


def _flight_log() -> str:
    return Path(LOG_FILE).read_text(encoding="utf-8")


# ============================================================================
#                              Console verbosity
# ============================================================================


@pytest.mark.parametrize(
    "flags, shown, hidden",
    [
        ([], "WARNING", "INFO"),
        (["-v"], "INFO", "DEBUG"),
        (["-vv"], "DEBUG", None),
        (["-q"], "ERROR", "WARNING"),
        (["-qq"], "CRITICAL", "ERROR"),
    ],
    ids=["default", "v", "vv", "q", "qq"],
)
def test_console_level_follows_verbosity(demo_command, runner, fs, flags, shown, hidden):
    """Each -v lowers the console threshold by one level, each -q raises it."""
    result = _run(runner, *flags, demo_command)
    assert_in_output(shown, result.output)
    if hidden:
        assert_not_in_output(hidden, result.output)


@pytest.mark.parametrize(
    "env, cli_args",
    [
        ({}, ["-vv", "-L", "some.driver=INFO"]),
        ({"EVENTRELAY_LOGGER_LEVEL": "some.driver=INFO"}, ["-vv"]),
    ],
    ids=["cli-flag", "env-var"],
)
def test_logger_level_override_trims_driver_chatter(
    demo_command, runner, fs, env, cli_args
):
    """A per-logger override hides the driver's DEBUG lines but keeps its INFO."""
    result = _run(runner, *cli_args, demo_command, env=env)
    assert_not_in_output("connection checked out", result.output)
    assert_in_output("pool resized to 4", result.output)
    # project DEBUG is untouched
    assert_in_output(r"Claimed dispatch 7", result.output)


def test_third_party_lines_are_prefixed(demo_command, runner, fs):
    result = _run(runner, demo_command)
    assert_in_output(r"\[some\] driver: pool exhausted", result.output)


@pytest.mark.parametrize("debug", [True, False], ids=["debug", "default"])
def test_source_locations_only_in_debug_mode(demo_command, runner, fs, debug):
    """--debug adds the emitting file and line to each console record."""
    flags = ["--debug"] if debug else []
    result = _run(runner, *flags, demo_command)
    check = assert_in_output if debug else assert_not_in_output
    check(r"conftest\.py:\d+\b", result.output)


# ============================================================================
#                              Flight recorder
# ============================================================================


def test_warning_flushes_buffered_debug_trail(demo_command, runner, fs):
    """The first WARNING writes everything buffered so far to the log file."""
    _run(runner, "--log-path", LOG_FILE, "-L", "some.driver=INFO", demo_command)
    content = _flight_log()

    # the trail leading up to the warning
    assert_in_output("Claimed dispatch 7", content)
    assert_in_output("Published order.created", content)
    assert_in_output("Dispatch 8 attempt 2 failed", content)
    assert_in_output("Dispatch 9 failed terminally", content)
    assert_in_output("Dead-letter store unreachable", content)
    # the override applies to the file too
    assert_not_in_output("connection checked out", content)
    assert_in_output("pool resized to 4", content)
    # buffered after the last flush and never forced out
    assert_not_in_output("Released lease on dispatch 7", content)


@pytest.mark.parametrize(
    "env, cli_args",
    [({}, ["--force-flush"]), ({"EVENTRELAY_FORCE_FLUSH_FLIGHT_RECORDER": "true"}, [])],
    ids=["cli-flag", "env-var"],
)
def test_force_flush_writes_tail(demo_command, runner, fs, env, cli_args):
    _run(runner, "--log-path", LOG_FILE, *cli_args, demo_command, env=env)
    assert_in_output("Released lease on dispatch 7", _flight_log())


@pytest.mark.parametrize(
    "env, cli_args",
    [({}, ["--no-flight-recorder"]), ({"EVENTRELAY_FLIGHT_RECORDER": "0"}, [])],
    ids=["cli-flag", "env-var"],
)
def test_flight_recorder_can_be_disabled(demo_command, runner, fs, env, cli_args):
    _run(runner, "--log-path", LOG_FILE, *cli_args, demo_command, env=env)
    assert not Path(LOG_FILE).exists()


def test_each_run_starts_a_fresh_file(demo_command, runner, fs):
    """The log file is rewritten, not appended to, on every invocation."""
    sizes = []
    for _ in range(2):
        _run(runner, "--log-path", LOG_FILE, demo_command)
        sizes.append(len(_flight_log().splitlines()))
    assert sizes[0] == sizes[1]


def test_startup_diagnostics(demo_command, runner, fs):
    """A forced flush captures the startup banner and DEBUG diagnostics."""
    _run(runner, "--log-path", LOG_FILE, "--flight-recorder", "--force-flush", demo_command)
    content = _flight_log()
    for pattern in (
        r"EVENTRELAY \d+\.\d+\.\d+",
        r"console=WARNING",
        r"flight-recorder=ON",
        r"Python: \d+\.\d+\.\d+",
        r"Platform: .+",
        r"PID: \d+",
        r"CWD: .+",
        r"Alembic: \d+\.\d+\.\d+",
        r"SQLAlchemy: \d+\.\d+\.\d+",
        r"Handlers: .+",
        rf"Flight recorder: path={re.escape(LOG_FILE)}, capacity=2000, flush_on_close=True",
        r"Per-logger overrides: {'sqlalchemy': 'WARNING', 'alembic': 'WARNING'}",
    ):
        assert_in_output(pattern, content)


# ============================================================================
#                       Dispatcher logging (worker tag)
# ============================================================================


@pytest.fixture
def relay_db(runner, fs):
    """A migrated SQLite outbox in the isolated filesystem, with one event."""
    env = {"EVENTRELAY_DB_URL": f"sqlite+pysqlite:///{Path('relay.db').resolve()}"}
    _run(runner, "--no-flight-recorder", "db", "upgrade", "--force", env=env)
    _run(
        runner,
        "--no-flight-recorder",
        "events",
        "append",
        "donation",
        "don-1",
        "community.donation.completed",
        env=env,
    )
    return env


def test_dispatcher_lines_carry_worker_id(runner, relay_db):
    """Project log lines from `dispatch run` are prefixed with the worker id."""
    result = _run(
        runner,
        "-v",
        "--no-flight-recorder",
        "dispatch",
        "run",
        "--once",
        "--worker-id",
        "w-e2e",
        env=relay_db,
    )
    assert_in_output(r"<w-e2e>", result.output)
    assert_in_output(r"Publish community\.donation\.completed", result.output)


def test_dispatcher_debug_trail_reaches_flight_recorder(runner, relay_db):
    """With --force-flush the per-tick DEBUG trail is written to the log file."""
    result = _run(
        runner,
        "--log-path",
        LOG_FILE,
        "--force-flush",
        "dispatch",
        "run",
        "--once",
        env=relay_db,
    )
    content = _flight_log()
    assert_in_output(r"Tick: pending=1 dead_letters=0 claimed=1", content)
    assert_in_output(r"Delivered dispatch 1 \(event 1\)", content)
    # console stays at WARNING
    assert_not_in_output(r"Tick: pending", result.output)
