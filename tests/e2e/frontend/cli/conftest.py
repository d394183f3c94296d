"""Fixtures for end-to-end CLI logging tests.

`relay-demo` is a test-only command that logs a short, scripted dispatcher
story at every level, plus chatter from a pretend third-party driver, so the
console and flight-recorder wiring can be checked without a database.
"""

import logging

import click
import pytest
from click.testing import CliRunner

from eventrelay.entrypoints.cli.main import eventrelay

# pylint: disable=redefined-outer-name

DEMO_LOGGER = "eventrelay.demo"
DRIVER_LOGGER = "some.driver"

# (logger, level, message) in emission order
DEMO_SCRIPT = [
    (DEMO_LOGGER, logging.DEBUG, "Claimed dispatch 7 (event 41)"),
    (DEMO_LOGGER, logging.INFO, "Published order.created (event 41)"),
    (DEMO_LOGGER, logging.WARNING, "Dispatch 8 attempt 2 failed; retrying in 60s"),
    (DEMO_LOGGER, logging.ERROR, "Dispatch 9 failed terminally after 12 attempt(s)"),
    (DEMO_LOGGER, logging.CRITICAL, "Dead-letter store unreachable"),
    (DRIVER_LOGGER, logging.DEBUG, "driver: connection checked out"),
    (DRIVER_LOGGER, logging.INFO, "driver: pool resized to 4"),
    (DRIVER_LOGGER, logging.WARNING, "driver: pool exhausted"),
    (DEMO_LOGGER, logging.DEBUG, "Released lease on dispatch 7"),
]


@click.command()
def relay_demo():
    """Replay `DEMO_SCRIPT` through the logging system."""
    for name, level, message in DEMO_SCRIPT:
        logging.getLogger(name).log(level, message)


@pytest.fixture
def demo_command():
    """Attach `relay-demo` to the top-level group for one test."""
    eventrelay.add_command(relay_demo, name="relay-demo")
    try:
        yield "relay-demo"
    finally:
        eventrelay.commands.pop("relay-demo", None)
        # click-extra keeps its own section registry
        for section in getattr(eventrelay, "_sections", []):
            getattr(section, "commands", {}).pop("relay-demo", None)
        default = getattr(eventrelay, "_default_section", None)
        if default is not None:
            default.commands.pop("relay-demo", None)


@pytest.fixture
def runner():
    """A Click CliRunner."""
    return CliRunner()


@pytest.fixture
def fs(runner):
    """Run the test inside a throwaway working directory."""
    with runner.isolated_filesystem():
        yield
