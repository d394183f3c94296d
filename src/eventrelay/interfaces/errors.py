"""Exceptions shared by the event log and dispatch queue ports.

Only caller mistakes are modelled here. Delivery failures are recorded as
data through `DispatchQueue.fail`, and storage errors propagate unmodified
from the underlying driver.
"""


class EventRelayError(Exception):
    """Base class for EVENTRELAY errors."""


class PreconditionError(EventRelayError, ValueError):
    """A required input was missing or blank.

    Indicates a programming error in the caller; never retryable.

    Attributes:
        field (str): Name of the offending input.
    """

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"{field} is required")
        self.field = field


class DispatchStateError(EventRelayError):
    """A dispatch entry would violate the lease/status invariants."""


def require(value: object, field: str) -> None:
    """Raise `PreconditionError` when `value` is None or a blank string.

    Args:
        value: The input to check.
        field: Name reported in the error.

    Raises:
        PreconditionError: If the value is missing.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PreconditionError(field)
