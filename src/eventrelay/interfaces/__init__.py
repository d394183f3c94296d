"""Interfaces (application boundary) for EVENTRELAY.

Defines framework-free application contracts: the event log, dispatch queue
and dead-letter ports, the unit of work, and the small DTOs and errors shared
by the service layer and adapters.

Dependency rule: this package is independent; do not import from other
`eventrelay.*` modules. It may be imported by `eventrelay.service_layer`,
`eventrelay.adapters`, and `eventrelay.bootstrap`.
"""

from .dead_letters import DeadLetter, DeadLetterStore, NewDeadLetter
from .dispatch_queue import (
    DEFAULT_DELIVERY_CHANNEL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
    DEFAULT_STUCK_TIMEOUT_MINUTES,
    DispatchEntry,
    DispatchQueue,
    DispatchStatus,
    EnqueueOptions,
)
from .errors import DispatchStateError, EventRelayError, PreconditionError, require
from .event_log import AppendOptions, DomainEvent, EventLog, NewDomainEvent

__all__ = [
    "AppendOptions",
    "DEFAULT_DELIVERY_CHANNEL",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_STUCK_TIMEOUT_MINUTES",
    "DeadLetter",
    "DeadLetterStore",
    "DispatchEntry",
    "DispatchQueue",
    "DispatchStateError",
    "DispatchStatus",
    "DomainEvent",
    "EnqueueOptions",
    "EventLog",
    "EventRelayError",
    "NewDeadLetter",
    "NewDomainEvent",
    "PreconditionError",
    "require",
]
