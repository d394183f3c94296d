"""In-memory event log, dispatch queue and dead-letter adapters.

All state lives in one shared `InMemoryEventLogData` and is lost when it is
discarded. Suitable for unit tests and prototyping. Every operation takes the
shared mutex, which gives `claim` the same disjointness guarantee that row
locks give the relational backend.
"""

from .dead_letters import InMemoryDeadLetterStore
from .dispatch_queue import InMemoryDispatchQueue
from .event_log import InMemoryEventLog
from .store import InMemoryEventLogData

__all__ = [
    "InMemoryDeadLetterStore",
    "InMemoryDispatchQueue",
    "InMemoryEventLog",
    "InMemoryEventLogData",
]
