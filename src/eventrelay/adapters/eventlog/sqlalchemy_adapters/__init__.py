"""SQLAlchemy adapters for the event log, dispatch queue and dead letters.

Relational implementations backed by the tables in
`eventrelay.adapters.eventlog.schema`. Each adapter works on a caller-owned
`Connection`, so several adapters sharing one connection share one
transaction. That is how an append and its dispatch entry commit together.
"""

from .dead_letters import SqlAlchemyDeadLetterStore
from .dispatch_queue import SqlAlchemyDispatchQueue
from .event_log import SqlAlchemyEventLog

__all__ = [
    "SqlAlchemyDeadLetterStore",
    "SqlAlchemyDispatchQueue",
    "SqlAlchemyEventLog",
]
