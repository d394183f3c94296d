"""Unit of Work interface for EVENTRELAY.

Defines the AbstractUnitOfWork contract: a context-managed unit of work
exposing the event log, the dispatch queue and the dead-letter store over a
single transaction, with abstract commit/rollback methods.
"""

from __future__ import annotations

import abc

from .dead_letters import DeadLetterStore
from .dispatch_queue import DispatchQueue
from .event_log import EventLog


class AbstractUnitOfWork(abc.ABC):
    """Contract for a transactional unit of work."""

    event_log: EventLog
    dispatch_queue: DispatchQueue
    dead_letters: DeadLetterStore

    def __enter__(self) -> AbstractUnitOfWork:
        """Enter the unit of work context and return the unit.

        Implementations may acquire transactional resources here.
        """
        return self

    def __exit__(self, *args):
        """Exit the unit of work context.

        Default behavior is to roll back on exit.
        """
        self.rollback()

    @abc.abstractmethod
    def commit(self):
        """Persist changes and finalize the transaction."""

    @abc.abstractmethod
    def rollback(self):
        """Revert changes and clean up transactional resources."""
