"""EVENTRELAY

A durable domain event log with a lease-based dispatch queue.
Producers append immutable events and, in the same transaction, enqueue
delivery obligations that competing workers claim, acknowledge, or fail
with at-least-once semantics.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
