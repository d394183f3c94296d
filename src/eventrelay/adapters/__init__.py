"""Adapters (infrastructure) for EVENTRELAY.

Provide concrete implementations of the event log, dispatch queue and
dead-letter ports (relational and in-memory), plus persistence mapping and
related wiring (engines, metadata, migrations, unit of work).

Dependency rule: may import `eventrelay.domain` and `eventrelay.interfaces`;
neither of those may import this package.
"""
