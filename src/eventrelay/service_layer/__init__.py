"""Service layer for EVENTRELAY.

Implements application use-cases on top of the ports: producer and
maintenance command handlers, the retry policy, and the reference dispatcher
loop. Transaction boundaries are expressed with the unit of work.

Dependency rule: may import `eventrelay.domain`, `eventrelay.interfaces` and
`eventrelay.config`, but not `eventrelay.adapters` or `eventrelay.entrypoints`.
"""
