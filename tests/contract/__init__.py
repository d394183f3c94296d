"""Contract tests.

The event log, dispatch queue and dead-letter store behaviors are written
once and run against every adapter through parametrized fixtures, so the
in-memory stores stay a faithful stand-in for the SQL ones.
"""
