"""Unit tests.

Stores are the in-memory adapters and time comes from `FrozenClock`, so
nothing here touches a database or sleeps. The dispatcher, retry policy and
message bus are tested through their public calls only.
"""
