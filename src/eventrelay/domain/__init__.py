"""Domain-layer helpers shared by every event log and dispatch queue backend.

Everything here is pure: no storage, no I/O. Adapters call these helpers so
that the in-memory and relational backends agree on merge, truncation and
checksum semantics.
"""

from .merge_patch import merge_patch
from .utils import payload_checksum, truncate_error, utc_now

__all__ = ["merge_patch", "payload_checksum", "truncate_error", "utc_now"]
