"""Associative merge of metadata documents.

Dispatch entries carry an open ``metadata`` document that is patched (not
replaced) when an entry is acknowledged or failed. The merge is done here,
in the application, rather than with a dialect-specific JSON operator, so it
behaves identically on every backend.

Semantics (shallow merge):

- patch keys overwrite stored keys: ``{"a": 1}`` + ``{"a": 3}`` -> ``{"a": 3}``
- other stored keys survive: ``{"a": 1}`` + ``{"b": 2}`` -> ``{"a": 1, "b": 2}``
- nested documents are replaced whole, not merged recursively
- a missing stored document behaves as ``{}``; an empty patch is a no-op
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def merge_patch(
    existing: Mapping[str, Any] | None, patch: Mapping[str, Any] | None
) -> dict[str, Any]:
    """Return a new document with the keys of `patch` laid over `existing`.

    Keys present in `patch` overwrite the matching keys of `existing`; keys
    absent from `patch` are left untouched. Neither input is mutated.

    Args:
        existing: The stored document, or None when nothing is stored yet.
        patch: The keys to overwrite. None or empty leaves `existing` as is.

    Returns:
        The merged document (always a fresh dict).
    """
    merged = dict(existing or {})
    if patch:
        merged.update(patch)
    return merged
