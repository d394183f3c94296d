"""Domain layer utilities."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any

MAX_ERROR_LENGTH = 2000


def utc_now() -> datetime:
    """Return the current time as a tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def truncate_error(error: BaseException | str | None, limit: int = MAX_ERROR_LENGTH) -> str:
    """Render a failure as a bounded diagnostic message.

    Exceptions render as their message, falling back to the exception class
    name when the message is empty.

    Args:
        error: The exception or message to record.
        limit: Maximum number of characters kept.

    Returns:
        The message, cut to at most `limit` characters.
    """
    if error is None:
        message = ""
    elif isinstance(error, BaseException):
        message = str(error) or type(error).__name__
    else:
        message = str(error)
    return message[:limit]


def payload_checksum(
    event_id: int,
    entity_type: str,
    entity_id: str,
    event_type: str,
    payload: dict[str, Any] | None,
) -> str:
    """Compute a content hash identifying one event's delivery.

    The digest covers the event's identity and content, serialized as
    canonical JSON (sorted keys, no whitespace), so re-enqueuing the same
    event always yields the same token. Consumers use it for idempotency.

    Returns:
        A ``sha256:<hex>`` string.
    """
    document = {
        "id": event_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "event_type": event_type,
        "payload": payload,
    }
    canonical = json.dumps(
        document, sort_keys=True, separators=(",", ":"), default=str
    )
    return "sha256:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()
