"""Row <-> record mapping shared by the relational and in-memory backends.

Both backends keep dispatch state as column-name keyed rows. The value
builders below compute the column changes for each queue transition, so the
two backends agree on defaults, clamping, merge and truncation. The only part
left to each backend is how it applies the change (``UPDATE ... RETURNING`` vs
a dict update under a mutex) and how it increments ``attempts``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from eventrelay.domain import merge_patch, payload_checksum, truncate_error
from eventrelay.interfaces.dead_letters import DeadLetter, NewDeadLetter
from eventrelay.interfaces.dispatch_queue import (
    DEFAULT_RETRY_DELAY,
    DispatchEntry,
    DispatchStatus,
    EnqueueOptions,
)
from eventrelay.interfaces.errors import PreconditionError, require
from eventrelay.interfaces.event_log import AppendOptions, DomainEvent, NewDomainEvent

# --------------------------------------------------------------------------- #
# Events
# --------------------------------------------------------------------------- #


def event_insert_values(event: NewDomainEvent, now: datetime) -> dict[str, Any]:
    """Validate a new event and return its insertable row."""
    require(event.entity_type, "entity_type")
    require(event.entity_id, "entity_id")
    require(event.event_type, "event_type")
    return {
        "entity_type": event.entity_type,
        "entity_id": event.entity_id,
        "event_type": event.event_type,
        "payload": event.payload,
        "performed_by": event.performed_by,
        "created_at": now,
    }


def enqueue_options_for(options: AppendOptions) -> EnqueueOptions:
    """Translate the dispatch overrides of an append into enqueue options."""
    overrides: dict[str, Any] = {
        "available_at": options.available_at,
        "metadata": options.dispatch_metadata,
    }
    if options.dispatch_status is not None:
        overrides["status"] = options.dispatch_status
    return EnqueueOptions(**overrides)


def row_to_event(row: Mapping[str, Any]) -> DomainEvent:
    return DomainEvent(
        id=int(row["id"]),
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        event_type=row["event_type"],
        payload=row["payload"],
        performed_by=row["performed_by"],
        created_at=row["created_at"],
    )


# --------------------------------------------------------------------------- #
# Dispatches
# --------------------------------------------------------------------------- #


def row_to_dispatch(row: Mapping[str, Any]) -> DispatchEntry:
    return DispatchEntry(
        id=int(row["id"]),
        event_id=int(row["event_id"]),
        status=DispatchStatus(row["status"]),
        delivery_channel=row["delivery_channel"],
        attempts=int(row["attempts"]),
        max_attempts=int(row["max_attempts"]),
        available_at=row["available_at"],
        payload_checksum=row["payload_checksum"],
        metadata=dict(row["metadata"] or {}),
        locked_at=row["locked_at"],
        locked_by=row["locked_by"],
        delivered_at=row["delivered_at"],
        failed_at=row["failed_at"],
        last_error=row["last_error"],
        last_error_at=row["last_error_at"],
        dry_run=bool(row["dry_run"]),
        trace_id=row["trace_id"],
        correlation_id=row["correlation_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def initial_status(options: EnqueueOptions) -> DispatchStatus:
    """Return the validated initial status of a new dispatch entry.

    Raises:
        PreconditionError: If the status is `DELIVERING`.
    """
    status = DispatchStatus(options.status)
    if status is DispatchStatus.DELIVERING:
        raise PreconditionError(
            "status", "a new dispatch cannot start as delivering (no lease holder)"
        )
    return status


def enqueue_values(
    event: DomainEvent, options: EnqueueOptions, now: datetime
) -> dict[str, Any]:
    """Return the insertable row for a new dispatch entry.

    Raises:
        PreconditionError: If the event has no id or the initial status is
            `DELIVERING`.
    """
    require(getattr(event, "id", None), "event.id")
    status = initial_status(options)

    available_at = options.available_at or now
    values: dict[str, Any] = {
        "event_id": event.id,
        "status": status.value,
        "delivery_channel": options.delivery_channel,
        "attempts": max(0, options.attempts),
        "max_attempts": max(1, options.max_attempts),
        "available_at": available_at,
        "locked_at": None,
        "locked_by": None,
        "delivered_at": None,
        "failed_at": None,
        "last_error": None,
        "last_error_at": None,
        "payload_checksum": options.payload_checksum
        or payload_checksum(
            event.id, event.entity_type, event.entity_id, event.event_type, event.payload
        ),
        "metadata": dict(options.metadata or {}),
        "dry_run": options.dry_run,
        "trace_id": options.trace_id,
        "correlation_id": options.correlation_id,
        "created_at": now,
        "updated_at": now,
    }
    match status:
        case DispatchStatus.DELIVERED:
            values["delivered_at"] = now
        case DispatchStatus.FAILED:
            values["failed_at"] = now
            values["available_at"] = None
    return values


def claim_values(worker_id: str, now: datetime) -> dict[str, Any]:
    return {
        "status": DispatchStatus.DELIVERING.value,
        "locked_at": now,
        "locked_by": worker_id,
        "updated_at": now,
    }


def acknowledge_values(
    stored_metadata: Mapping[str, Any] | None,
    delivered_at: datetime,
    metadata_patch: Mapping[str, Any] | None,
    now: datetime,
) -> dict[str, Any]:
    """Column changes for a successful delivery (``attempts`` excluded)."""
    return {
        "status": DispatchStatus.DELIVERED.value,
        "delivered_at": delivered_at,
        "failed_at": None,
        "locked_at": None,
        "locked_by": None,
        "metadata": merge_patch(stored_metadata, metadata_patch),
        "updated_at": now,
    }


def fail_values(  # pylint: disable=too-many-arguments
    stored_metadata: Mapping[str, Any] | None,
    error: BaseException | str | None,
    next_available_at: datetime | None,
    terminal: bool,
    metadata_patch: Mapping[str, Any] | None,
    now: datetime,
) -> dict[str, Any]:
    """Column changes for a failed delivery attempt (``attempts`` excluded)."""
    values: dict[str, Any] = {
        "last_error": truncate_error(error),
        "last_error_at": now,
        "delivered_at": None,
        "locked_at": None,
        "locked_by": None,
        "metadata": merge_patch(stored_metadata, metadata_patch),
        "updated_at": now,
    }
    if terminal:
        values.update(
            status=DispatchStatus.FAILED.value, failed_at=now, available_at=None
        )
    else:
        values.update(
            status=DispatchStatus.PENDING.value,
            available_at=next_available_at or now + DEFAULT_RETRY_DELAY,
        )
    return values


def recover_values(now: datetime) -> dict[str, Any]:
    return {
        "status": DispatchStatus.PENDING.value,
        "locked_at": None,
        "locked_by": None,
        "updated_at": now,
    }


# --------------------------------------------------------------------------- #
# Dead letters
# --------------------------------------------------------------------------- #


def dead_letter_insert_values(
    dead_letter: NewDeadLetter, now: datetime
) -> dict[str, Any]:
    return {
        "dispatch_id": dead_letter.dispatch_id,
        "event_id": dead_letter.event_id,
        "event_type": dead_letter.event_type,
        "attempts": dead_letter.attempts,
        "failure_reason": dead_letter.failure_reason,
        "failure_message": truncate_error(dead_letter.failure_message),
        "event_payload": dead_letter.event_payload,
        "metadata": dict(dead_letter.metadata),
        "created_at": now,
    }


def row_to_dead_letter(row: Mapping[str, Any]) -> DeadLetter:
    return DeadLetter(
        id=int(row["id"]),
        dispatch_id=int(row["dispatch_id"]),
        event_id=int(row["event_id"]),
        event_type=row["event_type"],
        attempts=int(row["attempts"]),
        failure_reason=row["failure_reason"],
        failure_message=row["failure_message"],
        event_payload=row["event_payload"],
        metadata=dict(row["metadata"] or {}),
        created_at=row["created_at"],
    )
