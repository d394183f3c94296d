"""Service layer handlers."""

import logging
from collections.abc import Callable

from eventrelay.interfaces.dispatch_queue import DispatchEntry
from eventrelay.interfaces.event_log import AppendOptions, DomainEvent, NewDomainEvent
from eventrelay.interfaces.unit_of_work import AbstractUnitOfWork

from . import commands

logger = logging.getLogger(__name__)


def record_domain_event(
    cmd: commands.RecordDomainEvent, uow: AbstractUnitOfWork
) -> DomainEvent:
    """Append an event and its dispatch entry in one transaction."""

    event = NewDomainEvent(
        entity_type=cmd.entity_type,
        entity_id=cmd.entity_id,
        event_type=cmd.event_type,
        payload=cmd.payload,
        performed_by=cmd.performed_by,
    )
    options = AppendOptions(
        enqueue_dispatch=cmd.enqueue_dispatch,
        available_at=cmd.available_at,
        dispatch_metadata=cmd.dispatch_metadata or None,
    )

    with uow:
        stored = uow.event_log.append(event, options)
        uow.commit()

    logger.info(
        "Recorded %s event %s for %s/%s",
        stored.event_type,
        stored.id,
        stored.entity_type,
        stored.entity_id,
    )
    return stored


def recover_stuck_dispatches(
    cmd: commands.RecoverStuckDispatches, uow: AbstractUnitOfWork
) -> list[DispatchEntry]:
    """Return expired leases to `pending`."""

    with uow:
        recovered = uow.dispatch_queue.recover_stuck(
            timeout_minutes=cmd.timeout_minutes, worker_id=cmd.worker_id
        )
        uow.commit()

    if recovered:
        logger.warning("Recovered %d stuck dispatch(es)", len(recovered))
    return recovered


COMMAND_HANDLERS: dict[type[commands.Command], Callable[..., object]] = {
    commands.RecordDomainEvent: record_domain_event,
    commands.RecoverStuckDispatches: recover_stuck_dispatches,
}
