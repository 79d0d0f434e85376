"""Propagation engine.

Executes admitted dispatches: runs a node's own handlers, settles its waiters,
then walks linked, descendant and ascendant nodes in the order given by the
node's ``dispatch_order`` setting. Every visited node is validated again before
it runs.

CONTENTS:
- dispatch_event(): top-level entry used by Event.fire()/fire_all()/dispatch()
- one runner per DispatchPhase

ERROR HANDLING:
- Rejections are reported through the on_rejected callback, never raised
- MutuallyExclusiveHeadersError and CyclicLinkedEventsError abort the whole
  top-level dispatch
- Exceptions raised by handlers propagate to the caller unchanged
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from .context import DispatchContext, dispatch_ctx
from .enums import DispatchPhase, DispatchStatus
from .protocols import CyclicLinkedEventsError, MutuallyExclusiveHeadersError
from .validation import validate_dispatch

if TYPE_CHECKING:
    from .core import Event
    from .protocols import StatusCallback
    from .settings import EventSettings

logger = logging.getLogger(__name__)


def _log_rejection(status: DispatchStatus, event: Event) -> None:
    logger.debug(f"Dispatch rejected for {event.label}: {status.value}")


def dispatch_event(
    event: Event,
    args: Sequence[Any] = (),
    headers: Mapping[str, Any] | None = None,
    on_ready: StatusCallback | None = None,
    on_rejected: StatusCallback | None = None,
) -> DispatchStatus:
    """Dispatch ``event`` and propagate according to its settings.

    Args:
        event: The catalyst node
        args: Positional arguments passed to every handler after the catalyst
        headers: Setting overrides applied to the catalyst for this call only;
            other visited nodes use their own settings
        on_ready: Called as ``on_ready(status, node)`` for each admitted node
        on_rejected: Called as ``on_rejected(status, node)`` for each rejected
            node (defaults to a debug log record)

    Returns:
        The admission status of the catalyst itself

    Raises:
        MutuallyExclusiveHeadersError: both propagation directions enabled
        CyclicLinkedEventsError: linked events lead back into an in-flight node
    """
    effective = event.settings.merged(headers)

    if effective.dispatch_ascendants and effective.dispatch_descendants:
        raise MutuallyExclusiveHeadersError()

    context = DispatchContext(
        catalyst=event,
        args=tuple(args),
        headers=effective,
        in_flight={event.id},
        on_ready=on_ready,
        on_rejected=on_rejected or _log_rejection,
    )

    token = dispatch_ctx.set(context)
    try:
        return _visit(event, context, effective, depth=0, via=None)
    finally:
        dispatch_ctx.reset(token)


def _visit(
    event: Event,
    context: DispatchContext,
    settings: EventSettings | None = None,
    *,
    depth: int,
    via: DispatchPhase | None,
) -> DispatchStatus:
    if settings is None:
        settings = event.settings

    status = validate_dispatch(event, settings)
    context.catalyst.tracer.log_visit(event, status, depth, via, context.args, settings)

    if not status.admitted:
        if context.on_rejected is not None:
            context.on_rejected(status, event)
        return status

    event.stats.dispatch_count += 1
    event.stats.time_last_dispatched = time.time()
    context.visited.append(event)

    if context.on_ready is not None:
        context.on_ready(status, event)

    previous = event.propagating
    event.propagating = True
    try:
        for phase in settings.dispatch_order:
            _PHASE_RUNNERS[phase](event, settings, context, depth)
    finally:
        event.propagating = previous

    return status


def _run_self(
    event: Event, settings: EventSettings, context: DispatchContext, depth: int
) -> None:
    if not settings.ghost and settings.dispatch_self:
        for connection in event.registry.get_dispatch_plan(event.pause_priority):
            # Skip connections paused or removed by an earlier handler
            if connection.connected and connection.active:
                connection.handler(context.catalyst, *context.args)

    event.waiters.settle(context.args)


def _run_linked(
    event: Event, settings: EventSettings, context: DispatchContext, depth: int
) -> None:
    if not (settings.dispatch_linked and settings.linked_events):
        return

    for linked in list(settings.linked_events):
        if linked.id in context.in_flight:
            raise CyclicLinkedEventsError(linked.id)

        context.in_flight.add(linked.id)
        try:
            _visit(linked, context, depth=depth + 1, via=DispatchPhase.LINKED)
        finally:
            context.in_flight.discard(linked.id)


def _run_descendants(
    event: Event, settings: EventSettings, context: DispatchContext, depth: int
) -> None:
    if not context.dispatch_descendants:
        return

    for child in list(event.children):
        _visit(child, context, depth=depth + 1, via=DispatchPhase.DESCENDANT)


def _run_ascendants(
    event: Event, settings: EventSettings, context: DispatchContext, depth: int
) -> None:
    if not context.dispatch_ascendants:
        return

    parent = event.parent
    if parent is not None and event.propagating:
        _visit(parent, context, depth=depth + 1, via=DispatchPhase.ASCENDANT)


_PHASE_RUNNERS: dict[
    DispatchPhase, Callable[[Event, EventSettings, DispatchContext, int], None]
] = {
    DispatchPhase.SELF: _run_self,
    DispatchPhase.LINKED: _run_linked,
    DispatchPhase.DESCENDANT: _run_descendants,
    DispatchPhase.ASCENDANT: _run_ascendants,
}
