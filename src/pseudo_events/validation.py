"""Dispatch admission checks.

``validate_dispatch`` decides whether a node admits its next dispatch. It is a
pure function of the node's current state and the settings in effect for the
call, evaluated again at every node a dispatch visits.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .enums import DispatchStatus, LifecycleState
from .registration import NOT_PAUSED

if TYPE_CHECKING:
    from .core import Event
    from .settings import EventSettings

logger = logging.getLogger(__name__)

_DISABLED_STATES = frozenset({LifecycleState.DISABLED, LifecycleState.DISABLED_ALL})


def validate_dispatch(event: Event, settings: EventSettings) -> DispatchStatus:
    """Return the admission status for dispatching ``event`` with ``settings``.

    Checks run in a fixed order and the first match wins:

    1. node disabled (``DISABLED``)
    2. an ancestor called ``disable_all()`` (``DISABLED_BY_ANCESTOR``)
    3. ghost node, admitted without further checks (``GHOST``)
    4. no connections while one is required (``NO_CONNECTION``)
    5. every priority paused (``PRIORITY_PAUSED``)
    6. dispatch limit exhausted (``DISPATCH_LIMIT_REACHED``)
    7. nothing paused (``ALL_LISTENING``)
    8. some priority above the pause threshold (``PRIORITY_LISTENING``)

    Anything else is ``UNKNOWN_REJECTION_ERROR``.
    """
    if event.state in _DISABLED_STATES:
        return DispatchStatus.DISABLED

    if event.ancestor_disable_count > 0:
        return DispatchStatus.DISABLED_BY_ANCESTOR

    if settings.ghost:
        return DispatchStatus.GHOST

    registry = event.registry
    if not registry and settings.requires_connection:
        return DispatchStatus.NO_CONNECTION

    pause_priority = event.pause_priority
    highest = registry.highest_priority()

    if pause_priority != NOT_PAUSED and highest is not None and pause_priority >= highest:
        return DispatchStatus.PRIORITY_PAUSED

    if event.stats.dispatch_count >= settings.dispatch_limit:
        return DispatchStatus.DISPATCH_LIMIT_REACHED

    if pause_priority == NOT_PAUSED:
        return DispatchStatus.ALL_LISTENING

    if highest is not None and highest > pause_priority:
        return DispatchStatus.PRIORITY_LISTENING

    logger.debug(
        f"No admission rule matched for event {event.id} "
        f"(pause_priority={pause_priority}, highest={highest})"
    )
    return DispatchStatus.UNKNOWN_REJECTION_ERROR
