"""Per-dispatch state threaded through propagation.

A ``DispatchContext`` is created once for every top-level ``Event.dispatch()``
call and passed by argument through each recursive visit, so nested and
independent ``fire()`` calls never share it.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .protocols import EventId, StatusCallback

if TYPE_CHECKING:
    from .core import Event
    from .settings import EventSettings


@dataclass(slots=True)
class DispatchContext:
    """State shared by every node visited during one top-level dispatch."""

    catalyst: Event
    """The node the dispatch originated at; passed first to every handler."""

    args: tuple[Any, ...]
    """Positional arguments given to fire()/dispatch()."""

    headers: EventSettings
    """Effective settings of the catalyst for this call."""

    in_flight: set[EventId] = field(default_factory=set)
    """Ids of the catalyst and linked events currently being dispatched."""

    visited: list[Event] = field(default_factory=list)
    """Nodes admitted so far, in visit order."""

    on_ready: StatusCallback | None = None
    """Called as ``on_ready(status, event)`` for every admitted node."""

    on_rejected: StatusCallback | None = None
    """Called as ``on_rejected(status, event)`` for every rejected node."""

    @property
    def dispatch_descendants(self) -> bool:
        return self.headers.dispatch_descendants

    @property
    def dispatch_ascendants(self) -> bool:
        return self.headers.dispatch_ascendants


# Context variable for the dispatch currently running handlers
dispatch_ctx: contextvars.ContextVar[DispatchContext | None] = contextvars.ContextVar(
    "dispatch_ctx", default=None
)
"""ContextVar exposing the DispatchContext whose handlers are running."""
