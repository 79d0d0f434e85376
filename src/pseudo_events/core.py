"""Event node implementation.

This module contains the Event class, the node type of the dispatch tree. An
Event owns a connection registry, dispatch settings, lifecycle state and its
list of child events; dispatch itself is delegated to
:mod:`pseudo_events.propagation`.

CONTENTS:
- Event: connect/disconnect, fire/fire_all/dispatch, pause/resume,
  enable/disable, wait, validate_next_dispatch, tracing

THREAD SAFETY: Event trees are meant to be driven from a single thread. The
connection registry tolerates re-entrant mutation from handlers.

TYPICAL USAGE:
    ```python
    app = Event(name="app")
    clicks = Event(app, name="clicks", dispatch_ascendants=True)

    @clicks.connect(priority=10)
    def on_click(catalyst: Event, x: int, y: int) -> None:
        ...

    app.connect(lambda catalyst, *args: print("bubbled from", catalyst.label))

    clicks.fire(3, 4)  # runs on_click, then app's handlers
    ```
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections.abc import Callable, Iterator, Sequence
from typing import Any, overload

from ulid import ULID

from .enums import ConnectionPriority, DispatchStatus, LifecycleState, resolve_priority
from .propagation import dispatch_event
from .protocols import EventId, F, StatusCallback
from .registration import NOT_PAUSED, Connection, ConnectionFilter, ConnectionRegistry
from .settings import EventSettings, EventStats, SettingsOverrides
from .tracing import DispatchTracer
from .validation import validate_dispatch
from .waiters import WaiterRegistry

logger = logging.getLogger(__name__)

PriorityLike = int | str | ConnectionPriority

CaseHandler = StatusCallback | tuple[StatusCallback, Sequence[Any]]


class Event:
    """A node in the event tree.

    Handlers connected to an event run, highest priority first, when the event
    is fired. Depending on its settings a dispatch then continues into linked
    events, child events (``dispatch_descendants``) or the parent chain
    (``dispatch_ascendants``). Each visited node decides for itself whether it
    admits the dispatch (see :func:`pseudo_events.validation.validate_dispatch`).

    Args:
        parent: Parent event; the new event is appended to its children
        settings: An EventSettings instance or a mapping of setting fields
        name: Optional label used in logs and traces
        debug: Enable debug logging in the connection registry
        **overrides: Individual setting fields applied over ``settings``
    """

    def __init__(
        self,
        parent: Event | None = None,
        settings: EventSettings | SettingsOverrides | None = None,
        *,
        name: str | None = None,
        debug: bool = False,
        **overrides: Any,
    ):
        if parent is not None and not isinstance(parent, Event):
            raise TypeError(
                f"parent must be an Event or None, got {type(parent).__name__}"
            )

        self.id: EventId = str(ULID())
        self.name = name
        self._parent_ref: weakref.ref[Event] | None = (
            weakref.ref(parent) if parent is not None else None
        )
        self.children: list[Event] = []

        self.registry = ConnectionRegistry(debug=debug)
        self.settings: EventSettings = EventSettings.coerce(settings).merged(overrides)
        self.stats = EventStats()

        self.state = LifecycleState.LISTENING
        self.previous_state = LifecycleState.LISTENING
        self.pause_priority: int = NOT_PAUSED
        self._pause_history: list[int] = []

        self.ancestor_disable_count = 0
        """Number of ancestors currently in the DISABLED_ALL state."""

        self.propagating = False
        self.waiters = WaiterRegistry()
        self.tracer = DispatchTracer()

        if parent is not None:
            parent.children.append(self)
            # Inherit any disable_all() already in effect above this node
            self.ancestor_disable_count = parent.ancestor_disable_count + (
                1 if parent.state is LifecycleState.DISABLED_ALL else 0
            )

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    @property
    def parent(self) -> Event | None:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def label(self) -> str:
        return self.name or f"Event<{self.id[-8:]}>"

    def walk(self) -> Iterator[Event]:
        """Yield this event and every descendant, pre-order."""
        yield self
        for child in list(self.children):
            yield from child.walk()

    def descendants(self) -> Iterator[Event]:
        walker = self.walk()
        next(walker)
        yield from walker

    def link(self, *events: Event) -> None:
        """Append events to ``settings.linked_events``."""
        self.settings.linked_events = [*self.settings.linked_events, *events]

    def unlink(self, *events: Event) -> None:
        self.settings.linked_events = [
            linked
            for linked in self.settings.linked_events
            if not any(linked is event for event in events)
        ]

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    @overload
    def connect(
        self, handler: None = None, *, priority: PriorityLike = 0, name: str | None = None
    ) -> Callable[[F], F]: ...

    @overload
    def connect(
        self,
        handler: Callable[..., Any],
        *,
        priority: PriorityLike = 0,
        name: str | None = None,
    ) -> Connection: ...

    def connect(
        self,
        handler: Callable[..., Any] | None = None,
        *,
        priority: PriorityLike = 0,
        name: str | None = None,
    ) -> Connection | Callable[[F], F]:
        """Connect a handler, or return a decorator that does.

        Handlers are called as ``handler(catalyst, *args)`` where ``catalyst``
        is the event ``fire()`` was called on.

        Example:
            ```python
            connection = event.connect(handler, priority=2, name="audit")

            @event.connect(priority="strong")
            def on_event(catalyst, *args) -> None: ...
            ```
        """
        resolved = resolve_priority(priority)

        if handler is None:

            def decorator(fn: F) -> F:
                self.registry.connect(fn, priority=resolved, name=name)
                return fn

            return decorator

        return self.registry.connect(handler, priority=resolved, name=name)

    def disconnect(
        self,
        connection: Connection | None = None,
        *,
        priority: PriorityLike = 0,
        name: str | None = None,
        handler: Callable[..., Any] | None = None,
    ) -> list[Connection]:
        """Disconnect a specific connection or every connection matching criteria.

        Criteria apply to all priorities up to and including ``priority``. With
        no ``name`` or ``handler`` every connection in that range is removed.

        Returns:
            The removed connections
        """
        return self.registry.disconnect(
            ConnectionFilter(
                priority=resolve_priority(priority),
                name=name,
                handler=handler,
                connection=connection,
            )
        )

    def disconnect_all(
        self,
        connection: Connection | None = None,
        *,
        priority: PriorityLike = 0,
        name: str | None = None,
        handler: Callable[..., Any] | None = None,
    ) -> list[Connection]:
        """Apply :meth:`disconnect` to this event and every descendant."""
        removed: list[Connection] = []
        for event in self.walk():
            removed.extend(
                event.disconnect(
                    connection, priority=priority, name=name, handler=handler
                )
            )
        return removed

    def highest_priority(self) -> int | None:
        return self.registry.highest_priority()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def fire(self, *args: Any) -> DispatchStatus:
        """Dispatch this event with its own settings.

        Returns:
            The admission status of this event
        """
        return dispatch_event(self, args)

    def fire_all(self, *args: Any) -> DispatchStatus:
        """Dispatch this event and, regardless of settings, its descendants."""
        return dispatch_event(self, args, headers={"dispatch_descendants": True})

    def dispatch(
        self,
        *args: Any,
        headers: SettingsOverrides | None = None,
        on_ready: StatusCallback | None = None,
        on_rejected: StatusCallback | None = None,
    ) -> DispatchStatus:
        """Dispatch with setting overrides for this call only.

        See :func:`pseudo_events.propagation.dispatch_event`.
        """
        return dispatch_event(
            self, args, headers=headers, on_ready=on_ready, on_rejected=on_rejected
        )

    def stop_propagating(self) -> None:
        """Prevent the running dispatch from continuing to the parent event."""
        self.propagating = False

    def validate_next_dispatch(
        self,
        *,
        ready: CaseHandler | None = None,
        rejected: CaseHandler | None = None,
        custom_settings: EventSettings | SettingsOverrides | None = None,
    ) -> DispatchStatus:
        """Report whether the next dispatch of this event would be admitted.

        Args:
            ready: Callback (or ``(callback, args)`` pair) called as
                ``callback(status, *args)`` when admitted
            rejected: Same, called when rejected
            custom_settings: Settings used instead of the event's own for this
                check; a mapping is merged over the event's settings

        Returns:
            The DispatchStatus
        """
        if isinstance(custom_settings, EventSettings):
            settings = custom_settings
        else:
            settings = self.settings.merged(custom_settings)

        status = validate_dispatch(self, settings)

        case = ready if status.admitted else rejected
        if case is not None:
            callback, extra = case if isinstance(case, tuple) else (case, ())
            callback(status, *extra)

        return status

    def export_settings(self, **overrides: Any) -> EventSettings:
        """Return a copy of this event's settings with ``overrides`` applied."""
        if overrides:
            return self.settings.merged(overrides)
        return EventSettings.coerce(self.settings)

    def wait(self, timeout: float | None = None) -> asyncio.Future[tuple[Any, ...]]:
        """Return a future resolved with the arguments of the next dispatch.

        Must be called with a running event loop. The waiter is registered
        immediately, so a dispatch that happens before the future is awaited
        still resolves it.

        A future that times out holds an EventTimeoutError already marked as
        retrieved, so dropping it without awaiting logs nothing.

        Args:
            timeout: Seconds before the future fails with EventTimeoutError

        Example:
            ```python
            args = await event.wait(timeout=5)
            ```
        """
        return self.waiters.add(timeout)

    # ------------------------------------------------------------------
    # Pause / resume
    # ------------------------------------------------------------------

    def pause(self, priority: PriorityLike = 0) -> int:
        """Suppress handlers at ``priority`` and below.

        The value is clamped to ``[-1, highest_priority()]``. When it changes
        the pause priority, the previous one is kept so :meth:`resume` can
        restore it; repeating the current value records nothing.

        Returns:
            The pause priority now in effect
        """
        value = resolve_priority(priority)
        highest = self.registry.highest_priority()

        if highest is None:
            clamped = NOT_PAUSED
        else:
            clamped = max(NOT_PAUSED, min(value, highest))

        if clamped != self.pause_priority:
            self._pause_history.append(self.pause_priority)
            self.pause_priority = clamped
        return self.pause_priority

    def resume(self) -> int:
        """Restore the pause priority in effect before the latest :meth:`pause`."""
        self.pause_priority = (
            self._pause_history.pop() if self._pause_history else NOT_PAUSED
        )
        return self.pause_priority

    def pause_all(self, priority: PriorityLike = 0) -> None:
        for event in self.walk():
            event.pause(priority)

    def resume_all(self) -> None:
        for event in self.walk():
            event.resume()

    @property
    def is_listening(self) -> bool:
        return self.pause_priority == NOT_PAUSED

    # ------------------------------------------------------------------
    # Lifecycle state
    # ------------------------------------------------------------------

    @property
    def is_disabled(self) -> bool:
        return self.state in (LifecycleState.DISABLED, LifecycleState.DISABLED_ALL)

    @property
    def is_enabled(self) -> bool:
        return not self.is_disabled

    @property
    def is_disabled_one(self) -> bool:
        return self.state is LifecycleState.DISABLED

    @property
    def is_disabled_all(self) -> bool:
        return self.state is LifecycleState.DISABLED_ALL

    def disable(self) -> bool:
        """Reject every dispatch of this event until :meth:`enable`.

        Returns:
            False (and logs a warning) when the event is already disabled
        """
        if self.is_disabled:
            logger.warning(
                f"Cannot disable {self.label} in state {self.state.value!r} "
                "(event must be enabled first)"
            )
            return False

        self.previous_state = self.state
        self.state = LifecycleState.DISABLED
        return True

    def enable(self) -> bool:
        if not self.is_disabled_one:
            logger.warning(f"Cannot enable {self.label} in state {self.state.value!r}")
            return False

        self.state = self.previous_state
        return True

    def disable_all(self) -> bool:
        """Disable this event and make every descendant reject dispatch."""
        if self.is_disabled:
            logger.warning(
                f"Cannot disable_all {self.label} in state {self.state.value!r} "
                "(event must be enabled first)"
            )
            return False

        self.previous_state = self.state
        self.state = LifecycleState.DISABLED_ALL
        for event in self.descendants():
            event.ancestor_disable_count += 1
        return True

    def enable_all(self) -> bool:
        if not self.is_disabled_all:
            logger.warning(
                f"Cannot enable_all {self.label} in state {self.state.value!r}"
            )
            return False

        self.state = self.previous_state
        for event in self.descendants():
            event.ancestor_disable_count -= 1
        return True

    def disable_listeners(self) -> None:
        """Stop running this event's own handlers while still propagating."""
        self.settings.dispatch_self = False

    def enable_listeners(self) -> None:
        self.settings.dispatch_self = True

    def set_ghost(self) -> None:
        self.settings.ghost = True

    def unset_ghost(self) -> None:
        self.settings.ghost = False

    # ------------------------------------------------------------------
    # Tracing
    # ------------------------------------------------------------------

    def set_event_trace(
        self, enabled: bool, verbosity: int = 1, use_rich: bool = True
    ) -> None:
        """Enable or disable tracing of dispatches that originate here.

        Args:
            enabled: Whether to trace
            verbosity: 0=minimal, 1=normal (with arguments), 2=verbose (with
                a settings table per node)
            use_rich: Print with Rich to stderr instead of the module logger
        """
        self.tracer.enabled = enabled
        self.tracer.verbosity = max(0, min(verbosity, 2))
        self.tracer.use_rich = use_rich
        self.tracer.announce(self)

    @property
    def event_trace_enabled(self) -> bool:
        return self.tracer.enabled

    def __repr__(self) -> str:
        return (
            f"Event(label={self.label!r}, state={self.state.value}, "
            f"connections={len(self.registry)}, children={len(self.children)})"
        )


__all__ = ["Event", "PriorityLike"]
