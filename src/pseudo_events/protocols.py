"""Core type aliases and exceptions shared across the dispatch engine.

CONTENTS:
- EventId, ConnectionPriorityValue: type aliases
- ConnectionHandler: protocol for callbacks attached with Event.connect()
- PseudoEventsError and the configuration/timeout error taxonomy
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from .core import Event

# Type definitions
EventId = str
ConnectionPriorityValue = int
F = TypeVar("F", bound=Callable[..., Any])


@runtime_checkable
class ConnectionHandler(Protocol):
    """Protocol for connection callbacks.

    Handlers receive the catalyst (the node ``fire()`` was called on) followed
    by the positional arguments passed to ``fire()``.
    """

    def __call__(self, catalyst: Event, *args: Any) -> Any: ...


# Callable form of the (status, *args) callbacks used by validate_next_dispatch
StatusCallback = Callable[..., Any]


class PseudoEventsError(Exception):
    """Base class for errors raised by the dispatch engine."""


class MutuallyExclusiveHeadersError(PseudoEventsError, ValueError):
    """Raised when a dispatch enables both ascendant and descendant propagation."""

    def __init__(self) -> None:
        super().__init__(
            "Cannot use two mutually exclusive headers "
            "(dispatch_ascendants and dispatch_descendants)"
        )


class CyclicLinkedEventsError(PseudoEventsError, RuntimeError):
    """Raised when linked events re-enter a node that is still dispatching."""

    def __init__(self, event_id: EventId) -> None:
        self.event_id = event_id
        super().__init__(f"Detected cyclic linked events at {event_id!r}")


class EventTimeoutError(PseudoEventsError, TimeoutError):
    """Raised into a waiter whose timeout elapsed before the event fired."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Event timed out after {timeout}s")
