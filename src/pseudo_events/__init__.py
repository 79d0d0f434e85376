"""pseudo_events - hierarchical, priority-aware in-process event dispatch.

Re-exports the public API under one import path.
"""

import logging

# Dispatch context
from .context import DispatchContext, dispatch_ctx

# Main Event class
from .core import Event, PriorityLike

# Enums
from .enums import (
    DEFAULT_DISPATCH_ORDER,
    ConnectionPriority,
    DispatchPhase,
    DispatchStatus,
    LifecycleState,
    resolve_priority,
)

# Errors and type aliases
from .protocols import (
    ConnectionHandler,
    CyclicLinkedEventsError,
    EventId,
    EventTimeoutError,
    MutuallyExclusiveHeadersError,
    PseudoEventsError,
)

# Connection registration
from .registration import (
    NOT_PAUSED,
    Connection,
    ConnectionFilter,
    ConnectionRegistry,
    PriorityBucket,
)

# Configuration
from .settings import EventSettings, EventStats
from .validation import validate_dispatch

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Core classes
    "Event",
    "EventSettings",
    "EventStats",
    "DispatchContext",
    # Registration
    "Connection",
    "ConnectionFilter",
    "ConnectionRegistry",
    "PriorityBucket",
    "NOT_PAUSED",
    # Enums
    "ConnectionPriority",
    "DispatchPhase",
    "DispatchStatus",
    "LifecycleState",
    "DEFAULT_DISPATCH_ORDER",
    "resolve_priority",
    # Admission
    "validate_dispatch",
    # Errors
    "PseudoEventsError",
    "MutuallyExclusiveHeadersError",
    "CyclicLinkedEventsError",
    "EventTimeoutError",
    # Type aliases
    "ConnectionHandler",
    "EventId",
    "PriorityLike",
    # Context variable (advanced usage)
    "dispatch_ctx",
]
