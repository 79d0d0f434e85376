from __future__ import annotations

from enum import IntEnum, StrEnum


class DispatchStatus(StrEnum):
    """Outcome of validating a node for its next dispatch.

    Statuses are computed fresh on every attempt and never stored on the node.
    ``ALL_LISTENING``, ``PRIORITY_LISTENING`` and ``GHOST`` admit the dispatch;
    everything else rejects it.
    """

    DISABLED = "Disabled"
    DISABLED_BY_ANCESTOR = "DisabledByAncestor"
    GHOST = "Ghost"
    NO_CONNECTION = "NoConnection"
    PRIORITY_PAUSED = "PriorityPaused"
    DISPATCH_LIMIT_REACHED = "DispatchLimitReached"
    ALL_LISTENING = "AllListening"
    PRIORITY_LISTENING = "PriorityListening"
    UNKNOWN_REJECTION_ERROR = "UnknownRejectionError"

    @property
    def admitted(self) -> bool:
        return self in _ADMITTED


_ADMITTED = frozenset(
    {
        DispatchStatus.GHOST,
        DispatchStatus.ALL_LISTENING,
        DispatchStatus.PRIORITY_LISTENING,
    }
)


class LifecycleState(StrEnum):
    LISTENING = "Listening"
    DISABLED = "Disabled"
    DISABLED_ALL = "DisabledAll"


class DispatchPhase(IntEnum):
    """Propagation phases, in their default execution order."""

    SELF = 0
    LINKED = 1
    DESCENDANT = 2
    ASCENDANT = 3


DEFAULT_DISPATCH_ORDER: tuple[DispatchPhase, ...] = tuple(DispatchPhase)


class ConnectionPriority(IntEnum):
    """Named connection priorities. Any other integer is also a valid priority."""

    WEAK = 0
    STRONG = 1
    FACTORY = 2


def resolve_priority(priority: int | str | ConnectionPriority) -> int:
    """Normalize a priority given as an int, ConnectionPriority or its name.

    Names are matched case-insensitively (``"strong"``, ``"Strong"``).

    Raises:
        ValueError: if a name does not match any ConnectionPriority member
        TypeError: for any other type
    """
    if isinstance(priority, bool):
        raise TypeError("priority must be an int or a priority name, not bool")
    if isinstance(priority, int):
        return int(priority)
    if isinstance(priority, str):
        try:
            return int(ConnectionPriority[priority.strip().upper()])
        except KeyError:
            valid = ", ".join(member.name.lower() for member in ConnectionPriority)
            raise ValueError(
                f"Unknown priority name {priority!r} (expected one of: {valid})"
            ) from None
    raise TypeError(f"Invalid priority type: {type(priority).__name__}")


__all__ = [
    "ConnectionPriority",
    "DEFAULT_DISPATCH_ORDER",
    "DispatchPhase",
    "DispatchStatus",
    "LifecycleState",
    "resolve_priority",
]
