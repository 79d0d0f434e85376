"""Dispatch configuration for event nodes.

CONTENTS:
- EventSettings: validated per-node dispatch settings (pydantic model)
- EventStats: dispatch counters kept on every node

Header overrides passed to ``Event.dispatch()`` are merged over a node's
settings with :meth:`EventSettings.merged`, which validates the override keys
and values and never mutates the node's own settings.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import DEFAULT_DISPATCH_ORDER, DispatchPhase

SettingsOverrides = Mapping[str, Any]


class EventSettings(BaseModel):
    """Dispatch settings of a single event node.

    Direction flags (``dispatch_descendants``/``dispatch_ascendants``) read from
    the node a dispatch originates at apply to the whole dispatch tree. Every
    other field is read from each visited node.
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        arbitrary_types_allowed=True,
    )

    dispatch_limit: int | float = Field(default=math.inf)
    """Maximum number of admitted dispatches (unbounded by default)."""

    linked_events: list[Any] = Field(default_factory=list)
    """Events dispatched during the LINKED phase (non-owning references)."""

    dispatch_order: tuple[DispatchPhase, ...] = DEFAULT_DISPATCH_ORDER
    """Order in which the four propagation phases run."""

    dispatch_self: bool = True
    dispatch_linked: bool = True
    dispatch_descendants: bool = False
    dispatch_ascendants: bool = False

    requires_connection: bool = True
    """Reject dispatch when the node has no connections."""

    ghost: bool = False
    """Admit unconditionally (after the disabled checks) and skip own handlers."""

    @field_validator("dispatch_limit")
    @classmethod
    def _check_dispatch_limit(cls, value: int | float) -> int | float:
        if math.isnan(value) or value < 0:
            raise ValueError("dispatch_limit must be >= 0")
        return value

    @field_validator("dispatch_order")
    @classmethod
    def _check_dispatch_order(
        cls, value: tuple[DispatchPhase, ...]
    ) -> tuple[DispatchPhase, ...]:
        if len(value) != len(DispatchPhase) or set(value) != set(DispatchPhase):
            raise ValueError(
                "dispatch_order must list every phase exactly once "
                f"(got {[phase.name for phase in value]})"
            )
        return value

    @field_validator("linked_events")
    @classmethod
    def _check_linked_events(cls, value: list[Any]) -> list[Any]:
        from .core import Event

        for item in value:
            if not isinstance(item, Event):
                raise ValueError(
                    f"linked_events entries must be Event instances, got {type(item).__name__}"
                )
        return value

    def merged(self, overrides: SettingsOverrides | None = None) -> EventSettings:
        """Return these settings with ``overrides`` applied, validated.

        Returns ``self`` unchanged when there is nothing to override.
        """
        if not overrides:
            return self
        return type(self).model_validate({**dict(self), **dict(overrides)})

    @classmethod
    def coerce(
        cls, settings: EventSettings | SettingsOverrides | None
    ) -> EventSettings:
        """Build settings from a model instance, a mapping of fields or None."""
        if settings is None:
            return cls()
        if isinstance(settings, EventSettings):
            return settings.model_copy(
                update={"linked_events": list(settings.linked_events)}
            )
        return cls.model_validate(dict(settings))


@dataclass(slots=True)
class EventStats:
    """Counters updated each time a dispatch is admitted on a node."""

    dispatch_count: int = 0
    time_last_dispatched: float = 0.0
