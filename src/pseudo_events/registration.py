"""Connection registration and priority-bucketed storage.

This module contains the per-node connection registry used by the dispatch
engine, including the connection record, the filter used to disconnect
connections by identity or criteria, and the bucket bookkeeping that keeps
priorities sorted independently of insertion order.

CONTENTS:
- Connection: A registered handler at a given priority
- ConnectionFilter: Identity or criteria selection of connections
- PriorityBucket: Connections sharing one priority value
- ConnectionRegistry: Sorted priority buckets with connect/disconnect/lookup

THREAD SAFETY: Registry mutations are guarded by a threading.RLock so handlers
may connect or disconnect re-entrantly while a dispatch is running. Dispatch
itself assumes a single logical thread.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from .protocols import ConnectionPriorityValue

logger = logging.getLogger(__name__)

NOT_PAUSED = -1
"""Pause priority meaning no connection is suppressed."""


@dataclass(eq=False)
class Connection:
    """A handler registered on an event node.

    Connections compare by identity: two connections with the same name and
    handler are still distinct registrations.

    Attributes:
        handler: Callable invoked as ``handler(catalyst, *args)``
        priority: Bucket key; higher priorities run first
        name: Optional label used by disconnect filters
        active: Soft toggle; inactive connections are skipped but stay registered
    """

    handler: Callable[..., Any]
    """The callback to run during the SELF phase."""

    priority: ConnectionPriorityValue = 0
    """Priority bucket this connection lives in."""

    name: str | None = None
    """Optional label for filtering."""

    active: bool = True
    """Whether the connection runs when its node dispatches."""

    connected: bool = field(default=True, init=False)
    """False once the connection has been removed from its registry."""

    def pause(self) -> None:
        self.active = False

    def resume(self) -> None:
        self.active = True

    @property
    def is_active(self) -> bool:
        return self.active

    def __repr__(self) -> str:
        handler_name = getattr(self.handler, "__name__", repr(self.handler))
        return (
            f"Connection(name={self.name!r}, handler={handler_name}, "
            f"priority={self.priority}, active={self.active})"
        )


@dataclass(slots=True)
class ConnectionFilter:
    """Selects connections to remove.

    When ``connection`` is set the filter matches that exact connection and
    nothing else. Otherwise ``name`` and ``handler`` are criteria compared by
    equality; a criterion left as None matches any connection, so a filter with
    neither removes every connection up to and including ``priority``.
    """

    priority: ConnectionPriorityValue = 0
    name: str | None = None
    handler: Callable[..., Any] | None = None
    connection: Connection | None = None

    @property
    def has_criteria(self) -> bool:
        return self.name is not None or self.handler is not None

    def matches(self, connection: Connection) -> bool:
        if self.connection is not None:
            return connection is self.connection
        if self.name is not None and connection.name != self.name:
            return False
        if self.handler is not None and connection.handler != self.handler:
            return False
        return True


@dataclass(slots=True)
class PriorityBucket:
    order_index: int
    """Position of this bucket's priority within the registry's priority order."""

    connections: list[Connection] = field(default_factory=list)


class ConnectionRegistry:
    """Priority-bucketed connection storage for a single event node.

    Buckets are keyed by integer priority. A separately maintained ascending
    list of the priorities in use (``priority_order``) gives traversal order,
    and every bucket records its own position in that list:

        priority_order[buckets[p].order_index] == p

    New priorities are placed by insertion sort, which is linear in the number
    of distinct priorities and constant for a priority already in use. A bucket
    and its slot are dropped as soon as its last connection is removed.
    """

    def __init__(self, debug: bool = False):
        self._lock = threading.RLock()
        """RLock guarding bucket and order mutation."""

        self._buckets: dict[ConnectionPriorityValue, PriorityBucket] = {}
        self._priority_order: list[ConnectionPriorityValue] = []
        self._debug = debug

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def connect(
        self,
        handler: Callable[..., Any],
        priority: ConnectionPriorityValue = 0,
        name: str | None = None,
    ) -> Connection:
        """Append a new connection to the bucket for ``priority``.

        Args:
            handler: Callable invoked as ``handler(catalyst, *args)``
            priority: Any integer; the bucket is created on demand
            name: Optional label for later filtering

        Returns:
            The new Connection

        Raises:
            TypeError: if ``handler`` is not callable
        """
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")

        connection = Connection(handler=handler, priority=priority, name=name)

        with self._lock:
            bucket = self._buckets.get(priority)
            if bucket is None:
                bucket = self._insert_bucket(priority)
            bucket.connections.append(connection)

        if self._debug:
            logger.debug(f"Connected {connection!r}")
        return connection

    def _insert_bucket(self, priority: ConnectionPriorityValue) -> PriorityBucket:
        order = self._priority_order
        bucket = PriorityBucket(order_index=len(order))
        self._buckets[priority] = bucket
        order.append(priority)

        # Sink the new key into place, swapping order indices as it moves
        now = len(order) - 1
        while now > 0 and order[now] < order[now - 1]:
            last_bucket = self._buckets[order[now - 1]]
            bucket.order_index, last_bucket.order_index = (
                last_bucket.order_index,
                bucket.order_index,
            )
            order[now - 1], order[now] = order[now], order[now - 1]
            now -= 1

        return bucket

    def _drop_bucket(self, index: int) -> None:
        priority = self._priority_order.pop(index)
        del self._buckets[priority]
        for later in self._priority_order[index:]:
            self._buckets[later].order_index -= 1

    def disconnect(self, connection_filter: ConnectionFilter) -> list[Connection]:
        """Remove the connections selected by ``connection_filter``.

        A literal connection is removed from its own bucket. Criteria are
        applied to every bucket from the lowest priority up to and including
        ``connection_filter.priority``; nothing is removed when that priority
        has no bucket.

        Returns:
            The removed connections
        """
        with self._lock:
            if connection_filter.connection is not None:
                removed = self._remove_connection(connection_filter.connection)
            else:
                removed = self._remove_matching(connection_filter)

        for connection in removed:
            connection.connected = False

        if self._debug and removed:
            logger.debug(f"Disconnected {len(removed)} connection(s)")
        return removed

    def _remove_connection(self, connection: Connection) -> list[Connection]:
        bucket = self._buckets.get(connection.priority)
        if bucket is None:
            return []

        for index, candidate in enumerate(bucket.connections):
            if candidate is connection:
                del bucket.connections[index]
                break
        else:
            return []

        if not bucket.connections:
            self._drop_bucket(bucket.order_index)
        return [connection]

    def _remove_matching(self, connection_filter: ConnectionFilter) -> list[Connection]:
        target = self._buckets.get(connection_filter.priority)
        if target is None:
            logger.debug(
                f"Connection priority {connection_filter.priority!r} does not exist"
            )
            return []

        removed: list[Connection] = []
        limit = target.order_index
        index = 0

        while index <= limit:
            bucket = self._buckets[self._priority_order[index]]
            kept: list[Connection] = []
            for connection in bucket.connections:
                if connection_filter.matches(connection):
                    removed.append(connection)
                else:
                    kept.append(connection)
            bucket.connections[:] = kept

            if kept:
                index += 1
            else:
                self._drop_bucket(index)
                limit -= 1

        return removed

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def highest_priority(self) -> ConnectionPriorityValue | None:
        """Return the highest priority in use, or None when empty."""
        with self._lock:
            return self._priority_order[-1] if self._priority_order else None

    @property
    def priority_order(self) -> tuple[ConnectionPriorityValue, ...]:
        """Ascending priorities that currently hold connections."""
        with self._lock:
            return tuple(self._priority_order)

    def bucket(self, priority: ConnectionPriorityValue) -> PriorityBucket | None:
        return self._buckets.get(priority)

    def connections(
        self, priority: ConnectionPriorityValue | None = None
    ) -> list[Connection]:
        """Return connections at ``priority``, or all of them highest first."""
        with self._lock:
            if priority is not None:
                bucket = self._buckets.get(priority)
                return list(bucket.connections) if bucket else []
            return [
                connection
                for key in reversed(self._priority_order)
                for connection in self._buckets[key].connections
            ]

    def find(self, connection_filter: ConnectionFilter) -> list[Connection]:
        """Return connections matching the filter without removing them."""
        with self._lock:
            return [
                connection
                for key in self._priority_order
                if key <= connection_filter.priority
                for connection in self._buckets[key].connections
                if connection_filter.matches(connection)
            ]

    def get_dispatch_plan(self, pause_priority: int = NOT_PAUSED) -> list[Connection]:
        """Snapshot the connections a SELF phase would run.

        Buckets are visited from the highest priority down to, but excluding,
        priorities at or below ``pause_priority`` (no threshold when it is
        NOT_PAUSED); connections keep insertion order within a bucket. The
        snapshot lets handlers mutate the registry while the plan runs.
        """
        plan: list[Connection] = []
        with self._lock:
            for key in reversed(self._priority_order):
                if pause_priority != NOT_PAUSED and key <= pause_priority:
                    break
                plan.extend(self._buckets[key].connections)
        return plan

    def __iter__(self) -> Iterator[Connection]:
        return iter(self.connections())

    def __len__(self) -> int:
        with self._lock:
            return sum(len(bucket.connections) for bucket in self._buckets.values())

    def __bool__(self) -> bool:
        return bool(self._priority_order)

    def __contains__(self, connection: object) -> bool:
        if not isinstance(connection, Connection):
            return False
        bucket = self._buckets.get(connection.priority)
        return bucket is not None and any(
            candidate is connection for candidate in bucket.connections
        )
