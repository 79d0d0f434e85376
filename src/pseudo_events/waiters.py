"""Deferred completion handles for ``Event.wait()``.

A waiter is an ``asyncio.Future`` registered on a node. The next SELF phase of
that node resolves every pending waiter with the fired arguments; a waiter
created with a timeout fails with :class:`EventTimeoutError` if the timer
expires first. Either way a waiter settles exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from .protocols import EventTimeoutError

logger = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class Waiter:
    future: asyncio.Future[tuple[Any, ...]]
    timer: asyncio.TimerHandle | None = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def resolve(self, args: tuple[Any, ...]) -> bool:
        self.cancel_timer()
        if self.future.done():
            return False
        self.future.set_result(args)
        return True

    def expire(self, timeout: float) -> None:
        self.timer = None
        if not self.future.done():
            self.future.set_exception(EventTimeoutError(timeout))
            # Callers may drop a timed-out waiter without awaiting it
            self.future.exception()


class WaiterRegistry:
    """Pending waiters of a single event node."""

    def __init__(self) -> None:
        self._waiters: list[Waiter] = []

    def add(self, timeout: float | None = None) -> asyncio.Future[tuple[Any, ...]]:
        """Register a waiter on the running event loop.

        Args:
            timeout: Seconds before the waiter fails with EventTimeoutError

        Raises:
            RuntimeError: when called without a running event loop
            ValueError: for a negative timeout
        """
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be >= 0")

        loop = asyncio.get_running_loop()
        waiter = Waiter(future=loop.create_future())

        if timeout is not None:
            waiter.timer = loop.call_later(timeout, waiter.expire, timeout)

        # Drop the entry as soon as the future settles some other way
        waiter.future.add_done_callback(lambda _: self._discard(waiter))
        self._waiters.append(waiter)
        return waiter.future

    def _discard(self, waiter: Waiter) -> None:
        waiter.cancel_timer()
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    def settle(self, args: Sequence[Any]) -> int:
        """Resolve every pending waiter with ``args``, newest first.

        Returns:
            Number of waiters resolved
        """
        if not self._waiters:
            return 0

        pending, self._waiters = self._waiters, []
        values = tuple(args)
        resolved = 0
        for waiter in reversed(pending):
            if waiter.resolve(values):
                resolved += 1

        logger.debug(f"Resolved {resolved} waiter(s)")
        return resolved

    def __len__(self) -> int:
        return len(self._waiters)
