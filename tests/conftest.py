from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import pytest

from pseudo_events import Event

# ---------------------------------------------------------------------------
# Handler recording helpers
# ---------------------------------------------------------------------------

Recorder = Callable[[str], Callable[..., None]]


@pytest.fixture()
def calls() -> list[tuple[str, tuple[Any, ...]]]:
    """Shared log of (label, args) pairs appended by recorder handlers."""
    return []


@pytest.fixture()
def recorder(calls: list[tuple[str, tuple[Any, ...]]]) -> Recorder:
    """Build handlers that append ``(label, args)`` to ``calls``."""

    def make(label: str) -> Callable[..., None]:
        def handler(catalyst: Event, *args: Any) -> None:
            calls.append((label, args))

        handler.__name__ = f"record_{label}"
        return handler

    return make


# ---------------------------------------------------------------------------
# Event trees
# ---------------------------------------------------------------------------


@pytest.fixture()
def tree() -> dict[str, Event]:
    """root -> parent -> child -> grandchild, each with a name."""
    root = Event(name="root")
    parent = Event(root, name="parent")
    child = Event(parent, name="child")
    grandchild = Event(child, name="grandchild")
    return {"root": root, "parent": parent, "child": child, "grandchild": grandchild}


@pytest.fixture(autouse=True)
def _debug_logging(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="pseudo_events")
