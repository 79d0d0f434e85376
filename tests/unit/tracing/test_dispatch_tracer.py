from __future__ import annotations

import logging

import pytest
from rich.table import Table
from rich.text import Text

from pseudo_events import DispatchPhase, DispatchStatus, Event
from pseudo_events.tracing import DispatchTracer


def test_tracing_disabled_by_default():
    event = Event()

    assert event.event_trace_enabled is False


def test_plain_trace_goes_to_logger(caplog: pytest.LogCaptureFixture):
    caplog.set_level(logging.INFO, logger="pseudo_events")
    parent = Event(name="root")
    child = Event(parent, name="leaf")
    parent.connect(lambda *_: None)
    child.connect(lambda *_: None)

    parent.set_event_trace(True, use_rich=False)
    parent.fire_all("payload")

    lines = [r.getMessage() for r in caplog.records if "[DISPATCH TRACE]" in r.getMessage()]
    assert len(lines) == 2
    assert "event=root" in lines[0] and "via=fire" in lines[0]
    assert "event=leaf" in lines[1] and "via=descendant" in lines[1]
    assert "status=AllListening" in lines[1]
    assert "'payload'" in lines[0]


def test_rejections_are_traced(caplog: pytest.LogCaptureFixture):
    event = Event(name="empty")
    event.set_event_trace(True, use_rich=False)

    event.fire()

    assert "status=NoConnection" in caplog.text


def test_only_origin_tracer_is_used(caplog: pytest.LogCaptureFixture):
    parent = Event(name="root", requires_connection=False)
    child = Event(parent, name="leaf", requires_connection=False)
    child.set_event_trace(True, use_rich=False)

    parent.fire_all()

    assert "[DISPATCH TRACE]" not in caplog.text


def test_disabling_trace_stops_output(caplog: pytest.LogCaptureFixture):
    event = Event(name="quiet", requires_connection=False)
    event.set_event_trace(True, use_rich=False)
    event.set_event_trace(False, use_rich=False)
    caplog.clear()

    event.fire()

    assert "[DISPATCH TRACE]" not in caplog.text
    assert event.event_trace_enabled is False


def test_verbosity_is_clamped():
    event = Event()

    event.set_event_trace(True, verbosity=7, use_rich=False)
    assert event.tracer.verbosity == 2

    event.set_event_trace(True, verbosity=-3, use_rich=False)
    assert event.tracer.verbosity == 0


def test_rich_format_includes_settings_table_when_verbose():
    target = Event(name="target")
    event = Event(name="source", linked_events=[target])
    tracer = DispatchTracer(enabled=True, verbosity=2)

    text, table = tracer.format_visit(
        event,
        DispatchStatus.ALL_LISTENING,
        depth=1,
        via=DispatchPhase.LINKED,
        args=("a", 1, None, "extra"),
        settings=event.settings,
    )

    assert isinstance(text, Text)
    assert "source" in text.plain
    assert "linked" in text.plain
    assert "+1 more" in text.plain
    assert isinstance(table, Table)
    assert table.row_count == len(type(event.settings).model_fields)


def test_rich_format_without_table_at_normal_verbosity():
    event = Event(name="plain")
    tracer = DispatchTracer(enabled=True, verbosity=1)

    text, table = tracer.format_visit(
        event, DispatchStatus.DISABLED, depth=0, via=None, args=(), settings=event.settings
    )

    assert table is None
    assert isinstance(text, Text)
    assert "Disabled" in text.plain
