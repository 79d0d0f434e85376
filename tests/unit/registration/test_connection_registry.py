from __future__ import annotations

import random

import pytest

from pseudo_events import Connection, ConnectionFilter, ConnectionRegistry


def _noop(*_args) -> None:
    return None


def _assert_consistent(registry: ConnectionRegistry) -> None:
    order = registry.priority_order
    assert list(order) == sorted(set(order)), "priority order must be strictly ascending"
    for index, priority in enumerate(order):
        bucket = registry.bucket(priority)
        assert bucket is not None
        assert bucket.order_index == index
        assert bucket.connections, "empty buckets must be dropped"


@pytest.fixture()
def registry() -> ConnectionRegistry:
    return ConnectionRegistry(debug=True)


def test_priorities_are_sorted_regardless_of_insertion_order(
    registry: ConnectionRegistry,
) -> None:
    for priority in (5, -2, 9, 0, 3, 9, -2):
        registry.connect(_noop, priority=priority)
        _assert_consistent(registry)

    assert registry.priority_order == (-2, 0, 3, 5, 9)
    assert registry.highest_priority() == 9
    assert len(registry) == 7


def test_highest_priority_tracks_random_connects_and_disconnects(
    registry: ConnectionRegistry,
) -> None:
    rng = random.Random(1234)
    live: list[Connection] = []

    for _ in range(200):
        if live and rng.random() < 0.4:
            connection = live.pop(rng.randrange(len(live)))
            assert registry.disconnect(ConnectionFilter(connection=connection)) == [
                connection
            ]
        else:
            live.append(registry.connect(_noop, priority=rng.randint(-5, 15)))

        _assert_consistent(registry)
        expected = max((c.priority for c in live), default=None)
        assert registry.highest_priority() == expected


def test_empty_registry_has_no_highest_priority(registry: ConnectionRegistry) -> None:
    assert registry.highest_priority() is None
    assert not registry
    assert len(registry) == 0


def test_connect_requires_callable(registry: ConnectionRegistry) -> None:
    with pytest.raises(TypeError):
        registry.connect("not callable")  # type: ignore[arg-type]


def test_connect_then_disconnect_returns_to_empty(registry: ConnectionRegistry) -> None:
    connection = registry.connect(_noop, priority=4)

    removed = registry.disconnect(ConnectionFilter(connection=connection))

    assert removed == [connection]
    assert connection.connected is False
    assert registry.priority_order == ()
    assert registry.bucket(4) is None
    assert not registry


def test_duplicate_name_and_handler_pairs_are_distinct(
    registry: ConnectionRegistry,
) -> None:
    first = registry.connect(_noop, name="dup")
    second = registry.connect(_noop, name="dup")

    assert first is not second
    assert first != second

    registry.disconnect(ConnectionFilter(connection=first))

    assert registry.connections(0) == [second]


def test_disconnect_by_identity_ignores_filter_priority(
    registry: ConnectionRegistry,
) -> None:
    high = registry.connect(_noop, priority=10)
    registry.connect(_noop, priority=0)

    registry.disconnect(ConnectionFilter(priority=0, connection=high))

    assert registry.priority_order == (0,)


def test_disconnect_unknown_connection_is_noop(registry: ConnectionRegistry) -> None:
    other = ConnectionRegistry()
    foreign = other.connect(_noop, priority=0)
    registry.connect(_noop, priority=0)

    assert registry.disconnect(ConnectionFilter(connection=foreign)) == []
    assert len(registry) == 1


def test_criteria_apply_up_to_and_including_priority(
    registry: ConnectionRegistry,
) -> None:
    low = registry.connect(_noop, priority=1, name="target")
    mid = registry.connect(_noop, priority=3, name="target")
    keep = registry.connect(_noop, priority=3, name="other")
    high = registry.connect(_noop, priority=7, name="target")

    removed = registry.disconnect(ConnectionFilter(priority=3, name="target"))

    assert removed == [low, mid]
    assert registry.priority_order == (3, 7)
    assert registry.connections() == [high, keep]
    _assert_consistent(registry)


def test_criteria_match_handler_and_name_together(registry: ConnectionRegistry) -> None:
    def other(*_args) -> None:
        return None

    a = registry.connect(_noop, name="x")
    b = registry.connect(other, name="x")
    c = registry.connect(_noop, name="y")

    removed = registry.disconnect(ConnectionFilter(name="x", handler=_noop))

    assert removed == [a]
    assert registry.connections(0) == [b, c]


def test_empty_filter_removes_everything_up_to_priority(
    registry: ConnectionRegistry,
) -> None:
    registry.connect(_noop, priority=-3)
    registry.connect(_noop, priority=0)
    registry.connect(_noop, priority=2)
    survivor = registry.connect(_noop, priority=5)

    removed = registry.disconnect(ConnectionFilter(priority=2))

    assert len(removed) == 3
    assert registry.priority_order == (5,)
    assert registry.connections() == [survivor]
    _assert_consistent(registry)


def test_disconnect_with_missing_priority_is_logged_noop(
    registry: ConnectionRegistry, caplog: pytest.LogCaptureFixture
) -> None:
    registry.connect(_noop, priority=1)

    assert registry.disconnect(ConnectionFilter(priority=4)) == []
    assert len(registry) == 1
    assert "does not exist" in caplog.text


def test_dispatch_plan_orders_by_priority_then_insertion(
    registry: ConnectionRegistry,
) -> None:
    a = registry.connect(_noop, priority=1, name="a")
    b = registry.connect(_noop, priority=5, name="b")
    c = registry.connect(_noop, priority=1, name="c")
    d = registry.connect(_noop, priority=-4, name="d")

    assert registry.get_dispatch_plan() == [b, a, c, d]
    assert registry.get_dispatch_plan(pause_priority=1) == [b]
    assert registry.get_dispatch_plan(pause_priority=5) == []


def test_find_does_not_remove(registry: ConnectionRegistry) -> None:
    connection = registry.connect(_noop, name="keep")

    assert registry.find(ConnectionFilter(name="keep")) == [connection]
    assert connection in registry


def test_connection_pause_and_resume_toggle_active() -> None:
    connection = Connection(handler=_noop)

    connection.pause()
    assert connection.is_active is False

    connection.resume()
    assert connection.is_active is True
