"""Tests for the multi-predicate combinator.

Critical Invariants:
- on fires exactly once when the last clause becomes satisfied
- off fires exactly once when any clause stops being satisfied
- A condition already satisfied at registration does not fire
- Builders are immutable
"""

import pytest

from hassreact import multi_predicate


@pytest.fixture
def events():
    return []


@pytest.fixture
def handlers(events):
    def on(*values):
        events.append(("on", values))

    def off(*values):
        events.append(("off", values))

    return on, off


def test_on_then_off(runtime, snapshot, events, handlers):
    """a>5 and b<3: on(10, 1) when b drops, off(2, 1) when a drops."""
    runtime.ingest(snapshot({"sensor.a": "0", "sensor.b": "5"}))
    multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5).with_state(
        "sensor.b", lambda v: v < 3
    ).do(*handlers)

    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "5"}))
    assert events == []

    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "1"}))
    assert events == [("on", (10, 1))]

    runtime.ingest(snapshot({"sensor.a": "2", "sensor.b": "1"}))
    assert events == [("on", (10, 1)), ("off", (2, 1))]


def test_changes_that_keep_condition_do_not_refire(runtime, snapshot, events, handlers):
    runtime.ingest(snapshot({"sensor.a": "0", "sensor.b": "0"}))
    multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5).with_state(
        "sensor.b", lambda v: v < 3
    ).do(*handlers)

    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "0"}))
    runtime.ingest(snapshot({"sensor.a": "11", "sensor.b": "1"}))
    runtime.ingest(snapshot({"sensor.a": "1", "sensor.b": "1"}))
    runtime.ingest(snapshot({"sensor.a": "1", "sensor.b": "9"}))

    assert events == [("on", (10, 0)), ("off", (1, 1))]


def test_both_clauses_changing_in_one_snapshot_fire_once(runtime, snapshot, events, handlers):
    runtime.ingest(snapshot({"sensor.a": "0", "sensor.b": "5"}))
    multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5).with_state(
        "sensor.b", lambda v: v < 3
    ).do(*handlers)

    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "1"}))

    assert events == [("on", (10, 1))]


def test_pre_satisfied_condition_does_not_fire_on_registration(
    runtime, snapshot, events, handlers
):
    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "1"}))
    multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5).with_state(
        "sensor.b", lambda v: v < 3
    ).do(*handlers)

    runtime.ingest(snapshot({"sensor.a": "11", "sensor.b": "1"}))
    assert events == []

    runtime.ingest(snapshot({"sensor.a": "2", "sensor.b": "1"}))
    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "1"}))
    assert events == [("off", (2, 1)), ("on", (10, 1))]


def test_registration_before_first_snapshot(runtime, snapshot, events, handlers):
    multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5).with_state(
        "sensor.b", lambda v: v < 3
    ).do(*handlers)

    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "1"}))
    runtime.ingest(snapshot({"sensor.a": "12", "sensor.b": "1"}))
    assert events == []

    runtime.ingest(snapshot({"sensor.a": "12", "sensor.b": "4"}))
    assert events == [("off", (12, 4))]


def test_values_follow_clause_declaration_order(runtime, snapshot, events, handlers):
    runtime.ingest(snapshot({"sensor.a": "0", "sensor.b": "0"}))
    multi_predicate(runtime).with_state("sensor.b", lambda v: v == 2).with_state(
        "sensor.a", lambda v: v == 1
    ).do(*handlers)

    runtime.ingest(snapshot({"sensor.a": "1", "sensor.b": "2"}))

    assert events == [("on", (2, 1))]


def test_attribute_clause(runtime, snapshot, events, handlers):
    runtime.ingest(
        snapshot({"light.kitchen": ("on", {"brightness": 50}), "sensor.a": "0"})
    )
    multi_predicate(runtime).with_attr(
        "light.kitchen", "brightness", lambda b: b > 100
    ).with_state("sensor.a", lambda v: v < 3).do(*handlers)

    runtime.ingest(snapshot({"light.kitchen": ("on", {"brightness": 150}), "sensor.a": "0"}))
    runtime.ingest(snapshot({"light.kitchen": ("off", {"brightness": 150}), "sensor.a": "0"}))
    runtime.ingest(snapshot({"light.kitchen": ("off", {"brightness": 150}), "sensor.a": "7"}))

    assert events == [("on", (150, 0)), ("off", (150, 7))]


def test_off_handler_is_optional(runtime, snapshot, events, handlers):
    on, _ = handlers
    runtime.ingest(snapshot({"sensor.a": "0"}))
    multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5).do(on)

    runtime.ingest(snapshot({"sensor.a": "10"}))
    runtime.ingest(snapshot({"sensor.a": "0"}))
    runtime.ingest(snapshot({"sensor.a": "10"}))

    assert events == [("on", (10,)), ("on", (10,))]


def test_builder_is_immutable(runtime):
    base = multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5)
    with_b = base.with_state("sensor.b", lambda v: v < 3)
    with_temp = base.with_state("sensor.temp", lambda v: v > 20)

    assert len(base.clauses) == 1
    assert len(with_b.clauses) == 2
    assert len(with_temp.clauses) == 2
    assert with_b.clauses[0] is base.clauses[0]
    assert with_b.clauses[1] is not with_temp.clauses[1]


def test_shared_template_conditions_fire_independently(runtime, snapshot):
    runtime.ingest(snapshot({"sensor.a": "0", "sensor.b": "0", "sensor.temp": "0"}))
    fired = []
    warm = multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5)
    warm.with_state("sensor.b", lambda v: v > 5).do(lambda a, b: fired.append("b"))
    warm.with_state("sensor.temp", lambda v: v > 5).do(lambda a, t: fired.append("temp"))

    runtime.ingest(snapshot({"sensor.a": "9", "sensor.b": "9", "sensor.temp": "0"}))

    assert fired == ["b"]


def test_remover_detaches_all_clauses(runtime, snapshot, events, handlers):
    runtime.ingest(snapshot({"sensor.a": "0", "sensor.b": "5"}))
    remove = (
        multi_predicate(runtime)
        .with_state("sensor.a", lambda v: v > 5)
        .with_state("sensor.b", lambda v: v < 3)
        .do(*handlers)
    )
    assert runtime.listener_count() == 2

    remove()
    remove()
    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "1"}))

    assert runtime.listener_count() == 0
    assert events == []


def test_raising_on_handler_does_not_refire_in_same_snapshot(runtime, snapshot):
    runtime.ingest(snapshot({"sensor.a": "0", "sensor.b": "5"}))
    calls = []

    def on(a, b):
        calls.append((a, b))
        raise RuntimeError("boom")

    multi_predicate(runtime).with_state("sensor.a", lambda v: v > 5).with_state(
        "sensor.b", lambda v: v < 3
    ).do(on)

    runtime.ingest(snapshot({"sensor.a": "10", "sensor.b": "1"}))

    assert calls == [(10, 1)]


def test_removed_attribute_fires_off_then_on_when_restored(runtime, snapshot, events, handlers):
    runtime.ingest(snapshot({"light.kitchen": ("on", {"brightness": 50})}))
    multi_predicate(runtime).with_attr(
        "light.kitchen", "brightness", lambda b: b is not None and b > 100
    ).do(*handlers)

    runtime.ingest(snapshot({"light.kitchen": ("on", {"brightness": 150})}))
    runtime.ingest(snapshot({"light.kitchen": ("off", {})}))
    runtime.ingest(snapshot({"light.kitchen": ("off", {})}))
    runtime.ingest(snapshot({"light.kitchen": ("on", {"brightness": 150})}))

    assert events == [("on", (150,)), ("off", (None,)), ("on", (150,))]


def test_attribute_absent_from_previous_snapshot_seeds_as_unsatisfied(
    runtime, snapshot, events, handlers
):
    runtime.ingest(snapshot({"light.kitchen": ("off", {})}))
    multi_predicate(runtime).with_attr(
        "light.kitchen", "brightness", lambda b: b is not None and b > 100
    ).do(*handlers)

    runtime.ingest(snapshot({"light.kitchen": ("on", {"brightness": 200})}))

    assert events == [("on", (200,))]
