import pytest

from vault_sync.application.services.speculative_store import SpeculativeStore, StoreAction


class Counter:
    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def test_add_sets_created_at_from_clock(clock):
    clock.now = 42.0
    store = SpeculativeStore(clock=clock)
    entry = store.add("op-1", {"kind": "deposit", "amount": 10})
    assert entry.created_at == 42.0
    assert store.get("op-1") is entry
    assert store.has("op-1")
    assert len(store) == 1


def test_last_add_wins_without_compensating(clock):
    store = SpeculativeStore(clock=clock)
    first = Counter()
    store.add("op-1", "first", first)
    store.add("op-1", "second")
    assert len(store) == 1
    assert store.get("op-1").payload == "second"
    assert first.calls == 0


def test_confirm_removes_without_compensation(clock):
    store = SpeculativeStore(clock=clock)
    comp = Counter()
    store.add("op-1", None, comp)
    store.confirm("op-1")
    assert not store.has("op-1")
    assert comp.calls == 0


def test_confirm_absent_is_noop_but_notifies(clock):
    store = SpeculativeStore(clock=clock)
    events = []
    store.subscribe(events.append)
    store.confirm("missing")
    assert len(events) == 1
    assert events[0].action is StoreAction.CONFIRMED
    assert events[0].entry is None


def test_revert_runs_compensation_exactly_once(clock):
    store = SpeculativeStore(clock=clock)
    comp = Counter()
    store.add("op-1", None, comp)
    store.revert("op-1")
    store.revert("op-1")
    assert comp.calls == 1
    assert not store.has("op-1")


def test_failing_compensation_still_removes_and_reports(clock):
    failures = []
    store = SpeculativeStore(clock=clock, on_failure=lambda op_id, exc: failures.append((op_id, exc)))

    def boom():
        raise RuntimeError("undo failed")

    store.add("op-1", None, boom)
    store.revert("op-1")
    assert not store.has("op-1")
    assert len(failures) == 1
    assert failures[0][0] == "op-1"
    assert isinstance(failures[0][1], RuntimeError)


def test_clear_drops_everything_without_compensation(clock):
    store = SpeculativeStore(clock=clock)
    comp = Counter()
    store.add("a", None, comp)
    store.add("b", None, comp)
    store.clear()
    assert len(store) == 0
    assert comp.calls == 0


def test_listeners_notified_in_call_order(clock):
    store = SpeculativeStore(clock=clock)
    seen = []
    store.subscribe(lambda e: seen.append((e.action, e.entry_id)))
    store.add("a", None)
    store.confirm("a")
    store.add("b", None)
    store.revert("b")
    store.clear()
    assert seen == [
        (StoreAction.ADDED, "a"),
        (StoreAction.CONFIRMED, "a"),
        (StoreAction.ADDED, "b"),
        (StoreAction.REVERTED, "b"),
        (StoreAction.CLEARED, None),
    ]


def test_unsubscribe_during_notification_does_not_skip_others(clock):
    store = SpeculativeStore(clock=clock)
    calls = []
    handles = {}

    def first(event):
        calls.append("first")
        handles["second"]()

    def second(event):
        calls.append("second")

    def third(event):
        calls.append("third")

    store.subscribe(first)
    handles["second"] = store.subscribe(second)
    store.subscribe(third)

    store.add("a", None)
    assert calls == ["first", "second", "third"]

    calls.clear()
    store.add("b", None)
    assert calls == ["first", "third"]


def test_unsubscribe_is_idempotent(clock):
    store = SpeculativeStore(clock=clock)
    seen = []
    unsubscribe = store.subscribe(seen.append)
    unsubscribe()
    unsubscribe()
    store.add("a", None)
    assert seen == []


def test_listener_error_does_not_stop_fan_out(clock):
    store = SpeculativeStore(clock=clock)
    seen = []

    def broken(event):
        raise ValueError("listener bug")

    store.subscribe(broken)
    store.subscribe(seen.append)
    store.add("a", None)
    assert len(seen) == 1


def test_entries_returns_copy(clock):
    store = SpeculativeStore(clock=clock)
    store.add("a", None)
    entries = store.entries()
    entries.clear()
    assert store.has("a")


def test_entry_is_immutable(clock):
    store = SpeculativeStore(clock=clock)
    entry = store.add("a", None)
    with pytest.raises(Exception):
        entry.created_at = 99.0
