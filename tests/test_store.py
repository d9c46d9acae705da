"""Tests for the in-memory counter store and the global daily counter."""

from slidegate.store import GlobalDailyCounter, InMemoryCounterStore
from slidegate.windows import window_key


def test_absent_key_counts_as_zero() -> None:
    store = InMemoryCounterStore()
    assert store.get("1.2.3.4:100") == 0
    assert len(store) == 0


def test_increment_returns_new_value() -> None:
    store = InMemoryCounterStore()
    assert store.increment("1.2.3.4:100") == 1
    assert store.increment("1.2.3.4:100") == 2
    assert store.get("1.2.3.4:100") == 2


def test_sweep_keeps_current_and_previous_bucket() -> None:
    store = InMemoryCounterStore()
    for b in (97, 98, 99, 100):
        store.increment(window_key("1.2.3.4", b))

    evicted = store.sweep(100, retain=1)

    assert evicted == 2
    assert len(store) == 2
    assert store.get(window_key("1.2.3.4", 99)) == 1
    assert store.get(window_key("1.2.3.4", 100)) == 1
    assert store.get(window_key("1.2.3.4", 98)) == 0
    assert store.get(window_key("1.2.3.4", 97)) == 0


def test_sweep_handles_ipv6_keys() -> None:
    store = InMemoryCounterStore()
    store.increment(window_key("::1", 10))
    store.increment(window_key("::1", 12))

    assert store.sweep(12) == 1
    assert len(store) == 1


def test_global_counter_rolls_once_per_day() -> None:
    counter = GlobalDailyCounter()
    assert counter.roll("2026-03-10") is True
    counter.increment()
    counter.increment()

    assert counter.roll("2026-03-10") is False
    assert counter.count == 2

    assert counter.roll("2026-03-11") is True
    assert counter.count == 0
    assert counter.day == "2026-03-11"
