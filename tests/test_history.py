"""Tests for the per-key history store."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from decision_core.errors import InvariantViolation
from decision_core.signals import HistoryStore


class TestHistoryStore:
    def test_first_cycle_has_no_previous(self, make_snapshot):
        store = HistoryStore()
        with store.cycle("BTC", "15m") as cycle:
            assert cycle.previous is None
            cycle.commit(make_snapshot())
        assert store.get("BTC", "15m") == make_snapshot()
        assert len(store) == 1

    def test_previous_is_last_commit(self, make_snapshot):
        store = HistoryStore()
        with store.cycle("BTC", "15m") as cycle:
            cycle.commit(make_snapshot(price=100.0))
        with store.cycle("BTC", "15m") as cycle:
            assert cycle.previous.price == 100.0
            cycle.commit(make_snapshot(price=101.0))
        assert store.get("BTC", "15m").price == 101.0

    def test_double_commit_is_invariant_violation(self, make_snapshot):
        store = HistoryStore()
        with pytest.raises(InvariantViolation):
            with store.cycle("BTC", "15m") as cycle:
                cycle.commit(make_snapshot())
                cycle.commit(make_snapshot())

    def test_keys_are_independent(self, make_snapshot):
        store = HistoryStore()
        with store.cycle("BTC", "15m") as cycle:
            cycle.commit(make_snapshot(price=100.0))
        with store.cycle("BTC", "1H") as cycle:
            assert cycle.previous is None
        assert store.keys() == [("BTC", "15m")]

    def test_clear(self, make_snapshot):
        store = HistoryStore()
        with store.cycle("ETH", "5m") as cycle:
            cycle.commit(make_snapshot())
        store.clear("ETH", "5m")
        assert store.get("ETH", "5m") is None
        assert len(store) == 0


class TestHistoryConcurrency:
    def test_same_key_cycles_are_serialized(self, make_snapshot):
        """Each cycle reads the previous commit and writes price + 1: no update is lost."""
        store = HistoryStore()
        with store.cycle("BTC", "15m") as cycle:
            cycle.commit(make_snapshot(price=1.0))

        def bump():
            with store.cycle("BTC", "15m") as cycle:
                cycle.commit(make_snapshot(price=cycle.previous.price + 1))

        with ThreadPoolExecutor(max_workers=8) as pool:
            for _ in range(200):
                pool.submit(bump)

        assert store.get("BTC", "15m").price == 201.0

    def test_different_keys_do_not_block(self, make_snapshot):
        store = HistoryStore()
        entered = threading.Event()
        release = threading.Event()

        def hold_btc():
            with store.cycle("BTC", "15m") as cycle:
                entered.set()
                release.wait(timeout=5)
                cycle.commit(make_snapshot())

        worker = threading.Thread(target=hold_btc)
        worker.start()
        assert entered.wait(timeout=5)

        # ETH proceeds while BTC's lock is held
        with store.cycle("ETH", "15m") as cycle:
            cycle.commit(make_snapshot(price=50.0))
        assert store.get("ETH", "15m").price == 50.0

        release.set()
        worker.join(timeout=5)
        assert store.get("BTC", "15m") is not None
