"""
Tests for the per-SKU lock registry
"""

import threading

import pytest

from stockledger.services.locking import SkuLockRegistry


def _contend(registry, skus, entered):
    def worker():
        with registry.hold(skus):
            entered.set()

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    return thread


class TestHold:
    def test_overlapping_batch_waits_for_release(self):
        registry = SkuLockRegistry()
        entered = threading.Event()

        with registry.hold(["B", "A"]):
            thread = _contend(registry, ["A"], entered)
            assert not entered.wait(0.1)

        assert entered.wait(2)
        thread.join(2)

    def test_disjoint_batch_proceeds(self):
        registry = SkuLockRegistry()
        entered = threading.Event()

        with registry.hold(["A"]):
            thread = _contend(registry, ["C"], entered)
            assert entered.wait(2)
        thread.join(2)

    def test_locks_released_when_body_raises(self):
        registry = SkuLockRegistry()

        with pytest.raises(RuntimeError):
            with registry.hold(["A", "B"]):
                raise RuntimeError("boom")

        entered = threading.Event()
        thread = _contend(registry, ["B", "A"], entered)
        assert entered.wait(2)
        thread.join(2)

    def test_duplicate_skus_do_not_self_deadlock(self):
        registry = SkuLockRegistry()
        entered = threading.Event()

        thread = _contend(registry, ["A", "A"], entered)

        assert entered.wait(2)
        thread.join(2)
