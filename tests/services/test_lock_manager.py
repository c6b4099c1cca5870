"""
Tests for KeyLockManager: ordering, bounded waits, independence of keys and
reclamation of idle entries.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest

from stock_kernel.domain.values import LocationRef, StockKey
from stock_kernel.exceptions import LockTimeoutError
from stock_kernel.services.lock_manager import KeyLockManager


def _key(location=None, product_id=None) -> StockKey:
    return StockKey.of(product_id or uuid4(), location or LocationRef.warehouse(uuid4()))


class TestAcquire:
    def test_yields_sorted_deduplicated_keys(self):
        manager = KeyLockManager()
        a, b = _key(), _key()

        with manager.acquire([b, a, b]) as held:
            assert held == tuple(sorted([a, b]))
            assert manager.is_locked(a)
            assert manager.is_locked(b)

        assert not manager.is_locked(a)
        assert manager.active_keys() == 0

    def test_releases_on_exception(self):
        manager = KeyLockManager()
        key = _key()

        with pytest.raises(RuntimeError):
            with manager.acquire([key]):
                raise RuntimeError("boom")

        assert not manager.is_locked(key)
        assert manager.active_keys() == 0

    def test_rejects_non_positive_default(self):
        with pytest.raises(ValueError):
            KeyLockManager(default_timeout=0)


class TestBoundedWait:
    def test_times_out_with_busy(self):
        manager = KeyLockManager()
        key = _key()

        with manager.acquire([key]):
            started = time.monotonic()
            with pytest.raises(LockTimeoutError) as exc_info:
                with manager.acquire([key], timeout=0.1):
                    pass
            elapsed = time.monotonic() - started

        error = exc_info.value
        assert error.code == "BUSY"
        assert error.retryable is True
        assert error.keys == [str(key)]
        assert elapsed < 2.0

    def test_timeout_releases_keys_already_taken(self):
        manager = KeyLockManager()
        free, busy = sorted([_key(), _key()])

        with manager.acquire([busy]):
            with pytest.raises(LockTimeoutError):
                with manager.acquire([free, busy], timeout=0.05):
                    pass
            assert not manager.is_locked(free)

        assert manager.active_keys() == 0

    def test_timeout_logged(self, captured_logs):
        manager = KeyLockManager()
        key = _key()

        with manager.acquire([key]):
            with pytest.raises(LockTimeoutError):
                with manager.acquire([key], timeout=0.01):
                    pass

        records = [r for r in captured_logs() if r["message"] == "lock_timeout"]
        assert records and records[0]["key"] == str(key)


class TestIndependence:
    def test_disjoint_keys_do_not_block(self):
        manager = KeyLockManager()
        held_key, other_key = _key(), _key()

        with manager.acquire([held_key]):
            with manager.acquire([other_key], timeout=0.05) as held:
                assert held == (other_key,)

    def test_waiter_proceeds_after_release(self):
        manager = KeyLockManager()
        key = _key()
        entered = threading.Event()
        release = threading.Event()

        def holder():
            with manager.acquire([key]):
                entered.set()
                release.wait(5)

        def waiter():
            with manager.acquire([key], timeout=5) as held:
                return held

        with ThreadPoolExecutor(max_workers=2) as pool:
            pool.submit(holder)
            assert entered.wait(5)
            waiting = pool.submit(waiter)
            time.sleep(0.05)
            assert not waiting.done()
            release.set()
            assert waiting.result(timeout=5) == (key,)


def test_opposite_orders_never_deadlock():
    manager = KeyLockManager(default_timeout=5.0)
    product_id = uuid4()
    a = StockKey.of(product_id, LocationRef.warehouse(uuid4()))
    b = StockKey.of(product_id, LocationRef.store(uuid4()))
    barrier = threading.Barrier(2)
    counter = {"n": 0}

    def worker(keys):
        barrier.wait()
        for _ in range(200):
            with manager.acquire(keys):
                counter["n"] += 1

    with ThreadPoolExecutor(max_workers=2) as pool:
        futures = [pool.submit(worker, [a, b]), pool.submit(worker, [b, a])]
        for future in futures:
            future.result(timeout=30)

    assert counter["n"] == 400
    assert manager.active_keys() == 0
