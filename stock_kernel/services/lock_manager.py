"""
KeyLockManager -- per-key mutual exclusion for ledger mutations.

Responsibility:
    Serializes every mutation of a (location, product) stock key within the
    process, while letting mutations of disjoint keys run in parallel.

Architecture position:
    Kernel > Services -- shared infrastructure.  One instance per process,
    shared by every engine and thread (LedgerOrchestrator owns it).

Invariants enforced:
    - Total order: a unit of work locks all its keys in ascending StockKey
      order, i.e. (location kind, location id, product id).  The order does
      not depend on which location is the source of a transfer, so an A->B
      transfer and a B->A transfer of the same product can never hold one key
      each while waiting for the other.
    - Bounded wait: all keys of one request share a single deadline.  On
      expiry every key already taken is released and LockTimeoutError (BUSY)
      is raised; nothing is written.
    - Independence: keys are separate ``threading.Lock`` objects; holding one
      never delays acquiring another.
    - Locks are not reentrant.  A thread holding a key must not request it
      again (engines stage nested work without re-locking).

Failure modes:
    - LockTimeoutError when contention outlasts the timeout.

Across processes the same ordering is applied to ``SELECT ... FOR UPDATE``
row locks by StockLedger.lock_rows().
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Iterable, Iterator

from stock_kernel.domain.values import StockKey
from stock_kernel.exceptions import LockTimeoutError
from stock_kernel.logging_config import get_logger

logger = get_logger("services.lock_manager")

DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyLockManager:
    """
    Registry of per-key locks with ordered, deadline-bounded acquisition.

    Usage:
        with lock_manager.acquire([key_a, key_b], timeout=2.0) as held:
            ...  # held is the sorted tuple of keys
    """

    def __init__(self, default_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self.default_timeout = default_timeout
        self._registry: dict[StockKey, _KeyLock] = {}
        self._registry_lock = threading.Lock()

    @staticmethod
    def ordered(keys: Iterable[StockKey]) -> tuple[StockKey, ...]:
        """Deduplicated keys in lock acquisition order."""
        return tuple(sorted(set(keys)))

    def _checkout(self, key: StockKey) -> _KeyLock:
        with self._registry_lock:
            entry = self._registry.get(key)
            if entry is None:
                entry = _KeyLock()
                self._registry[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: StockKey, entry: _KeyLock) -> None:
        with self._registry_lock:
            entry.users -= 1
            if entry.users == 0:
                del self._registry[key]

    @contextmanager
    def acquire(
        self,
        keys: Iterable[StockKey],
        timeout: float | None = None,
    ) -> Iterator[tuple[StockKey, ...]]:
        """
        Lock every key, in order, within ``timeout`` seconds in total.

        Raises:
            LockTimeoutError: a key could not be locked before the deadline.
        """
        ordered = self.ordered(keys)
        wait = self.default_timeout if timeout is None else timeout
        deadline = time.monotonic() + wait
        held: list[tuple[StockKey, _KeyLock]] = []

        try:
            for key in ordered:
                entry = self._checkout(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not entry.lock.acquire(timeout=remaining):
                    self._checkin(key, entry)
                    logger.warning(
                        "lock_timeout",
                        extra={
                            "key": str(key),
                            "key_count": len(ordered),
                            "timeout_seconds": wait,
                        },
                    )
                    raise LockTimeoutError(
                        keys=[str(k) for k in ordered],
                        timeout_seconds=wait,
                    )
                held.append((key, entry))

            yield ordered
        finally:
            for key, entry in reversed(held):
                entry.lock.release()
                self._checkin(key, entry)

    def is_locked(self, key: StockKey) -> bool:
        """True if some unit of work currently holds ``key``."""
        with self._registry_lock:
            entry = self._registry.get(key)
            return entry is not None and entry.lock.locked()

    def active_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._registry_lock:
            return len(self._registry)
