"""
Change notification -- post-commit StockChanged fan-out.

Responsibility:
    Tells interested parties (caches, dashboards, replenishment jobs) that the
    quantity of a (product, location) changed.

Architecture position:
    Kernel > Services.  The engines hand their events to a
    NotificationDispatcher only after the unit of work has committed and its
    key locks are released.

Invariants enforced:
    - At-most-once, best-effort: every event is offered to the notifier once.
      A notifier exception is logged as ``notification_failed`` and
      suppressed; it never turns a committed mutation into an error.
    - Events are never published for a rolled-back unit of work.

Non-goals:
    - No delivery guarantee, retry or durable outbox.
"""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Protocol, runtime_checkable

from stock_kernel.domain.dtos import StockChanged
from stock_kernel.logging_config import get_logger

logger = get_logger("services.change_notifier")


@runtime_checkable
class ChangeNotifier(Protocol):
    """Receiver of post-commit stock change events."""

    def publish(self, event: StockChanged) -> None:
        ...


class NullChangeNotifier:
    """Discards every event."""

    def publish(self, event: StockChanged) -> None:
        return None


class InMemoryChangeNotifier:
    """
    Keeps every published event and fans it out to subscribers.

    Thread-safe; subscribers are called on the publishing thread, outside the
    internal lock.  A failing subscriber propagates to the dispatcher, which
    logs and suppresses it.
    """

    def __init__(self):
        self._events: list[StockChanged] = []
        self._subscribers: list[Callable[[StockChanged], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[StockChanged], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: StockChanged) -> None:
        with self._lock:
            self._events.append(event)
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(event)

    @property
    def events(self) -> list[StockChanged]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class NotificationDispatcher:
    """Publishes committed events through a notifier, suppressing its failures."""

    def __init__(self, notifier: ChangeNotifier | None = None):
        self.notifier = notifier or NullChangeNotifier()

    def publish_all(self, events: Iterable[StockChanged]) -> int:
        """
        Offer each event to the notifier once.

        Returns:
            Number of events the notifier accepted without raising.
        """
        delivered = 0
        for event in events:
            try:
                self.notifier.publish(event)
            except Exception:
                logger.warning(
                    "notification_failed",
                    exc_info=True,
                    extra={
                        "product_id": str(event.product_id),
                        "location": str(event.location),
                        "movement_id": str(event.movement_id),
                    },
                )
                continue
            delivered += 1
        return delivered
