"""
LedgerOrchestrator -- process-level facade over the stock kernel.

Responsibility:
    Wires the kernel's services together for concurrent callers: one shared
    KeyLockManager, one notifier, one clock and one set of settings, and a
    fresh session per call.  Request handlers and worker threads call this
    instead of assembling engines themselves.

Architecture position:
    Kernel > Services -- composition root.  Safe to share between threads:
    it holds no session, only the factory.

Usage:
    orchestrator = LedgerOrchestrator(get_session_factory(), notifier=notifier)
    widget = orchestrator.register_product("WID-1", "Widget")
    hub = orchestrator.register_warehouse("Warehouse#1")
    shop = orchestrator.register_store("Store#1", warehouse=hub.ref)
    orchestrator.receive(widget.id, hub.ref, 10)
    result = orchestrator.execute_transfer(hub.ref, shop.ref, [(widget.id, 4)])
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Generator, Iterable, Iterator
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.costing import COST_PLACES, CostPolicy
from stock_kernel.domain.dtos import (
    LocationInfo,
    MovementRecord,
    ProductInfo,
    StockItemSnapshot,
    TransferRecord,
    TransferResult,
)
from stock_kernel.domain.values import LocationKind, LocationRef, MovementKind, to_decimal
from stock_kernel.exceptions import InvalidQuantityError, StorageFailureError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.selectors.movement_selector import DEFAULT_PAGE_SIZE, MovementSelector
from stock_kernel.selectors.stock_selector import StockSelector
from stock_kernel.selectors.transfer_selector import TransferSelector
from stock_kernel.services.catalog_service import Catalog, coerce_product_id
from stock_kernel.services.change_notifier import ChangeNotifier, NotificationDispatcher
from stock_kernel.services.location_registry import LocationRegistry, coerce_location
from stock_kernel.services.lock_manager import DEFAULT_LOCK_TIMEOUT_SECONDS, KeyLockManager
from stock_kernel.services.movement_engine import MovementEngine
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transfer_engine import TransferEngine

logger = get_logger("services.ledger_orchestrator")


def _magnitude(quantity, operation: str) -> Decimal:
    value = to_decimal(quantity)
    if value <= 0:
        raise InvalidQuantityError(str(value), f"{operation} quantity must be positive")
    return value


class LedgerOrchestrator:
    """
    Thread-safe entry point: one session per call, shared locks.

    Every mutating call is its own committed unit of work; every read sees
    everything committed before it started.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        notifier: ChangeNotifier | None = None,
        lock_manager: KeyLockManager | None = None,
        cost_policy: CostPolicy | str = CostPolicy.WEIGHTED_AVERAGE,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
        default_unit: str = "EA",
        page_size: int = DEFAULT_PAGE_SIZE,
        quantity_places: int = COST_PLACES,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.dispatcher = NotificationDispatcher(notifier)
        self.lock_manager = lock_manager or KeyLockManager(lock_timeout)
        self.cost_policy = CostPolicy(cost_policy)
        self.lock_timeout = lock_timeout
        self.default_unit = default_unit
        self.page_size = page_size
        self.quantity_places = quantity_places

    @classmethod
    def from_config(
        cls,
        session_factory: sessionmaker[Session],
        config: Any,
        **kwargs: Any,
    ) -> LedgerOrchestrator:
        """Build from a LedgerConfig (see ``stock_config.get_active_config``)."""
        return cls(
            session_factory,
            cost_policy=config.cost_policy,
            lock_timeout=config.lock_timeout_seconds,
            default_unit=config.default_unit,
            page_size=config.page_size,
            quantity_places=config.quantity_places,
            **kwargs,
        )

    @property
    def notifier(self) -> ChangeNotifier:
        return self.dispatcher.notifier

    # -----------------------------------------------------------------
    # Sessions and wiring
    # -----------------------------------------------------------------

    @contextmanager
    def _read(self) -> Generator[Session, None, None]:
        session = self.session_factory()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def _write(self, operation: str) -> Generator[Session, None, None]:
        """Commit on success, roll back on any error."""
        with LogContext.correlate(), self._read() as session:
            try:
                yield session
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error(
                    "transaction_rolled_back",
                    exc_info=True,
                    extra={"operation": operation},
                )
                raise StorageFailureError(operation, str(exc)) from exc
            except Exception:
                session.rollback()
                raise

    @contextmanager
    def _engine_session(self) -> Generator[Session, None, None]:
        """Session for an engine that commits its own unit of work."""
        with LogContext.correlate(), self._read() as session:
            yield session

    def _movement_engine(self, session: Session) -> MovementEngine:
        return MovementEngine(
            session,
            self.lock_manager,
            clock=self.clock,
            dispatcher=self.dispatcher,
            ledger=self._ledger(session),
            lock_timeout=self.lock_timeout,
            quantity_places=self.quantity_places,
        )

    def _ledger(self, session: Session) -> StockLedger:
        return StockLedger(
            session,
            self.clock,
            self.cost_policy,
            catalog=Catalog(session, self.clock, self.default_unit),
        )

    # -----------------------------------------------------------------
    # Catalog and locations
    # -----------------------------------------------------------------

    def register_product(
        self,
        sku: str,
        name: str,
        base_unit: str | None = None,
        actor_id: UUID | None = None,
    ) -> ProductInfo:
        with self._write("register_product") as session:
            return Catalog(session, self.clock, self.default_unit).register(
                sku, name, base_unit, actor_id=actor_id
            )

    def remove_product(self, product_id: UUID | str) -> None:
        with self._write("remove_product") as session:
            Catalog(session, self.clock, self.default_unit).remove(product_id)

    def find_product(self, sku: str) -> ProductInfo | None:
        with self._read() as session:
            return Catalog(session, self.clock, self.default_unit).find_by_sku(sku)

    def register_warehouse(
        self,
        name: str,
        address: str | None = None,
        actor_id: UUID | None = None,
    ) -> LocationInfo:
        with self._write("register_warehouse") as session:
            return LocationRegistry(session, self.clock).register_warehouse(
                name, address, actor_id=actor_id
            )

    def register_store(
        self,
        name: str,
        warehouse: LocationRef | UUID | str | None = None,
        address: str | None = None,
        actor_id: UUID | None = None,
    ) -> LocationInfo:
        with self._write("register_store") as session:
            return LocationRegistry(session, self.clock).register_store(
                name, warehouse, address, actor_id=actor_id
            )

    def list_locations(self, kind: LocationKind | str | None = None) -> list[LocationInfo]:
        with self._read() as session:
            return LocationRegistry(session, self.clock).list_locations(kind)

    # -----------------------------------------------------------------
    # Movements
    # -----------------------------------------------------------------

    def record_movement(
        self,
        product_id: UUID | str,
        location: LocationRef | str,
        signed_quantity,
        kind: MovementKind | str,
        reason: str | None = None,
        unit_cost=None,
        sale_price=None,
        actor_id: UUID | str | None = None,
    ) -> MovementRecord:
        with self._engine_session() as session:
            return self._movement_engine(session).record(
                product_id,
                location,
                signed_quantity,
                kind,
                reason=reason,
                unit_cost=unit_cost,
                sale_price=sale_price,
                actor_id=actor_id,
            )

    def receive(
        self,
        product_id: UUID | str,
        location: LocationRef | str,
        quantity,
        unit_cost=None,
        sale_price=None,
        reason: str | None = None,
        actor_id: UUID | str | None = None,
    ) -> MovementRecord:
        """Add ``quantity`` (positive) units to a location."""
        return self.record_movement(
            product_id,
            location,
            _magnitude(quantity, "receipt"),
            MovementKind.RECEIPT,
            reason=reason,
            unit_cost=unit_cost,
            sale_price=sale_price,
            actor_id=actor_id,
        )

    def issue(
        self,
        product_id: UUID | str,
        location: LocationRef | str,
        quantity,
        reason: str | None = None,
        actor_id: UUID | str | None = None,
    ) -> MovementRecord:
        """Remove ``quantity`` (positive) units from a location."""
        return self.record_movement(
            product_id,
            location,
            -_magnitude(quantity, "issue"),
            MovementKind.ISSUE,
            reason=reason,
            actor_id=actor_id,
        )

    def correct(
        self,
        product_id: UUID | str,
        location: LocationRef | str,
        signed_quantity,
        reason: str | None = None,
        actor_id: UUID | str | None = None,
    ) -> MovementRecord:
        """Adjust by a signed amount after a physical count."""
        return self.record_movement(
            product_id,
            location,
            signed_quantity,
            MovementKind.CORRECTION,
            reason=reason,
            actor_id=actor_id,
        )

    def execute_transfer(
        self,
        source: LocationRef | str,
        destination: LocationRef | str,
        line_items: Iterable,
        reason: str | None = None,
        actor_id: UUID | str | None = None,
    ) -> TransferResult:
        with self._engine_session() as session:
            engine = TransferEngine(
                session,
                self.lock_manager,
                clock=self.clock,
                dispatcher=self.dispatcher,
                lock_timeout=self.lock_timeout,
                quantity_places=self.quantity_places,
                movements=self._movement_engine(session),
            )
            return engine.execute(
                source, destination, line_items, reason=reason, actor_id=actor_id
            )

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    def get_stock(
        self, product_id: UUID | str, location: LocationRef | str
    ) -> StockItemSnapshot | None:
        with self._read() as session:
            return self._ledger(session).get(product_id, location)

    def stock_at(self, location: LocationRef | str) -> list[StockItemSnapshot]:
        with self._read() as session:
            return StockSelector(session).items_at(coerce_location(location))

    def total_on_hand(self, product_id: UUID | str) -> Decimal:
        with self._read() as session:
            return StockSelector(session).total_on_hand(coerce_product_id(product_id))

    def list_movements(
        self,
        product_id: UUID | str,
        location: LocationRef | str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[MovementRecord]:
        with self._read() as session:
            return MovementSelector(session).list_movements(
                coerce_product_id(product_id),
                coerce_location(location) if location is not None else None,
                since,
                limit=limit,
                offset=offset,
            )

    def iter_movements(
        self,
        product_id: UUID | str,
        location: LocationRef | str | None = None,
        since: datetime | None = None,
        start: int = 0,
    ) -> Iterator[MovementRecord]:
        """Stream the history in pages of the configured size."""
        with self._read() as session:
            yield from MovementSelector(session).iter_movements(
                coerce_product_id(product_id),
                coerce_location(location) if location is not None else None,
                since,
                page_size=self.page_size,
                start=start,
            )

    def get_transfer(self, transfer_id: UUID | str) -> TransferRecord | None:
        key = transfer_id if isinstance(transfer_id, UUID) else UUID(str(transfer_id))
        with self._read() as session:
            return TransferSelector(session).get(key)
