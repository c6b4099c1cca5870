"""
StockLedger -- the single mutator of quantity-on-hand.

Responsibility:
    Holds the current state of every (product, location) stock item and
    applies signed quantity deltas to it.  Every quantity change in the
    kernel, whether receipt, issue, correction or either half of a transfer,
    goes through ``apply_delta()``.

Architecture position:
    Kernel > Services.  Flush-only (BaseService).  Called by MovementEngine,
    which appends the matching history row in the same transaction.

Invariants enforced:
    - Non-negativity: a delta that would leave quantity < 0 is rejected with
      InsufficientStockError.  Never clamped, nothing written.
    - Lazy creation: the first delta into a location creates the stock item
      (unit of measure from the product, entry date from the clock).  Items
      are never deleted; quantity 0 persists.
    - Versioning: version starts at 1 and increases by 1 per applied delta.
    - Referential integrity: product and location are resolved before any
      write (UnknownReferenceError).

Concurrency:
    Within one process the calling engine holds the KeyLockManager lock for
    every key it touches.  ``lock_rows()`` and the ``FOR UPDATE`` read in
    ``apply_delta()`` add row locks in the same global key order, so that
    several processes sharing one PostgreSQL database serialize the same way.
    On SQLite ``FOR UPDATE`` is ignored and the single-writer database lock
    takes its place.

Failure modes:
    - InvalidQuantityError: zero or non-finite delta, negative cost or price.
    - ProductNotFoundError / LocationNotFoundError: unknown reference.
    - InsufficientStockError: decrement below zero.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.costing import CostPolicy, quantize_cost, recompute_unit_cost
from stock_kernel.domain.dtos import StockItemSnapshot
from stock_kernel.domain.values import LocationRef, StockKey, to_decimal
from stock_kernel.exceptions import InsufficientStockError, InvalidQuantityError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.stock_item import StockItem
from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_service import Catalog, coerce_product_id
from stock_kernel.services.location_registry import LocationRegistry, coerce_location

logger = get_logger("services.stock_ledger")


def _non_negative(value, field_name: str) -> Decimal | None:
    if value is None:
        return None
    result = to_decimal(value, field_name)
    if result < 0:
        raise InvalidQuantityError(str(result), f"{field_name} must not be negative")
    return result


class StockLedger(BaseService):
    """
    Current stock per (product, location).

    Contract:
        ``get()`` never writes.  ``apply_delta()`` writes exactly one stock
        item row and returns its post-mutation snapshot.

    Non-goals:
        - Does NOT write history.  MovementEngine pairs every delta with a
          StockMovement; calling apply_delta() directly bypasses the audit
          trail and is reserved for the engines.
        - Does NOT acquire in-process key locks.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        cost_policy: CostPolicy = CostPolicy.WEIGHTED_AVERAGE,
        catalog: Catalog | None = None,
        locations: LocationRegistry | None = None,
    ):
        super().__init__(session, clock)
        self.cost_policy = CostPolicy(cost_policy)
        self.catalog = catalog or Catalog(session, self.clock)
        self.locations = locations or LocationRegistry(session, self.clock)

    @staticmethod
    def _key_clause(product_id: UUID, location: LocationRef):
        return and_(
            StockItem.product_id == product_id,
            StockItem.location_kind == location.kind.value,
            StockItem.location_id == location.id,
        )

    def _load(self, product_id: UUID, location: LocationRef, for_update: bool) -> StockItem | None:
        stmt = select(StockItem).where(self._key_clause(product_id, location))
        if for_update:
            stmt = stmt.with_for_update()
        # Another session may have committed since this one last read the row.
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get(
        self, product_id: UUID | str, location: LocationRef | str
    ) -> StockItemSnapshot | None:
        """
        Current state of one stock item.

        Returns None when the product was never stocked at the location; a
        zero-quantity snapshot when it was and is now empty.
        """
        ref = coerce_location(location)
        item = self._load(coerce_product_id(product_id), ref, for_update=False)
        return item.to_dto() if item is not None else None

    def lock_rows(self, keys: Iterable[StockKey]) -> int:
        """
        Row-lock the existing stock items for ``keys`` in global key order.

        Missing items are skipped; they are created under the in-process key
        lock and the unique key constraint.

        Returns:
            Number of rows locked.
        """
        ordered = sorted(set(keys))
        if not ordered:
            return 0
        clauses = [
            self._key_clause(UUID(key.product_id), key.location) for key in ordered
        ]
        rows = self.session.execute(
            select(StockItem)
            .where(or_(*clauses))
            .order_by(StockItem.location_kind, StockItem.location_id, StockItem.product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return len(rows)

    def apply_delta(
        self,
        product_id: UUID | str,
        location: LocationRef | str,
        signed_quantity,
        unit_cost=None,
        sale_price=None,
    ) -> StockItemSnapshot:
        """
        Apply a signed quantity change to one stock item.

        Postconditions:
            - quantity' == quantity + delta and quantity' >= 0.
            - version' == version + 1 (1 for a new item).
            - With delta > 0 and ``unit_cost`` given, unit cost is recomputed
              per ``cost_policy``; otherwise it is unchanged.
            - ``sale_price``, when given, replaces the stored sale price.

        Raises:
            InvalidQuantityError: zero/non-finite delta or negative cost/price.
            ProductNotFoundError, LocationNotFoundError: unknown reference.
            InsufficientStockError: the delta would make quantity negative.
        """
        delta = to_decimal(signed_quantity)
        if delta == 0:
            raise InvalidQuantityError(str(delta), "quantity delta must be non-zero")
        cost = _non_negative(unit_cost, "unit_cost")
        price = _non_negative(sale_price, "sale_price")

        product = self.catalog.resolve(product_id)
        ref = self.locations.resolve(location).ref

        item = self._load(product.id, ref, for_update=True)
        available = item.quantity if item is not None else Decimal("0")
        resulting = available + delta
        if resulting < 0:
            logger.info(
                "insufficient_stock",
                extra={
                    "product_id": str(product.id),
                    "location": str(ref),
                    "available": available,
                    "requested": -delta,
                },
            )
            raise InsufficientStockError(
                product_id=str(product.id),
                location=str(ref),
                available=str(available),
                requested=str(-delta),
            )

        now = self.clock.now()
        if item is None:
            item = StockItem(
                product_id=product.id,
                location_kind=ref.kind.value,
                location_id=ref.id,
                quantity=resulting,
                unit_cost=quantize_cost(cost) if cost is not None else Decimal("0"),
                sale_price=price,
                unit_of_measure=product.base_unit,
                entry_date=now,
                updated_at=now,
                version=1,
            )
            self.session.add(item)
        else:
            if delta > 0 and cost is not None:
                item.unit_cost = recompute_unit_cost(
                    self.cost_policy, item.quantity, item.unit_cost, delta, cost
                )
            if price is not None:
                item.sale_price = price
            item.quantity = resulting
            item.version = item.version + 1
            item.updated_at = now

        self.session.flush()

        logger.debug(
            "stock_delta_applied",
            extra={
                "product_id": str(product.id),
                "location": str(ref),
                "delta": delta,
                "resulting_quantity": resulting,
                "version": item.version,
            },
        )
        return item.to_dto()
