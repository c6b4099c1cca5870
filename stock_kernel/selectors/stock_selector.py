"""
Module: stock_kernel.selectors.stock_selector
Responsibility: Read-only views over current stock: everything held at one
    location, every position of one product, and its network-wide total.
Architecture position: Kernel > Selectors.

Zero-quantity items are included; they mark a product that was stocked at a
location and is now empty.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import StockItemSnapshot
from stock_kernel.domain.values import LocationRef
from stock_kernel.models.stock_item import StockItem
from stock_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[StockItem]):
    """Selector for current stock positions."""

    def items_at(self, location: LocationRef | str) -> list[StockItemSnapshot]:
        """Every stock item at ``location``, ordered by product id."""
        ref = LocationRef.parse(location)
        rows = self.session.execute(
            select(StockItem)
            .where(
                StockItem.location_kind == ref.kind.value,
                StockItem.location_id == ref.id,
            )
            .order_by(StockItem.product_id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def positions(self, product_id: UUID) -> list[StockItemSnapshot]:
        """Every location holding (or having held) ``product_id``."""
        rows = self.session.execute(
            select(StockItem)
            .where(StockItem.product_id == product_id)
            .order_by(StockItem.location_kind, StockItem.location_id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def total_on_hand(self, product_id: UUID) -> Decimal:
        """Sum of quantity-on-hand across all locations."""
        return sum(
            (item.quantity for item in self.positions(product_id)),
            Decimal("0"),
        )
