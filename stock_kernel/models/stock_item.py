"""
Module: stock_kernel.models.stock_item
Responsibility: ORM persistence for the ledger's current state: one row per
    (product, location) holding quantity-on-hand, unit cost and sale price.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - At most one row per (product_id, location_kind, location_id)
      (uq_stock_item_key).  This is the ledger's primary key.
    - quantity >= 0 (ck_stock_item_quantity_non_negative).  StockLedger checks
      first; the constraint is the backstop for writes that bypass it.
    - entry_date is written once on creation and never changes
      (db/immutability.py).
    - Rows are never deleted.  A zero-quantity row means "currently empty",
      a missing row means "never stocked".
    - version starts at 1 and increases by exactly 1 per applied delta; it
      totally orders the mutations of one key.

Failure modes:
    - IntegrityError on a concurrent first write of the same key from another
      process (the in-process KeyLockManager prevents it within one process).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString
from stock_kernel.domain.values import LocationKind, LocationRef, StockKey


class StockItem(Base):
    """Quantity, cost and price of one product at one location."""

    __tablename__ = "stock_items"

    __table_args__ = (
        UniqueConstraint(
            "product_id", "location_kind", "location_id",
            name="uq_stock_item_key",
        ),
        CheckConstraint("quantity >= 0", name="ck_stock_item_quantity_non_negative"),
        Index("idx_stock_item_location", "location_kind", "location_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    location_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    location_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sale_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    unit_of_measure: Mapped[str] = mapped_column(String(20), nullable=False)

    # Write-once
    entry_date: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    @property
    def location(self) -> LocationRef:
        return LocationRef(LocationKind(self.location_kind), self.location_id)

    @property
    def key(self) -> StockKey:
        return StockKey.of(self.product_id, self.location)

    def to_dto(self):
        from stock_kernel.domain.dtos import StockItemSnapshot

        return StockItemSnapshot(
            id=self.id,
            product_id=self.product_id,
            location=self.location,
            quantity=self.quantity,
            unit_cost=self.unit_cost,
            sale_price=self.sale_price,
            unit_of_measure=self.unit_of_measure,
            entry_date=self.entry_date,
            version=self.version,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<StockItem {self.key} qty={self.quantity} v{self.version}>"
