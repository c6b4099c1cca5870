"""
Module: stock_kernel.models.stock_movement
Responsibility: ORM persistence for the append-only movement history.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Insert-only.  before_update / before_delete listeners in
      db/immutability.py raise ImmutabilityViolationError.
    - quantity_delta is never zero (ck_stock_movement_delta_non_zero).
    - item_sequence equals the StockItem.version produced by this movement, so
      (stock_item_id, item_sequence) is unique and totally orders one key's
      history (uq_stock_movement_item_sequence).
    - product_id / location_kind / location_id duplicate the stock item's key
      so history queries never join back to the mutable row.

Audit relevance:
    The movement table is the audit trail and the only source of derived
    reports (average cost, rotation).  Rows are never corrected in place;
    a correction is a new movement of kind "correction".
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import LocationKind, LocationRef, MovementKind


class StockMovement(TrackedBase):
    """One signed, immutable quantity adjustment with its cause."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint(
            "stock_item_id", "item_sequence",
            name="uq_stock_movement_item_sequence",
        ),
        CheckConstraint("quantity_delta <> 0", name="ck_stock_movement_delta_non_zero"),
        Index("idx_stock_movement_product_created", "product_id", "created_at"),
        Index("idx_stock_movement_location", "location_kind", "location_id"),
        Index("idx_stock_movement_transfer", "transfer_id"),
    )

    stock_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id"),
        nullable=False,
    )
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    location_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    location_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity_delta: Mapped[Decimal] = mapped_column(nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    resulting_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    item_sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)

    transfer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stock_transfers.id"),
        nullable=True,
    )

    @property
    def location(self) -> LocationRef:
        return LocationRef(LocationKind(self.location_kind), self.location_id)

    def to_dto(self):
        from stock_kernel.domain.dtos import MovementRecord

        return MovementRecord(
            id=self.id,
            stock_item_id=self.stock_item_id,
            product_id=self.product_id,
            location=self.location,
            quantity_delta=self.quantity_delta,
            kind=MovementKind(self.kind),
            resulting_quantity=self.resulting_quantity,
            unit_cost=self.unit_cost,
            item_sequence=self.item_sequence,
            created_at=self.created_at,
            reason=self.reason,
            transfer_id=self.transfer_id,
            actor_id=self.actor_id,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.kind} {self.quantity_delta:+} "
            f"item={self.stock_item_id} seq={self.item_sequence}>"
        )
