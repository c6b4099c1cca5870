"""
Module: stock_kernel.models.stock_transfer
Responsibility: ORM persistence for transfers (the unit-of-work header) and
    their ordered line items.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - source != destination (ck_stock_transfer_distinct_locations).
    - Line quantities are positive (ck_stock_transfer_line_quantity_positive).
    - One line per product per transfer (uq_stock_transfer_line_product).
    - Once status is completed or failed, the transfer and its lines are
      frozen (db/immutability.py).

Lifecycle:
    A completed transfer is written together with its movements in one
    transaction.  A failed transfer is written on its own after the unit of
    work has been rolled back, so no movement ever references it.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.values import LocationKind, LocationRef, TransferStatus


class StockTransfer(TrackedBase):
    """Header of a multi-line move from one location to another."""

    __tablename__ = "stock_transfers"

    __table_args__ = (
        CheckConstraint(
            "source_kind <> destination_kind OR source_id <> destination_id",
            name="ck_stock_transfer_distinct_locations",
        ),
        Index("idx_stock_transfer_status", "status"),
        Index("idx_stock_transfer_source", "source_kind", "source_id"),
        Index("idx_stock_transfer_destination", "destination_kind", "destination_id"),
    )

    source_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    source_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    destination_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    destination_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransferStatus.PENDING.value,
    )
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    lines: Mapped[list["StockTransferLine"]] = relationship(
        back_populates="transfer",
        order_by="StockTransferLine.line_no",
        cascade="all, delete-orphan",
    )

    @property
    def source(self) -> LocationRef:
        return LocationRef(LocationKind(self.source_kind), self.source_id)

    @property
    def destination(self) -> LocationRef:
        return LocationRef(LocationKind(self.destination_kind), self.destination_id)

    def to_dto(self):
        from stock_kernel.domain.dtos import TransferLine, TransferRecord

        return TransferRecord(
            id=self.id,
            source=self.source,
            destination=self.destination,
            lines=tuple(
                TransferLine(product_id=line.product_id, quantity=line.quantity)
                for line in self.lines
            ),
            status=TransferStatus(self.status),
            created_at=self.created_at,
            completed_at=self.completed_at,
            failed_at=self.failed_at,
            error_code=self.error_code,
            error_message=self.error_message,
            reason=self.reason,
            actor_id=self.actor_id,
        )

    def __repr__(self) -> str:
        return (
            f"<StockTransfer {self.id} {self.source} -> {self.destination} "
            f"status={self.status}>"
        )


class StockTransferLine(Base):
    """One (product, quantity) pair of a transfer, in execution order."""

    __tablename__ = "stock_transfer_lines"

    __table_args__ = (
        UniqueConstraint("transfer_id", "product_id", name="uq_stock_transfer_line_product"),
        CheckConstraint("quantity > 0", name="ck_stock_transfer_line_quantity_positive"),
    )

    transfer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_transfers.id"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(BigInteger, nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    transfer: Mapped[StockTransfer] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<StockTransferLine #{self.line_no} {self.product_id} x{self.quantity}>"
