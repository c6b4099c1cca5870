"""
DTOs -- frozen data carriers returned across the service boundary.

Responsibility:
    Services and selectors return these instead of ORM instances, so callers
    never hold a live, lazily-loading row and can pass results between
    threads.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from stock_kernel.domain.values import (
    LocationKind,
    LocationRef,
    MovementKind,
    StockKey,
    TransferStatus,
)
from stock_kernel.exceptions import StockKernelError


@dataclass(frozen=True)
class ProductInfo:
    id: UUID
    sku: str
    name: str
    base_unit: str


@dataclass(frozen=True)
class LocationInfo:
    ref: LocationRef
    name: str
    address: str | None = None
    warehouse_id: UUID | None = None

    @property
    def kind(self) -> LocationKind:
        return self.ref.kind


@dataclass(frozen=True)
class StockItemSnapshot:
    """Post-mutation (or read) state of one (product, location) stock item."""

    id: UUID
    product_id: UUID
    location: LocationRef
    quantity: Decimal
    unit_cost: Decimal
    sale_price: Decimal | None
    unit_of_measure: str
    entry_date: datetime
    version: int
    updated_at: datetime

    @property
    def key(self) -> StockKey:
        return StockKey.of(self.product_id, self.location)

    @property
    def is_empty(self) -> bool:
        return self.quantity == 0


@dataclass(frozen=True)
class MovementRecord:
    """One immutable history entry."""

    id: UUID
    stock_item_id: UUID
    product_id: UUID
    location: LocationRef
    quantity_delta: Decimal
    kind: MovementKind
    resulting_quantity: Decimal
    unit_cost: Decimal
    item_sequence: int
    created_at: datetime
    reason: str | None = None
    transfer_id: UUID | None = None
    actor_id: UUID | None = None


@dataclass(frozen=True)
class StockChanged:
    """Post-commit notification for one affected (product, location)."""

    product_id: UUID
    location: LocationRef
    new_quantity: Decimal
    timestamp: datetime
    movement_id: UUID
    kind: MovementKind


@dataclass(frozen=True)
class StagedMovement:
    """A movement written inside an uncommitted unit of work."""

    movement: MovementRecord
    item: StockItemSnapshot
    event: StockChanged


@dataclass(frozen=True)
class TransferLine:
    product_id: UUID
    quantity: Decimal


@dataclass(frozen=True)
class TransferRecord:
    id: UUID
    source: LocationRef
    destination: LocationRef
    lines: tuple[TransferLine, ...]
    status: TransferStatus
    created_at: datetime
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    error_code: str | None = None
    error_message: str | None = None
    reason: str | None = None
    actor_id: UUID | None = None


@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of TransferEngine.execute().

    A failed transfer keeps the triggering error; ``raise_for_error()``
    re-raises it for callers that prefer exceptions.
    """

    transfer: TransferRecord
    movements: tuple[MovementRecord, ...] = ()
    error: StockKernelError | None = field(default=None, compare=False)

    @property
    def status(self) -> TransferStatus:
        return self.transfer.status

    @property
    def is_success(self) -> bool:
        return self.transfer.status is TransferStatus.COMPLETED

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
