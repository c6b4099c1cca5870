"""
Module: stock_kernel.selectors.movement_selector
Responsibility: Read-only access to the movement history, the source for
    derived reports (average cost, rotation, audit).
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Deterministic order: (created_at, item_sequence, id) ascending.  Within
      one stock item, item_sequence alone gives the mutation order.
    - Paging is offset based, so a consumer can resume from the number of
      records it has already processed.
"""

from datetime import datetime
from typing import Iterator
from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import MovementRecord
from stock_kernel.domain.values import LocationRef
from stock_kernel.models.stock_movement import StockMovement
from stock_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 100


class MovementSelector(BaseSelector[StockMovement]):
    """Selector for stock movement queries."""

    def _query(
        self,
        product_id: UUID,
        location: LocationRef | str | None,
        since: datetime | None,
    ):
        stmt = select(StockMovement).where(StockMovement.product_id == product_id)
        if location is not None:
            ref = LocationRef.parse(location)
            stmt = stmt.where(
                StockMovement.location_kind == ref.kind.value,
                StockMovement.location_id == ref.id,
            )
        if since is not None:
            stmt = stmt.where(StockMovement.created_at >= since)
        return stmt.order_by(
            StockMovement.created_at,
            StockMovement.item_sequence,
            StockMovement.id,
        )

    def list_movements(
        self,
        product_id: UUID,
        location: LocationRef | str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[MovementRecord]:
        """
        Movements of a product, optionally at one location and from ``since``
        (inclusive) onwards.
        """
        self._check_window(limit, offset)
        stmt = self._query(product_id, location, since)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = self.session.execute(stmt).scalars().all()
        return [row.to_dto() for row in rows]

    def iter_movements(
        self,
        product_id: UUID,
        location: LocationRef | str | None = None,
        since: datetime | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        start: int = 0,
    ) -> Iterator[MovementRecord]:
        """
        Stream movements page by page.

        Restart after an interruption by passing the number of records
        already consumed as ``start``.
        """
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        offset = start
        while True:
            page = self.list_movements(
                product_id, location, since, limit=page_size, offset=offset
            )
            yield from page
            if len(page) < page_size:
                return
            offset += len(page)

    def movements_for_transfer(self, transfer_id: UUID) -> list[MovementRecord]:
        """Both halves of every line of a transfer, in execution order."""
        rows = self.session.execute(
            select(StockMovement)
            .where(StockMovement.transfer_id == transfer_id)
            .order_by(
                StockMovement.created_at,
                StockMovement.product_id,
                StockMovement.quantity_delta,
            )
        ).scalars().all()
        return [row.to_dto() for row in rows]
