"""
Module: stock_kernel.selectors.transfer_selector
Responsibility: Read-only access to completed and failed transfers.
Architecture position: Kernel > Selectors.

Pending transfers exist only inside an open unit of work and are never
visible here.
"""

from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import selectinload

from stock_kernel.domain.dtos import TransferRecord
from stock_kernel.domain.values import LocationRef, TransferStatus
from stock_kernel.models.stock_transfer import StockTransfer
from stock_kernel.selectors.base import BaseSelector


class TransferSelector(BaseSelector[StockTransfer]):
    """Selector for stock transfer queries."""

    def get(self, transfer_id: UUID) -> TransferRecord | None:
        transfer = self.session.execute(
            select(StockTransfer)
            .where(StockTransfer.id == transfer_id)
            .options(selectinload(StockTransfer.lines))
        ).scalar_one_or_none()
        return transfer.to_dto() if transfer is not None else None

    def list_transfers(
        self,
        status: TransferStatus | str | None = None,
        location: LocationRef | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[TransferRecord]:
        """
        Transfers ordered by creation time, optionally filtered by status and
        by a location on either end.
        """
        self._check_window(limit, offset)
        stmt = select(StockTransfer).options(selectinload(StockTransfer.lines))
        if status is not None:
            stmt = stmt.where(StockTransfer.status == TransferStatus(status).value)
        if location is not None:
            ref = LocationRef.parse(location)
            stmt = stmt.where(
                or_(
                    and_(
                        StockTransfer.source_kind == ref.kind.value,
                        StockTransfer.source_id == ref.id,
                    ),
                    and_(
                        StockTransfer.destination_kind == ref.kind.value,
                        StockTransfer.destination_id == ref.id,
                    ),
                )
            )
        stmt = stmt.order_by(StockTransfer.created_at, StockTransfer.id)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = self.session.execute(stmt).scalars().all()
        return [row.to_dto() for row in rows]
