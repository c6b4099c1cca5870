"""
TransferEngine -- all-or-nothing multi-line stock transfers.

Responsibility:
    Moves a list of (product, quantity) lines from one location to another
    as a single unit of work: for every line a transfer-out movement at the
    source and a transfer-in movement at the destination, plus the transfer
    header, all committed together.

Architecture position:
    Kernel > Services -- transaction owner.  Uses MovementEngine.stage() for
    every ledger write so transfers and single movements share one code path.

Invariants enforced:
    - Atomicity: either every line is applied and the transfer is completed,
      or nothing is applied and the transfer is recorded as failed.
    - Conservation: for every product, the sum of the source and destination
      quantities is unchanged by a completed transfer.
    - Deadlock freedom: lines are processed in ascending product id order and
      all key locks (both locations) are taken up front in the global StockKey
      order, so opposite-direction transfers of overlapping products cannot
      wait on each other.
    - Cost carry-over: the destination receives the units at the source's
      unit cost; the source's sale price fills a destination without one.

Lifecycle:
    validate (raises) -> acquire all key locks -> row locks -> pending header
    -> per line: transfer-out, transfer-in -> completed -> commit
    -> release locks -> publish StockChanged per affected key

    On InsufficientStockError, UnknownReferenceError or LockTimeoutError the
    unit of work is rolled back, the locks are released and the transfer is
    written as ``failed`` (with its lines and the error code) in a separate
    transaction.  The caller gets a TransferResult carrying the error.

Failure modes:
    - Raised before anything is written: EmptyTransferError,
      SameLocationError, InvalidQuantityError, DuplicateLineItemError,
      LocationNotFoundError (and ProductNotFoundError for a malformed id).
    - Returned in TransferResult.error: InsufficientStockError,
      UnknownReferenceError, LockTimeoutError.
    - StorageFailureError is always raised, never returned.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Iterable
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.costing import COST_PLACES, CostPolicy
from stock_kernel.domain.dtos import StagedMovement, TransferLine, TransferResult
from stock_kernel.domain.values import (
    LocationRef,
    MovementKind,
    StockKey,
    TransferStatus,
    check_places,
    to_decimal,
)
from stock_kernel.exceptions import (
    DuplicateLineItemError,
    EmptyTransferError,
    InsufficientStockError,
    InvalidQuantityError,
    LockTimeoutError,
    SameLocationError,
    StockKernelError,
    StorageFailureError,
    UnknownReferenceError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.stock_transfer import StockTransfer, StockTransferLine
from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_service import coerce_product_id
from stock_kernel.services.change_notifier import NotificationDispatcher
from stock_kernel.services.location_registry import coerce_location
from stock_kernel.services.lock_manager import KeyLockManager
from stock_kernel.services.movement_engine import MovementEngine, coerce_actor

logger = get_logger("services.transfer_engine")

# Execution failures that produce a failed transfer record instead of raising.
_RECORDED_FAILURES = (InsufficientStockError, UnknownReferenceError, LockTimeoutError)

_ERROR_MESSAGE_LIMIT = 1000


def _coerce_line(item) -> TransferLine:
    if isinstance(item, TransferLine):
        product_id, quantity = item.product_id, item.quantity
    elif isinstance(item, Mapping):
        product_id, quantity = item["product_id"], item["quantity"]
    else:
        product_id, quantity = item
    return TransferLine(product_id=coerce_product_id(product_id), quantity=quantity)


class TransferEngine(BaseService):
    """
    Executes stock transfers between two locations.

    Contract:
        ``execute()`` returns a TransferResult whose status is ``completed``
        or ``failed``; a pending transfer is never visible to other sessions.
    """

    def __init__(
        self,
        session: Session,
        lock_manager: KeyLockManager,
        clock: Clock | None = None,
        dispatcher: NotificationDispatcher | None = None,
        cost_policy: CostPolicy = CostPolicy.WEIGHTED_AVERAGE,
        lock_timeout: float | None = None,
        quantity_places: int = COST_PLACES,
        movements: MovementEngine | None = None,
    ):
        super().__init__(session, clock)
        self.lock_manager = lock_manager
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.lock_timeout = lock_timeout
        self.quantity_places = quantity_places
        self.movements = movements or MovementEngine(
            session,
            lock_manager,
            clock=self.clock,
            dispatcher=self.dispatcher,
            cost_policy=cost_policy,
            lock_timeout=lock_timeout,
            quantity_places=quantity_places,
        )
        self.ledger = self.movements.ledger

    # -----------------------------------------------------------------
    # Validation
    # -----------------------------------------------------------------

    def _validate(
        self,
        source: LocationRef | str,
        destination: LocationRef | str,
        line_items: Iterable,
    ) -> tuple[LocationRef, LocationRef, list[TransferLine]]:
        raw_lines = list(line_items or ())
        if not raw_lines:
            raise EmptyTransferError()

        src = coerce_location(source)
        dst = coerce_location(destination)
        if src == dst:
            raise SameLocationError(str(src))

        lines: list[TransferLine] = []
        seen: set[UUID] = set()
        for raw in raw_lines:
            line = _coerce_line(raw)
            quantity = to_decimal(line.quantity)
            if quantity <= 0:
                raise InvalidQuantityError(
                    str(quantity), "transfer quantity must be positive"
                )
            check_places(quantity, self.quantity_places)
            if line.product_id in seen:
                raise DuplicateLineItemError(str(line.product_id))
            seen.add(line.product_id)
            lines.append(TransferLine(product_id=line.product_id, quantity=quantity))

        self.ledger.locations.resolve(src)
        self.ledger.locations.resolve(dst)

        lines.sort(key=lambda line: str(line.product_id))
        return src, dst, lines

    # -----------------------------------------------------------------
    # Execution
    # -----------------------------------------------------------------

    @staticmethod
    def _header(
        transfer_id: UUID,
        source: LocationRef,
        destination: LocationRef,
        lines: list[TransferLine],
        status: TransferStatus,
        reason: str | None,
        actor_id: UUID | None,
        created_at: datetime,
    ) -> StockTransfer:
        transfer = StockTransfer(
            id=transfer_id,
            source_kind=source.kind.value,
            source_id=source.id,
            destination_kind=destination.kind.value,
            destination_id=destination.id,
            status=status.value,
            reason=reason,
            created_at=created_at,
            actor_id=actor_id,
        )
        transfer.lines = [
            StockTransferLine(line_no=index, product_id=line.product_id, quantity=line.quantity)
            for index, line in enumerate(lines, start=1)
        ]
        return transfer

    def _apply(
        self,
        transfer_id: UUID,
        source: LocationRef,
        destination: LocationRef,
        lines: list[TransferLine],
        keys: list[StockKey],
        reason: str | None,
        actor_id: UUID | None,
        started_at: datetime,
    ) -> tuple[StockTransfer, list[StagedMovement]]:
        self.ledger.lock_rows(keys)

        transfer = self._header(
            transfer_id, source, destination, lines,
            TransferStatus.PENDING, reason, actor_id, started_at,
        )
        self.session.add(transfer)
        self.session.flush()

        staged: list[StagedMovement] = []
        for line in lines:
            out = self.movements.stage(
                line.product_id,
                source,
                -line.quantity,
                MovementKind.TRANSFER_OUT,
                reason=reason,
                actor_id=actor_id,
                transfer_id=transfer_id,
            )
            current = self.ledger.get(line.product_id, destination)
            carried_price = (
                out.item.sale_price
                if current is None or current.sale_price is None
                else None
            )
            into = self.movements.stage(
                line.product_id,
                destination,
                line.quantity,
                MovementKind.TRANSFER_IN,
                reason=reason,
                unit_cost=out.item.unit_cost,
                sale_price=carried_price,
                actor_id=actor_id,
                transfer_id=transfer_id,
            )
            staged.extend((out, into))

        transfer.status = TransferStatus.COMPLETED.value
        transfer.completed_at = self.clock.now()
        self.session.flush()
        return transfer, staged

    def _record_failure(
        self,
        transfer_id: UUID,
        source: LocationRef,
        destination: LocationRef,
        lines: list[TransferLine],
        reason: str | None,
        actor_id: UUID | None,
        started_at: datetime,
        error: StockKernelError,
    ) -> TransferResult:
        transfer = self._header(
            transfer_id, source, destination, lines,
            TransferStatus.FAILED, reason, actor_id, started_at,
        )
        transfer.failed_at = self.clock.now()
        transfer.error_code = error.code
        transfer.error_message = str(error)[:_ERROR_MESSAGE_LIMIT]

        try:
            self.session.add(transfer)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                "transaction_rolled_back",
                exc_info=True,
                extra={"operation": "record_failed_transfer"},
            )
            raise StorageFailureError("record_failed_transfer", str(exc)) from exc

        logger.warning(
            "transfer_failed",
            extra={
                "source": str(source),
                "destination": str(destination),
                "line_count": len(lines),
                "error_code": error.code,
            },
        )
        return TransferResult(transfer=transfer.to_dto(), movements=(), error=error)

    def execute(
        self,
        source: LocationRef | str,
        destination: LocationRef | str,
        line_items: Iterable,
        reason: str | None = None,
        actor_id: UUID | str | None = None,
    ) -> TransferResult:
        """
        Move every line from ``source`` to ``destination``, or none of them.

        ``line_items`` holds TransferLine objects, ``(product_id, quantity)``
        pairs or mappings with those two keys.

        Raises:
            EmptyTransferError, SameLocationError, InvalidQuantityError,
            DuplicateLineItemError, LocationNotFoundError: invalid request.
            StorageFailureError: persistence failed.
        """
        src, dst, lines = self._validate(source, destination, line_items)
        actor = coerce_actor(actor_id)
        transfer_id = uuid4()
        started_at = self.clock.now()
        keys = [StockKey.of(line.product_id, loc) for line in lines for loc in (src, dst)]

        with LogContext.bind(transfer_id=transfer_id, actor_id=actor):
            try:
                with self.lock_manager.acquire(keys, timeout=self.lock_timeout):
                    try:
                        transfer, staged = self._apply(
                            transfer_id, src, dst, lines, keys, reason, actor, started_at,
                        )
                        self.session.commit()
                    except SQLAlchemyError as exc:
                        self.session.rollback()
                        logger.error(
                            "transaction_rolled_back",
                            exc_info=True,
                            extra={"operation": "execute_transfer"},
                        )
                        raise StorageFailureError("execute_transfer", str(exc)) from exc
                    except Exception:
                        self.session.rollback()
                        raise
            except _RECORDED_FAILURES as exc:
                return self._record_failure(
                    transfer_id, src, dst, lines, reason, actor, started_at, exc,
                )

            logger.info(
                "transfer_completed",
                extra={
                    "source": str(src),
                    "destination": str(dst),
                    "line_count": len(lines),
                    "total_quantity": sum((line.quantity for line in lines), Decimal("0")),
                },
            )

        self.dispatcher.publish_all(s.event for s in staged)
        return TransferResult(
            transfer=transfer.to_dto(),
            movements=tuple(s.movement for s in staged),
        )
