"""
MovementEngine -- recorded, signed quantity adjustments with history.

Responsibility:
    Applies one signed quantity change to one (product, location) through the
    StockLedger and appends the matching immutable StockMovement, in a single
    transaction.

Architecture position:
    Kernel > Services -- transaction owner.  ``record()`` commits or rolls
    back the session it was built with.  ``stage()`` performs the same write
    inside a caller's open unit of work and is how TransferEngine builds its
    paired transfer-out / transfer-in movements.

Invariants enforced:
    - Ledger and history move together: the StockItem update and its
      StockMovement commit in the same transaction or not at all.
    - Sign rules: receipt and transfer-in are positive, issue and
      transfer-out negative, correction either; zero is never valid.
    - ``item_sequence`` of the movement is the stock item version it
      produced, so one key's history is totally ordered.
    - Notification only after commit and lock release.

Lifecycle of record():
    validate -> acquire key lock -> row lock -> apply_delta + movement
    -> commit -> release lock -> publish StockChanged

Failure modes:
    - InvalidQuantityError before any lock is taken.
    - LockTimeoutError (BUSY) when the key stays locked past the timeout.
    - ProductNotFoundError / LocationNotFoundError / InsufficientStockError
      from the ledger, after rollback.
    - StorageFailureError wrapping any SQLAlchemyError, after rollback.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.costing import COST_PLACES, CostPolicy
from stock_kernel.domain.dtos import MovementRecord, StagedMovement, StockChanged
from stock_kernel.domain.values import (
    LocationRef,
    MovementKind,
    StockKey,
    check_places,
    to_decimal,
)
from stock_kernel.exceptions import InvalidQuantityError, StorageFailureError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.stock_movement import StockMovement
from stock_kernel.services.base import BaseService
from stock_kernel.services.catalog_service import coerce_product_id
from stock_kernel.services.change_notifier import NotificationDispatcher
from stock_kernel.services.location_registry import coerce_location
from stock_kernel.services.lock_manager import KeyLockManager
from stock_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.movement_engine")


def validate_delta(signed_quantity, kind: MovementKind, places: int = COST_PLACES) -> Decimal:
    """
    Check a signed quantity against the rules of its movement kind.

    Raises:
        InvalidQuantityError: zero, non-finite, too precise, or wrong sign.
    """
    delta = to_decimal(signed_quantity)
    if delta == 0:
        raise InvalidQuantityError(str(delta), "quantity must be non-zero")
    sign = kind.required_sign
    if sign > 0 and delta < 0:
        raise InvalidQuantityError(str(delta), f"{kind.value} requires a positive quantity")
    if sign < 0 and delta > 0:
        raise InvalidQuantityError(str(delta), f"{kind.value} requires a negative quantity")
    return check_places(delta, places)


def coerce_actor(actor_id: UUID | str | None) -> UUID | None:
    if actor_id is None or isinstance(actor_id, UUID):
        return actor_id
    return UUID(str(actor_id))


class MovementEngine(BaseService):
    """
    Records stock movements.

    Contract:
        ``record()`` returns the committed MovementRecord; every failure
        leaves the ledger and history exactly as they were.

    Non-goals:
        - Does NOT retry on BUSY; the caller decides.
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
        ledger: StockLedger | None = None,
    ):
        super().__init__(session, clock)
        self.lock_manager = lock_manager
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.lock_timeout = lock_timeout
        self.quantity_places = quantity_places
        self.ledger = ledger or StockLedger(session, self.clock, cost_policy)

    def stage(
        self,
        product_id: UUID | str,
        location: LocationRef | str,
        signed_quantity,
        kind: MovementKind | str,
        reason: str | None = None,
        unit_cost=None,
        sale_price=None,
        actor_id: UUID | str | None = None,
        transfer_id: UUID | None = None,
    ) -> StagedMovement:
        """
        Write ledger change and movement inside the caller's unit of work.

        Preconditions:
            The caller holds the key lock for (product_id, location) and
            owns commit/rollback.

        Postconditions:
            Both rows are flushed, not committed.  The returned event must
            only be published once the caller has committed.
        """
        movement_kind = MovementKind(kind)
        delta = validate_delta(signed_quantity, movement_kind, self.quantity_places)

        item = self.ledger.apply_delta(
            product_id,
            location,
            delta,
            unit_cost=unit_cost if delta > 0 else None,
            sale_price=sale_price,
        )

        now = self.clock.now()
        movement = StockMovement(
            stock_item_id=item.id,
            product_id=item.product_id,
            location_kind=item.location.kind.value,
            location_id=item.location.id,
            quantity_delta=delta,
            kind=movement_kind.value,
            reason=reason,
            resulting_quantity=item.quantity,
            unit_cost=item.unit_cost,
            item_sequence=item.version,
            transfer_id=transfer_id,
            created_at=now,
            actor_id=coerce_actor(actor_id),
        )
        self.session.add(movement)
        self.session.flush()

        event = StockChanged(
            product_id=item.product_id,
            location=item.location,
            new_quantity=item.quantity,
            timestamp=now,
            movement_id=movement.id,
            kind=movement_kind,
        )
        return StagedMovement(movement=movement.to_dto(), item=item, event=event)

    def record(
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
        """
        Record one movement as its own committed unit of work.

        Raises:
            InvalidQuantityError, LockTimeoutError, UnknownReferenceError,
            InsufficientStockError, StorageFailureError.
        """
        movement_kind = MovementKind(kind)
        validate_delta(signed_quantity, movement_kind, self.quantity_places)
        ref = coerce_location(location)
        key = StockKey.of(coerce_product_id(product_id), ref)

        with LogContext.bind(actor_id=actor_id):
            with self.lock_manager.acquire([key], timeout=self.lock_timeout):
                try:
                    self.ledger.lock_rows([key])
                    staged = self.stage(
                        product_id,
                        ref,
                        signed_quantity,
                        movement_kind,
                        reason=reason,
                        unit_cost=unit_cost,
                        sale_price=sale_price,
                        actor_id=actor_id,
                    )
                    self.session.commit()
                except SQLAlchemyError as exc:
                    self.session.rollback()
                    logger.error(
                        "transaction_rolled_back",
                        exc_info=True,
                        extra={"operation": "record_movement", "key": str(key)},
                    )
                    raise StorageFailureError("record_movement", str(exc)) from exc
                except Exception:
                    self.session.rollback()
                    raise

            logger.info(
                "movement_recorded",
                extra={
                    "movement_id": str(staged.movement.id),
                    "product_id": str(staged.movement.product_id),
                    "location": str(staged.movement.location),
                    "kind": movement_kind.value,
                    "quantity_delta": staged.movement.quantity_delta,
                    "resulting_quantity": staged.movement.resulting_quantity,
                },
            )

        self.dispatcher.publish_all([staged.event])
        return staged.movement
