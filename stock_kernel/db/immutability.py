"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement history is the audit trail of the ledger and the only source of
derived reports.  If a movement could be edited, every report built on it
could silently change.  Stock items carry an entry date that must keep meaning
"first time this product was stocked here", and finished transfers are the
record of what was moved.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
The listeners here intercept them and raise ImmutabilityViolationError, which
aborts the flush.  The database is never modified.

    session.flush()
         |
         v
    [before_flush]  --> product delete guard --> ProductReferencedError
         |
         v
    [before_update / before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | When Immutable                | What
-------------------|-------------------------------|------------------------------
StockMovement      | ALWAYS (from creation)        | Every field; no deletes
StockItem          | ALWAYS                        | Key fields + entry_date; no deletes
StockTransfer      | After completed / failed      | Every field; no deletes
StockTransferLine  | When parent is terminal       | Every field; no deletes
Product            | While referenced by stock     | No deletes

===============================================================================
USAGE
===============================================================================

Registered automatically by ``init_engine_from_url()``; registration is
idempotent.
"""

from sqlalchemy import event, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from stock_kernel.exceptions import ImmutabilityViolationError, ProductReferencedError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_STOCK_ITEM_FROZEN_FIELDS = ("product_id", "location_kind", "location_id", "entry_date")
_TERMINAL_TRANSFER_STATUSES = ("completed", "failed")


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_product_deletion_before_flush(session, flush_context, instances):
    """
    Block deletion of products that have stock items.

    Runs in SessionEvents.before_flush, before the flush plan is finalized,
    because mapper-level before_delete fires too late to cancel a delete.
    """
    from stock_kernel.models.product import Product
    from stock_kernel.models.stock_item import StockItem

    for obj in list(session.deleted):
        if not isinstance(obj, Product):
            continue

        with session.no_autoflush:
            referenced = session.execute(
                select(StockItem.id).where(StockItem.product_id == obj.id).limit(1)
            ).first()

        if referenced is not None:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Product",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "product_has_stock_items",
                },
            )
            raise ProductReferencedError(product_id=str(obj.id))


def _check_stock_movement_update(mapper, connection, target):
    _blocked("StockMovement", target.id, "UPDATE", "Stock movements are append-only")


def _check_stock_movement_delete(mapper, connection, target):
    _blocked("StockMovement", target.id, "DELETE", "Stock movements cannot be deleted")


def _check_stock_item_update(mapper, connection, target):
    """Key fields and entry_date never change once the row exists."""
    for field_name in _STOCK_ITEM_FROZEN_FIELDS:
        if get_history(target, field_name).deleted:
            _blocked(
                "StockItem",
                target.id,
                "UPDATE",
                f"Cannot modify field '{field_name}' on a stock item",
                field=field_name,
            )


def _check_stock_item_delete(mapper, connection, target):
    _blocked(
        "StockItem",
        target.id,
        "DELETE",
        "Stock items are never deleted; an empty item keeps quantity 0",
    )


def _was_terminal(target) -> bool:
    """True if the transfer was already completed/failed before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0] in _TERMINAL_TRANSFER_STATUSES
    if history.added:
        return False
    return target.status in _TERMINAL_TRANSFER_STATUSES


def _check_stock_transfer_update(mapper, connection, target):
    """
    Allow pending -> completed/failed (that IS the finalization), block any
    change after it.
    """
    if _was_terminal(target):
        _blocked(
            "StockTransfer",
            target.id,
            "UPDATE",
            f"Transfer is {target.status} and cannot be modified",
        )


def _check_stock_transfer_delete(mapper, connection, target):
    if target.status in _TERMINAL_TRANSFER_STATUSES:
        _blocked(
            "StockTransfer",
            target.id,
            "DELETE",
            f"Transfer is {target.status} and cannot be deleted",
        )


def _check_stock_transfer_line_change(mapper, connection, target):
    parent = target.transfer
    if parent is not None and parent.status in _TERMINAL_TRANSFER_STATUSES:
        _blocked(
            "StockTransferLine",
            target.id,
            "UPDATE/DELETE",
            f"Lines of a {parent.status} transfer are frozen",
        )


def _listeners():
    from stock_kernel.models.stock_item import StockItem
    from stock_kernel.models.stock_movement import StockMovement
    from stock_kernel.models.stock_transfer import StockTransfer, StockTransferLine

    return [
        (Session, "before_flush", _check_product_deletion_before_flush),
        (StockMovement, "before_update", _check_stock_movement_update),
        (StockMovement, "before_delete", _check_stock_movement_delete),
        (StockItem, "before_update", _check_stock_item_update),
        (StockItem, "before_delete", _check_stock_item_delete),
        (StockTransfer, "before_update", _check_stock_transfer_update),
        (StockTransfer, "before_delete", _check_stock_transfer_delete),
        (StockTransferLine, "before_update", _check_stock_transfer_line_change),
        (StockTransferLine, "before_delete", _check_stock_transfer_line_change),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call after the models are importable and before any writes.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
