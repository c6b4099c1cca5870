"""Services for the stock kernel (write side)."""

from stock_kernel.services.catalog_service import Catalog
from stock_kernel.services.change_notifier import (
    ChangeNotifier,
    InMemoryChangeNotifier,
    NotificationDispatcher,
    NullChangeNotifier,
)
from stock_kernel.services.ledger_orchestrator import LedgerOrchestrator
from stock_kernel.services.location_registry import LocationRegistry
from stock_kernel.services.lock_manager import KeyLockManager
from stock_kernel.services.movement_engine import MovementEngine
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transfer_engine import TransferEngine

__all__ = [
    "Catalog",
    "ChangeNotifier",
    "InMemoryChangeNotifier",
    "KeyLockManager",
    "LedgerOrchestrator",
    "LocationRegistry",
    "MovementEngine",
    "NotificationDispatcher",
    "NullChangeNotifier",
    "StockLedger",
    "TransferEngine",
]
