"""Selectors for the stock kernel (read side)."""

from stock_kernel.selectors.movement_selector import MovementSelector
from stock_kernel.selectors.stock_selector import StockSelector
from stock_kernel.selectors.transfer_selector import TransferSelector

__all__ = [
    "MovementSelector",
    "StockSelector",
    "TransferSelector",
]
