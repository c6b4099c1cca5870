"""
ORM models for the stock kernel.

Importing this package registers every table on ``Base.metadata``.
"""

from stock_kernel.models.location import LOCATION_MODELS, Store, Warehouse
from stock_kernel.models.product import Product
from stock_kernel.models.stock_item import StockItem
from stock_kernel.models.stock_movement import StockMovement
from stock_kernel.models.stock_transfer import StockTransfer, StockTransferLine

__all__ = [
    "LOCATION_MODELS",
    "Product",
    "StockItem",
    "StockMovement",
    "StockTransfer",
    "StockTransferLine",
    "Store",
    "Warehouse",
]
