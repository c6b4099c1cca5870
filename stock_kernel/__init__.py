"""
Stock Kernel

A stock ledger and transfer engine for products held at warehouses and stores:
- Per-(product, location) quantity-on-hand that never goes negative
- Atomic single-location movements and multi-location transfers
- Per-key serialization with deadlock-free lock ordering
- Append-only movement history
"""

__version__ = "0.1.0"
