"""
Module: stock_kernel.models.product
Responsibility: ORM persistence for catalog products.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - sku is unique and stored in canonical (stripped, upper-case) form; the
      Catalog normalizes before every write and lookup.
    - A product referenced by any StockItem is never deleted (before_flush
      guard in db/immutability.py).
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class Product(TrackedBase):
    """A catalog product: stable id, SKU, display name and base unit."""

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_unit: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")

    def to_dto(self):
        from stock_kernel.domain.dtos import ProductInfo

        return ProductInfo(
            id=self.id,
            sku=self.sku,
            name=self.name,
            base_unit=self.base_unit,
        )

    def __repr__(self) -> str:
        return f"<Product {self.sku} {self.id}>"
