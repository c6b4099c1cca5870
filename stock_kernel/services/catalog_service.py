"""
Catalog -- product registration and resolution.

Responsibility:
    Owns the ``products`` table: registers products under a canonical SKU,
    resolves product ids for the ledger, and removes products that were never
    stocked.

Architecture position:
    Kernel > Services.  Flush-only (BaseService); the caller commits.
    StockLedger resolves every product id through this service before it
    touches a stock item.

Invariants enforced:
    - SKUs are unique in canonical form (stripped, upper-case), so
      ``" ab-1 "`` and ``"AB-1"`` name the same product.
    - A product referenced by a stock item is never deleted.

Failure modes:
    - ValueError: empty SKU, name or base unit.
    - DuplicateSkuError: canonical SKU already registered.
    - ProductNotFoundError: unknown product id.
    - ProductReferencedError: remove() of a stocked product.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import ProductInfo
from stock_kernel.domain.values import normalize_sku
from stock_kernel.exceptions import (
    DuplicateSkuError,
    ProductNotFoundError,
    ProductReferencedError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_kernel.models.stock_item import StockItem
from stock_kernel.services.base import BaseService

logger = get_logger("services.catalog")


def coerce_product_id(product_id: UUID | str) -> UUID:
    """
    UUID from a product id or its string form.

    Raises:
        ProductNotFoundError: the value is not a UUID.
    """
    if isinstance(product_id, UUID):
        return product_id
    try:
        return UUID(str(product_id))
    except ValueError:
        raise ProductNotFoundError(str(product_id)) from None


class Catalog(BaseService):
    """
    Product registry.

    Returns ProductInfo DTOs, never ORM instances.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_unit: str = "EA",
    ):
        super().__init__(session, clock)
        self.default_unit = default_unit

    def _get(self, product_id: UUID | str) -> Product:
        product = self.session.get(Product, coerce_product_id(product_id))
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _find(self, sku: str) -> Product | None:
        return self.session.execute(
            select(Product).where(Product.sku == sku)
        ).scalar_one_or_none()

    def register(
        self,
        sku: str,
        name: str,
        base_unit: str | None = None,
        actor_id: UUID | None = None,
    ) -> ProductInfo:
        """
        Register a new product.

        Raises:
            ValueError: SKU, name or unit is blank.
            DuplicateSkuError: the canonical SKU is taken.
        """
        canonical = normalize_sku(sku or "")
        if not canonical:
            raise ValueError("SKU must not be empty")
        if not name or not name.strip():
            raise ValueError("Product name must not be empty")
        unit = (base_unit or self.default_unit).strip().upper()
        if not unit:
            raise ValueError("Base unit must not be empty")

        if self._find(canonical) is not None:
            raise DuplicateSkuError(canonical)

        product = Product(
            sku=canonical,
            name=name.strip(),
            base_unit=unit,
            created_at=self.clock.now(),
            actor_id=actor_id,
        )
        self.session.add(product)
        self.session.flush()

        logger.info(
            "product_registered",
            extra={"product_id": str(product.id), "sku": canonical},
        )
        return product.to_dto()

    def resolve(self, product_id: UUID | str) -> ProductInfo:
        """
        Look up a product by id.

        Raises:
            ProductNotFoundError: no product has this id.
        """
        return self._get(product_id).to_dto()

    def find_by_sku(self, sku: str) -> ProductInfo | None:
        """Product with this SKU (any spelling of the canonical form), or None."""
        product = self._find(normalize_sku(sku or ""))
        return product.to_dto() if product is not None else None

    def remove(self, product_id: UUID | str) -> None:
        """
        Delete a product that has never been stocked.

        Raises:
            ProductNotFoundError: unknown product id.
            ProductReferencedError: a stock item references the product.
        """
        product = self._get(product_id)
        if self._is_referenced(product.id):
            raise ProductReferencedError(str(product.id))

        # A stock item committed after the check trips the foreign key instead.
        self.session.delete(product)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ProductReferencedError(str(product.id)) from exc
        logger.info(
            "product_removed",
            extra={"product_id": str(product.id), "sku": product.sku},
        )

    def _is_referenced(self, product_id: UUID) -> bool:
        return self.session.execute(
            select(StockItem.id).where(StockItem.product_id == product_id).limit(1)
        ).first() is not None
