"""
Module: stock_kernel.models.location
Responsibility: ORM persistence for the concrete location kinds.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Each location kind has its own table; the ledger never stores a foreign key to
either.  Stock items carry (location_kind, location_id) and the
LocationRegistry resolves that pair through ``LOCATION_MODELS``, an explicit
kind -> model lookup table.

Invariants enforced:
    - Names are unique within a kind (uq_warehouse_name, uq_store_name).
"""

from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import LocationKind, LocationRef


class Warehouse(TrackedBase):
    """Central stock-holding location that supplies stores."""

    __tablename__ = "warehouses"

    __table_args__ = (
        UniqueConstraint("name", name="uq_warehouse_name"),
    )

    kind = LocationKind.WAREHOUSE

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    @property
    def ref(self) -> LocationRef:
        return LocationRef(self.kind, self.id)

    def to_dto(self):
        from stock_kernel.domain.dtos import LocationInfo

        return LocationInfo(ref=self.ref, name=self.name, address=self.address)

    def __repr__(self) -> str:
        return f"<Warehouse {self.name!r} {self.id}>"


class Store(TrackedBase):
    """Point-of-sale location, optionally supplied by one warehouse."""

    __tablename__ = "stores"

    __table_args__ = (
        UniqueConstraint("name", name="uq_store_name"),
    )

    kind = LocationKind.STORE

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    warehouse_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=True,
    )

    @property
    def ref(self) -> LocationRef:
        return LocationRef(self.kind, self.id)

    def to_dto(self):
        from stock_kernel.domain.dtos import LocationInfo

        return LocationInfo(
            ref=self.ref,
            name=self.name,
            address=self.address,
            warehouse_id=self.warehouse_id,
        )

    def __repr__(self) -> str:
        return f"<Store {self.name!r} {self.id}>"


LOCATION_MODELS: dict[LocationKind, type[Warehouse] | type[Store]] = {
    LocationKind.WAREHOUSE: Warehouse,
    LocationKind.STORE: Store,
}
