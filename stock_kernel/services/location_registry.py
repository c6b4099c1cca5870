"""
LocationRegistry -- warehouses, stores and location resolution.

Responsibility:
    Registers the concrete location kinds and resolves a polymorphic
    LocationRef (or its ``"kind:uuid"`` string form) to the row it names.

Architecture position:
    Kernel > Services.  Flush-only (BaseService).  Resolution dispatches
    through ``LOCATION_MODELS``, so adding a location kind means adding a
    model and one entry in that table.

Invariants enforced:
    - Names are unique within a kind.
    - A store's supplying warehouse, when given, must exist.
    - Equality of locations requires kind AND id; a warehouse and a store
      sharing an id are different locations.

Failure modes:
    - ValueError: blank name.
    - DuplicateLocationNameError: name already used within the kind.
    - LocationNotFoundError: malformed reference or no such row.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import LocationInfo
from stock_kernel.domain.values import LocationKind, LocationRef
from stock_kernel.exceptions import DuplicateLocationNameError, LocationNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.location import LOCATION_MODELS, Store, Warehouse
from stock_kernel.services.base import BaseService

logger = get_logger("services.location_registry")


def coerce_location(value: LocationRef | str) -> LocationRef:
    """
    LocationRef from a ref or its string form.

    Raises:
        LocationNotFoundError: the value is not a well-formed reference.
    """
    try:
        return LocationRef.parse(value)
    except ValueError:
        raise LocationNotFoundError(str(value)) from None


class LocationRegistry(BaseService):
    """Registry of every place stock can be held."""

    def _get(self, location: LocationRef | str) -> Warehouse | Store:
        ref = coerce_location(location)
        model = LOCATION_MODELS.get(ref.kind)
        if model is None:
            raise LocationNotFoundError(str(ref))
        row = self.session.get(model, ref.id)
        if row is None:
            raise LocationNotFoundError(str(ref))
        return row

    def _check_name(self, model: type[Warehouse] | type[Store], name: str) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValueError(f"{model.kind.value} name must not be empty")
        taken = self.session.execute(
            select(model.id).where(model.name == cleaned)
        ).first()
        if taken is not None:
            raise DuplicateLocationNameError(model.kind.value, cleaned)
        return cleaned

    def register_warehouse(
        self,
        name: str,
        address: str | None = None,
        actor_id: UUID | None = None,
    ) -> LocationInfo:
        """
        Register a warehouse.

        Raises:
            ValueError: blank name.
            DuplicateLocationNameError: name taken by another warehouse.
        """
        warehouse = Warehouse(
            name=self._check_name(Warehouse, name),
            address=address,
            created_at=self.clock.now(),
            actor_id=actor_id,
        )
        self.session.add(warehouse)
        self.session.flush()

        logger.info(
            "location_registered",
            extra={"location": str(warehouse.ref), "location_name": warehouse.name},
        )
        return warehouse.to_dto()

    def register_store(
        self,
        name: str,
        warehouse: LocationRef | UUID | str | None = None,
        address: str | None = None,
        actor_id: UUID | None = None,
    ) -> LocationInfo:
        """
        Register a store, optionally supplied by ``warehouse``.

        Raises:
            ValueError: blank name.
            DuplicateLocationNameError: name taken by another store.
            LocationNotFoundError: ``warehouse`` does not name a warehouse.
        """
        cleaned = self._check_name(Store, name)

        warehouse_id = None
        if warehouse is not None:
            ref = (
                LocationRef.warehouse(warehouse)
                if isinstance(warehouse, UUID)
                else coerce_location(warehouse)
            )
            if ref.kind is not LocationKind.WAREHOUSE:
                raise LocationNotFoundError(str(ref))
            warehouse_id = self._get(ref).id

        store = Store(
            name=cleaned,
            address=address,
            warehouse_id=warehouse_id,
            created_at=self.clock.now(),
            actor_id=actor_id,
        )
        self.session.add(store)
        self.session.flush()

        logger.info(
            "location_registered",
            extra={"location": str(store.ref), "location_name": store.name},
        )
        return store.to_dto()

    def resolve(self, location: LocationRef | str) -> LocationInfo:
        """
        Resolve a location reference.

        Raises:
            LocationNotFoundError: malformed reference or no such location.
        """
        return self._get(location).to_dto()

    def list_locations(self, kind: LocationKind | str | None = None) -> list[LocationInfo]:
        """All locations, ordered by kind then name."""
        kinds = (
            [LocationKind(kind)]
            if kind is not None
            else sorted(LOCATION_MODELS, key=lambda k: k.value)
        )
        result: list[LocationInfo] = []
        for location_kind in kinds:
            model = LOCATION_MODELS[location_kind]
            rows = self.session.execute(
                select(model).order_by(model.name)
            ).scalars().all()
            result.extend(row.to_dto() for row in rows)
        return result
