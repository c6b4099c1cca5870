"""Tests for LocationRegistry: registration and polymorphic resolution."""

from uuid import uuid4

import pytest

from stock_kernel.domain.values import LocationKind, LocationRef
from stock_kernel.exceptions import DuplicateLocationNameError, LocationNotFoundError


class TestRegister:
    def test_warehouse(self, locations):
        info = locations.register_warehouse("North", address="Dock 4")

        assert info.kind is LocationKind.WAREHOUSE
        assert info.name == "North"
        assert info.address == "Dock 4"

    def test_store_linked_to_warehouse(self, locations, warehouse):
        info = locations.register_store("High Street", warehouse=warehouse.ref)

        assert info.kind is LocationKind.STORE
        assert info.warehouse_id == warehouse.ref.id

    def test_store_accepts_warehouse_id_and_string(self, locations, warehouse):
        by_id = locations.register_store("A", warehouse=warehouse.ref.id)
        by_str = locations.register_store("B", warehouse=str(warehouse.ref))

        assert by_id.warehouse_id == by_str.warehouse_id == warehouse.ref.id

    def test_store_with_unknown_warehouse(self, locations):
        with pytest.raises(LocationNotFoundError):
            locations.register_store("Orphan", warehouse=LocationRef.warehouse(uuid4()))

    def test_store_cannot_be_supplied_by_a_store(self, locations, store):
        with pytest.raises(LocationNotFoundError):
            locations.register_store("Chained", warehouse=store.ref)

    def test_names_unique_within_kind(self, locations, warehouse):
        with pytest.raises(DuplicateLocationNameError) as exc_info:
            locations.register_warehouse("Warehouse#1")
        assert exc_info.value.kind == "warehouse"

    def test_same_name_allowed_across_kinds(self, locations, warehouse):
        info = locations.register_store("Warehouse#1")
        assert info.name == "Warehouse#1"

    def test_blank_name(self, locations):
        with pytest.raises(ValueError):
            locations.register_warehouse("  ")


class TestResolve:
    def test_by_ref_and_string(self, locations, store):
        assert locations.resolve(store.ref) == store
        assert locations.resolve(str(store.ref)) == store

    def test_kind_must_match(self, locations, warehouse):
        with pytest.raises(LocationNotFoundError):
            locations.resolve(LocationRef.store(warehouse.ref.id))

    @pytest.mark.parametrize("value", ["nowhere", f"store:{uuid4()}", "depot:123"])
    def test_unknown_or_malformed(self, locations, value):
        with pytest.raises(LocationNotFoundError) as exc_info:
            locations.resolve(value)
        assert exc_info.value.code == "LOCATION_NOT_FOUND"


def test_list_locations_ordered_by_kind_then_name(locations, session):
    locations.register_warehouse("West")
    locations.register_warehouse("East")
    locations.register_store("Corner")
    session.commit()

    listed = locations.list_locations()

    assert [(i.kind.value, i.name) for i in listed] == [
        ("store", "Corner"),
        ("warehouse", "East"),
        ("warehouse", "West"),
    ]
    assert [i.name for i in locations.list_locations("warehouse")] == ["East", "West"]
