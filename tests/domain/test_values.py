"""
Tests for the domain value types: location references, ledger keys, movement
kinds and quantity coercion.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.values import (
    LocationKind,
    LocationRef,
    MovementKind,
    StockKey,
    TransferStatus,
    check_places,
    normalize_sku,
    to_decimal,
)
from stock_kernel.exceptions import InvalidQuantityError


class TestLocationRef:
    def test_equality_requires_kind_and_id(self):
        shared = uuid4()
        assert LocationRef.warehouse(shared) == LocationRef(LocationKind.WAREHOUSE, shared)
        assert LocationRef.warehouse(shared) != LocationRef.store(shared)

    def test_string_form_round_trips(self):
        ref = LocationRef.store(uuid4())
        assert str(ref) == f"store:{ref.id}"
        assert LocationRef.parse(str(ref)) == ref

    def test_parse_is_lenient_on_case_and_spacing(self):
        location_id = uuid4()
        assert LocationRef.parse(f" Warehouse : {location_id} ") == LocationRef.warehouse(location_id)

    def test_parse_passes_refs_through(self):
        ref = LocationRef.warehouse(uuid4())
        assert LocationRef.parse(ref) is ref

    @pytest.mark.parametrize(
        "value",
        ["warehouse", "depot:" + str(uuid4()), "store:not-a-uuid", ""],
    )
    def test_parse_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            LocationRef.parse(value)

    def test_coerces_raw_values(self):
        location_id = uuid4()
        ref = LocationRef("store", str(location_id))
        assert ref.kind is LocationKind.STORE
        assert ref.id == location_id

    def test_hashable(self):
        location_id = uuid4()
        assert len({LocationRef.store(location_id), LocationRef.store(location_id)}) == 1


class TestStockKey:
    def test_order_is_independent_of_direction(self):
        product_id = uuid4()
        a = LocationRef.warehouse(uuid4())
        b = LocationRef.store(uuid4())

        forward = sorted([StockKey.of(product_id, a), StockKey.of(product_id, b)])
        backward = sorted([StockKey.of(product_id, b), StockKey.of(product_id, a)])

        assert forward == backward

    def test_orders_by_kind_then_location_then_product(self):
        location = LocationRef.store(uuid4())
        low, high = sorted([str(uuid4()), str(uuid4())])
        first = StockKey(location.kind.value, str(location.id), low)
        second = StockKey(location.kind.value, str(location.id), high)
        warehouse_key = StockKey("warehouse", "0" * 36, low)

        assert sorted([warehouse_key, second, first]) == [first, second, warehouse_key]

    def test_location_round_trip(self):
        location = LocationRef.warehouse(uuid4())
        assert StockKey.of(uuid4(), location).location == location


class TestMovementKind:
    @pytest.mark.parametrize(
        "kind, sign",
        [
            (MovementKind.RECEIPT, 1),
            (MovementKind.TRANSFER_IN, 1),
            (MovementKind.ISSUE, -1),
            (MovementKind.TRANSFER_OUT, -1),
            (MovementKind.CORRECTION, 0),
        ],
    )
    def test_required_sign(self, kind, sign):
        assert kind.required_sign == sign

    def test_wire_values(self):
        assert MovementKind("transfer-in") is MovementKind.TRANSFER_IN
        assert MovementKind.TRANSFER_OUT.value == "transfer-out"


def test_transfer_status_terminality():
    assert not TransferStatus.PENDING.is_terminal
    assert TransferStatus.COMPLETED.is_terminal
    assert TransferStatus.FAILED.is_terminal


class TestToDecimal:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", [3, "3.25", Decimal("-1.5")])
    def test_accepts_numbers(self, value):
        assert to_decimal(value) == Decimal(str(value))

    @pytest.mark.parametrize("value", [True, "abc", None, float("nan"), Decimal("Infinity"), [1]])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(InvalidQuantityError) as exc_info:
            to_decimal(value)
        assert exc_info.value.code == "INVALID_QUANTITY"


class TestCheckPlaces:
    def test_accepts_within_places(self):
        assert check_places(Decimal("1.25"), 2) == Decimal("1.25")

    def test_trailing_zeros_do_not_count(self):
        assert check_places(Decimal("1.2500000"), 2) == Decimal("1.2500000")

    def test_rejects_excess_precision(self):
        with pytest.raises(InvalidQuantityError):
            check_places(Decimal("1.255"), 2)

    def test_whole_units_only(self):
        check_places(Decimal("4"), 0)
        with pytest.raises(InvalidQuantityError):
            check_places(Decimal("0.5"), 0)


def test_normalize_sku():
    assert normalize_sku("  wid-001 ") == "WID-001"
