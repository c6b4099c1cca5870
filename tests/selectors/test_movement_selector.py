"""Tests for MovementSelector ordering, filtering and paging."""

from decimal import Decimal

import pytest

from stock_kernel.domain.values import MovementKind
from stock_kernel.selectors.movement_selector import MovementSelector


@pytest.fixture
def history(movement_engine, clock, stocked, warehouse, store):
    """Six movements of the stocked product: one receipt plus five more."""
    clock.advance()
    movement_engine.record(stocked.id, warehouse.ref, -1, MovementKind.ISSUE)
    clock.advance()
    movement_engine.record(stocked.id, store.ref, 3, MovementKind.RECEIPT)
    clock.advance()
    movement_engine.record(stocked.id, warehouse.ref, 2, MovementKind.CORRECTION)
    clock.advance()
    movement_engine.record(stocked.id, store.ref, -1, MovementKind.ISSUE)
    clock.advance()
    movement_engine.record(stocked.id, warehouse.ref, -2, MovementKind.ISSUE)
    return stocked


@pytest.fixture
def selector(session):
    return MovementSelector(session)


def test_chronological_order(selector, history):
    movements = selector.list_movements(history.id)

    assert len(movements) == 6
    stamps = [m.created_at for m in movements]
    assert stamps == sorted(stamps)
    assert [m.quantity_delta for m in movements] == [
        Decimal(v) for v in ("10", "-1", "3", "2", "-1", "-2")
    ]


def test_same_timestamp_ordered_by_item_sequence(selector, movement_engine, product, warehouse):
    for _ in range(3):
        movement_engine.record(product.id, warehouse.ref, 1, MovementKind.RECEIPT)

    movements = selector.list_movements(product.id)

    assert [m.item_sequence for m in movements] == [1, 2, 3]
    assert [m.resulting_quantity for m in movements] == [Decimal(n) for n in (1, 2, 3)]


def test_location_filter(selector, history, store):
    at_store = selector.list_movements(history.id, store.ref)

    assert {m.location for m in at_store} == {store.ref}
    assert len(at_store) == 2


def test_since_inclusive(selector, history, clock):
    cutoff = selector.list_movements(history.id)[3].created_at

    assert len(selector.list_movements(history.id, since=cutoff)) == 3


def test_limit_and_offset(selector, history):
    everything = selector.list_movements(history.id)

    assert selector.list_movements(history.id, limit=2, offset=2) == everything[2:4]
    assert selector.list_movements(history.id, offset=10) == []
    assert selector.list_movements(history.id, limit=0) == []


@pytest.mark.parametrize("limit, offset", [(-1, 0), (None, -1)])
def test_negative_window_rejected(selector, history, limit, offset):
    with pytest.raises(ValueError):
        selector.list_movements(history.id, limit=limit, offset=offset)


def test_iter_restart(selector, history):
    everything = selector.list_movements(history.id)

    assert list(selector.iter_movements(history.id, page_size=4)) == everything
    assert list(selector.iter_movements(history.id, page_size=2, start=5)) == everything[5:]


def test_iter_rejects_empty_pages(selector, history):
    with pytest.raises(ValueError):
        list(selector.iter_movements(history.id, page_size=0))


def test_unknown_product_has_no_history(selector, second_product):
    assert selector.list_movements(second_product.id) == []


def test_movements_for_transfer(selector, transfer_engine, stocked, warehouse, store):
    result = transfer_engine.execute(warehouse.ref, store.ref, [(stocked.id, 2)])

    movements = selector.movements_for_transfer(result.transfer.id)

    assert [m.kind for m in movements] == [MovementKind.TRANSFER_OUT, MovementKind.TRANSFER_IN]
