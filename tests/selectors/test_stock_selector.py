"""Tests for StockSelector and TransferSelector."""

from decimal import Decimal

from stock_kernel.domain.values import MovementKind, TransferStatus
from stock_kernel.selectors.stock_selector import StockSelector
from stock_kernel.selectors.transfer_selector import TransferSelector


class TestStockSelector:
    def test_items_at(self, session, movement_engine, stocked, second_product, warehouse, store):
        movement_engine.record(second_product.id, warehouse.ref, 1, MovementKind.RECEIPT)

        items = StockSelector(session).items_at(warehouse.ref)

        assert {i.product_id for i in items} == {stocked.id, second_product.id}
        assert StockSelector(session).items_at(store.ref) == []

    def test_positions_include_empty_items(self, session, transfer_engine, stocked, warehouse, store):
        transfer_engine.execute(warehouse.ref, store.ref, [(stocked.id, 10)])

        positions = StockSelector(session).positions(stocked.id)

        by_location = {p.location: p.quantity for p in positions}
        assert by_location == {warehouse.ref: Decimal("0"), store.ref: Decimal("10")}
        assert StockSelector(session).total_on_hand(stocked.id) == Decimal("10")

    def test_total_for_unstocked_product(self, session, product):
        assert StockSelector(session).total_on_hand(product.id) == Decimal("0")


class TestTransferSelector:
    def test_filters(self, session, transfer_engine, stocked, warehouse, store):
        transfer_engine.execute(warehouse.ref, store.ref, [(stocked.id, 1)])
        transfer_engine.execute(warehouse.ref, store.ref, [(stocked.id, 100)])
        selector = TransferSelector(session)

        assert len(selector.list_transfers()) == 2
        [failed] = selector.list_transfers(status=TransferStatus.FAILED)
        assert failed.error_code == "INSUFFICIENT_STOCK"
        assert len(selector.list_transfers(location=store.ref)) == 2
        assert len(selector.list_transfers(status="completed", limit=1)) == 1

    def test_missing(self, session, stocked):
        assert TransferSelector(session).get(stocked.id) is None
