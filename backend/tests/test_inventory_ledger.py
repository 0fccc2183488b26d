# Overview: Pytest coverage for stock checks, decrements, restores and adjustments.

from decimal import Decimal

import pytest

from cyclemart.errors import InsufficientStockError, NotFoundError, ValidationError
from cyclemart.line_items import InvoiceLine, LineSnapshot
from cyclemart.services.inventory_ledger import InventoryLedger

from conftest import make_item


def _line(item, qty, price="100.00"):
    return InvoiceLine(inventory_item_id=item.id, name=item.name, quantity=qty, price=Decimal(price))


class TestCheckAndDecrement:
    def test_decrement_reduces_quantity(self, db_session, item_a):
        ledger = InventoryLedger(db_session)
        ledger.decrement(LineSnapshot(lines=(_line(item_a, 3),)))
        db_session.commit()

        db_session.refresh(item_a)
        assert item_a.quantity == 7

    def test_lines_for_same_item_are_summed(self, db_session, item_a):
        ledger = InventoryLedger(db_session)
        snapshot = LineSnapshot(lines=(_line(item_a, 6), _line(item_a, 5)))

        with pytest.raises(InsufficientStockError) as excinfo:
            ledger.check_availability(snapshot)

        shortage = excinfo.value.shortages[0]
        assert shortage["required"] == 11
        assert shortage["available"] == 10

    def test_shortfall_lists_every_item_and_mutates_nothing(self, db_session, item_a, item_b):
        ledger = InventoryLedger(db_session)
        snapshot = LineSnapshot(lines=(_line(item_a, 50), _line(item_b, 2)))

        with pytest.raises(InsufficientStockError) as excinfo:
            ledger.decrement(snapshot)
        db_session.rollback()

        names = {s["item_name"] for s in excinfo.value.shortages}
        assert names == {"Bobbin case", "Motor belt"}
        assert "Bobbin case (available 10, required 50)" in excinfo.value.message

        db_session.refresh(item_a)
        db_session.refresh(item_b)
        assert item_a.quantity == 10
        assert item_b.quantity == 1

    def test_one_short_line_blocks_the_whole_sale(self, db_session, item_a, item_b):
        ledger = InventoryLedger(db_session)
        snapshot = LineSnapshot(lines=(_line(item_a, 5), _line(item_b, 1000)))

        with pytest.raises(InsufficientStockError):
            ledger.decrement(snapshot)
        db_session.rollback()

        db_session.refresh(item_a)
        assert item_a.quantity == 10

    def test_unknown_item_is_not_found(self, db_session, item_a):
        ledger = InventoryLedger(db_session)
        ghost = InvoiceLine(inventory_item_id=99999, name="Ghost", quantity=1, price=Decimal("1.00"))

        with pytest.raises(NotFoundError):
            ledger.check_availability(LineSnapshot(lines=(ghost,)))

    def test_exact_stock_can_be_sold(self, db_session, item_b):
        ledger = InventoryLedger(db_session)
        ledger.decrement(LineSnapshot(lines=(_line(item_b, 1),)))
        db_session.commit()

        db_session.refresh(item_b)
        assert item_b.quantity == 0


class TestRestore:
    def test_restore_adds_quantities_back(self, db_session, item_a):
        ledger = InventoryLedger(db_session)
        skipped = ledger.restore(LineSnapshot(lines=(_line(item_a, 4),)))
        db_session.commit()

        db_session.refresh(item_a)
        assert item_a.quantity == 14
        assert skipped == []

    def test_restore_skips_deleted_items(self, db_session, item_a):
        ledger = InventoryLedger(db_session)
        ghost = InvoiceLine(inventory_item_id=424242, name="Gone", quantity=2, price=Decimal("5.00"))

        skipped = ledger.restore(LineSnapshot(lines=(_line(item_a, 1), ghost)))
        db_session.commit()

        db_session.refresh(item_a)
        assert item_a.quantity == 11
        assert skipped == [424242]


class TestAdjustAndLowStock:
    def test_adjust_sets_absolute_quantity(self, db_session, item_a):
        ledger = InventoryLedger(db_session)
        ledger.adjust(item_a.id, 3)
        db_session.commit()

        db_session.refresh(item_a)
        assert item_a.quantity == 3

    @pytest.mark.parametrize("bad", [-1, "5", 2.5, True])
    def test_adjust_rejects_invalid_quantities(self, db_session, item_a, bad):
        with pytest.raises(ValidationError):
            InventoryLedger(db_session).adjust(item_a.id, bad)

    def test_adjust_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            InventoryLedger(db_session).adjust(12345, 1)

    def test_low_stock_orders_by_quantity(self, db_session, item_a):
        make_item(db_session, sku="SKU-L1", name="Needle pack", quantity=2, price="20.00", minimum_stock=5)
        make_item(db_session, sku="SKU-L2", name="Oil bottle", quantity=0, price="35.00", minimum_stock=1)

        ledger = InventoryLedger(db_session)
        low = ledger.low_stock()

        assert [i.sku for i in low] == ["SKU-L2", "SKU-L1"]
        assert ledger.low_stock_count() == 2
