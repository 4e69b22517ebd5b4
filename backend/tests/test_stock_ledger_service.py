# Overview: Pytest coverage for the stock ledger service.

"""
Stock ledger tests.

Verifies:
- The cached quantity always equals the signed ledger sum
- Quantities never go negative; rejected writes change nothing
- Bulk operations are all-or-nothing
- The price fallback rule
- Branch visibility
"""

from decimal import Decimal

import pytest

from gympos.extensions import db
from gympos.models import InventoryItem, InventoryTransaction
from gympos.services import stock_ledger_service as ledger
from gympos.services.stock_ledger_service import (
    InsufficientStockError,
    LedgerLine,
    NotFoundError,
)
from gympos.validation import ValidationError


def _ledger_rows(item_id):
    return db.session.query(InventoryTransaction).filter_by(item_id=item_id).order_by(InventoryTransaction.id).all()


def _quantity(item_id):
    db.session.expire_all()
    return db.session.get(InventoryItem, item_id).quantity


class TestSingleTransactions:

    def test_purchase_adds_and_logs_entry(self, make_item):
        item = make_item(quantity=10)

        tx = ledger.record_transaction(item_id=item.id, kind="purchase", quantity=5, price=Decimal("3.50"))

        assert _quantity(item.id) == 15
        assert tx.type == "purchase"
        assert tx.quantity == 5
        assert tx.total_amount == Decimal("17.50")
        assert [row.type for row in _ledger_rows(item.id)] == ["beginning", "purchase"]

    def test_sale_then_adjustment_in(self, make_item):
        item = make_item(quantity=10)

        ledger.record_transaction(item_id=item.id, kind="sale", quantity=4)
        ledger.record_transaction(item_id=item.id, kind="adjustment_in", quantity=2)

        assert _quantity(item.id) == 8
        assert ledger.derive_current_quantity(item.id) == 8

    def test_oversell_is_rejected_and_nothing_changes(self, make_item):
        item = make_item(quantity=3)

        with pytest.raises(InsufficientStockError) as excinfo:
            ledger.record_transaction(item_id=item.id, kind="adjustment_out", quantity=5)

        assert excinfo.value.requested == 5
        assert excinfo.value.available == 3
        assert excinfo.value.details["itemId"] == str(item.id)
        assert _quantity(item.id) == 3
        assert len(_ledger_rows(item.id)) == 1

    def test_deduct_to_exactly_zero(self, make_item):
        item = make_item(quantity=2)

        ledger.record_transaction(item_id=item.id, kind="sale", quantity=2)

        assert _quantity(item.id) == 0

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2.0", "1e3", True, None])
    def test_invalid_quantity(self, make_item, quantity):
        item = make_item(quantity=5)

        with pytest.raises(ValidationError):
            ledger.record_transaction(item_id=item.id, kind="purchase", quantity=quantity)

        assert _quantity(item.id) == 5

    def test_invalid_kind(self, make_item):
        item = make_item()

        with pytest.raises(ValidationError):
            ledger.record_transaction(item_id=item.id, kind="transfer", quantity=1)

    def test_negative_price_is_rejected(self, make_item):
        item = make_item(quantity=5)

        with pytest.raises(ValidationError):
            ledger.record_transaction(item_id=item.id, kind="purchase", quantity=2, price=Decimal("-3.00"))

        assert _quantity(item.id) == 5
        assert len(_ledger_rows(item.id)) == 1

    def test_unknown_item(self, db_session):
        with pytest.raises(NotFoundError) as excinfo:
            ledger.record_transaction(item_id=9999, kind="purchase", quantity=1)

        assert str(excinfo.value) == "Item with ID 9999 not found"


class TestPriceFallback:

    def test_sale_defaults_to_item_price(self, make_item):
        item = make_item(quantity=5, price="12.00", cost="5.00")

        tx = ledger.record_transaction(item_id=item.id, kind="sale", quantity=2)

        assert tx.price == Decimal("12.00")
        assert tx.total_amount == Decimal("24.00")

    def test_inbound_defaults_to_item_cost(self, make_item):
        item = make_item(quantity=0, price="12.00", cost="5.00")

        tx = ledger.record_transaction(item_id=item.id, kind="purchase", quantity=3)

        assert tx.price == Decimal("5.00")
        assert tx.total_amount == Decimal("15.00")

    def test_explicit_zero_price_is_kept(self, make_item):
        item = make_item(quantity=5, price="12.00")

        tx = ledger.record_transaction(item_id=item.id, kind="sale", quantity=1, price=Decimal("0"))

        assert tx.price == Decimal("0.00")
        assert tx.total_amount == Decimal("0.00")

    def test_total_rounds_half_up(self, make_item):
        item = make_item(quantity=0)

        tx = ledger.record_transaction(item_id=item.id, kind="purchase", quantity=3, price=Decimal("0.335"))

        # price is quantized first (0.34), then multiplied
        assert tx.total_amount == Decimal("1.02")

    def test_beginning_entry_priced_at_cost(self, make_item):
        item = make_item(quantity=4, cost="2.50")

        (row,) = _ledger_rows(item.id)
        assert row.type == "beginning"
        assert row.price == Decimal("2.50")
        assert row.total_amount == Decimal("10.00")
        assert row.notes == "Initial inventory"


class TestBulkTransactions:

    def test_bulk_purchase(self, make_item):
        a = make_item(quantity=1)
        b = make_item(quantity=2)

        created = ledger.record_bulk_transaction(
            kind="purchase",
            items=[{"itemId": str(a.id), "quantity": 4}, {"itemId": b.id, "quantity": 1, "price": 2}],
        )

        assert len(created) == 2
        assert _quantity(a.id) == 5
        assert _quantity(b.id) == 3

    def test_bulk_sale_is_all_or_nothing(self, make_item):
        a = make_item(quantity=10)
        b = make_item(quantity=1)

        with pytest.raises(InsufficientStockError) as excinfo:
            ledger.record_bulk_transaction(
                kind="sale",
                items=[LedgerLine(a.id, 3), LedgerLine(b.id, 2)],
            )

        assert excinfo.value.item_id == b.id
        assert _quantity(a.id) == 10
        assert _quantity(b.id) == 1
        assert len(_ledger_rows(a.id)) == 1

    def test_bulk_unknown_item_rolls_back(self, make_item):
        a = make_item(quantity=10)

        with pytest.raises(NotFoundError):
            ledger.record_bulk_transaction(kind="sale", items=[{"itemId": a.id, "quantity": 1}, {"itemId": 424242, "quantity": 1}])

        assert _quantity(a.id) == 10

    def test_repeated_item_accumulates(self, make_item):
        a = make_item(quantity=10)

        with pytest.raises(InsufficientStockError) as excinfo:
            ledger.record_bulk_transaction(kind="sale", items=[LedgerLine(a.id, 6), LedgerLine(a.id, 6)])

        assert excinfo.value.available == 4
        assert _quantity(a.id) == 10

    def test_prebuilt_lines_are_validated(self, make_item):
        a = make_item(quantity=5)

        with pytest.raises(ValidationError):
            ledger.record_bulk_transaction(kind="purchase", items=[LedgerLine(a.id, 1, Decimal("-1.00"))])
        with pytest.raises(ValidationError):
            ledger.record_bulk_transaction(kind="purchase", items=[LedgerLine(a.id, 0)])

        assert _quantity(a.id) == 5

    @pytest.mark.parametrize("kind", ["adjustment_in", "adjustment_out", "beginning"])
    def test_bulk_rejects_non_bulk_kinds(self, make_item, kind):
        a = make_item(quantity=10)

        with pytest.raises(ValidationError):
            ledger.record_bulk_transaction(kind=kind, items=[LedgerLine(a.id, 1)])

    def test_bulk_rejects_empty_items(self, db_session):
        with pytest.raises(ValidationError):
            ledger.record_bulk_transaction(kind="purchase", items=[])


class TestBranchScope:

    def test_other_branch_item_is_not_found(self, make_item, branch, other_branch):
        item = make_item(quantity=5, branch_id=other_branch.id)

        with pytest.raises(NotFoundError):
            ledger.record_transaction(item_id=item.id, kind="sale", quantity=1, branch_id=branch.id)

        assert _quantity(item.id) == 5

    def test_global_item_is_visible_to_every_branch(self, make_item, branch):
        item = make_item(quantity=5)

        tx = ledger.record_transaction(item_id=item.id, kind="sale", quantity=1, branch_id=branch.id)

        assert tx.branch_id == branch.id
        assert _quantity(item.id) == 4


class TestReconciliation:

    def test_derive_is_read_only_and_repeatable(self, make_item):
        item = make_item(quantity=7)
        ledger.record_transaction(item_id=item.id, kind="sale", quantity=2)

        first = ledger.derive_current_quantity(item.id)
        second = ledger.derive_current_quantity(item.id)

        assert first == second == 5
        assert len(_ledger_rows(item.id)) == 2

    def test_item_without_entries_derives_zero(self, make_item):
        item = make_item(quantity=0)

        assert ledger.derive_current_quantity(item.id) == 0

    def test_derive_unknown_item(self, db_session):
        with pytest.raises(NotFoundError):
            ledger.derive_current_quantity(31337)

    def test_drift_is_reported_and_resynced(self, make_item):
        item = make_item(quantity=6)
        # Simulate a cache written outside the ledger
        db.session.query(InventoryItem).filter_by(id=item.id).update({"quantity": 9})
        db.session.commit()

        drift = ledger.find_quantity_drift()
        assert drift == [{
            "itemId": str(item.id),
            "sku": item.sku,
            "name": item.name,
            "quantity": 9,
            "ledgerQuantity": 6,
            "drift": 3,
        }]

        assert ledger.resync_cached_quantity(item.id) == 6
        assert _quantity(item.id) == 6
        assert ledger.find_quantity_drift() == []


class TestEndToEnd:

    def test_stock_story(self, make_item):
        """10 on hand, sell 4, receive 5, adjust out 11, then an oversell is refused."""
        item = make_item(quantity=10)

        ledger.record_transaction(item_id=item.id, kind="sale", quantity=4)
        ledger.record_transaction(item_id=item.id, kind="purchase", quantity=5)
        ledger.record_transaction(item_id=item.id, kind="adjustment_out", quantity=11)
        with pytest.raises(InsufficientStockError):
            ledger.record_transaction(item_id=item.id, kind="sale", quantity=1)

        assert _quantity(item.id) == 0
        assert ledger.derive_current_quantity(item.id) == 0
        assert [row.signed_quantity for row in _ledger_rows(item.id)] == [10, -4, 5, -11]
