# Overview: Concurrency tests for the stock ledger against a file-backed SQLite database.

"""
Concurrent writers on the same item must be serialized: neither update may
be lost and the quantity may never go negative.

Run with:
    pytest tests/test_concurrency.py
"""
import os
import tempfile
import threading
import unittest
from decimal import Decimal

from gympos import create_app
from gympos.extensions import db
from gympos.models import InventoryItem, InventoryTransaction
from gympos.services import sales_service, stock_ledger_service
from gympos.services.inventory_service import create_item
from gympos.services.stock_ledger_service import InsufficientStockError


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "LEDGER_RETRY_ATTEMPTS": 5,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            item = create_item(
                name="Concurrent Protein",
                sku="CONCUR-1",
                price=Decimal("10.00"),
                cost=Decimal("4.00"),
                quantity=10,
            )
            self.item_id = item.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_concurrently(self, *calls):
        barrier = threading.Barrier(len(calls))
        results = []
        errors = []
        lock = threading.Lock()

        def worker(call):
            with self.app.app_context():
                barrier.wait()
                try:
                    outcome = call()
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                else:
                    with lock:
                        results.append(outcome)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def _state(self):
        with self.app.app_context():
            item = db.session.get(InventoryItem, self.item_id)
            entries = db.session.query(InventoryTransaction).filter_by(item_id=self.item_id).count()
            derived = stock_ledger_service.derive_current_quantity(self.item_id)
            return item.quantity, derived, entries

    def _deduct(self, quantity):
        return lambda: stock_ledger_service.record_transaction(
            item_id=self.item_id, kind="adjustment_out", quantity=quantity,
        ).id

    def test_no_lost_update(self):
        results, errors = self._run_concurrently(self._deduct(6), self._deduct(3))

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 2)
        self.assertEqual(self._state(), (1, 1, 3))

    def test_only_one_oversell_wins(self):
        results, errors = self._run_concurrently(self._deduct(6), self._deduct(6))

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], InsufficientStockError)
        self.assertEqual(self._state(), (4, 4, 2))

    def test_concurrent_sales_never_go_negative(self):
        def sell():
            return sales_service.record_sale(
                line_items=[{"id": self.item_id, "quantity": 4, "price": 10}],
                payment_method="cash",
            ).id

        results, errors = self._run_concurrently(sell, sell, sell)

        self.assertEqual(len(results), 2)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], InsufficientStockError)
        quantity, derived, _ = self._state()
        self.assertEqual((quantity, derived), (2, 2))


if __name__ == "__main__":
    unittest.main()
