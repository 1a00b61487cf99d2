# Overview: Threaded concurrency tests for order numbering and stock restocks on a file-backed database.

"""
Concurrency tests.

Each worker runs in its own app context (own session, own connection)
against a temporary SQLite file, so writers really contend for the
database lock. Workers wait on a barrier so they start together.
"""
import os
import tempfile
import threading
import unittest
from decimal import Decimal

from catering import create_app
from catering.extensions import db
from catering.models import Order, OrderNumberSequence, OrderStatusEvent, StockInventory
from catering.services import (
    bulk_order_service,
    order_number_service,
    order_service,
    stock_inventory_service,
)


class FileDatabaseTestCase(unittest.TestCase):
    WORKERS = 6
    EXTRA_CONFIG = {}

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        config = {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
        }
        config.update(self.EXTRA_CONFIG)
        self.app = create_app(config)

        with self.app.app_context():
            db.drop_all()
            db.create_all()
            self.seed()

    def seed(self):
        pass

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run(self, target, count):
        results = []
        errors = []
        lock = threading.Lock()
        barrier = threading.Barrier(count)

        def worker():
            with self.app.app_context():
                try:
                    barrier.wait()
                    value = target()
                    with lock:
                        results.append(value)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results, errors


class ConcurrencyTests(FileDatabaseTestCase):
    EXTRA_CONFIG = {"DB_RETRY_ATTEMPTS": 10}

    def seed(self):
        # Counter row exists before the workers start
        order = order_service.create_order(order_type="dine_in")
        self.first_number = order.order_number

        item = stock_inventory_service.create_stock_item(
            name="Concurrent Ice", unit="bag", quantity=10, unit_cost="2.00"
        )
        self.item_id = item.id

    def test_order_numbers_unique_under_concurrency(self):
        def create():
            return order_service.create_order(order_type="delivery").order_number

        created, errors = self._run(create, self.WORKERS)

        self.assertFalse(errors)
        self.assertEqual(len(created), self.WORKERS)
        self.assertEqual(len(created), len(set(created)))
        self.assertNotIn(self.first_number, created)
        for number in created:
            self.assertTrue(order_number_service.is_valid_order_number(number))

        with self.app.app_context():
            numbers = [o.order_number for o in db.session.query(Order).all()]
            self.assertEqual(len(numbers), self.WORKERS + 1)
            self.assertEqual(len(numbers), len(set(numbers)))
            suffixes = sorted(order_number_service.parse_suffix(n, "KA") for n in numbers)
            self.assertEqual(suffixes, list(range(1, self.WORKERS + 2)))

    def test_concurrent_restocks_do_not_lose_updates(self):
        def restock():
            return stock_inventory_service.restock_stock_item(self.item_id, quantity=1, unit_cost="4.00").id

        _, errors = self._run(restock, self.WORKERS)
        self.assertFalse(errors)

        with self.app.app_context():
            item = db.session.get(StockInventory, self.item_id)
            self.assertEqual(item.quantity, Decimal("10.00") + self.WORKERS)
            self.assertEqual(item.total_value, (item.quantity * item.unit_cost).quantize(Decimal("0.01")))

    def test_concurrent_transitions_record_one_event_each(self):
        with self.app.app_context():
            order_id = db.session.query(Order.id).filter_by(order_number=self.first_number).scalar()

        def move():
            return bulk_order_service.apply_bulk([order_id], {"status": "quote_sent"})

        results, errors = self._run(move, self.WORKERS)
        self.assertFalse(errors)

        changed = sum(len(r.changes) for r in results)
        self.assertEqual(changed, 1)
        with self.app.app_context():
            self.assertEqual(db.session.query(OrderStatusEvent).count(), 1)


class ColdStartNumberingTests(FileDatabaseTestCase):
    """No orders and no counter row yet; default DB_RETRY_ATTEMPTS."""
    WORKERS = 8

    def test_first_numbers_are_allocated_once(self):
        with self.app.app_context():
            self.assertEqual(db.session.query(OrderNumberSequence).count(), 0)

        def create():
            return order_service.create_order(order_type="pickup").order_number

        created, errors = self._run(create, self.WORKERS)

        self.assertFalse(errors)
        self.assertEqual(
            sorted(created),
            [order_number_service.format_order_number("KA", n) for n in range(1, self.WORKERS + 1)],
        )
        with self.app.app_context():
            seq = db.session.query(OrderNumberSequence).filter_by(prefix="KA").one()
            self.assertEqual(seq.next_number, self.WORKERS + 1)


if __name__ == "__main__":
    unittest.main()
