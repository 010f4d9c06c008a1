import os
import sqlite3
import tempfile
import unittest
import sys
from datetime import datetime, timezone
from unittest import mock
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import controller
from controller import StoreController
from database import StateRepository
from errors import InsufficientStock, NotFound
from inserting import SEED_PRODUCTS

TS = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class ControllerTests(unittest.TestCase):
    def setUp(self):
        self.store = StoreController(clock=lambda: TS)
        self.events = []
        self.store.subscribe(lambda event, payload: self.events.append((event, payload)))
        self.a = self.store.add_product({'name': 'A', 'price': 150, 'stock': 10})
        self.events.clear()

    def test_catalog_mutations_notify_once(self):
        p = self.store.add_product({'name': 'B', 'price': 5})
        self.store.update_product(p.id, {'stock': 3})
        self.assertEqual([e for e, _ in self.events], [controller.PRODUCT_ADDED, controller.PRODUCT_UPDATED])
        self.assertEqual(self.events[1][1].stock, 3)

    def test_rejected_mutation_does_not_notify(self):
        with self.assertRaises(NotFound):
            self.store.update_product('missing', {'stock': 1})
        cart = self.store.new_cart()
        cart.add_line(self.a, 2)
        self.store.update_product(self.a.id, {'stock': 1})
        self.events.clear()
        with self.assertRaises(InsufficientStock):
            self.store.checkout(cart, 'cash')
        self.assertEqual(self.events, [])

    def test_listener_sees_complete_checkout(self):
        seen = {}

        def listener(event, payload):
            if event == controller.SALE_COMMITTED:
                seen['stock'] = self.store.product(self.a.id).stock
                seen['in_ledger'] = payload.id in self.store.ledger

        self.store.subscribe(listener)
        cart = self.store.new_cart()
        cart.add_line(self.a, 2)
        sale = self.store.checkout(cart, 'cash')

        self.assertEqual(seen, {'stock': 8, 'in_ledger': True})
        self.assertEqual([e for e, _ in self.events], [controller.SALE_COMMITTED])
        self.assertEqual(self.events[0][1], sale)
        self.assertEqual(self.store.daily_revenue(TS.astimezone().date()), 300)

    def test_not_ready_checkout_does_not_notify(self):
        self.assertIsNone(self.store.checkout(self.store.new_cart(), 'cash'))
        self.assertEqual(self.events, [])

    def test_failing_listener_does_not_break_core(self):
        def broken(event, payload):
            raise RuntimeError('boom')

        self.store.subscribe(broken)
        with self.assertLogs('controller', level='ERROR'):
            p = self.store.add_product({'name': 'C', 'price': 1})
        self.assertIn(p.id, self.store.catalog)
        self.assertEqual(self.events[-1][0], controller.PRODUCT_ADDED)

    def test_unsubscribe(self):
        unsubscribe = self.store.subscribe(lambda e, p: self.events.append(('extra', p)))
        unsubscribe()
        self.store.add_product({'name': 'D', 'price': 1})
        self.assertEqual([e for e, _ in self.events], [controller.PRODUCT_ADDED])

    def test_remove_requires_confirmation(self):
        self.assertFalse(self.store.remove_product(self.a.id, lambda p: False))
        self.assertIn(self.a.id, self.store.catalog)
        self.assertEqual(self.events, [])

        self.assertTrue(self.store.remove_product(self.a.id, lambda p: p.name == 'A'))
        self.assertNotIn(self.a.id, self.store.catalog)
        self.assertEqual(self.events[-1][0], controller.PRODUCT_REMOVED)

    def test_history_survives_product_removal(self):
        cart = self.store.new_cart()
        cart.add_line(self.a, 1)
        sale = self.store.checkout(cart, 'mobile')
        self.store.remove_product(self.a.id, lambda p: True)
        self.assertEqual(self.store.sales_history(), [sale])
        self.assertEqual(self.store.describe_item(self.a.id), self.a.id)


class OpenTests(unittest.TestCase):
    def setUp(self):
        tf = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        tf.close()
        self.db_path = tf.name

    def tearDown(self):
        try:
            os.unlink(self.db_path)
        except OSError:
            pass

    def test_open_falls_back_to_seed_catalog(self):
        store = StoreController.open(StateRepository(db_name=self.db_path))
        self.assertEqual(len(store.products()), len(SEED_PRODUCTS))
        self.assertEqual(store.sales_history(), [])

    def test_mutations_are_persisted_and_reloaded(self):
        store = StoreController.open(StateRepository(db_name=self.db_path))
        cart = store.new_cart()
        cart.add_line(store.product('1'), 3)
        sale = store.checkout(cart, 'cash')

        reopened = StoreController.open(StateRepository(db_name=self.db_path))
        self.assertEqual(reopened.product('1').stock, 42)
        self.assertEqual(reopened.sales_history(), [sale])
        self.assertEqual(reopened.products(), store.products())

    def test_unreadable_state_is_never_overwritten(self):
        store = StoreController.open(StateRepository(db_name=self.db_path))
        cart = store.new_cart()
        cart.add_line(store.product('1'), 2)
        sale = store.checkout(cart, 'cash')
        store.update_product('1', {'name': 'Pain de mie'})

        repo = StateRepository(db_name=self.db_path)
        locked = sqlite3.OperationalError('database is locked')
        with mock.patch.object(repo.manager, 'get', side_effect=locked):
            with self.assertLogs('controller', level='WARNING'):
                degraded = StoreController.open(repo)
        self.assertIsNone(degraded.repository)
        self.assertEqual(degraded.sales_history(), [])
        degraded.add_product({'name': 'Z', 'price': 10})

        reopened = StoreController.open(StateRepository(db_name=self.db_path))
        self.assertEqual(reopened.sales_history(), [sale])
        self.assertEqual(reopened.product('1').name, 'Pain de mie')
        self.assertEqual(len(reopened.products()), len(SEED_PRODUCTS))

    def test_save_failure_keeps_memory_state(self):
        repo = StateRepository(db_name=self.db_path)
        store = StoreController.open(repo)
        with mock.patch.object(repo.manager, 'put_many', side_effect=OSError('disk full')):
            with self.assertLogs('database', level='WARNING'):
                p = store.add_product({'name': 'Z', 'price': 10})
        self.assertIn(p.id, store.catalog)
        self.assertIsInstance(repo.last_error, OSError)


if __name__ == '__main__':
    unittest.main()
