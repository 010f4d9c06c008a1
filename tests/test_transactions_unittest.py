import os
import unittest
import sys
from datetime import date, datetime, timedelta, timezone
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from errors import InvalidInput, NotFound
from models import Sale, SaleItem
from transactions import SaleLedger


def make_sale(sale_id, day, hour=12, items=None):
    items = items or (SaleItem('A', 1, 100),)
    return Sale(id=sale_id, items=tuple(items), total=Sale.compute_total(items),
                timestamp=datetime(2026, 10, day, hour, 0, 0).astimezone(),
                payment_method='cash')


class LedgerTests(unittest.TestCase):
    def test_most_recent_first(self):
        ledger = SaleLedger()
        ledger.append(make_sale('s1', 17))
        ledger.append(make_sale('s2', 18))
        ledger.append(make_sale('s3', 19))
        self.assertEqual([s.id for s in ledger.all()], ['s3', 's2', 's1'])

    def test_loaded_history_is_ordered_and_late_append_slots_in(self):
        ledger = SaleLedger([make_sale('old', 10), make_sale('new', 15)])
        ledger.append(make_sale('mid', 12))
        self.assertEqual([s.id for s in ledger.all()], ['new', 'mid', 'old'])

    def test_rejects_inconsistent_or_duplicate_sales(self):
        ledger = SaleLedger()
        ledger.append(make_sale('s1', 17))
        with self.assertRaises(InvalidInput):
            ledger.append(make_sale('s1', 18))
        bad = Sale(id='s2', items=(SaleItem('A', 2, 100),), total=150,
                   timestamp=datetime(2026, 10, 18, tzinfo=timezone.utc))
        with self.assertRaises(InvalidInput):
            ledger.append(bad)
        self.assertEqual(len(ledger), 1)

    def test_no_mutation_api(self):
        ledger = SaleLedger()
        for name in ('update', 'remove', 'delete'):
            self.assertFalse(hasattr(ledger, name))
        ledger.append(make_sale('s1', 17))
        listing = ledger.all()
        listing.clear()
        self.assertEqual(len(ledger), 1)

    def test_query_and_daily_revenue(self):
        ledger = SaleLedger()
        ledger.append(make_sale('a', 18, items=(SaleItem('A', 2, 150),)))
        ledger.append(make_sale('b', 19, hour=9, items=(SaleItem('A', 1, 150), SaleItem('B', 1, 650))))
        ledger.append(make_sale('c', 19, hour=15, items=(SaleItem('B', 3, 650),)))
        self.assertEqual([s.id for s in ledger.sales_on(date(2026, 10, 19))], ['c', 'b'])
        self.assertEqual(ledger.daily_revenue(date(2026, 10, 19)), 800 + 1950)
        self.assertEqual(ledger.daily_revenue(date(2026, 10, 1)), 0)
        self.assertEqual(ledger.total_revenue(), 300 + 800 + 1950)
        self.assertEqual(ledger.quantities_by_product(), {'A': 3, 'B': 4})
        self.assertEqual([s.id for s in ledger.query(lambda s: s.total > 1000)], ['c'])

    def test_get(self):
        ledger = SaleLedger([make_sale('x', 3)])
        self.assertEqual(ledger.get('x').id, 'x')
        self.assertIn('x', ledger)
        with self.assertRaises(NotFound) as ctx:
            ledger.get('y')
        self.assertEqual(ctx.exception.sale_id, 'y')
        self.assertIn('Sale not found', str(ctx.exception))

    def test_day_is_taken_in_local_time(self):
        local = datetime(2026, 10, 19, 0, 30).astimezone()
        shifted = local.astimezone(timezone(local.utcoffset() - timedelta(hours=3)))
        self.assertEqual(shifted.date(), date(2026, 10, 18))
        ledger = SaleLedger([Sale(id='late', items=(SaleItem('A', 1, 100),), total=100,
                                  timestamp=shifted, payment_method='cash')])
        self.assertEqual(ledger.daily_revenue(date(2026, 10, 19)), 100)
        self.assertEqual(ledger.daily_revenue(date(2026, 10, 18)), 0)


if __name__ == '__main__':
    unittest.main()
