import logging
from datetime import datetime

from errors import InvalidInput, SaleNotFound

logger = logging.getLogger(__name__)


class SaleLedger:
    """Append-only sales history, most recent sale first.

    No update or delete exists. A committed sale keeps its product ids
    even after those products are removed from the catalog.
    """

    def __init__(self, sales=None):
        self._sales = []
        self._ids = set()
        for sale in sorted(sales or (), key=lambda s: s.timestamp, reverse=True):
            self._check(sale)
            self._sales.append(sale)
            self._ids.add(sale.id)

    def __len__(self):
        return len(self._sales)

    def __iter__(self):
        return iter(list(self._sales))

    def __contains__(self, sale_id):
        return sale_id in self._ids

    def _check(self, sale):
        sale.validate()
        if sale.id in self._ids:
            raise InvalidInput(f"Duplicate sale id: {sale.id}", field='id')

    def append(self, sale):
        self._check(sale)
        # keep timestamp-descending order; a fresh sale normally lands at 0
        pos = 0
        while pos < len(self._sales) and self._sales[pos].timestamp > sale.timestamp:
            pos += 1
        self._sales.insert(pos, sale)
        self._ids.add(sale.id)
        logger.info("Recorded sale %s: %d item(s), total %d", sale.id, len(sale.items), sale.total)
        return sale

    def all(self):
        return list(self._sales)

    def get(self, sale_id):
        for sale in self._sales:
            if sale.id == sale_id:
                return sale
        raise SaleNotFound(sale_id)

    def query(self, predicate):
        return [s for s in self._sales if predicate(s)]

    def sales_on(self, day):
        return self.query(lambda s: s.timestamp.astimezone().date() == day)

    def daily_revenue(self, day=None):
        if day is None:
            day = datetime.now().astimezone().date()
        return sum(s.total for s in self.sales_on(day))

    def total_revenue(self):
        return sum(s.total for s in self._sales)

    def quantities_by_product(self, predicate=None):
        """Units sold per product id, over all sales or those matching ``predicate``."""
        totals = {}
        for sale in self._sales:
            if predicate is not None and not predicate(sale):
                continue
            for item in sale.items:
                totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
        return totals
