import logging
from dataclasses import replace

from errors import NotFound, InvalidInput
from models import Product, as_amount, as_text, new_id, now

logger = logging.getLogger(__name__)

# draft key -> (attribute, coercion)
_FIELDS = {
    'name': ('name', lambda v: as_text(v, 'name', required=True)),
    'category': ('category', lambda v: as_text(v, 'category')),
    'price': ('price', lambda v: as_amount(v, 'price')),
    'cost_price': ('cost_price', lambda v: as_amount(v, 'cost_price')),
    'stock': ('stock', lambda v: as_amount(v, 'stock')),
    'min_stock': ('min_stock', lambda v: as_amount(v, 'min_stock')),
    'unit': ('unit', lambda v: as_text(v, 'unit')),
    'barcode': ('barcode', lambda v: as_text(v, 'barcode') or None),
}

_DEFAULTS = {
    'category': '',
    'cost_price': 0,
    'stock': 0,
    'min_stock': 0,
    'unit': '',
    'barcode': None,
}


def _clean_fields(fields):
    if 'id' in fields:
        raise InvalidInput("Product id cannot be set or changed", field='id')
    if 'last_updated' in fields:
        raise InvalidInput("last_updated is maintained by the catalog", field='last_updated')
    unknown = sorted(set(fields) - set(_FIELDS))
    if unknown:
        raise InvalidInput(f"Unknown product field(s): {', '.join(unknown)}", field=unknown[0])
    return {key: _FIELDS[key][1](value) for key, value in fields.items()}


class Catalog:
    """Ordered collection of products.

    Products are immutable values; every edit swaps in a new ``Product`` so
    readers holding an older one never see a half-applied change.
    """

    def __init__(self, products=None, clock=now):
        self._clock = clock
        self._products = []
        self._index = {}
        for p in products or ():
            if p.id in self._index:
                raise InvalidInput(f"Duplicate product id: {p.id}", field='id')
            self._index[p.id] = len(self._products)
            self._products.append(p)

    def __len__(self):
        return len(self._products)

    def __iter__(self):
        return iter(list(self._products))

    def __contains__(self, product_id):
        return product_id in self._index

    def all(self):
        return list(self._products)

    def get(self, product_id):
        try:
            return self._products[self._index[product_id]]
        except KeyError:
            raise NotFound(product_id)

    def add(self, draft):
        fields = dict(_DEFAULTS)
        fields.update(_clean_fields(dict(draft)))
        if 'name' not in draft:
            raise InvalidInput("name is required", field='name')
        if 'price' not in draft:
            raise InvalidInput("price is required", field='price')

        product_id = new_id('P')
        while product_id in self._index:
            product_id = new_id('P')

        product = Product(id=product_id, last_updated=self._clock(), **fields)
        self._index[product.id] = len(self._products)
        self._products.append(product)
        logger.info("Added product %s (%s)", product.id, product.name)
        return product

    def update(self, product_id, fields):
        current = self.get(product_id)
        changes = _clean_fields(dict(fields))
        updated = replace(current, last_updated=self._clock(), **changes)
        self._products[self._index[product_id]] = updated
        logger.info("Updated product %s: %s", product_id, ', '.join(sorted(changes)) or 'timestamp')
        return updated

    def remove(self, product_id):
        product = self.get(product_id)
        del self._products[self._index[product_id]]
        self._index = {p.id: i for i, p in enumerate(self._products)}
        logger.info("Removed product %s (%s)", product.id, product.name)
        return product

    def query(self, criteria=''):
        """Products matching ``criteria``, in catalog order.

        ``criteria`` is either a predicate taking a Product or a search text
        matched case-insensitively against name and category.
        """
        if callable(criteria):
            return [p for p in self._products if criteria(p)]
        text = (criteria or '').strip().lower()
        if not text:
            return list(self._products)
        return [p for p in self._products
                if text in p.name.lower() or text in p.category.lower()]

    def list_low_stock(self):
        return [p for p in self._products if p.stock <= p.min_stock]

    def categories(self):
        return sorted({p.category for p in self._products if p.category})

    def stock_value(self):
        return sum(p.stock * p.price for p in self._products)

    def apply_checkout(self, updated):
        """Swap in the stock-adjusted products of a committed sale in one step.

        Every product must already be in the catalog and already be valid;
        checkout builds them before anything is changed.
        """
        for product in updated:
            self._products[self._index[product.id]] = product
