import logging
from dataclasses import replace

from errors import InsufficientStock, InvalidInput
from models import CartLine, Sale, SaleItem, as_quantity, new_id, now

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ('cash', 'mobile')


#Cart service
class CartService:
    """One checkout session's pending selection.

    Lines are (product id, quantity); prices are read live from the catalog,
    so ``total()`` is a quote until checkout freezes it.
    """

    def __init__(self, catalog):
        self.catalog = catalog
        self._lines = {}

    def __len__(self):
        return len(self._lines)

    @property
    def is_empty(self):
        return not self._lines

    @property
    def lines(self):
        return tuple(CartLine(pid, qty) for pid, qty in self._lines.items())

    def quantity_of(self, product_id):
        return self._lines.get(product_id, 0)

    def add_line(self, product, qty=1):
        qty = as_quantity(qty)
        product_id = getattr(product, 'id', product)
        live = self.catalog.get(product_id)

        new_qty = self._lines.get(product_id, 0) + qty
        if new_qty > live.stock:
            raise InsufficientStock(product_id, new_qty, live.stock, name=live.name)

        self._lines[product_id] = new_qty
        return CartLine(product_id, new_qty)

    def remove_line(self, product_id):
        self._lines.pop(product_id, None)

    def clear(self):
        self._lines = {}

    def total(self):
        total = 0
        for product_id, qty in self._lines.items():
            if product_id not in self.catalog:
                continue
            total += self.catalog.get(product_id).price * qty
        return total


#Check-out service
class CheckoutService:

    def __init__(self, catalog, ledger, clock=now):
        self.catalog = catalog
        self.ledger = ledger
        self._clock = clock

    @staticmethod
    def is_ready(cart, payment_method):
        return not cart.is_empty and bool(payment_method)

    def checkout(self, cart, payment_method):
        """Commit ``cart`` as a sale and deduct its quantities from stock.

        Returns the committed Sale, or None when the cart is empty or no
        payment method was chosen. Raises InsufficientStock or NotFound
        without touching the catalog, the ledger or the cart when any line
        no longer fits the current stock.
        """
        if not self.is_ready(cart, payment_method):
            return None
        if payment_method not in PAYMENT_METHODS:
            raise InvalidInput(f"Unknown payment method: {payment_method}", field='payment_method')

        # Validate every line against current stock before changing anything
        lines = cart.lines
        current = []
        for line in lines:
            product = self.catalog.get(line.product_id)
            if line.quantity > product.stock:
                raise InsufficientStock(product.id, line.quantity, product.stock, name=product.name)
            current.append(product)

        ts = self._clock()
        items = tuple(SaleItem(p.id, line.quantity, p.price) for p, line in zip(current, lines))
        sale_id = new_id(f"S-{ts.strftime('%Y%m%d')}")
        while sale_id in self.ledger:
            sale_id = new_id(f"S-{ts.strftime('%Y%m%d')}")
        sale = Sale(
            id=sale_id,
            items=items,
            total=Sale.compute_total(items),
            timestamp=ts,
            payment_method=payment_method,
        ).validate()

        updated = [replace(p, stock=max(0, p.stock - line.quantity), last_updated=ts)
                   for p, line in zip(current, lines)]

        self.ledger.append(sale)
        self.catalog.apply_checkout(updated)
        cart.clear()

        logger.info("Checkout %s via %s: total %d", sale.id, payment_method, sale.total)
        return sale
