import logging

from database import StateRepository
from errors import NotFound, StorageError
from inserting import seed_products
from models import now
from products import Catalog
from services import CartService, CheckoutService
from transactions import SaleLedger

logger = logging.getLogger(__name__)

PRODUCT_ADDED = 'product_added'
PRODUCT_UPDATED = 'product_updated'
PRODUCT_REMOVED = 'product_removed'
SALE_COMMITTED = 'sale_committed'


class StoreController:
    """Owns the catalog and the sales history for one running store.

    Views read through the query methods and change state only through the
    mutating methods below. Each successful mutation is complete before
    listeners hear about it, and listeners are told exactly once.
    """

    def __init__(self, products=None, sales=None, clock=now):
        self._clock = clock
        self.catalog = Catalog(products, clock=clock)
        self.ledger = SaleLedger(sales)
        self.checkout_service = CheckoutService(self.catalog, self.ledger, clock=clock)
        self._listeners = []
        self.repository = None

    @classmethod
    def open(cls, repository=None, clock=now):
        """Load stored state, or start from the seed catalog when nothing is stored.

        The repository is subscribed so every later mutation is written back.
        When stored state exists but cannot be read, the store runs from the
        seed catalog and the repository is left detached, so nothing stored
        is overwritten.
        """
        repository = repository or StateRepository()
        try:
            stored = repository.load()
        except StorageError as e:
            logger.warning("%s; running from the seed catalog without saving", e)
            return cls(seed_products(clock), [], clock=clock)
        if stored is None:
            logger.info("No stored catalog found; starting from the seed catalog")
            controller = cls(seed_products(clock), [], clock=clock)
        else:
            products, sales = stored
            controller = cls(products, sales, clock=clock)
        controller.attach_repository(repository)
        return controller

    # --- LISTENERS ---
    def subscribe(self, listener):
        """Register ``listener(event, payload)``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def attach_repository(self, repository):
        self.repository = repository

        def _persist(event, payload):
            repository.save(self.catalog.all(), self.ledger.all())
        return self.subscribe(_persist)

    def _notify(self, event, payload):
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, event)

    # --- CATALOG ---
    def product(self, product_id):
        return self.catalog.get(product_id)

    def products(self):
        return self.catalog.all()

    def search(self, text=''):
        return self.catalog.query(text)

    def low_stock(self):
        return self.catalog.list_low_stock()

    def add_product(self, draft):
        product = self.catalog.add(draft)
        self._notify(PRODUCT_ADDED, product)
        return product

    def update_product(self, product_id, fields):
        product = self.catalog.update(product_id, fields)
        self._notify(PRODUCT_UPDATED, product)
        return product

    def remove_product(self, product_id, confirm):
        """Delete a product once ``confirm(product)`` agrees.

        Returns True when the product was removed, False when the caller
        declined. Past sales keep their reference to the removed id.
        """
        product = self.catalog.get(product_id)
        if not confirm(product):
            return False
        self.catalog.remove(product_id)
        self._notify(PRODUCT_REMOVED, product)
        return True

    # --- POS ---
    def new_cart(self):
        return CartService(self.catalog)

    def checkout(self, cart, payment_method):
        sale = self.checkout_service.checkout(cart, payment_method)
        if sale is not None:
            self._notify(SALE_COMMITTED, sale)
        return sale

    # --- HISTORY ---
    def sales_history(self, predicate=None):
        if predicate is None:
            return self.ledger.all()
        return self.ledger.query(predicate)

    def daily_revenue(self, day=None):
        return self.ledger.daily_revenue(day)

    def product_names(self):
        """Id -> name for products still in the catalog."""
        return {p.id: p.name for p in self.catalog}

    def describe_item(self, product_id):
        try:
            return self.catalog.get(product_id).name
        except NotFound:
            return product_id
