#Error kinds raised by the catalog, cart, ledger and checkout.
#All of them are recoverable: the operation is rejected before anything changes.


class RetailError(Exception):
    """Base class for every error the core reports to its caller."""


class NotFound(RetailError):
    def __init__(self, product_id, kind='Product'):
        self.product_id = product_id
        super().__init__(f"{kind} not found: {product_id}")


class SaleNotFound(NotFound):
    def __init__(self, sale_id):
        self.sale_id = sale_id
        super().__init__(sale_id, kind='Sale')


class InsufficientStock(RetailError):
    def __init__(self, product_id, requested, available, name=None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.name = name
        label = f"{name} ({product_id})" if name else str(product_id)
        super().__init__(
            f"Not enough stock for {label}: requested {requested}, available {available}"
        )


class InvalidInput(RetailError):
    def __init__(self, message, field=None):
        self.field = field
        super().__init__(message)


class StorageError(RetailError):
    """Stored state exists but could not be read back."""
