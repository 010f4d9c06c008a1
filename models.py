import uuid
from dataclasses import dataclass
from datetime import datetime

from errors import InvalidInput

# Money is stored as an integer count of the smallest currency unit.

def now():
    return datetime.now().astimezone().replace(microsecond=0)


def new_id(prefix):
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


def as_amount(value, field_name, minimum=0):
    """Coerce ``value`` to a non-negative integer amount or raise InvalidInput.

    Integral floats (``150.0``) are accepted since form and JSON input often
    carries them; booleans, strings and fractional values are rejected.
    """
    if isinstance(value, bool):
        raise InvalidInput(f"{field_name} must be an integer", field=field_name)
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidInput(f"{field_name} must be a whole number", field=field_name)
        value = int(value)
    if not isinstance(value, int):
        raise InvalidInput(f"{field_name} must be an integer", field=field_name)
    if value < minimum:
        raise InvalidInput(f"{field_name} must be at least {minimum}", field=field_name)
    return value


def as_quantity(value, field_name='quantity'):
    return as_amount(value, field_name, minimum=1)


def as_text(value, field_name, required=False):
    if value is None:
        value = ''
    if not isinstance(value, str):
        raise InvalidInput(f"{field_name} must be text", field=field_name)
    value = value.strip()
    if required and not value:
        raise InvalidInput(f"{field_name} is required", field=field_name)
    return value


def _parse_ts(value, field_name):
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{field_name} is not an ISO timestamp", field=field_name)


#product model
@dataclass(frozen=True)
class Product:
    id: str
    name: str
    category: str
    price: int
    cost_price: int
    stock: int
    min_stock: int
    unit: str
    last_updated: datetime
    barcode: str = None

    @property
    def is_low_stock(self):
        return self.stock <= self.min_stock

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'price': self.price,
            'costPrice': self.cost_price,
            'stock': self.stock,
            'minStock': self.min_stock,
            'unit': self.unit,
            'barcode': self.barcode,
            'lastUpdated': self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(
                id=as_text(data['id'], 'id', required=True),
                name=as_text(data['name'], 'name', required=True),
                category=as_text(data.get('category'), 'category'),
                price=as_amount(data['price'], 'price'),
                cost_price=as_amount(data.get('costPrice', 0), 'costPrice'),
                stock=as_amount(data.get('stock', 0), 'stock'),
                min_stock=as_amount(data.get('minStock', 0), 'minStock'),
                unit=as_text(data.get('unit'), 'unit'),
                barcode=as_text(data.get('barcode'), 'barcode') or None,
                last_updated=_parse_ts(data['lastUpdated'], 'lastUpdated'),
            )
        except KeyError as e:
            raise InvalidInput(f"Product record is missing {e.args[0]}", field=e.args[0])


#cart line model (never persisted)
@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int


#sale item model: price frozen at commit time
@dataclass(frozen=True)
class SaleItem:
    product_id: str
    quantity: int
    price_at_sale: int

    @property
    def line_total(self):
        return self.quantity * self.price_at_sale

    def to_dict(self):
        return {
            'productId': self.product_id,
            'quantity': self.quantity,
            'priceAtSale': self.price_at_sale,
        }

    @classmethod
    def from_dict(cls, data):
        try:
            return cls(
                product_id=as_text(data['productId'], 'productId', required=True),
                quantity=as_quantity(data['quantity']),
                price_at_sale=as_amount(data['priceAtSale'], 'priceAtSale'),
            )
        except KeyError as e:
            raise InvalidInput(f"Sale item is missing {e.args[0]}", field=e.args[0])


#sale model
@dataclass(frozen=True)
class Sale:
    id: str
    items: tuple
    total: int
    timestamp: datetime
    payment_method: str = None

    @staticmethod
    def compute_total(items):
        return sum(item.line_total for item in items)

    def validate(self):
        """Raise InvalidInput unless the sale has items and a consistent total."""
        if not self.items:
            raise InvalidInput("A sale needs at least one item", field='items')
        expected = Sale.compute_total(self.items)
        if self.total != expected:
            raise InvalidInput(
                f"Sale total {self.total} does not match its items ({expected})", field='total'
            )
        return self

    @property
    def quantity(self):
        return sum(item.quantity for item in self.items)

    def to_dict(self):
        return {
            'id': self.id,
            'items': [item.to_dict() for item in self.items],
            'total': self.total,
            'timestamp': self.timestamp.isoformat(),
            'paymentMethod': self.payment_method,
        }

    @classmethod
    def from_dict(cls, data):
        try:
            items = data['items']
            if not isinstance(items, list):
                raise InvalidInput("Sale items must be a list", field='items')
            sale = cls(
                id=as_text(data['id'], 'id', required=True),
                items=tuple(SaleItem.from_dict(it) for it in items),
                total=as_amount(data['total'], 'total'),
                timestamp=_parse_ts(data['timestamp'], 'timestamp'),
                payment_method=data.get('paymentMethod'),
            )
        except KeyError as e:
            raise InvalidInput(f"Sale record is missing {e.args[0]}", field=e.args[0])
        return sale.validate()
