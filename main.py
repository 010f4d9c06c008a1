import argparse
import logging
import sys

from assistant import AdvisoryAssistant
from controller import StoreController
from database import DB_NAME, StateRepository
from datavisualization import dashboard_stats, render_dashboard
from errors import RetailError, InvalidInput
from model import ReceiptGenerator, format_amount
from services import PAYMENT_METHODS


def _parse_line(text):
    """'ID:QTY' (or just 'ID' for one unit) -> (id, qty)."""
    pid, sep, qty = text.rpartition(':')
    if not sep:
        return text, 1
    try:
        return pid, int(qty)
    except ValueError:
        raise InvalidInput(f"Bad quantity in {text!r}; expected ID:QTY", field='quantity')


def print_products(products):
    print(f"{'ID':<14} {'Name':<30} {'Category':<14} {'Price':>10} {'Stock':>6} {'Min':>5}")
    print('-' * 84)
    for p in products:
        flag = ' !' if p.is_low_stock else ''
        print(f"{p.id:<14} {p.name:<30} {p.category:<14} {p.price:>10,} {p.stock:>6} {p.min_stock:>5}{flag}")


def cmd_products(store, args):
    print_products(store.search(args.search or ''))


def cmd_low_stock(store, args):
    low = store.low_stock()
    if not low:
        print("No product is at or below its minimum stock.")
        return
    print_products(low)


def cmd_add_product(store, args):
    draft = {
        'name': args.name,
        'category': args.category,
        'price': args.price,
        'cost_price': args.cost,
        'stock': args.stock,
        'min_stock': args.min_stock,
        'unit': args.unit,
    }
    product = store.add_product(draft)
    print(f"Added {product.id}: {product.name}")


def cmd_sell(store, args):
    cart = store.new_cart()
    for text in args.lines:
        pid, qty = _parse_line(text)
        cart.add_line(store.product(pid), qty)
    print(f"Cart total: {format_amount(cart.total())}")
    names = store.product_names()
    sale = store.checkout(cart, args.payment)
    if sale is None:
        print("Nothing to check out.")
        return
    print(f"Sale {sale.id} committed: {format_amount(sale.total)}")
    if args.receipt:
        png = ReceiptGenerator.try_generate(sale, names=names)
        if png:
            print(f"Receipt: {png}")


def cmd_history(store, args):
    sales = store.sales_history()
    if not sales:
        print("No sales recorded.")
        return
    for s in sales[:args.limit]:
        count = len(s.items)
        print(f"{s.id:<24} {count:>3} item(s) {format_amount(s.total):>18}  {s.timestamp:%Y-%m-%d %H:%M}")


def cmd_stats(store, args):
    stats = dashboard_stats(store.catalog, store.ledger)
    print(f"Stock value:      {format_amount(stats.total_stock_value)}")
    print(f"Today's sales:    {format_amount(stats.daily_sales)}")
    print(f"Total revenue:    {format_amount(stats.total_revenue)}")
    print(f"Low stock items:  {stats.low_stock_count} / {stats.product_count}")
    print(f"Estimated profit: {format_amount(stats.estimated_profit)} ({stats.profit_margin:.1%})")


def cmd_chart(store, args):
    print(render_dashboard(store.catalog, store.ledger, args.out, days=args.days))


def cmd_ask(store, args):
    print(AdvisoryAssistant().ask(store.products(), args.question))


def cmd_suggest(store, args):
    suggestions = AdvisoryAssistant().suggest_restock(store.products(), store.sales_history())
    if not suggestions:
        print("No suggestions available.")
        return
    for s in suggestions:
        print(f"- {s.product_name}: {s.recommended_quantity:g} ({s.reason})")


def build_parser():
    parser = argparse.ArgumentParser(description="Inventory and point-of-sale tool")
    parser.add_argument('--db', default=DB_NAME, help='Path to the sqlite database')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('products', help='List or search products')
    p.add_argument('--search', help='Case-insensitive match on name or category')
    p.set_defaults(func=cmd_products)

    p = sub.add_parser('low-stock', help='Products at or below their minimum stock')
    p.set_defaults(func=cmd_low_stock)

    p = sub.add_parser('add-product', help='Create a product')
    p.add_argument('name')
    p.add_argument('--price', type=int, required=True)
    p.add_argument('--cost', type=int, default=0)
    p.add_argument('--stock', type=int, default=0)
    p.add_argument('--min-stock', type=int, default=0)
    p.add_argument('--category', default='')
    p.add_argument('--unit', default='')
    p.set_defaults(func=cmd_add_product)

    p = sub.add_parser('sell', help='Check out a cart given as ID:QTY pairs')
    p.add_argument('lines', nargs='+', metavar='ID:QTY')
    p.add_argument('--payment', choices=PAYMENT_METHODS, required=True)
    p.add_argument('--receipt', action='store_true', help='Render a PNG receipt')
    p.set_defaults(func=cmd_sell)

    p = sub.add_parser('history', help='Sales, most recent first')
    p.add_argument('--limit', type=int, default=20)
    p.set_defaults(func=cmd_history)

    p = sub.add_parser('stats', help='Dashboard figures')
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser('chart', help='Write the dashboard chart PNG')
    p.add_argument('out')
    p.add_argument('--days', type=int, default=7)
    p.set_defaults(func=cmd_chart)

    p = sub.add_parser('ask', help='Ask the assistant about the inventory')
    p.add_argument('question')
    p.set_defaults(func=cmd_ask)

    p = sub.add_parser('suggest', help='Restocking suggestions from the assistant')
    p.set_defaults(func=cmd_suggest)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = StoreController.open(StateRepository(db_name=args.db))
    try:
        args.func(store, args)
    except RetailError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
