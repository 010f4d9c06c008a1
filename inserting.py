import argparse

from database import DB_NAME, StateRepository
from models import Product, now

# Fixed starter catalog used when no state has been stored yet.
# (id, name, category, price, cost_price, stock, min_stock, unit)
SEED_PRODUCTS = [
    ("1", "Pain Baguette", "Boulangerie", 150, 100, 45, 20, "Unité"),
    ("2", "Lait Bonnet Rouge 400g", "Crèmerie", 650, 550, 12, 15, "Boîte"),
    ("3", "Riz Parfumé 5kg", "Céréales", 4500, 4000, 8, 10, "Sac"),
    ("4", "Sucre Granulé 1kg", "Épicerie", 800, 700, 25, 10, "Paquet"),
    ("5", "Huile Dinor 1.5L", "Épicerie", 1700, 1500, 3, 5, "Bouteille"),
]


def seed_products(clock=now):
    ts = clock()
    return [
        Product(id=pid, name=name, category=cat, price=price, cost_price=cost,
                stock=stock, min_stock=min_stock, unit=unit, last_updated=ts)
        for pid, name, cat, price, cost, stock, min_stock, unit in SEED_PRODUCTS
    ]


def seed(db_name=DB_NAME, keep_sales=True):
    """Write the starter catalog into ``db_name``.

    Existing sales history is preserved unless ``keep_sales`` is False;
    unreadable stored state raises StorageError and is left untouched.
    """
    repo = StateRepository(db_name=db_name)
    sales = []
    if keep_sales:
        stored = repo.load()
        if stored is not None:
            sales = stored[1]
    if not repo.save(seed_products(), sales):
        raise RuntimeError(f"Could not seed {db_name}: {repo.last_error}")
    print(f"Database seeded with {len(SEED_PRODUCTS)} products.")


def verify(db_name=DB_NAME):
    """Print every stored product with its stock status."""
    stored = StateRepository(db_name=db_name).load()
    if stored is None:
        print("No stored catalog; the seed catalog will be used on next start.")
        return
    products, sales = stored
    print(f"{'ID':<14} {'Name':<30} {'Stock':>6} {'Min':>5} {'Status'}")
    print('-' * 70)
    for p in products:
        status = 'LOW' if p.is_low_stock else 'OK'
        print(f"{p.id:<14} {p.name:<30} {p.stock:>6} {p.min_stock:>5} {status}")
    print(f"{len(sales)} sale(s) recorded.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument('--db', default=DB_NAME, help='Path to the sqlite database')
    parser.add_argument('--verify', action='store_true', help='List stored products and stock status')
    parser.add_argument('--reset-sales', action='store_true', help='Drop the sales history while seeding')
    args = parser.parse_args()

    if args.verify:
        verify(args.db)
    else:
        # Default to seeding when no flags provided
        seed(args.db, keep_sales=not args.reset_sales)
