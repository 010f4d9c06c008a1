import json
import logging
import os
import sqlite3
import time
from datetime import datetime

from errors import InvalidInput, StorageError
from models import Product, Sale

logger = logging.getLogger(__name__)

# Use a DB file located next to this module so the application uses a consistent
# database file regardless of the current working directory when launched.
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DB_NAME = os.environ.get('RETAIL_DB_PATH') or os.path.join(BASE_DIR, "retail.db")

PRODUCTS_KEY = 'products'
SALES_KEY = 'sales'


def commit_with_retry(conn, retries=6, initial_delay=0.5):
    """Attempt to commit, retrying on `sqlite3.OperationalError: database is locked`.

    Retries use exponential backoff (initial_delay * 2**attempt).
    """
    last_exc = None
    for attempt in range(retries):
        try:
            conn.commit()
            return
        except sqlite3.OperationalError as e:
            last_exc = e
            msg = str(e).lower()
            if 'locked' in msg or 'busy' in msg:
                delay = initial_delay * (2 ** attempt)
                time.sleep(delay)
                continue
            raise
    # If we exhausted retries, re-raise last exception
    raise last_exc


class DatabaseManager:
    """Key-value store on a single sqlite table; values are JSON documents."""

    def __init__(self, db_name=DB_NAME):
        self.db_name = db_name
        self.check_schema()

    def connect(self):
        # Wait for locks rather than failing immediately.
        conn = sqlite3.connect(self.db_name, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def check_schema(self):
        conn = self.connect()
        try:
            c = conn.cursor()
            c.execute('PRAGMA busy_timeout = 30000')
            c.execute('''CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )''')
            conn.commit()
        finally:
            conn.close()

    def get(self, key, default=None):
        conn = self.connect()
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return default
        return json.loads(row['value'])

    def put(self, key, value):
        self.put_many({key: value})

    def put_many(self, values):
        """Write several keys in one transaction: either all land or none do."""
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        conn = self.connect()
        try:
            for key, value in values.items():
                conn.execute(
                    "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                    (key, json.dumps(value, ensure_ascii=False), ts),
                )
            commit_with_retry(conn)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def keys(self):
        conn = self.connect()
        try:
            return [r['key'] for r in conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()]
        finally:
            conn.close()


def dump_state(products, sales):
    return {
        PRODUCTS_KEY: [p.to_dict() for p in products],
        SALES_KEY: [s.to_dict() for s in sales],
    }


def load_state(data):
    products = [Product.from_dict(d) for d in data.get(PRODUCTS_KEY) or []]
    sales = [Sale.from_dict(d) for d in data.get(SALES_KEY) or []]
    for kind, records in (('product', products), ('sale', sales)):
        ids = [r.id for r in records]
        if len(set(ids)) != len(ids):
            raise InvalidInput(f"Stored {kind} ids are not unique", field='id')
    return products, sales


class StateRepository:
    """Round-trips the catalog and sales history through a DatabaseManager.

    A failed load raises StorageError so the caller can tell unreadable
    state from a first start. A failed save is logged and reported as False;
    the in-memory state stays the latest copy.
    """

    def __init__(self, db_name=DB_NAME, manager=None):
        self.db_name = db_name
        self._manager = manager
        self.last_error = None

    @property
    def manager(self):
        if self._manager is None:
            self._manager = DatabaseManager(db_name=self.db_name)
        return self._manager

    def load(self):
        """Return ``(products, sales)``, or None when no catalog was ever stored.

        Raises StorageError when stored state exists but cannot be read.
        """
        try:
            raw_products = self.manager.get(PRODUCTS_KEY)
            if raw_products is None:
                return None
            raw_sales = self.manager.get(SALES_KEY, [])
            return load_state({PRODUCTS_KEY: raw_products, SALES_KEY: raw_sales})
        except Exception as e:
            self.last_error = e
            logger.exception("Could not load stored state from %s", self.db_name)
            raise StorageError(f"Could not load stored state from {self.db_name}: {e}") from e

    def save(self, products, sales):
        try:
            self.manager.put_many(dump_state(products, sales))
        except Exception as e:
            self.last_error = e
            logger.warning("Could not save state to %s: %s", self.db_name, e)
            return False
        self.last_error = None
        return True
