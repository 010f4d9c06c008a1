import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardStats:
    total_stock_value: int
    daily_sales: int
    low_stock_count: int
    estimated_profit: int
    profit_margin: float
    product_count: int
    total_revenue: int


def _today():
    return datetime.now().astimezone().date()


def dashboard_stats(catalog, ledger, today=None):
    """Headline figures for the dashboard.

    Sales keep no cost price, so profit uses each product's current cost;
    items whose product has been removed are left out of the profit figures.
    """
    today = today or _today()
    profit = 0
    costed_revenue = 0
    for sale in ledger:
        for item in sale.items:
            if item.product_id not in catalog:
                continue
            cost = catalog.get(item.product_id).cost_price
            profit += item.quantity * (item.price_at_sale - cost)
            costed_revenue += item.line_total
    margin = (profit / costed_revenue) if costed_revenue else 0.0

    return DashboardStats(
        total_stock_value=catalog.stock_value(),
        daily_sales=ledger.daily_revenue(today),
        low_stock_count=len(catalog.list_low_stock()),
        estimated_profit=profit,
        profit_margin=margin,
        product_count=len(catalog),
        total_revenue=ledger.total_revenue(),
    )


def daily_sales_series(ledger, days=7, today=None):
    """(dates, totals) for the last ``days`` days, oldest first, zero-filled."""
    today = today or _today()
    dates = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    totals = {d: 0 for d in dates}
    for sale in ledger:
        d = sale.timestamp.astimezone().date()
        if d in totals:
            totals[d] += sale.total
    return dates, [totals[d] for d in dates]


def top_items(ledger, names=None, limit=10):
    """[(label, quantity)] for the best-selling products, highest first."""
    names = names or {}
    qtys = ledger.quantities_by_product()
    ranked = sorted(qtys.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
    return [(names.get(pid, pid), qty) for pid, qty in ranked]


def render_dashboard(catalog, ledger, path, days=7, today=None):
    """Write a two-panel PNG (daily sales, top items) to ``path`` and return it."""
    names = {p.id: p.name for p in catalog}
    dates, totals = daily_sales_series(ledger, days=days, today=today)
    best = top_items(ledger, names)

    fig = Figure(figsize=(10, 4))
    FigureCanvasAgg(fig)

    ax1 = fig.add_subplot(1, 2, 1)
    labels = [d.strftime('%m-%d') for d in dates]
    if any(totals):
        ax1.plot(labels, totals, marker='o', color='#1f77b4')
        ax1.set_title('Daily Sales')
        ax1.set_xlabel('Date')
        ax1.set_ylabel('Revenue')
        ax1.tick_params(axis='x', rotation=45)
    else:
        ax1.text(0.5, 0.5, 'No sales in range', ha='center', va='center')
        ax1.axis('off')

    ax2 = fig.add_subplot(1, 2, 2)
    if best:
        item_labels = [b[0] for b in best]
        qtys = [b[1] for b in best]
        ax2.barh(list(reversed(item_labels)), list(reversed(qtys)), color='#2ca02c')
        ax2.set_title('Top Items (by quantity)')
        ax2.set_xlabel('Quantity Sold')
    else:
        ax2.text(0.5, 0.5, 'No items sold', ha='center', va='center')
        ax2.axis('off')

    fig.tight_layout()
    fig.savefig(path)
    logger.debug("Dashboard chart written to %s", path)
    return path
