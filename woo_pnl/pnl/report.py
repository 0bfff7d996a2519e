"""
P&L report over the local store.
"""

from ..db import DateRange, SQLiteDatabase
from .aggregate import PnLResult, compute_pnl


async def build_pnl_report(db: SQLiteDatabase, date_range: DateRange) -> PnLResult:
    """Load the current snapshots and compute the P&L for a date range."""
    orders = [o for o in await db.get_orders() if date_range.contains(o.date_created)]
    additional_revenue = [
        r for r in await db.get_additional_revenue() if date_range.contains(r.date)
    ]

    return compute_pnl(
        orders=orders,
        inventory=await db.get_inventory(),
        overhead_costs=await db.get_overhead_costs(),
        date_range=date_range,
        additional_revenue=additional_revenue,
        expenses=await db.get_expenses(),
    )
