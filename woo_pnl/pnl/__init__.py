"""
Profit and loss package.
"""

from .money import to_number, percent
from .costs import InventoryIndex, resolve_cost, effective_cost, inventory_key
from .overhead import OverheadAllocation, allocate_overhead
from .expenses import ExpenseSummary, PeriodCounts, prorate
from .aggregate import PnLResult, PnLSummary, compute_pnl, enrich_order

__all__ = [
    "to_number",
    "percent",
    "InventoryIndex",
    "resolve_cost",
    "effective_cost",
    "inventory_key",
    "OverheadAllocation",
    "allocate_overhead",
    "ExpenseSummary",
    "PeriodCounts",
    "prorate",
    "PnLResult",
    "PnLSummary",
    "compute_pnl",
    "enrich_order",
]
