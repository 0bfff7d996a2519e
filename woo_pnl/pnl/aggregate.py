"""
Profit and loss aggregation.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..db.models import AdditionalRevenue, DateRange, Expense, InventoryRecord, Order, OverheadCost
from .costs import InventoryIndex, resolve_cost
from .expenses import prorate
from .money import percent, to_number
from .overhead import OverheadAllocation, allocate_overhead

logger = logging.getLogger(__name__)


@dataclass
class PnLSummary:
    total_order_revenue: float = 0.0
    total_additional_revenue: float = 0.0
    total_revenue: float = 0.0
    total_cost: float = 0.0
    gross_profit: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0
    average_margin: float = 0.0
    order_count: int = 0
    item_count: int = 0
    expenses_by_category: Dict[str, float] = field(default_factory=dict)


@dataclass
class PnLResult:
    """Enriched order copies plus the aggregate summary."""

    orders: List[Order]
    summary: PnLSummary
    additional_revenue: List[AdditionalRevenue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orders": [order.model_dump(mode="json") for order in self.orders],
            "additional_revenue": [r.model_dump(mode="json") for r in self.additional_revenue],
            "summary": asdict(self.summary),
        }


def enrich_order(order: Order, index: InventoryIndex, allocation: OverheadAllocation) -> Order:
    """
    Return a copy of `order` with cost, profit and margin filled in.

    cost_total = unit costs x quantities + per-item overhead + order-level
    overhead (fixed share, flat per-order, percentage of total).
    """
    revenue = to_number(order.total, f"order {order.id} total")
    line_items = []
    goods_cost = 0.0
    item_overhead_total = 0.0

    for item in order.line_items:
        unit_cost = resolve_cost(item, index)
        line_cost = unit_cost * item.quantity
        item_overhead = allocation.item_overhead(item)
        line_revenue = to_number(item.total, f"order {order.id} line total")
        line_profit = line_revenue - (line_cost + item_overhead)

        line_items.append(item.model_copy(update={
            "cost_price": unit_cost,
            "profit": line_profit,
            "margin": percent(line_profit, line_revenue),
        }))
        goods_cost += line_cost
        item_overhead_total += item_overhead

    cost_total = goods_cost + item_overhead_total + allocation.order_overhead(revenue)
    profit = revenue - cost_total

    return order.model_copy(update={
        "line_items": line_items,
        "cost_total": cost_total,
        "profit": profit,
        "margin": percent(profit, revenue),
    })


def compute_pnl(
    orders: Sequence[Order],
    inventory: Sequence[InventoryRecord],
    overhead_costs: Sequence[OverheadCost],
    date_range: DateRange,
    additional_revenue: Optional[Sequence[AdditionalRevenue]] = None,
    expenses: Optional[Sequence[Expense]] = None,
) -> PnLResult:
    """
    Compute per-order and aggregate profit figures.

    Args:
        orders: Orders to evaluate (already limited to the reporting window)
        inventory: Inventory snapshot used for cost resolution
        overhead_costs: Configured overhead rules
        date_range: Reporting window, used for expense proration
        additional_revenue: External revenue records to add to the total
        expenses: Expense records to prorate over the window

    Returns:
        PnLResult with enriched order copies; inputs are not modified
    """
    additional_revenue = list(additional_revenue or [])
    index = InventoryIndex.build(inventory)
    expense_summary = prorate(expenses or [], date_range)
    allocation = allocate_overhead(overhead_costs, orders)

    enriched = [enrich_order(order, index, allocation) for order in orders]

    total_order_revenue = sum(to_number(o.total, f"order {o.id} total") for o in enriched)
    total_additional = sum(to_number(r.amount, "additional revenue") for r in additional_revenue)
    total_revenue = total_order_revenue + total_additional
    total_cost = sum(to_number(o.cost_total, f"order {o.id} cost") for o in enriched)
    gross_profit = total_revenue - total_cost

    summary = PnLSummary(
        total_order_revenue=total_order_revenue,
        total_additional_revenue=total_additional,
        total_revenue=total_revenue,
        total_cost=total_cost,
        gross_profit=gross_profit,
        total_expenses=expense_summary.total_expenses,
        net_profit=gross_profit - expense_summary.total_expenses,
        average_margin=percent(gross_profit, total_revenue),
        order_count=len(enriched),
        item_count=sum(item.quantity for o in enriched for item in o.line_items),
        expenses_by_category=expense_summary.expenses_by_category,
    )

    logger.debug(
        f"P&L over {len(enriched)} orders: revenue {total_revenue:.2f}, "
        f"cost {total_cost:.2f}, net {summary.net_profit:.2f}"
    )
    return PnLResult(orders=enriched, summary=summary, additional_revenue=additional_revenue)
