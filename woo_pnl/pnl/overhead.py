"""
Overhead allocation across orders.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

from ..db.models import LineItem, Order, OverheadCost, OverheadType
from .money import to_number

DAYS_PER_MONTH = 30


@dataclass(frozen=True)
class OverheadAllocation:
    """
    Overhead shares for one order set.

    fixed_per_order: fixed monthly overhead smeared over observed order volume
    per_order: flat amount added to every order
    per_item_rate: amount per unit sold
    percentage_rate: percent of the order total
    """

    fixed_per_order: float = 0.0
    per_order: float = 0.0
    per_item_rate: float = 0.0
    percentage_rate: float = 0.0

    def item_overhead(self, item: LineItem) -> float:
        return self.per_item_rate * item.quantity

    def percentage_overhead(self, order_total: float) -> float:
        return order_total * self.percentage_rate / 100

    def order_overhead(self, order_total: float) -> float:
        """Order-level overhead: fixed share + flat + percentage (no per-item part)."""
        return self.fixed_per_order + self.per_order + self.percentage_overhead(order_total)

    def total_for_order(self, order: Order) -> float:
        order_total = to_number(order.total, "order total")
        return self.order_overhead(order_total) + sum(
            self.item_overhead(item) for item in order.line_items
        )


def _sum_of(costs: Iterable[OverheadCost], kind: OverheadType) -> float:
    return sum(to_number(c.value, f"{kind.value} overhead") for c in costs if c.type == kind)


def _order_day(order: Order):
    return (order.date_created_local or order.date_created).date()


def allocate_overhead(
    overhead_costs: Sequence[OverheadCost],
    orders: Sequence[Order],
) -> OverheadAllocation:
    """
    Compute overhead shares for an order set.

    Fixed overhead is a monthly amount: divided by a 30-day month for a daily
    rate, then by the average number of orders per distinct order day.
    """
    monthly_fixed = _sum_of(overhead_costs, OverheadType.FIXED)
    distinct_days = len({_order_day(order) for order in orders}) or 1
    daily_fixed = monthly_fixed / DAYS_PER_MONTH
    orders_per_day = len(orders) / distinct_days

    return OverheadAllocation(
        fixed_per_order=daily_fixed / (orders_per_day or 1),
        per_order=_sum_of(overhead_costs, OverheadType.PER_ORDER),
        per_item_rate=_sum_of(overhead_costs, OverheadType.PER_ITEM),
        percentage_rate=_sum_of(overhead_costs, OverheadType.PERCENTAGE),
    )
