"""
Expense proration over a reporting window.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Sequence

from ..db.models import DateRange, Expense, Period
from .money import to_number


@dataclass(frozen=True)
class PeriodCounts:
    """Elapsed windows of each period length, each at least 1."""

    days: int
    weeks: int
    months: int
    years: int

    @classmethod
    def for_range(cls, date_range: DateRange) -> "PeriodCounts":
        days = max(1, math.ceil((date_range.end - date_range.start) / timedelta(days=1)))
        return cls(
            days=days,
            weeks=max(1, math.ceil(days / 7)),
            months=max(1, math.ceil(days / 30)),
            years=max(1, math.ceil(days / 365)),
        )

    def multiplier(self, period: Period) -> int:
        return {
            Period.DAILY: self.days,
            Period.WEEKLY: self.weeks,
            Period.MONTHLY: self.months,
            Period.YEARLY: self.years,
        }[period]


@dataclass
class ExpenseSummary:
    total_expenses: float = 0.0
    expenses_by_category: Dict[str, float] = field(default_factory=dict)
    period_totals: Dict[str, float] = field(default_factory=dict)
    counts: PeriodCounts = field(default_factory=lambda: PeriodCounts(1, 1, 1, 1))


def prorated_amount(expense: Expense, counts: PeriodCounts) -> float:
    amount = to_number(expense.amount, f"expense {expense.category}")
    if expense.period is None:
        return amount
    return amount * counts.multiplier(expense.period)


def prorate(expenses: Sequence[Expense], date_range: DateRange) -> ExpenseSummary:
    """
    Scale expenses to a date range.

    One-time expenses count only when dated inside the range (inclusive).
    Recurring expenses always count, multiplied by the number of their
    periods the range spans.
    """
    counts = PeriodCounts.for_range(date_range)
    by_category: Dict[str, float] = defaultdict(float)
    period_totals: Dict[str, float] = {p.value: 0.0 for p in Period}
    period_totals["one_time"] = 0.0

    for expense in expenses:
        if expense.period is None and not date_range.contains(expense.date):
            continue

        amount = prorated_amount(expense, counts)
        by_category[expense.category] += amount
        period_totals[expense.period.value if expense.period else "one_time"] += amount

    return ExpenseSummary(
        total_expenses=sum(period_totals.values()),
        expenses_by_category=dict(by_category),
        period_totals=period_totals,
        counts=counts,
    )
