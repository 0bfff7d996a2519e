"""
Tests for expense proration.
"""

from datetime import datetime, timedelta, timezone

from woo_pnl.db import DateRange, Expense, Period
from woo_pnl.pnl import PeriodCounts, prorate

START = datetime(2024, 1, 1, tzinfo=timezone.utc)


def days(n: int) -> DateRange:
    return DateRange(start=START, end=START + timedelta(days=n))


class TestPeriodCounts:
    """Tests for PeriodCounts.for_range."""

    def test_counts_are_ceiled(self):
        counts = PeriodCounts.for_range(days(40))

        assert counts == PeriodCounts(days=40, weeks=6, months=2, years=1)

    def test_empty_range_counts_one_of_each(self):
        counts = PeriodCounts.for_range(DateRange(start=START, end=START))

        assert counts == PeriodCounts(days=1, weeks=1, months=1, years=1)


class TestProrate:
    """Tests for prorate function."""

    def test_monthly_expense_over_ten_days(self):
        expense = Expense(date=START, category="rent", amount=300, period=Period.MONTHLY)

        assert prorate([expense], days(10)).total_expenses == 300

    def test_monthly_expense_over_forty_days(self):
        expense = Expense(date=START, category="rent", amount=300, period=Period.MONTHLY)

        assert prorate([expense], days(40)).total_expenses == 600

    def test_recurring_expense_counts_even_when_dated_outside(self):
        expense = Expense(
            date=START - timedelta(days=400), category="software", amount=5, period=Period.DAILY
        )

        assert prorate([expense], days(3)).total_expenses == 15

    def test_one_time_expense_only_inside_range(self):
        inside = Expense(date=START + timedelta(days=2), category="ads", amount=50)
        on_end = Expense(date=START + timedelta(days=10), category="ads", amount=25)
        outside = Expense(date=START + timedelta(days=11), category="ads", amount=999)

        summary = prorate([inside, on_end, outside], days(10))

        assert summary.total_expenses == 75
        assert summary.period_totals["one_time"] == 75

    def test_grouped_by_category(self):
        summary = prorate(
            [
                Expense(date=START, category="rent", amount=300, period=Period.MONTHLY),
                Expense(date=START, category="tools", amount=10, period=Period.WEEKLY),
                Expense(date=START, category="tools", amount=120, period=Period.YEARLY),
            ],
            days(14),
        )

        assert summary.expenses_by_category == {"rent": 300, "tools": 140}
        assert summary.period_totals["weekly"] == 20
        assert summary.total_expenses == 440
