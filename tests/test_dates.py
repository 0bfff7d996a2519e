"""
Tests for reporting-timezone helpers and remote date filters.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from woo_pnl.db import DateRange
from woo_pnl.woocommerce.dates import (
    local_day_range,
    month_range,
    months_in_range,
    padded_bounds,
    parse_remote_timestamp,
    recent_months,
    split_range,
)

AUCKLAND = ZoneInfo("Pacific/Auckland")


class TestLocalRanges:
    """Tests for calendar ranges in the reporting timezone."""

    def test_month_range_covers_whole_local_month(self):
        """March 2024 in Auckland starts at NZDT (+13) and ends at NZDT (+13)."""
        rng = month_range(2024, 3, AUCKLAND)

        assert rng.start == datetime(2024, 2, 29, 11, 0, tzinfo=timezone.utc)
        assert rng.end.astimezone(AUCKLAND).date() == date(2024, 3, 31)
        assert rng.end.astimezone(AUCKLAND).time().hour == 23

    def test_december_range_ends_on_new_years_eve(self):
        rng = month_range(2023, 12, AUCKLAND)

        assert rng.start.astimezone(AUCKLAND).date() == date(2023, 12, 1)
        assert rng.end.astimezone(AUCKLAND).date() == date(2023, 12, 31)

    def test_local_day_range_rejects_reversed_days(self):
        with pytest.raises(ValueError):
            local_day_range(date(2024, 5, 2), date(2024, 5, 1), AUCKLAND)

    def test_months_in_range_crosses_year(self):
        assert months_in_range(date(2023, 11, 15), date(2024, 2, 1)) == [
            (2023, 11), (2023, 12), (2024, 1), (2024, 2)
        ]

    def test_recent_months_includes_current_month(self):
        now = datetime(2024, 2, 10, tzinfo=timezone.utc)

        assert recent_months(3, AUCKLAND, now=now) == [
            (2023, 11), (2023, 12), (2024, 1), (2024, 2)
        ]


class TestSplitRange:
    """Tests for split_range function."""

    def test_windows_are_contiguous_and_cover_range(self):
        rng = local_day_range(date(2024, 1, 1), date(2024, 1, 12), AUCKLAND)

        windows = split_range(rng, 5)

        assert len(windows) == 3
        assert windows[0].start == rng.start
        assert windows[-1].end == rng.end
        for previous, current in zip(windows, windows[1:]):
            assert current.start == previous.end

    def test_short_range_is_single_window(self):
        rng = local_day_range(date(2024, 1, 1), date(2024, 1, 2), AUCKLAND)

        assert split_range(rng, 5) == [rng]

    def test_rejects_zero_days(self):
        rng = local_day_range(date(2024, 1, 1), date(2024, 1, 2), AUCKLAND)

        with pytest.raises(ValueError):
            split_range(rng, 0)


class TestPaddedBounds:
    """Tests for padded_bounds function."""

    def test_bounds_are_utc_and_exclusive(self):
        rng = local_day_range(date(2024, 6, 1), date(2024, 6, 1), AUCKLAND)  # NZST, +12

        after, before = padded_bounds(rng)

        assert after == "2024-05-31T11:59:59"
        assert before == "2024-06-01T12:00:00"

    def test_padding_extends_upper_bound_only(self):
        rng = local_day_range(date(2024, 6, 1), date(2024, 6, 1), AUCKLAND)

        after, before = padded_bounds(rng, timedelta(minutes=60))

        assert after == "2024-05-31T11:59:59"
        assert before == "2024-06-01T13:00:00"

    def test_inclusive_api_keeps_exact_start(self):
        rng = DateRange(
            start=datetime(2024, 1, 1, tzinfo=timezone.utc),
            end=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )

        after, before = padded_bounds(rng, exclusive=False)

        assert after == "2024-01-01T00:00:00"
        assert before == "2024-01-02T00:00:00"


class TestParseRemoteTimestamp:
    """Tests for parse_remote_timestamp function."""

    def test_prefers_gmt_field(self):
        payload = {"date_created": "2024-01-01T13:00:00", "date_created_gmt": "2024-01-01T00:00:00"}

        assert parse_remote_timestamp(payload, "date_created", AUCKLAND) == datetime(
            2024, 1, 1, tzinfo=timezone.utc
        )

    def test_local_value_read_in_reporting_timezone(self):
        payload = {"date_created": "2024-01-01T13:00:00"}

        assert parse_remote_timestamp(payload, "date_created", AUCKLAND) == datetime(
            2024, 1, 1, tzinfo=timezone.utc
        )

    def test_garbage_is_not_parsed(self):
        payload = {"date_created_gmt": "not a date"}

        assert parse_remote_timestamp(payload, "date_created", AUCKLAND) is None

    def test_missing_field_is_not_parsed(self):
        assert parse_remote_timestamp({}, "date_created", AUCKLAND) is None
