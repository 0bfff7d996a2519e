"""
Reporting-timezone helpers and remote date filter construction.

WooCommerce treats `after` and `before` as exclusive bounds. All filters are
sent as UTC with dates_are_gmt=true, so the reporting timezone only matters
when calendar days and months are turned into instants.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from woo_pnl.db.models import DateRange, ensure_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Pacific/Auckland"
API_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def get_timezone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or DEFAULT_TIMEZONE)


def to_local(moment: datetime, tz: ZoneInfo) -> datetime:
    """Convert an instant to the reporting timezone."""
    return ensure_utc(moment).astimezone(tz)


def parse_remote_timestamp(payload: Dict[str, Any], field: str, tz: ZoneInfo) -> Optional[datetime]:
    """
    Parse a WooCommerce timestamp into an aware UTC datetime.

    Prefers the `<field>_gmt` variant. A naive site-local value is read in
    the reporting timezone, which is assumed to match the store's.
    """
    gmt_value = payload.get(f"{field}_gmt")
    local_value = payload.get(field)

    try:
        if gmt_value:
            return ensure_utc(datetime.fromisoformat(gmt_value.replace("Z", "+00:00")))
        if local_value:
            parsed = datetime.fromisoformat(local_value.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=tz)
            return ensure_utc(parsed)
    except (ValueError, AttributeError) as e:
        logger.warning(f"Unparseable {field} {gmt_value or local_value!r}: {e}")

    return None


def local_day_range(start: date, end: date, tz: ZoneInfo) -> DateRange:
    """Calendar days [start, end] in the reporting timezone, end inclusive."""
    if end < start:
        raise ValueError("end date is before start date")
    return DateRange(
        start=datetime.combine(start, time.min, tzinfo=tz),
        end=datetime.combine(end, time.max, tzinfo=tz),
    )


def month_range(year: int, month: int, tz: ZoneInfo) -> DateRange:
    """One calendar month in the reporting timezone, end inclusive."""
    first = date(year, month, 1)
    next_first = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return local_day_range(first, next_first - timedelta(days=1), tz)


def months_in_range(start: date, end: date) -> List[Tuple[int, int]]:
    """(year, month) pairs touched by [start, end], in order."""
    months = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append((year, month))
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return months


def recent_months(count: int, tz: ZoneInfo, now: Optional[datetime] = None) -> List[Tuple[int, int]]:
    """The current month and the `count` months before it."""
    today = to_local(now or utcnow(), tz).date()
    year, month = today.year, today.month - count
    while month < 1:
        year, month = year - 1, month + 12
    return months_in_range(date(year, month, 1), today)


def split_range(date_range: DateRange, days: int) -> List[DateRange]:
    """
    Split a range into contiguous windows of at most `days` days.

    Each window starts exactly where the previous one ends.
    """
    if days < 1:
        raise ValueError("Window size must be at least 1 day")

    windows = []
    step = timedelta(days=days)
    cursor = date_range.start
    while cursor < date_range.end:
        window_end = min(cursor + step, date_range.end)
        windows.append(DateRange(start=cursor, end=window_end))
        cursor = window_end

    return windows or [date_range]


def _floor_second(moment: datetime) -> datetime:
    return moment.replace(microsecond=0)


def _ceil_second(moment: datetime) -> datetime:
    if moment.microsecond:
        return moment.replace(microsecond=0) + timedelta(seconds=1)
    return moment


def padded_bounds(
    date_range: DateRange,
    padding: timedelta = timedelta(0),
    exclusive: bool = True,
) -> Tuple[str, str]:
    """
    Build the `after`/`before` filters for a range.

    The lower bound is widened by one second when the API bounds are
    exclusive, and the upper bound is rounded up to a whole second and
    extended by `padding`. The same rule applies to every month; merges
    de-duplicate by order id, so over-fetching near a boundary is harmless.

    Returns:
        (after, before) as naive UTC ISO-8601 strings
    """
    start = _floor_second(ensure_utc(date_range.start))
    if exclusive:
        start -= timedelta(seconds=1)
    end = _ceil_second(ensure_utc(date_range.end) + padding)

    return (
        start.astimezone(timezone.utc).strftime(API_DATE_FORMAT),
        end.astimezone(timezone.utc).strftime(API_DATE_FORMAT),
    )
