"""
Reporting windows for period-over-period comparison.

Each source publishes complete data with a delay, so the current window ends
``latency_days`` before today. The previous window is the same length and
ends the day before the current one starts.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

GSC_DATA_DELAY_DAYS = 2   # Search Console: ~2-day lag
GA4_DATA_DELAY_DAYS = 1   # Analytics: yesterday is complete

RANGE_DAYS = {
    "7d":  7,
    "30d": 30,
    "3m":  90,
    "6m":  180,
    "12m": 365,
}


@dataclass(frozen=True)
class DateWindow:
    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def as_dict(self) -> dict:
        return {"start": self.start_date.isoformat(), "end": self.end_date.isoformat()}


@dataclass(frozen=True)
class ComparisonWindows:
    current: DateWindow
    previous: DateWindow

    def as_dict(self) -> dict:
        return {"current": self.current.as_dict(), "previous": self.previous.as_dict()}


def compute_windows(range_key: str, latency_days: int, today: Optional[date] = None) -> ComparisonWindows:
    """Current and previous windows for a range key, shifted back by the source's latency."""
    if range_key not in RANGE_DAYS:
        raise ValueError(f"Unknown range {range_key!r} (expected one of {', '.join(RANGE_DAYS)})")

    length = RANGE_DAYS[range_key]
    today = today or date.today()

    current_end = today - timedelta(days=latency_days)
    current_start = current_end - timedelta(days=length - 1)
    previous_end = current_start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=length - 1)

    return ComparisonWindows(
        current=DateWindow(current_start, current_end),
        previous=DateWindow(previous_start, previous_end),
    )
