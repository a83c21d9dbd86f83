"""
Calendar Date Windows

Month and quarter arithmetic shared by every KPI and report. A window is a
closed range; full calendar months end on their last microsecond so that a
``<=`` comparison covers the whole final day.
"""

import calendar
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Tuple


@dataclass(frozen=True)
class DateWindow:
    """Closed date range [start, end]"""
    start: datetime
    end: datetime
    month_lengths: Tuple[int, ...] = field(default=(), compare=False)

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    @property
    def days(self) -> int:
        """Number of calendar days touched by the window"""
        return (self.end.date() - self.start.date()).days + 1


def _normalize(year: int, month: int) -> Tuple[int, int]:
    """Fold an out-of-range month (0, -3, 14, ...) into a valid year/month."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return year, month


def days_in_month(year: int, month: int) -> int:
    year, month = _normalize(year, month)
    return calendar.monthrange(year, month)[1]


def start_of_month(year: int, month: int) -> datetime:
    year, month = _normalize(year, month)
    return datetime(year, month, 1)


def end_of_month(year: int, month: int) -> datetime:
    year, month = _normalize(year, month)
    return datetime(year, month, days_in_month(year, month), 23, 59, 59, 999999)


def month_window(year: int, month: int) -> DateWindow:
    """Full calendar month; ``month`` may over- or underflow."""
    year, month = _normalize(year, month)
    return DateWindow(
        start=start_of_month(year, month),
        end=end_of_month(year, month),
        month_lengths=(days_in_month(year, month),),
    )


def current_month(as_of: datetime) -> DateWindow:
    """From the first day of ``as_of``'s month up to ``as_of`` itself."""
    return DateWindow(
        start=start_of_month(as_of.year, as_of.month),
        end=as_of,
        month_lengths=(days_in_month(as_of.year, as_of.month),),
    )


def previous_month(as_of: datetime) -> DateWindow:
    return month_window(as_of.year, as_of.month - 1)


def same_month_last_year(as_of: datetime) -> DateWindow:
    return month_window(as_of.year - 1, as_of.month)


def months_back(as_of: datetime, offset: int) -> DateWindow:
    """Full calendar month ``offset`` months before ``as_of`` (0 = this month)."""
    return month_window(as_of.year, as_of.month - offset)


def quarter_of(moment: datetime) -> int:
    """Zero-based quarter index (0..3)"""
    return (moment.month - 1) // 3


def current_quarter(as_of: datetime) -> DateWindow:
    """Full calendar quarter containing ``as_of``."""
    first_month = quarter_of(as_of) * 3 + 1
    lengths = tuple(days_in_month(as_of.year, first_month + i) for i in range(3))
    return DateWindow(
        start=start_of_month(as_of.year, first_month),
        end=end_of_month(as_of.year, first_month + 2),
        month_lengths=lengths,
    )


def truncate_to_month(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, 1)


def month_key(moment: datetime) -> str:
    """``YYYY-M`` bucket key, month not zero-padded."""
    return f"{moment.year}-{moment.month}"


def parse_month_key(key: str) -> Tuple[int, int]:
    year, month = key.split("-")
    return int(year), int(month)


def month_name(moment: datetime) -> str:
    """Long month label such as ``October 2026``."""
    return f"{calendar.month_name[moment.month]} {moment.year}"


def monthly_buckets(moments: List[datetime]) -> List[Tuple[datetime, int]]:
    """Count timestamps per calendar month, oldest month first."""
    counts = {}
    for moment in moments:
        bucket = truncate_to_month(moment)
        counts[bucket] = counts.get(bucket, 0) + 1
    return sorted(counts.items())
