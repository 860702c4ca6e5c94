"""
Month/year arithmetic used by the expansion engine.

All range comparisons go through the month index ``year*12 + month`` so a
(year, month) pair can be compared, shifted and iterated as a single int.
Pure functions, no side effects.
"""
import calendar
from typing import Iterator

# Open-ended recurring obligations are stored with this end period
OPEN_ENDED_PERIOD = (9999, 12)

MAX_INSTALLMENTS = 240  # 20 лет


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(day: int, year: int, month: int) -> int:
    """Smart day: "pay on the 31st" degrades to the last day of short months."""
    return min(day, days_in_month(year, month))


def month_index(year: int, month: int) -> int:
    return year * 12 + month


def from_month_index(index: int) -> tuple[int, int]:
    year, month0 = divmod(index - 1, 12)
    return year, month0 + 1


def add_installments(start_year: int, start_month: int, count: int) -> tuple[int, int]:
    """Last (year, month) of ``count`` monthly installments starting at start."""
    if count < 1:
        raise ValueError("count must be >= 1")
    return from_month_index(month_index(start_year, start_month) + count - 1)


def installments_between(start_year: int, start_month: int, end_year: int, end_month: int) -> int:
    """Number of months in the inclusive range, never less than 1."""
    return max(1, month_index(end_year, end_month) - month_index(start_year, start_month) + 1)


def is_open_ended(year: int, month: int) -> bool:
    return (year, month) == OPEN_ENDED_PERIOD


def iter_months(start: tuple[int, int], end: tuple[int, int]) -> Iterator[tuple[int, int]]:
    """Yield every (year, month) of the inclusive range [start, end]."""
    for idx in range(month_index(*start), month_index(*end) + 1):
        yield from_month_index(idx)
