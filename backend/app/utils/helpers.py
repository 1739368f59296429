"""Miscellaneous helper functions for currency and calendar arithmetic."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Tuple

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats, strings and ``None`` into a ``Decimal``.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")`` rather
    than its binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def money(value: Any) -> Decimal:
    """Round to currency precision (2 places, half up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Any, denominator: Any) -> Decimal:
    """Divide, returning 0 when the denominator is zero or missing."""
    denominator = to_decimal(denominator)
    if denominator == 0:
        return ZERO
    return to_decimal(numerator) / denominator


def month_start(value: dt.date) -> dt.date:
    return value.replace(day=1)


def add_months(value: dt.date, months: int) -> dt.date:
    """Return the first day of the month ``months`` away from ``value``'s month."""
    index = value.year * 12 + (value.month - 1) + months
    return dt.date(index // 12, index % 12 + 1, 1)


def trailing_months_window(as_of: dt.date, months: int) -> Tuple[dt.date, dt.date]:
    """Inclusive (start, end) of the ``months`` full calendar months before ``as_of``'s month.

    For ``as_of=2024-04-10`` and ``months=3`` this is 2024-01-01 .. 2024-03-31.
    """
    if months < 1:
        raise ValueError("months must be at least 1")
    current = month_start(as_of)
    start = add_months(current, -months)
    end = current - dt.timedelta(days=1)
    return start, end


def intersect_ranges(
    first: Tuple[Optional[dt.date], Optional[dt.date]],
    second: Tuple[Optional[dt.date], Optional[dt.date]],
) -> Optional[Tuple[Optional[dt.date], Optional[dt.date]]]:
    """Intersect two inclusive date ranges where ``None`` means unbounded.

    Returns ``None`` when the ranges are disjoint.
    """
    starts = [d for d in (first[0], second[0]) if d is not None]
    ends = [d for d in (first[1], second[1]) if d is not None]
    start = max(starts) if starts else None
    end = min(ends) if ends else None
    if start is not None and end is not None and start > end:
        return None
    return start, end
