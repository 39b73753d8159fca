"""
Calendar helpers used to label observations by weekday and backtest windows by period.
"""

from __future__ import annotations

import datetime as dt
from typing import Iterable, List, Optional, Sequence

import pandas as pd

WEEKDAYS: Sequence[str] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def weekday_labels(dates: Iterable[dt.date]) -> List[str]:
    """
    Map each date onto its short weekday label.

    ``pandas`` handles the parsing so ISO strings and ``Timestamp`` objects are
    accepted alongside ``datetime.date`` values.
    """
    index = pd.DatetimeIndex(pd.to_datetime(list(dates)))
    return [WEEKDAYS[day] for day in index.dayofweek]


def weekday_order(label: str) -> int:
    try:
        return WEEKDAYS.index(label)
    except ValueError as exc:
        raise ValueError(f"Unknown weekday label: {label}") from exc


def window_label(start: int, end: int, periods: Optional[Sequence[str]] = None) -> str:
    """
    Describe the inclusive training window ``start..end`` (zero-based positions).

    Without period labels the window is rendered with 1-based positions, e.g. ``"1-4"``.
    """
    if periods is not None:
        return f"{periods[start]}~{periods[end]}"
    return f"{start + 1}-{end + 1}"


def period_label(position: int, periods: Optional[Sequence[str]] = None) -> str:
    if periods is not None:
        return str(periods[position])
    return str(position + 1)
