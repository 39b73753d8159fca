"""
Price observation values plus loading and cleansing of the daily and monthly price files.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

DAILY_COLUMNS = ("ingredient", "date", "low", "high")
MONTHLY_COLUMNS = ("ingredient", "month", "price")
TREND_LABELS = ("rising", "falling", "flat")


@dataclass(frozen=True)
class PricePoint:
    """One daily observation of the domestic low/high quote."""

    timestamp: dt.date
    low: float
    high: float

    @property
    def midpoint(self) -> float:
        return (self.low + self.high) / 2


@dataclass(frozen=True)
class MonthlyPrice:
    period: str
    price: float


@dataclass(frozen=True)
class IngredientSeries:
    """Daily history for one ingredient together with its qualitative context."""

    name: str
    points: Tuple[PricePoint, ...]
    trend: str = "flat"
    key_factor: str = ""

    @property
    def prices(self) -> Tuple[float, ...]:
        return midpoints(self.points)


@dataclass(frozen=True)
class IngredientHistory:
    """Longer monthly record used for backtesting."""

    name: str
    records: Tuple[MonthlyPrice, ...]

    @property
    def prices(self) -> Tuple[float, ...]:
        return tuple(record.price for record in self.records)

    @property
    def periods(self) -> Tuple[str, ...]:
        return tuple(record.period for record in self.records)


def midpoints(points: Iterable[PricePoint]) -> Tuple[float, ...]:
    return tuple(point.midpoint for point in points)


def _validate_columns(df: pd.DataFrame, required: Iterable[str]) -> None:
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")


def _coerce_prices(df: pd.DataFrame, columns: Sequence[str]) -> None:
    """Convert price columns in place; non-numeric, infinite or negative values are rejected."""
    for column in columns:
        df[column] = pd.to_numeric(df[column], errors="coerce")
    prices = df[list(columns)]
    invalid = (prices.isna() | np.isinf(prices) | (prices < 0)).any(axis=1)
    if invalid.any():
        rows = ", ".join(str(idx) for idx in df.index[invalid])
        raise ValueError(f"Non-numeric or negative prices in rows: {rows}")


def _month_period(label: str) -> pd.Period:
    try:
        period = pd.Period(label, freq="M")
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Unparseable month label: {label!r}") from exc
    if pd.isna(period):
        raise ValueError(f"Unparseable month label: {label!r}")
    return period


def validate_points(points: Sequence[PricePoint]) -> None:
    """Check the ordering and bound invariants of a daily series."""
    for point in points:
        if point.low > point.high:
            raise ValueError(
                f"Low price {point.low} exceeds high price {point.high} on {point.timestamp}."
            )
    for previous, current in zip(points, points[1:]):
        if current.timestamp <= previous.timestamp:
            raise ValueError(
                f"Timestamps must be strictly increasing ({previous.timestamp} -> {current.timestamp})."
            )


def load_raw_data(csv_path: Path) -> pd.DataFrame:
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV path does not exist: {csv_path}")
    df = pd.read_csv(csv_path)
    df.columns = [str(col).strip().lower() for col in df.columns]
    return df


def clean_daily_prices(df: pd.DataFrame) -> List[IngredientSeries]:
    _validate_columns(df, DAILY_COLUMNS)

    working = df.copy()
    working["ingredient"] = working["ingredient"].astype(str).str.strip()
    working["date"] = pd.to_datetime(working["date"]).dt.date
    _coerce_prices(working, ("low", "high"))

    if "trend" not in working.columns:
        working["trend"] = "flat"
    if "key_factor" not in working.columns:
        working["key_factor"] = ""
    working["trend"] = working["trend"].fillna("flat").astype(str).str.strip().str.lower()
    working["key_factor"] = working["key_factor"].fillna("").astype(str)

    unknown = sorted(set(working["trend"]) - set(TREND_LABELS))
    if unknown:
        raise ValueError(f"Unknown trend labels: {unknown}; expected one of {TREND_LABELS}")

    series: List[IngredientSeries] = []
    for name, group in working.groupby("ingredient", sort=False):
        group = group.sort_values("date")
        points = tuple(
            PricePoint(timestamp=row.date, low=float(row.low), high=float(row.high))
            for row in group.itertuples(index=False)
        )
        validate_points(points)
        # The qualitative context is taken from the most recent observation.
        latest = group.iloc[-1]
        series.append(
            IngredientSeries(
                name=str(name),
                points=points,
                trend=str(latest["trend"]),
                key_factor=str(latest["key_factor"]),
            )
        )
    return series


def clean_monthly_prices(df: pd.DataFrame) -> List[IngredientHistory]:
    _validate_columns(df, MONTHLY_COLUMNS)

    working = df.copy()
    working["ingredient"] = working["ingredient"].astype(str).str.strip()
    # Labels normalised to YYYY-MM; records are ordered by calendar month.
    periods = [_month_period(label) for label in working["month"].astype(str).str.strip()]
    working["month"] = [str(period) for period in periods]
    working["ordinal"] = [period.ordinal for period in periods]
    _coerce_prices(working, ("price",))

    histories: List[IngredientHistory] = []
    for name, group in working.groupby("ingredient", sort=False):
        group = group.sort_values("ordinal")
        if group["ordinal"].duplicated().any():
            raise ValueError(f"Duplicate months found for ingredient '{name}'.")
        records = tuple(
            MonthlyPrice(period=row.month, price=float(row.price))
            for row in group.itertuples(index=False)
        )
        histories.append(IngredientHistory(name=str(name), records=records))
    return histories


def load_daily_prices(csv_path: Path) -> List[IngredientSeries]:
    return clean_daily_prices(load_raw_data(Path(csv_path)))


def load_monthly_prices(csv_path: Path) -> List[IngredientHistory]:
    return clean_monthly_prices(load_raw_data(Path(csv_path)))


def series_from_records(name: str, records: Sequence[Dict[str, object]], **context: str) -> IngredientSeries:
    """
    Build an :class:`IngredientSeries` from plain ``{"date", "low", "high"}`` mappings.
    """
    points = tuple(
        PricePoint(
            timestamp=pd.Timestamp(record["date"]).date(),
            low=float(record["low"]),
            high=float(record["high"]),
        )
        for record in records
    )
    validate_points(points)
    return IngredientSeries(name=name, points=points, **context)
