"""
Statistical models evaluated over a short ordered price series.

Every model is a pure function returning a frozen result value. None of them
raise on degenerate but well-typed input (constant series, a single point,
zero losses); each such case resolves to a documented fallback so the
aggregator downstream always receives well-defined numbers.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .calendar import weekday_labels, weekday_order
from .config import EngineConfig
from .stats import as_series, index_positions, mean, round_half_up, sample_std, sum_of_squares

BULLISH = "BULLISH"
BEARISH = "BEARISH"
NEUTRAL = "NEUTRAL"
OVERBOUGHT = "OVERBOUGHT"
OVERSOLD = "OVERSOLD"

DEFAULT_CONFIG = EngineConfig()


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    r_squared: float
    standard_error: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept

    @property
    def equation(self) -> str:
        return f"y = {self.slope:.2f}x + {self.intercept:.2f}"


@dataclass(frozen=True)
class EMAResult:
    short_series: Tuple[float, ...]
    long_series: Tuple[float, ...]
    current_short: float
    current_long: float
    crossover_signal: str
    crossed: bool = False


@dataclass(frozen=True)
class PredictionPoint:
    horizon: int
    predicted: float
    low: float
    high: float
    confidence: int


@dataclass(frozen=True)
class VolatilityResult:
    daily_returns: Tuple[float, ...]
    std_dev: float
    annualized_vol: float
    risk_score: int

    @property
    def equation(self) -> str:
        return f"sigma = sqrt(sum((r_i - r_bar)^2) / (N-1)) = {self.std_dev * 100:.4f}%"


@dataclass(frozen=True)
class RSIResult:
    value: float
    avg_gain: float
    avg_loss: float
    signal: str


@dataclass(frozen=True)
class SeasonalResult:
    effects: Dict[str, float]
    overall_mean: float
    sample_counts: Dict[str, int]


# Regression ------------------------------------------------------------------------


def fit_regression(prices: Sequence[float]) -> RegressionResult:
    """
    Ordinary least squares fit of ``y = a*x + b`` over index positions ``0..n-1``.

    A zero x-variance (``n <= 1``) yields slope 0 and intercept ``mean(y)``. A
    constant series is a perfect trivial fit (``R^2 = 1``). The standard error
    needs at least three points and is 0 otherwise.
    """
    y = as_series(prices)
    n = y.size
    x = index_positions(n)
    x_bar = mean(x)
    y_bar = mean(y)

    numerator = float(np.sum((x - x_bar) * (y - y_bar)))
    denominator = sum_of_squares(x, x_bar)
    slope = 0.0 if denominator == 0 else numerator / denominator
    intercept = y_bar - slope * x_bar

    fitted = slope * x + intercept
    ss_res = float(np.sum((y - fitted) ** 2))
    ss_tot = sum_of_squares(y, y_bar)

    r_squared = 1.0 if ss_tot == 0 else 1.0 - ss_res / ss_tot
    standard_error = math.sqrt(ss_res / (n - 2)) if n > 2 else 0.0

    return RegressionResult(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        standard_error=standard_error,
    )


# EMA -------------------------------------------------------------------------------


def exponential_moving_average(prices: Sequence[float], period: int) -> Tuple[float, ...]:
    """EMA seeded with the first observation rather than a simple-average warm-up."""
    values = as_series(prices)
    if values.size == 0:
        return ()
    alpha = 2.0 / (period + 1)
    ema = [float(values[0])]
    for price in values[1:]:
        ema.append(alpha * float(price) + (1 - alpha) * ema[-1])
    return tuple(ema)


def classify_crossover(
    prev_short: float, prev_long: float, current_short: float, current_long: float
) -> Tuple[str, bool]:
    """
    Return the crossover signal and whether the last step was an actual crossing.

    Exact ties of the current pair are neutral.
    """
    if prev_short <= prev_long and current_short > current_long:
        return BULLISH, True
    if prev_short >= prev_long and current_short < current_long:
        return BEARISH, True
    if current_short < current_long:
        return BEARISH, False
    if current_short > current_long:
        return BULLISH, False
    return NEUTRAL, False


def analyze_ema(prices: Sequence[float], config: EngineConfig = DEFAULT_CONFIG) -> EMAResult:
    short_series = exponential_moving_average(prices, config.short_span)
    long_series = exponential_moving_average(prices, config.long_span)

    current_short = short_series[-1]
    current_long = long_series[-1]
    prev_short = short_series[-2] if len(short_series) > 1 else current_short
    prev_long = long_series[-2] if len(long_series) > 1 else current_long

    signal, crossed = classify_crossover(prev_short, prev_long, current_short, current_long)
    return EMAResult(
        short_series=short_series,
        long_series=long_series,
        current_short=current_short,
        current_long=current_long,
        crossover_signal=signal,
        crossed=crossed,
    )


# Extrapolation ---------------------------------------------------------------------


def horizon_confidence(horizon: int, config: EngineConfig = DEFAULT_CONFIG) -> int:
    """
    Heuristic reliability score, ``max(floor, round(100 * exp(-k * horizon)))``.

    This is not derived from the prediction interval; it depends on the horizon only.
    """
    decayed = round_half_up(100 * math.exp(-config.confidence_decay * horizon))
    return max(config.confidence_floor, decayed)


def extrapolate_raw(
    prices: Sequence[float],
    horizon: int,
    regression: RegressionResult,
    z_score: float = DEFAULT_CONFIG.z_score,
) -> Tuple[float, float]:
    """Unclamped point forecast and prediction-interval half width."""
    n = len(prices)
    x = index_positions(n)
    x_bar = mean(x)
    ss_x = sum_of_squares(x, x_bar) or 1.0

    x_new = n - 1 + horizon
    predicted = regression.predict(x_new)
    factor = math.sqrt(1 + 1 / n + (x_new - x_bar) ** 2 / ss_x)
    margin = z_score * regression.standard_error * factor
    return predicted, margin


def extrapolate(
    prices: Sequence[float],
    horizon: int,
    regression: RegressionResult,
    config: EngineConfig = DEFAULT_CONFIG,
) -> PredictionPoint:
    predicted, margin = extrapolate_raw(prices, horizon, regression, z_score=config.z_score)
    return PredictionPoint(
        horizon=horizon,
        predicted=max(0.0, predicted),
        low=max(0.0, predicted - margin),
        high=predicted + margin,
        confidence=horizon_confidence(horizon, config),
    )


def forecast_horizons(
    prices: Sequence[float],
    regression: RegressionResult,
    horizons: Iterable[int],
    config: EngineConfig = DEFAULT_CONFIG,
) -> Tuple[PredictionPoint, ...]:
    return tuple(extrapolate(prices, horizon, regression, config) for horizon in horizons)


# Volatility ------------------------------------------------------------------------


def daily_returns(prices: Sequence[float]) -> Tuple[float, ...]:
    values = as_series(prices)
    returns = []
    for previous, current in zip(values[:-1], values[1:]):
        # A zero base price has no defined return; treat it as no movement.
        returns.append(0.0 if previous == 0 else float((current - previous) / previous))
    return tuple(returns)


def analyze_volatility(prices: Sequence[float], config: EngineConfig = DEFAULT_CONFIG) -> VolatilityResult:
    returns = daily_returns(prices)
    std_dev = sample_std(returns)
    return VolatilityResult(
        daily_returns=returns,
        std_dev=std_dev,
        annualized_vol=std_dev * math.sqrt(config.periods_per_year),
        risk_score=min(100, round_half_up(std_dev * config.risk_scale)),
    )


# RSI -------------------------------------------------------------------------------


def analyze_rsi(prices: Sequence[float], config: EngineConfig = DEFAULT_CONFIG) -> RSIResult:
    """
    Relative strength index averaged over the whole delta series.

    Short inputs make a fixed 14-period window meaningless, so every delta counts.
    With no losses the index is 100 when there were gains and 50 on a flat series.
    """
    deltas = np.diff(as_series(prices))
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)
    avg_gain = mean(gains)
    avg_loss = mean(losses)

    if avg_loss == 0:
        value = 100.0 if avg_gain > 0 else 50.0
    else:
        rs = avg_gain / avg_loss
        value = 100.0 - 100.0 / (1.0 + rs)

    if value > config.rsi_overbought:
        signal = OVERBOUGHT
    elif value < config.rsi_oversold:
        signal = OVERSOLD
    else:
        signal = NEUTRAL

    return RSIResult(value=value, avg_gain=avg_gain, avg_loss=avg_loss, signal=signal)


# Seasonality -----------------------------------------------------------------------


def analyze_seasonality(
    dates: Sequence[dt.date],
    prices: Sequence[float],
) -> SeasonalResult:
    """
    Additive weekday effect: mean price on each weekday minus the overall mean.

    Only weekdays present in the input receive an entry. No significance testing
    is performed; ``sample_counts`` lets callers judge how thin the evidence is.
    """
    if len(dates) != len(prices):
        raise ValueError(f"Got {len(dates)} dates for {len(prices)} prices.")

    frame = pd.DataFrame({"weekday": weekday_labels(dates), "price": as_series(prices)})
    overall_mean = mean(frame["price"].to_numpy())
    grouped = frame.groupby("weekday")["price"]
    means = grouped.mean()
    counts = grouped.size()

    ordered = sorted(means.index, key=weekday_order)
    return SeasonalResult(
        effects={day: float(means[day]) - overall_mean for day in ordered},
        overall_mean=overall_mean,
        sample_counts={day: int(counts[day]) for day in ordered},
    )


def summarise_effects(result: SeasonalResult, precision: int = 1) -> Optional[str]:
    if not result.effects:
        return None
    return " | ".join(f"{day}:{effect:+.{precision}f}" for day, effect in result.effects.items())
