"""
Tunable constants for the forecasting models, the signal vote and the backtest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

DEFAULT_VOTE_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "regression": 0.25,
        "ema": 0.20,
        "rsi": 0.25,
        "volatility": 0.15,
        "trend": 0.15,
    }
)


@dataclass(frozen=True)
class EngineConfig:
    """
    Named parameters shared by every model and by the aggregator.

    The defaults reproduce the calibrated behaviour for 7-30 point daily series.
    Pass an alternate instance to the pipeline or the backtest harness to
    experiment with other parameterisations.
    """

    short_span: int = 3
    long_span: int = 7
    horizons: Tuple[int, ...] = (1, 3, 7, 14, 30)
    z_score: float = 1.96
    confidence_decay: float = 0.08
    confidence_floor: int = 5
    periods_per_year: int = 252
    risk_scale: float = 1000.0
    rsi_overbought: float = 70.0
    rsi_oversold: float = 30.0
    rsi_midpoint: float = 50.0
    low_risk: int = 30
    high_risk: int = 60
    calm_risk: int = 20
    urgent_buy_threshold: float = 0.70
    buy_threshold: float = 0.50
    wait_threshold: float = 0.50
    vote_weights: Mapping[str, float] = field(default_factory=lambda: DEFAULT_VOTE_WEIGHTS, hash=False)
    min_training_points: int = 4

    def __post_init__(self) -> None:
        if self.short_span <= 0 or self.long_span <= 0:
            raise ValueError("EMA spans must be positive integers.")
        if self.short_span >= self.long_span:
            raise ValueError("short_span must be smaller than long_span.")
        if not self.horizons or any(h < 1 for h in self.horizons):
            raise ValueError("horizons must be a non-empty collection of positive integers.")
        if self.confidence_floor < 0:
            raise ValueError("confidence_floor must be non-negative.")
        if not self.rsi_oversold < self.rsi_midpoint < self.rsi_overbought:
            raise ValueError("RSI thresholds must satisfy oversold < midpoint < overbought.")
        if self.urgent_buy_threshold < self.buy_threshold:
            raise ValueError("urgent_buy_threshold cannot be below buy_threshold.")
        if self.min_training_points < 2:
            raise ValueError("min_training_points must be at least 2.")

        # Read-only copy, detached from the mapping the caller passed in.
        object.__setattr__(self, "vote_weights", MappingProxyType(dict(self.vote_weights)))

        total = sum(self.vote_weights.values())
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Vote weights must sum to 1.0 (got {total:.4f}).")

    @property
    def short_alpha(self) -> float:
        return 2.0 / (self.short_span + 1)

    @property
    def long_alpha(self) -> float:
        return 2.0 / (self.long_span + 1)

    def forecast_horizons(self, *required: int) -> Tuple[int, ...]:
        """Configured horizons merged with any horizons the caller depends on."""
        return tuple(sorted(set(self.horizons) | set(required)))
