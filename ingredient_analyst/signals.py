"""
Weighted vote that combines the model outputs into a single purchasing signal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import EngineConfig
from .data import TREND_LABELS
from .models import (
    BEARISH,
    BULLISH,
    DEFAULT_CONFIG,
    EMAResult,
    PredictionPoint,
    RegressionResult,
    RSIResult,
    VolatilityResult,
)
from .stats import round_half_up

URGENT_BUY = "URGENT_BUY"
BUY_NOW = "BUY_NOW"
WAIT = "WAIT"
HOLD = "HOLD"

# Display order for a batch of alerts, most urgent first.
SIGNAL_PRIORITY: Dict[str, int] = {URGENT_BUY: 0, BUY_NOW: 1, HOLD: 2, WAIT: 3}


@dataclass(frozen=True)
class PriceRange:
    low: float
    high: float


@dataclass(frozen=True)
class ModelSummary:
    name: str
    equation: str
    prediction: float
    confidence: int


@dataclass(frozen=True)
class VoteContext:
    """Everything a vote rule may inspect."""

    regression: RegressionResult
    ema: EMAResult
    rsi: RSIResult
    volatility: VolatilityResult
    trend: str
    config: EngineConfig


@dataclass(frozen=True)
class VoteRule:
    name: str
    weight: float
    buy: Callable[[VoteContext], float]
    wait: Callable[[VoteContext], float]


@dataclass(frozen=True)
class Vote:
    name: str
    weight: float
    buy: float
    wait: float


@dataclass(frozen=True)
class Alert:
    ingredient: str
    signal: str
    confidence: int
    current_price: PriceRange
    predicted_7d: Optional[PriceRange]
    predicted_30d: Optional[PriceRange]
    reasons: Tuple[str, ...]
    risk_score: int
    models: Tuple[ModelSummary, ...]
    predictions: Tuple[PredictionPoint, ...]
    buy_score: float
    wait_score: float
    votes: Tuple[Vote, ...] = ()

    @property
    def reason(self) -> str:
        return " | ".join(self.reasons)


# Vote rules ------------------------------------------------------------------------


def _regression_buy(ctx: VoteContext) -> float:
    return 1.0 if ctx.regression.slope < 0 else 0.0


def _regression_wait(ctx: VoteContext) -> float:
    return 1.0 if ctx.regression.slope > 0 else 0.0


def _ema_buy(ctx: VoteContext) -> float:
    return 1.0 if ctx.ema.crossover_signal == BEARISH else 0.0


def _ema_wait(ctx: VoteContext) -> float:
    return 1.0 if ctx.ema.crossover_signal == BULLISH else 0.0


def _rsi_buy(ctx: VoteContext) -> float:
    value = ctx.rsi.value
    if value < ctx.config.rsi_oversold:
        return 1.0
    if value < ctx.config.rsi_midpoint:
        return 0.5
    return 0.0


def _rsi_wait(ctx: VoteContext) -> float:
    value = ctx.rsi.value
    if value > ctx.config.rsi_overbought:
        return 1.0
    if value > ctx.config.rsi_midpoint:
        return 0.5
    return 0.0


def _volatility_buy(ctx: VoteContext) -> float:
    calm = ctx.volatility.risk_score < ctx.config.low_risk
    return 1.0 if calm and ctx.regression.slope < 0 else 0.0


def _volatility_wait(ctx: VoteContext) -> float:
    return 1.0 if ctx.volatility.risk_score > ctx.config.high_risk else 0.0


def _trend_buy(ctx: VoteContext) -> float:
    return 1.0 if ctx.trend == "falling" else 0.0


def _trend_wait(ctx: VoteContext) -> float:
    return 1.0 if ctx.trend == "rising" else 0.0


_RULE_FUNCTIONS: Dict[str, Tuple[Callable[[VoteContext], float], Callable[[VoteContext], float]]] = {
    "regression": (_regression_buy, _regression_wait),
    "ema": (_ema_buy, _ema_wait),
    "rsi": (_rsi_buy, _rsi_wait),
    "volatility": (_volatility_buy, _volatility_wait),
    "trend": (_trend_buy, _trend_wait),
}


def default_vote_rules(config: EngineConfig = DEFAULT_CONFIG) -> List[VoteRule]:
    """
    The five-way vote table, weighted from ``config.vote_weights``.
    """
    rules: List[VoteRule] = []
    for name, (buy, wait) in _RULE_FUNCTIONS.items():
        if name not in config.vote_weights:
            raise ValueError(f"No vote weight configured for '{name}'.")
        rules.append(VoteRule(name=name, weight=config.vote_weights[name], buy=buy, wait=wait))
    return rules


# Aggregation -----------------------------------------------------------------------


class SignalAggregator:
    """
    Turns the per-model results into an :class:`Alert`.

    Buy and wait scores are accumulated independently (they are not complements
    and may both be zero). The decision is taken in strict priority order:
    urgent buy, buy, wait, then hold.
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        rules: Optional[Iterable[VoteRule]] = None,
    ) -> None:
        self.config = config
        self.rules = list(rules) if rules is not None else default_vote_rules(config)
        if not self.rules:
            raise ValueError("At least one vote rule is required.")
        total = sum(rule.weight for rule in self.rules)
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Vote weights must sum to 1.0 (got {total:.4f}).")

    def vote(self, context: VoteContext) -> Tuple[Vote, ...]:
        return tuple(
            Vote(name=rule.name, weight=rule.weight, buy=rule.buy(context), wait=rule.wait(context))
            for rule in self.rules
        )

    def decide(self, buy_score: float, wait_score: float) -> str:
        if buy_score >= self.config.urgent_buy_threshold:
            return URGENT_BUY
        if buy_score >= self.config.buy_threshold:
            return BUY_NOW
        if wait_score >= self.config.wait_threshold:
            return WAIT
        return HOLD

    def aggregate(
        self,
        ingredient: str,
        regression: RegressionResult,
        ema: EMAResult,
        volatility: VolatilityResult,
        rsi: RSIResult,
        trend: str,
        key_factor: str,
        current_price: PriceRange,
        predictions: Sequence[PredictionPoint] = (),
        series_length: int = 0,
    ) -> Alert:
        if trend not in TREND_LABELS:
            raise ValueError(f"Unknown trend label '{trend}'; expected one of {TREND_LABELS}")

        context = VoteContext(
            regression=regression,
            ema=ema,
            rsi=rsi,
            volatility=volatility,
            trend=trend,
            config=self.config,
        )
        votes = self.vote(context)
        buy_score = sum(vote.weight * vote.buy for vote in votes)
        wait_score = sum(vote.weight * vote.wait for vote in votes)

        signal = self.decide(buy_score, wait_score)
        by_horizon = {point.horizon: point for point in predictions}

        return Alert(
            ingredient=ingredient,
            signal=signal,
            confidence=round_half_up(100 * max(buy_score, wait_score)),
            current_price=current_price,
            predicted_7d=_rounded_range(by_horizon.get(7)),
            predicted_30d=_rounded_range(by_horizon.get(30)),
            reasons=self.reasons(context, key_factor),
            risk_score=volatility.risk_score,
            models=self.model_summaries(context, series_length),
            predictions=tuple(predictions),
            buy_score=buy_score,
            wait_score=wait_score,
            votes=votes,
        )

    def reasons(self, context: VoteContext, key_factor: str) -> Tuple[str, ...]:
        config = self.config
        slope = context.regression.slope
        reasons: List[str] = []
        if slope < 0:
            reasons.append(f"regression slope {slope:.2f} (falling)")
        elif slope > 0:
            reasons.append(f"regression slope {slope:.2f} (rising)")
        if context.ema.crossover_signal == BEARISH:
            reasons.append("EMA bearish crossover")
        elif context.ema.crossover_signal == BULLISH:
            reasons.append("EMA bullish crossover")
        if context.rsi.value < config.rsi_oversold:
            reasons.append(f"RSI {context.rsi.value:.0f} oversold")
        if context.rsi.value > config.rsi_overbought:
            reasons.append(f"RSI {context.rsi.value:.0f} overbought")
        if context.volatility.risk_score < config.calm_risk:
            reasons.append("low volatility (stable)")
        if context.volatility.risk_score > config.high_risk:
            reasons.append("high volatility (unstable)")
        reasons.append(key_factor)
        return tuple(reasons)

    def model_summaries(self, context: VoteContext, series_length: int) -> Tuple[ModelSummary, ...]:
        regression = context.regression
        config = self.config
        return (
            ModelSummary(
                name="linear_regression",
                equation=regression.equation,
                prediction=regression.predict(series_length + 6),
                confidence=round_half_up(regression.r_squared * 100),
            ),
            ModelSummary(
                name="ema_crossover",
                equation=(
                    f"EMA_{config.short_span} = {config.short_alpha:.2f} * P_t "
                    f"+ {1 - config.short_alpha:.2f} * EMA_(t-1)"
                ),
                prediction=context.ema.current_short,
                confidence=70,
            ),
            ModelSummary(
                name="rsi",
                equation=f"RSI = {context.rsi.value:.1f}",
                prediction=context.rsi.value,
                confidence=75,
            ),
            ModelSummary(
                name="volatility",
                equation=context.volatility.equation,
                prediction=float(context.volatility.risk_score),
                confidence=80,
            ),
        )


def _rounded_range(point: Optional[PredictionPoint]) -> Optional[PriceRange]:
    if point is None:
        return None
    return PriceRange(low=float(round_half_up(point.low)), high=float(round_half_up(point.high)))


def sort_alerts(alerts: Iterable[Alert]) -> List[Alert]:
    return sorted(alerts, key=lambda alert: SIGNAL_PRIORITY[alert.signal])
