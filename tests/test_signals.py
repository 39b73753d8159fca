"""Tests for the weighted-vote signal aggregator."""

import pytest

from ingredient_analyst.config import EngineConfig
from ingredient_analyst.models import (
    BEARISH,
    BULLISH,
    NEUTRAL,
    EMAResult,
    PredictionPoint,
    RegressionResult,
    RSIResult,
    VolatilityResult,
)
from ingredient_analyst.signals import (
    BUY_NOW,
    HOLD,
    URGENT_BUY,
    WAIT,
    PriceRange,
    SignalAggregator,
    VoteRule,
    default_vote_rules,
    sort_alerts,
)


def regression(slope, intercept=100.0, r_squared=0.9):
    return RegressionResult(slope=slope, intercept=intercept, r_squared=r_squared, standard_error=1.0)


def ema(signal):
    return EMAResult(
        short_series=(100.0,),
        long_series=(100.0,),
        current_short=100.0,
        current_long=100.0,
        crossover_signal=signal,
    )


def rsi(value):
    return RSIResult(value=value, avg_gain=0.0, avg_loss=0.0, signal=NEUTRAL)


def volatility(risk_score):
    return VolatilityResult(daily_returns=(), std_dev=risk_score / 1000, annualized_vol=0.0, risk_score=risk_score)


def aggregate(slope=0.0, ema_signal=NEUTRAL, rsi_value=50.0, risk_score=0, trend="flat", **kwargs):
    aggregator = kwargs.pop("aggregator", SignalAggregator())
    return aggregator.aggregate(
        ingredient="Sugar",
        regression=regression(slope),
        ema=ema(ema_signal),
        volatility=volatility(risk_score),
        rsi=rsi(rsi_value),
        trend=trend,
        key_factor="global surplus",
        current_price=PriceRange(low=800.0, high=990.0),
        **kwargs,
    )


def test_all_buy_rules_fire_urgent_buy():
    alert = aggregate(slope=-2.0, ema_signal=BEARISH, rsi_value=25.0, risk_score=15, trend="falling")
    assert alert.buy_score == pytest.approx(1.0)
    assert alert.wait_score == 0
    assert alert.signal == URGENT_BUY
    assert alert.confidence == 100


def test_flat_inputs_hold_with_zero_confidence():
    alert = aggregate()
    assert alert.buy_score == 0
    assert alert.wait_score == 0
    assert alert.signal == HOLD
    assert alert.confidence == 0


def test_buy_now_band():
    alert = aggregate(slope=-1.0, rsi_value=40.0, risk_score=45, trend="falling")
    assert alert.buy_score == pytest.approx(0.525)
    assert alert.signal == BUY_NOW


def test_wait_signal():
    alert = aggregate(slope=1.5, ema_signal=BULLISH, rsi_value=80.0)
    assert alert.buy_score == 0
    assert alert.wait_score == pytest.approx(0.7)
    assert alert.signal == WAIT
    assert alert.confidence == 70


def test_buy_takes_priority_over_wait():
    alert = aggregate(slope=-1.0, ema_signal=BULLISH, rsi_value=25.0, risk_score=70, trend="rising")
    assert alert.buy_score == pytest.approx(0.5)
    assert alert.wait_score == pytest.approx(0.5)
    assert alert.signal == BUY_NOW


def test_rsi_half_votes():
    assert aggregate(rsi_value=30.0).buy_score == pytest.approx(0.125)
    assert aggregate(rsi_value=70.0).wait_score == pytest.approx(0.125)
    assert aggregate(rsi_value=50.0).buy_score == 0
    assert aggregate(rsi_value=50.0).wait_score == 0


def test_volatility_buy_requires_falling_slope():
    calm_flat = aggregate(risk_score=10)
    calm_falling = aggregate(slope=-1.0, risk_score=10)
    votes = {vote.name: vote for vote in calm_falling.votes}
    assert calm_flat.buy_score == 0
    assert votes["volatility"].buy == 1.0
    assert votes["regression"].buy == 1.0


def test_reasons_end_with_key_factor():
    alert = aggregate(slope=-2.0, ema_signal=BEARISH, rsi_value=25.0, risk_score=15, trend="falling")
    assert alert.reasons == (
        "regression slope -2.00 (falling)",
        "EMA bearish crossover",
        "RSI 25 oversold",
        "low volatility (stable)",
        "global surplus",
    )
    assert alert.reason.endswith("global surplus")


def test_reasons_for_unstable_rising_market():
    alert = aggregate(slope=3.0, ema_signal=BULLISH, rsi_value=85.0, risk_score=75, trend="rising")
    assert "high volatility (unstable)" in alert.reasons
    assert "RSI 85 overbought" in alert.reasons
    assert alert.reasons[-1] == "global surplus"


def test_reasons_report_rising_slope_and_bullish_crossover():
    alert = aggregate(slope=1.5, ema_signal=BULLISH, rsi_value=50.0, risk_score=40, trend="rising")
    assert alert.reasons == (
        "regression slope 1.50 (rising)",
        "EMA bullish crossover",
        "global surplus",
    )


def test_prediction_ranges_and_model_summaries():
    predictions = (
        PredictionPoint(horizon=7, predicted=780.4, low=760.4, high=800.6, confidence=57),
        PredictionPoint(horizon=30, predicted=700.0, low=640.2, high=759.5, confidence=9),
    )
    alert = aggregate(slope=-2.0, predictions=predictions, series_length=7)
    assert alert.predicted_7d == PriceRange(low=760.0, high=801.0)
    assert alert.predicted_30d == PriceRange(low=640.0, high=760.0)
    assert alert.models[0].prediction == pytest.approx(-2.0 * 13 + 100.0)
    assert alert.models[0].confidence == 90
    assert [model.name for model in alert.models] == ["linear_regression", "ema_crossover", "rsi", "volatility"]


def test_missing_horizons_leave_ranges_empty():
    alert = aggregate()
    assert alert.predicted_7d is None
    assert alert.predicted_30d is None


def test_unknown_trend_label_rejected():
    with pytest.raises(ValueError):
        aggregate(trend="sideways")


def test_aggregation_is_deterministic():
    first = aggregate(slope=-2.0, ema_signal=BEARISH, rsi_value=35.0, risk_score=40, trend="falling")
    second = aggregate(slope=-2.0, ema_signal=BEARISH, rsi_value=35.0, risk_score=40, trend="falling")
    assert first == second


def test_custom_weights_change_outcome():
    weights = {"regression": 0.6, "ema": 0.1, "rsi": 0.1, "volatility": 0.1, "trend": 0.1}
    aggregator = SignalAggregator(EngineConfig(vote_weights=weights))
    alert = aggregate(slope=-1.0, risk_score=45, aggregator=aggregator)
    assert alert.buy_score == pytest.approx(0.6)
    assert alert.signal == BUY_NOW


def test_weights_must_sum_to_one():
    with pytest.raises(ValueError):
        EngineConfig(vote_weights={"regression": 0.5, "ema": 0.2, "rsi": 0.2, "volatility": 0.2, "trend": 0.2})

    rules = default_vote_rules()[:2]
    with pytest.raises(ValueError):
        SignalAggregator(rules=rules)


def test_custom_rules_accepted():
    rule = VoteRule(name="always_buy", weight=1.0, buy=lambda ctx: 1.0, wait=lambda ctx: 0.0)
    alert = aggregate(aggregator=SignalAggregator(rules=[rule]))
    assert alert.signal == URGENT_BUY


def test_sort_alerts_by_urgency():
    hold = aggregate()
    wait = aggregate(slope=1.5, ema_signal=BULLISH, rsi_value=80.0)
    urgent = aggregate(slope=-2.0, ema_signal=BEARISH, rsi_value=25.0, risk_score=15, trend="falling")
    assert [alert.signal for alert in sort_alerts([wait, hold, urgent])] == [URGENT_BUY, HOLD, WAIT]
