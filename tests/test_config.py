"""Tests for engine configuration validation."""

import pytest

from ingredient_analyst.config import DEFAULT_VOTE_WEIGHTS, EngineConfig


def test_defaults():
    config = EngineConfig()
    assert config.short_alpha == 0.5
    assert config.long_alpha == 0.25
    assert config.vote_weights == DEFAULT_VOTE_WEIGHTS
    assert sum(config.vote_weights.values()) == pytest.approx(1.0)


def test_forecast_horizons_merge_required():
    config = EngineConfig(horizons=(14, 1))
    assert config.forecast_horizons(7, 30) == (1, 7, 14, 30)
    assert config.forecast_horizons() == (1, 14)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"short_span": 7, "long_span": 3},
        {"short_span": 0},
        {"horizons": ()},
        {"horizons": (0, 7)},
        {"rsi_oversold": 60.0},
        {"urgent_buy_threshold": 0.4},
        {"min_training_points": 1},
        {"confidence_floor": -1},
    ],
)
def test_invalid_configurations(kwargs):
    with pytest.raises(ValueError):
        EngineConfig(**kwargs)


def test_config_is_hashable_and_weights_read_only():
    weights = dict(DEFAULT_VOTE_WEIGHTS)
    config = EngineConfig(vote_weights=weights)
    assert hash(config) == hash(EngineConfig())
    assert config == EngineConfig()

    weights["regression"] = 0.9
    assert config.vote_weights["regression"] == 0.25
    with pytest.raises(TypeError):
        config.vote_weights["regression"] = 0.9
    with pytest.raises(TypeError):
        DEFAULT_VOTE_WEIGHTS["regression"] = 0.9
