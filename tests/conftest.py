"""
Shared fixtures for the ingredient analyst tests.
"""

import datetime as dt

import pytest

from ingredient_analyst.data import IngredientHistory, IngredientSeries, MonthlyPrice, PricePoint


def make_points(lows, highs, start=dt.date(2026, 2, 13)):
    return tuple(
        PricePoint(timestamp=start + dt.timedelta(days=offset), low=low, high=high)
        for offset, (low, high) in enumerate(zip(lows, highs))
    )


@pytest.fixture
def flour_series():
    # Seven days of softening flour quotes.
    lows = [780, 775, 775, 775, 770, 750, 750]
    highs = [870, 865, 865, 865, 860, 855, 850]
    return IngredientSeries(
        name="Wheat Flour",
        points=make_points(lows, highs),
        trend="falling",
        key_factor="B2B price cut and weak wheat futures",
    )


@pytest.fixture
def flat_series():
    return IngredientSeries(
        name="Fresh Milk",
        points=make_points([1850] * 7, [2250] * 7),
        trend="flat",
        key_factor="raw milk price fixed",
    )


@pytest.fixture
def linear_history():
    records = tuple(
        MonthlyPrice(period=f"2025-{month:02d}", price=100.0 + 2 * index)
        for index, month in enumerate(range(1, 13))
    )
    return IngredientHistory(name="Linear", records=records)


@pytest.fixture
def points_factory():
    return make_points
