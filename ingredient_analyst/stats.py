"""
Scalar statistics shared by the forecasting models.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np


def as_series(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


def index_positions(n: int) -> np.ndarray:
    """Regression abscissae ``0..n-1`` for a series of length ``n``."""
    return np.arange(n, dtype=float)


def mean(values: Sequence[float]) -> float:
    array = as_series(values)
    if array.size == 0:
        return 0.0
    return float(np.mean(array))


def sum_of_squares(values: Sequence[float], center: float) -> float:
    array = as_series(values)
    return float(np.sum((array - center) ** 2))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, unlike ``round``."""
    return int(math.floor(value + 0.5))


def sample_std(values: Sequence[float]) -> float:
    """
    Sample standard deviation with Bessel's correction.

    The ``N - 1`` denominator is floored at 1 so a single observation yields 0
    instead of dividing by zero. An empty input also yields 0.
    """
    array = as_series(values)
    if array.size == 0:
        return 0.0
    variance = sum_of_squares(array, mean(array)) / max(1, array.size - 1)
    return float(np.sqrt(variance))
