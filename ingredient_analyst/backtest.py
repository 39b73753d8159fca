"""
Rolling-window validation of the trend extrapolation against historical prices.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_percentage_error
from sklearn.model_selection import TimeSeriesSplit

from .calendar import period_label, window_label
from .config import EngineConfig
from .data import IngredientHistory
from .models import DEFAULT_CONFIG, extrapolate_raw, fit_regression

_EPSILON = np.finfo(np.float64).eps


@dataclass(frozen=True)
class BacktestCase:
    training_window_label: str
    target_label: str
    actual_next: float
    predicted: float
    low: float
    high: float
    abs_pct_error: float
    in_confidence_band: bool
    direction_correct: bool


@dataclass(frozen=True)
class BacktestSummary:
    name: str
    cases: Tuple[BacktestCase, ...]
    mape: float
    hit_rate: float
    direction_accuracy: float

    @property
    def grade(self) -> str:
        return grade_mape(self.mape)

    @property
    def hits(self) -> int:
        return sum(case.in_confidence_band for case in self.cases)

    @property
    def direction_hits(self) -> int:
        return sum(case.direction_correct for case in self.cases)


@dataclass
class BacktestReport:
    summaries: List[BacktestSummary] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    def summary_frame(self) -> pd.DataFrame:
        records = [
            {
                "ingredient": summary.name,
                "windows": len(summary.cases),
                "mape_pct": round(summary.mape, 2),
                "hit_rate_pct": round(summary.hit_rate, 1),
                "direction_accuracy_pct": round(summary.direction_accuracy, 1),
                "grade": summary.grade,
            }
            for summary in self.summaries
        ]
        return pd.DataFrame(
            records,
            columns=["ingredient", "windows", "mape_pct", "hit_rate_pct", "direction_accuracy_pct", "grade"],
        )

    def case_frame(self) -> pd.DataFrame:
        frames = []
        for summary in self.summaries:
            frame = pd.DataFrame([asdict(case) for case in summary.cases])
            frame.insert(0, "ingredient", summary.name)
            frames.append(frame)
        if not frames:
            return pd.DataFrame()
        return pd.concat(frames, ignore_index=True)


def grade_mape(mape: float) -> str:
    """Reporting grade only; it plays no part in the forecast itself."""
    if mape < 5:
        return "excellent"
    if mape < 10:
        return "good"
    if mape < 20:
        return "fair"
    return "poor"


class BacktestHarness:
    """
    Expanding-window, one-step-ahead validation.

    For each window end ``w`` from ``min_training_points - 1`` to ``m - 2`` the
    regression is fitted on ``series[0..w]`` and its forecast is compared with
    ``series[w + 1]``. No state is shared between series.
    """

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG, verbose: bool = False) -> None:
        self.config = config
        self.verbose = verbose

    def windows(self, length: int) -> List[Tuple[np.ndarray, int]]:
        """Training positions and target position for every window of a series."""
        min_train = self.config.min_training_points
        if length < min_train + 1:
            return []

        splitter = TimeSeriesSplit(n_splits=max(2, length - min_train), test_size=1)
        windows: List[Tuple[np.ndarray, int]] = []
        for train_index, test_index in splitter.split(np.arange(length)):
            if len(train_index) < min_train:
                continue
            windows.append((train_index, int(test_index[0])))
        return windows

    def evaluate(
        self,
        prices: Sequence[float],
        periods: Optional[Sequence[str]] = None,
        name: str = "",
    ) -> BacktestSummary:
        values = np.asarray(prices, dtype=float)
        if periods is not None and len(periods) != len(values):
            raise ValueError(f"Got {len(periods)} period labels for {len(values)} prices.")

        cases: List[BacktestCase] = []
        for train_index, target in self.windows(len(values)):
            train = values[train_index]
            actual = float(values[target])
            regression = fit_regression(train)
            predicted, margin = extrapolate_raw(train, 1, regression, z_score=self.config.z_score)
            low, high = predicted - margin, predicted + margin

            actual_delta = actual - float(train[-1])
            direction_correct = (actual_delta >= 0) == (regression.slope >= 0)

            cases.append(
                BacktestCase(
                    training_window_label=window_label(int(train_index[0]), int(train_index[-1]), periods),
                    target_label=period_label(target, periods),
                    actual_next=actual,
                    predicted=predicted,
                    low=low,
                    high=high,
                    abs_pct_error=abs(predicted - actual) / max(abs(actual), _EPSILON) * 100,
                    in_confidence_band=low <= actual <= high,
                    direction_correct=direction_correct,
                )
            )

        summary = self._summarise(name, cases)
        if self.verbose:
            print(
                f"[backtest] {name or 'series'}: {len(cases)} windows, MAPE {summary.mape:.2f}% "
                f"({summary.grade}), hit rate {summary.hit_rate:.1f}%, "
                f"direction {summary.direction_accuracy:.1f}%",
                flush=True,
            )
        return summary

    def evaluate_history(self, history: IngredientHistory) -> BacktestSummary:
        required = self.config.min_training_points + 1
        if len(history.records) < required:
            raise ValueError(
                f"Insufficient history ({len(history.records)}) for '{history.name}'; "
                f"need at least {required} observations."
            )
        return self.evaluate(history.prices, periods=history.periods, name=history.name)

    def run_many(self, histories: Iterable[IngredientHistory]) -> BacktestReport:
        """Backtest each history independently; a failing item does not stop the batch."""
        report = BacktestReport()
        for history in histories:
            try:
                report.summaries.append(self.evaluate_history(history))
            except ValueError as exc:
                report.failures[history.name] = str(exc)
                if self.verbose:
                    print(f"[backtest] Skipping '{history.name}': {exc}", flush=True)
        if self.verbose and report.failures:
            print(f"[backtest] {len(report.failures)} histories failed.", flush=True)
        return report

    # Internal ------------------------------------------------------------------------

    @staticmethod
    def _summarise(name: str, cases: List[BacktestCase]) -> BacktestSummary:
        if not cases:
            return BacktestSummary(name=name, cases=(), mape=0.0, hit_rate=0.0, direction_accuracy=0.0)

        actual = np.array([case.actual_next for case in cases])
        predicted = np.array([case.predicted for case in cases])
        mape = float(mean_absolute_percentage_error(actual, predicted)) * 100
        hit_rate = sum(case.in_confidence_band for case in cases) / len(cases) * 100
        direction_accuracy = sum(case.direction_correct for case in cases) / len(cases) * 100

        return BacktestSummary(
            name=name,
            cases=tuple(cases),
            mape=mape,
            hit_rate=hit_rate,
            direction_accuracy=direction_accuracy,
        )
