"""
High-level orchestration: run every model over each ingredient and aggregate the signals.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .backtest import BacktestHarness, BacktestReport
from .config import EngineConfig
from .data import IngredientHistory, IngredientSeries, load_daily_prices, load_monthly_prices
from .models import (
    EMAResult,
    PredictionPoint,
    RegressionResult,
    RSIResult,
    SeasonalResult,
    VolatilityResult,
    analyze_ema,
    analyze_rsi,
    analyze_seasonality,
    analyze_volatility,
    fit_regression,
    forecast_horizons,
    summarise_effects,
)
from .signals import Alert, PriceRange, SignalAggregator, sort_alerts

MIN_ANALYSIS_POINTS = 2


@dataclass(frozen=True)
class IngredientAnalysis:
    name: str
    regression: RegressionResult
    ema: EMAResult
    predictions: Tuple[PredictionPoint, ...]
    volatility: VolatilityResult
    rsi: RSIResult
    seasonal: SeasonalResult
    alert: Alert


def analyze_series(
    series: IngredientSeries,
    config: Optional[EngineConfig] = None,
    aggregator: Optional[SignalAggregator] = None,
) -> IngredientAnalysis:
    """
    Run all six models over one ingredient and produce its alert.

    The 7 and 30 day horizons are always forecast because the alert carries them.
    """
    config = config or EngineConfig()
    aggregator = aggregator or SignalAggregator(config)

    if len(series.points) < MIN_ANALYSIS_POINTS:
        raise ValueError(
            f"Insufficient history ({len(series.points)}) for '{series.name}'; "
            f"need at least {MIN_ANALYSIS_POINTS} observations."
        )

    prices = series.prices
    regression = fit_regression(prices)
    ema = analyze_ema(prices, config)
    volatility = analyze_volatility(prices, config)
    rsi = analyze_rsi(prices, config)
    seasonal = analyze_seasonality([point.timestamp for point in series.points], prices)
    predictions = forecast_horizons(prices, regression, config.forecast_horizons(7, 30), config)

    latest = series.points[-1]
    alert = aggregator.aggregate(
        ingredient=series.name,
        regression=regression,
        ema=ema,
        volatility=volatility,
        rsi=rsi,
        trend=series.trend,
        key_factor=series.key_factor,
        current_price=PriceRange(low=latest.low, high=latest.high),
        predictions=predictions,
        series_length=len(prices),
    )

    return IngredientAnalysis(
        name=series.name,
        regression=regression,
        ema=ema,
        predictions=predictions,
        volatility=volatility,
        rsi=rsi,
        seasonal=seasonal,
        alert=alert,
    )


@dataclass
class AnalysisResult:
    alerts: List[Alert]
    details: Dict[str, IngredientAnalysis]
    failures: Dict[str, str] = field(default_factory=dict)
    backtest: Optional[BacktestReport] = None

    def alert_frame(self) -> pd.DataFrame:
        records = []
        for alert in self.alerts:
            detail = self.details[alert.ingredient]
            records.append(
                {
                    "ingredient": alert.ingredient,
                    "signal": alert.signal,
                    "confidence": alert.confidence,
                    "current_low": alert.current_price.low,
                    "current_high": alert.current_price.high,
                    "predicted_7d_low": alert.predicted_7d.low if alert.predicted_7d else None,
                    "predicted_7d_high": alert.predicted_7d.high if alert.predicted_7d else None,
                    "predicted_30d_low": alert.predicted_30d.low if alert.predicted_30d else None,
                    "predicted_30d_high": alert.predicted_30d.high if alert.predicted_30d else None,
                    "risk_score": alert.risk_score,
                    "slope": detail.regression.slope,
                    "r_squared": detail.regression.r_squared,
                    "ema_signal": detail.ema.crossover_signal,
                    "rsi": detail.rsi.value,
                    "weekday_effects": summarise_effects(detail.seasonal),
                    "reason": alert.reason,
                }
            )
        return pd.DataFrame(records)

    def prediction_frame(self) -> pd.DataFrame:
        records = [
            {"ingredient": name, **asdict(point)}
            for name, detail in self.details.items()
            for point in detail.predictions
        ]
        return pd.DataFrame(records)

    def save(self, output_dir: Path) -> Dict[str, Path]:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        paths = {
            "alerts": output_dir / "alerts.csv",
            "predictions": output_dir / "predictions.csv",
            "alerts_json": output_dir / "alerts.json",
        }
        self.alert_frame().to_csv(paths["alerts"], index=False)
        self.prediction_frame().to_csv(paths["predictions"], index=False)
        paths["alerts_json"].write_text(
            json.dumps([asdict(alert) for alert in self.alerts], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        if self.backtest is not None:
            paths["backtest_summary"] = output_dir / "backtest_summary.csv"
            paths["backtest_cases"] = output_dir / "backtest_cases.csv"
            self.backtest.summary_frame().to_csv(paths["backtest_summary"], index=False)
            self.backtest.case_frame().to_csv(paths["backtest_cases"], index=False)
        return paths


class PurchaseSignalPipeline:
    """
    Reads daily ingredient prices, runs the models, aggregates one alert per
    ingredient and optionally backtests the trend model on monthly histories.

    A failure on one ingredient is recorded in ``AnalysisResult.failures`` and
    the remaining ingredients are still processed.
    """

    def __init__(
        self,
        data_path: Optional[Path] = Path("data/daily_prices.csv"),
        history_path: Optional[Path] = None,
        output_dir: Optional[Path] = Path("out"),
        config: Optional[EngineConfig] = None,
        verbose: bool = True,
    ) -> None:
        self.data_path = Path(data_path) if data_path else None
        self.history_path = Path(history_path) if history_path else None
        self.output_dir = Path(output_dir) if output_dir else None
        self.config = config or EngineConfig()
        self.verbose = verbose
        self.aggregator = SignalAggregator(self.config)

    def run(
        self,
        ingredients: Optional[Sequence[IngredientSeries]] = None,
        histories: Optional[Sequence[IngredientHistory]] = None,
    ) -> AnalysisResult:
        if ingredients is None:
            if self.data_path is None:
                raise ValueError("Either ingredients or a data_path must be provided.")
            self._log(f"Loading daily prices from {self.data_path} ...")
            ingredients = load_daily_prices(self.data_path)
        ingredients = list(ingredients)
        names = pd.Series([series.name for series in ingredients], dtype=object)
        duplicated = sorted(set(names[names.duplicated()]))
        if duplicated:
            raise ValueError(f"Duplicate ingredient names: {duplicated}")
        if histories is None and self.history_path is not None:
            self._log(f"Loading monthly history from {self.history_path} ...")
            histories = load_monthly_prices(self.history_path)

        alerts: List[Alert] = []
        details: Dict[str, IngredientAnalysis] = {}
        failures: Dict[str, str] = {}

        for series in ingredients:
            self._log(f"Analysing '{series.name}' ({len(series.points)} observations) ...")
            try:
                analysis = analyze_series(series, self.config, self.aggregator)
            except ValueError as exc:
                failures[series.name] = str(exc)
                self._log(f"Skipping '{series.name}': {exc}")
                continue
            details[series.name] = analysis
            alerts.append(analysis.alert)
            self._log(
                f"'{series.name}' -> {analysis.alert.signal} "
                f"(confidence {analysis.alert.confidence}%, risk {analysis.alert.risk_score}/100)."
            )

        backtest = None
        if histories is not None:
            self._log(f"Backtesting {len(histories)} histories ...")
            backtest = BacktestHarness(self.config, verbose=self.verbose).run_many(histories)

        if failures:
            self._log(f"{len(failures)} of {len(failures) + len(alerts)} ingredients failed.")

        result = AnalysisResult(
            alerts=sort_alerts(alerts),
            details=details,
            failures=failures,
            backtest=backtest,
        )

        if self.output_dir:
            result.save(self.output_dir)
            self._log(f"Results written to {self.output_dir.resolve()}")

        return result

    # Internal ------------------------------------------------------------------------

    def _log(self, message: str) -> None:
        if self.verbose:
            print(f"[pipeline] {message}", flush=True)
