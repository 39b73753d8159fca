# flake8: noqa
"""
Analyst package that turns short ingredient price histories into purchasing signals.

This package fits six statistical models (trend regression, EMA crossover,
extrapolation, volatility, RSI and weekday seasonality) over a price series,
combines them through a weighted vote into an alert, and backtests the trend
model against longer monthly histories.
"""

from .backtest import BacktestCase, BacktestHarness, BacktestSummary  # noqa: F401
from .config import EngineConfig  # noqa: F401
from .data import IngredientHistory, IngredientSeries, MonthlyPrice, PricePoint  # noqa: F401
from .pipeline import AnalysisResult, PurchaseSignalPipeline, analyze_series  # noqa: F401
from .signals import Alert, SignalAggregator  # noqa: F401
