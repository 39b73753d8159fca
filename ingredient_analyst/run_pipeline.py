"""
Command-line entry point for generating purchasing signals from ingredient price history.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional, Sequence

from .config import EngineConfig
from .pipeline import PurchaseSignalPipeline


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Forecast short-term ingredient prices and derive purchasing signals."
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=Path("data/daily_prices.csv"),
        help="Path to the daily prices CSV (ingredient, date, low, high[, trend, key_factor]).",
    )
    parser.add_argument(
        "--history",
        type=Path,
        default=None,
        help="Optional monthly history CSV (ingredient, month, price) to backtest the trend model.",
    )
    parser.add_argument(
        "--horizons",
        type=int,
        nargs="+",
        default=[1, 3, 7, 14, 30],
        help="Forecast horizons in days. The 7 and 30 day horizons are always included.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("out"),
        help="Directory for saving signal and backtest artefacts.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress verbose pipeline logging.",
    )
    return parser.parse_args(argv)


def format_price(value: float) -> str:
    return f"{value:,.0f}"


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    pipeline = PurchaseSignalPipeline(
        data_path=args.data,
        history_path=args.history,
        output_dir=args.output_dir,
        config=EngineConfig(horizons=tuple(args.horizons)),
        verbose=not args.quiet,
    )
    result = pipeline.run()

    alert_df = result.alert_frame()
    if not alert_df.empty:
        for column in ("current_low", "current_high", "predicted_7d_low", "predicted_7d_high"):
            alert_df[column] = alert_df[column].apply(format_price)
        columns = [
            "ingredient",
            "signal",
            "confidence",
            "current_low",
            "current_high",
            "predicted_7d_low",
            "predicted_7d_high",
            "risk_score",
        ]
        print("\n=== Purchasing Signals ===")
        print(alert_df[columns].to_string(index=False))

    if result.backtest is not None:
        print("\n=== Backtest Summary ===")
        print(result.backtest.summary_frame().to_string(index=False))
        for name, message in result.backtest.failures.items():
            print(f"  backtest skipped {name}: {message}")

    if result.failures:
        print(f"\n{len(result.failures)} ingredient(s) could not be analysed:")
        for name, message in result.failures.items():
            print(f"  {name}: {message}")

    print("\nResults saved to:", args.output_dir.resolve())


if __name__ == "__main__":
    main()
