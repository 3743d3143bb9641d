from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from ..pipelines.evaluate_batch import run_evaluation
from ..utils import setup_logging


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Predict stored ratings with user-based CF and report RMSE")
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config YAML (default: config.yaml unless --ratings is given alone)",
    )
    p.add_argument("--ratings", type=Path, default=None, help="Reviews file (.csv or .json lines); overrides the config")
    p.add_argument("--user-id", type=str, default=None, help="Only predict this user's ratings")
    p.add_argument("--item-id", type=str, default=None, help="Only predict ratings of this item")
    p.add_argument("--workers", type=int, default=None, help="Thread pool size (default from config)")
    p.add_argument("--cache-histories", action="store_true", help="Cache user histories for this run")
    p.add_argument("--report", type=Path, default=None, help="Write a JSON report here")
    p.add_argument("--show", type=int, default=20, help="How many result rows to print")
    p.add_argument("--log-level", type=str, default="WARNING")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level.upper())

    config_path = args.config
    if config_path is None and args.ratings is None:
        config_path = Path("config.yaml")

    summary = run_evaluation(
        config_path=config_path,
        ratings_path=args.ratings,
        user_id=args.user_id,
        item_id=args.item_id,
        workers=args.workers,
        cache_histories=(True if args.cache_histories else None),
        report_path=args.report,
    )

    print("\n=== Predictions ===")
    results = summary["results"]
    if results:
        df = pd.DataFrame([r.to_dict() for r in results])
        print(df.head(int(args.show)).to_string(index=False))
    else:
        print("No rating records matched the selection.")

    print("\n=== Accuracy ===")
    accuracy = summary["accuracy"]
    if accuracy["count"] == 0:
        print("RMS(0)")
    else:
        print(f"RMS({accuracy['count']}) = {accuracy['rms']:.4f}")
    print(f"Skipped: malformed={summary['skipped']['malformed']} insufficient={summary['skipped']['insufficient']}")


if __name__ == "__main__":
    main()
