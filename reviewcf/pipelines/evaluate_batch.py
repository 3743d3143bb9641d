from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import yaml

from ..paths import get_repo_root, resolve_path
from ..store.cache import UserHistoryCache
from ..store.ratings import DataFrameRatingStore
from ..user_cf.config import CFConfig
from ..user_cf.evaluate import evaluate_accuracy
from ..user_cf.predictor import PredictionResult, UserCFPredictor
from ..utils import setup_logging


logger = logging.getLogger(__name__)


def load_config(config_path: Path) -> dict[str, Any]:
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")
    config = yaml.safe_load(config_path.read_text())
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Expected config YAML to be a mapping, got: {type(config)}")
    return config


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name)
    return value if isinstance(value, dict) else {}


def load_store(config: dict[str, Any], *, repo_root: Path, ratings_path: Path | None = None) -> DataFrameRatingStore:
    dataset_cfg = _section(config, "dataset")
    if ratings_path is None:
        if not dataset_cfg.get("ratings_path"):
            raise ValueError("config.yaml must set dataset.ratings_path (or pass a ratings path)")
        ratings_path = Path(str(dataset_cfg["ratings_path"]))
    columns = dataset_cfg.get("columns")
    if columns is not None and not isinstance(columns, dict):
        raise ValueError("dataset.columns must be a mapping of source column -> canonical column")
    return DataFrameRatingStore.from_path(resolve_path(repo_root, ratings_path), columns=columns)


def log_result(result: PredictionResult) -> None:
    if result.predicted_stars is None:
        logger.info(
            "Insufficient data to predict rating: user_id=%s item_id=%s stars=%d candidates=%d",
            result.user_id,
            result.item_id,
            result.actual_stars,
            result.total_candidate_count,
        )
        return
    logger.info(
        "user_id=%s item_id=%s stars=%d predicted=%.4f candidates=%d used=%d",
        result.user_id,
        result.item_id,
        result.actual_stars,
        result.predicted_stars,
        result.total_candidate_count,
        result.used_count,
    )


def evaluate_store(
    store: DataFrameRatingStore,
    cfg: CFConfig,
    *,
    user_id: Optional[str] = None,
    item_id: Optional[str] = None,
    workers: int | None = None,
) -> dict[str, Any]:
    """Predict every selected record of `store` and summarize accuracy.

    Selection: both ids => one (user, item) pair; one id => that user's / item's
    records; neither => all records.
    """
    cache = UserHistoryCache() if cfg.cache_histories else None
    predictor = UserCFPredictor(store, config=cfg, cache=cache)
    try:
        records = list(store.records(user_id=user_id, item_id=item_id))
        logger.info("Evaluating %d records (user_id=%s item_id=%s)", len(records), user_id, item_id)

        results = predictor.predict_records(records, workers=workers)
        for result in results:
            log_result(result)
    finally:
        if cache is not None:
            cache.clear()

    accuracy = evaluate_accuracy(results)
    logger.info("%s", accuracy)

    n_insufficient = sum(1 for r in results if r.predicted_stars is None)
    return {
        "selection": {"user_id": user_id, "item_id": item_id, "records": len(records)},
        "accuracy": accuracy.to_dict(),
        "skipped": {"malformed": len(records) - len(results), "insufficient": n_insufficient},
        "results": results,
    }


def run_evaluation(
    *,
    config_path: Path | None,
    ratings_path: Path | None = None,
    user_id: Optional[str] = None,
    item_id: Optional[str] = None,
    workers: int | None = None,
    cache_histories: bool | None = None,
    report_path: Path | None = None,
) -> dict[str, Any]:
    """Load config and ratings, evaluate the selected records, optionally write a JSON report.

    With `config_path=None` the algorithm defaults apply and `ratings_path` is required.
    """
    try:
        repo_root = get_repo_root()
    except FileNotFoundError:
        if config_path is not None:
            raise
        repo_root = Path.cwd().resolve()
    config = {} if config_path is None else load_config(resolve_path(repo_root, config_path))

    cfg = CFConfig.from_mapping(_section(config, "user_cf"))
    if cache_histories is not None:
        cfg = CFConfig(**{**cfg.to_dict(), "cache_histories": bool(cache_histories)})

    store = load_store(config, repo_root=repo_root, ratings_path=ratings_path)
    summary = evaluate_store(store, cfg, user_id=user_id, item_id=item_id, workers=workers)

    if report_path is None and _section(config, "report").get("path"):
        report_path = Path(str(_section(config, "report")["path"]))

    if report_path is not None:
        report_path = resolve_path(repo_root, report_path)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report = {
            "built_at_utc": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "dataset": {"ratings": len(store), "users": len(store.by_user), "items": len(store.by_item)},
            "config": cfg.to_dict(),
            "selection": summary["selection"],
            "accuracy": summary["accuracy"],
            "skipped": summary["skipped"],
        }
        report_path.write_text(json.dumps(report, indent=2, sort_keys=True) + "\n")
        logger.info("Wrote evaluation report to %s", report_path)

    return summary


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Evaluate user-based CF predictions (RMSE) over stored ratings.")
    p.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config YAML.")
    p.add_argument("--ratings", type=Path, default=None, help="Override dataset.ratings_path")
    p.add_argument("--user-id", type=str, default=None, help="Only evaluate this user's ratings")
    p.add_argument("--item-id", type=str, default=None, help="Only evaluate ratings of this item")
    p.add_argument("--workers", type=int, default=None, help="Thread pool size (default from config)")
    p.add_argument("--cache-histories", action="store_true", help="Cache user histories for this run")
    p.add_argument("--report", type=Path, default=None, help="Write a JSON report here")
    p.add_argument("--log-level", type=str, default="INFO")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level.upper())

    run_evaluation(
        config_path=args.config,
        ratings_path=args.ratings,
        user_id=args.user_id,
        item_id=args.item_id,
        workers=args.workers,
        cache_histories=(True if args.cache_histories else None),
        report_path=args.report,
    )


if __name__ == "__main__":
    main()
