from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional, Tuple

import pandas as pd


logger = logging.getLogger(__name__)


REQUIRED_COLUMNS: Tuple[str, ...] = ("user_id", "item_id", "stars")

# Source column -> canonical column. The Yelp review dump names items `business_id`.
DEFAULT_COLUMN_MAP: dict[str, str] = {"business_id": "item_id"}

MIN_STARS = 1
MAX_STARS = 5


def load_reviews(path: Path | str, *, columns: Optional[Mapping[str, str]] = None) -> pd.DataFrame:
    """Load review records from a CSV or JSON-lines file.

    Notes
    -----
    Ids are kept as nullable strings and stars as float64 so that incomplete rows
    survive loading; they are reported as malformed records at prediction time
    rather than failing the whole load.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Ratings file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(path, dtype=str)
    elif suffix in (".json", ".jsonl", ".ndjson"):
        df = pd.read_json(path, lines=True, dtype=False)
    else:
        raise ValueError(f"Unsupported ratings file type {suffix!r} (expected .csv or .json lines)")

    column_map = dict(DEFAULT_COLUMN_MAP if columns is None else columns)
    df = df.rename(columns=column_map)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path.name} missing columns: {missing}")

    df = df[list(REQUIRED_COLUMNS)].copy()
    df["user_id"] = df["user_id"].astype("string")
    df["item_id"] = df["item_id"].astype("string")
    df["stars"] = pd.to_numeric(df["stars"], errors="coerce").astype("float64")

    validate_reviews(df)
    logger.info("Loaded %d review records from %s", len(df), path)
    return df


def validate_reviews(df: pd.DataFrame) -> None:
    """Validate columns and basic constraints on complete review rows."""
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"reviews missing columns: {missing}")

    complete = df.dropna(subset=list(REQUIRED_COLUMNS))
    stars = complete["stars"].astype("float64")

    if ((stars % 1) != 0).any():
        bad_values = sorted(set(stars[(stars % 1) != 0].tolist()))
        raise ValueError(f"reviews have non-integral stars: {bad_values}")

    bad_mask = ~stars.between(MIN_STARS, MAX_STARS)
    if bad_mask.any():
        bad_values = sorted(set(stars[bad_mask].tolist()))
        raise ValueError(f"reviews have stars outside {MIN_STARS}..{MAX_STARS}: {bad_values}")

    if complete.duplicated(subset=["user_id", "item_id"]).any():
        raise ValueError("reviews contain duplicate (user_id, item_id) rows")

    n_incomplete = int(len(df) - len(complete))
    if n_incomplete:
        logger.warning("%d review records are missing user_id, item_id or stars", n_incomplete)
