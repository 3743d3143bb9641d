"""Rating records and the read-only store the predictor queries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol

import pandas as pd

from ..data import REQUIRED_COLUMNS, load_reviews, validate_reviews
from ..errors import StoreUnavailable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rating:
    user_id: str
    item_id: str
    stars: int


# item_id -> Rating, all for one user.
UserHistory = Dict[str, Rating]


class RatingStore(Protocol):
    """Lookup contract the predictor relies on. Implementations must allow concurrent reads."""

    def ratings_by_user(self, user_id: str) -> UserHistory:
        ...

    def ratings_by_item(self, item_id: str) -> list[Rating]:
        ...

    def records(self, *, user_id: Optional[str] = None, item_id: Optional[str] = None) -> Iterator[dict[str, Any]]:
        ...


def _clean(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


@dataclass(frozen=True)
class DataFrameRatingStore:
    """In-memory rating store over a reviews DataFrame with lookup maps by user and by item.

    Rows missing any of `user_id`, `item_id`, `stars` are kept for `records()` (so they
    surface as malformed records) but are never indexed.
    """

    df: pd.DataFrame
    by_user: dict[str, dict[str, Rating]]
    by_item: dict[str, list[Rating]]

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "DataFrameRatingStore":
        """Validate `df` and build the user/item indexes."""
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"reviews missing columns: {missing}")

        df = df.reset_index(drop=True).copy()
        df["user_id"] = df["user_id"].astype("string")
        df["item_id"] = df["item_id"].astype("string")
        df["stars"] = pd.to_numeric(df["stars"], errors="coerce").astype("float64")
        validate_reviews(df)

        complete = df.dropna(subset=list(REQUIRED_COLUMNS))
        by_user: dict[str, dict[str, Rating]] = {}
        by_item: dict[str, list[Rating]] = {}
        for uid, iid, stars in zip(
            complete["user_id"].tolist(),
            complete["item_id"].tolist(),
            complete["stars"].tolist(),
        ):
            rating = Rating(user_id=str(uid), item_id=str(iid), stars=int(stars))
            by_user.setdefault(rating.user_id, {})[rating.item_id] = rating
            by_item.setdefault(rating.item_id, []).append(rating)

        logger.info(
            "Rating store indexed: ratings=%d users=%d items=%d unindexed=%d",
            len(complete),
            len(by_user),
            len(by_item),
            len(df) - len(complete),
        )
        return cls(df=df, by_user=by_user, by_item=by_item)

    @classmethod
    def from_path(cls, path: Path | str, *, columns: Optional[Mapping[str, str]] = None) -> "DataFrameRatingStore":
        """Load a CSV / JSON-lines review file. Unreadable input raises `StoreUnavailable`."""
        try:
            df = load_reviews(path, columns=columns)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise StoreUnavailable(f"Could not read ratings from {path}: {exc}") from exc
        return cls.from_dataframe(df)

    def __len__(self) -> int:
        return int(len(self.df))

    def ratings_by_user(self, user_id: str) -> UserHistory:
        return dict(self.by_user.get(str(user_id), {}))

    def ratings_by_item(self, item_id: str) -> list[Rating]:
        return list(self.by_item.get(str(item_id), []))

    def records(self, *, user_id: Optional[str] = None, item_id: Optional[str] = None) -> Iterator[dict[str, Any]]:
        """Yield raw review records, optionally filtered to one user and/or one item.

        Values missing in the source come back as None.
        """
        sub = self.df
        if user_id is not None:
            sub = sub[(sub["user_id"] == str(user_id)).fillna(False).astype(bool)]
        if item_id is not None:
            sub = sub[(sub["item_id"] == str(item_id)).fillna(False).astype(bool)]

        for row in sub.to_dict(orient="records"):
            yield {k: _clean(v) for k, v in row.items()}
