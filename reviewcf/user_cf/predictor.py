"""Per-record orchestration: history lookups, similarity, neighbor selection, prediction."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Optional, Union

import pandas as pd

from ..store.cache import UserHistoryCache
from ..store.ratings import Rating, RatingStore, UserHistory
from .config import CFConfig
from .neighbors import Neighbor, is_usable, select
from .prediction import MAX_STARS, MIN_STARS, weighted_prediction
from .similarity import similarity


logger = logging.getLogger(__name__)

RatingRecord = Union[Rating, Mapping[str, Any]]


@dataclass(frozen=True)
class PredictionResult:
    user_id: str
    item_id: str
    actual_stars: int
    total_candidate_count: int  # neighbors that passed the usability filter
    used_count: int  # neighbor limit the prediction was bounded by
    predicted_stars: Optional[float] = None  # None => insufficient data

    @property
    def has_prediction(self) -> bool:
        return self.predicted_stars is not None

    @property
    def error(self) -> Optional[float]:
        if self.predicted_stars is None:
            return None
        return float(self.predicted_stars) - float(self.actual_stars)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_rating(
    record: Optional[RatingRecord],
    *,
    min_stars: int = MIN_STARS,
    max_stars: int = MAX_STARS,
) -> Optional[Rating]:
    """Return a Rating if the record carries user_id, item_id and whole stars within
    `min_stars..max_stars`, else None."""
    if record is None:
        return None
    if isinstance(record, Rating):
        return record if int(min_stars) <= record.stars <= int(max_stars) else None

    user_id = record.get("user_id")
    item_id = record.get("item_id")
    stars = record.get("stars")
    if _missing(user_id) or _missing(item_id) or _missing(stars):
        return None
    try:
        stars_value = float(stars)
    except (TypeError, ValueError):
        return None
    if not stars_value.is_integer() or not int(min_stars) <= stars_value <= int(max_stars):
        return None
    stars_int = int(stars_value)
    return Rating(user_id=str(user_id), item_id=str(item_id), stars=stars_int)


class UserCFPredictor:
    """Predicts a stored rating from the other raters of the same item.

    Every call recomputes from the store. An optional `UserHistoryCache` can be
    injected for the duration of a run.
    """

    def __init__(
        self,
        store: RatingStore,
        *,
        config: CFConfig | None = None,
        cache: UserHistoryCache | None = None,
    ) -> None:
        self.store = store
        self.config = config if config is not None else CFConfig()
        self.cache = cache

    def _history(self, user_id: str) -> UserHistory:
        if self.cache is None:
            return self.store.ratings_by_user(user_id)
        return self.cache.get_or_load(user_id, self.store.ratings_by_user)

    def candidate_neighbors(self, target: Rating) -> list[Neighbor]:
        """Usable neighbors among the other raters of `target.item_id`."""
        cfg = self.config
        target_history = self._history(target.user_id)

        out: list[Neighbor] = []
        for other in self.store.ratings_by_item(target.item_id):
            if other.user_id == target.user_id:
                continue
            score = similarity(
                target_history,
                self._history(other.user_id),
                exclude_item=target.item_id,
                min_common=cfg.min_common,
            )
            if not is_usable(
                score,
                reject_negative=cfg.reject_negative_pcc,
                min_threshold=cfg.min_pcc_threshold,
            ):
                continue
            neighbor = Neighbor(rater_id=other.user_id, stars=int(other.stars), similarity=score)
            logger.debug("Accept neighbor %s", neighbor)
            out.append(neighbor)
        return out

    def predict_rating(self, record: Optional[RatingRecord]) -> Optional[PredictionResult]:
        """Predict one rating record.

        Returns None for a malformed record. Otherwise returns a PredictionResult whose
        `predicted_stars` is None when no neighbor could contribute.
        """
        cfg = self.config
        target = parse_rating(record, min_stars=cfg.min_stars, max_stars=cfg.max_stars)
        if target is None:
            logger.debug("Skipping malformed rating record: %r", record)
            return None

        candidates = self.candidate_neighbors(target)
        ordered, limit = select(candidates, max_sample=cfg.max_sample)
        predicted = weighted_prediction(
            ordered,
            limit,
            min_stars=cfg.min_stars,
            max_stars=cfg.max_stars,
        )

        result = PredictionResult(
            user_id=target.user_id,
            item_id=target.item_id,
            actual_stars=int(target.stars),
            total_candidate_count=len(candidates),
            used_count=int(limit),
            predicted_stars=(None if predicted is None else float(predicted)),
        )
        logger.debug("Prediction %s", result)
        return result

    def predict_pair(self, user_id: str, item_id: str) -> Optional[PredictionResult]:
        """Predict the stored rating of `user_id` for `item_id`; None if it does not exist."""
        rating = self.store.ratings_by_user(str(user_id)).get(str(item_id))
        if rating is None:
            return None
        return self.predict_rating(rating)

    def predict_records(
        self,
        records: Iterable[Optional[RatingRecord]],
        *,
        workers: int | None = None,
    ) -> list[PredictionResult]:
        """Predict many records, dropping malformed ones. Output keeps input order."""
        n_workers = int(workers if workers is not None else self.config.workers)
        if n_workers <= 1:
            results = [self.predict_rating(r) for r in records]
        else:
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                results = list(executor.map(self.predict_rating, records))
        return [r for r in results if r is not None]
