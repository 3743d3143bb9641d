from __future__ import annotations

from collections import Counter

import pandas as pd
import pytest

from reviewcf.errors import StoreUnavailable
from reviewcf.store.cache import UserHistoryCache
from reviewcf.store.ratings import DataFrameRatingStore, Rating, UserHistory
from reviewcf.user_cf.config import CFConfig
from reviewcf.user_cf.predictor import UserCFPredictor, parse_rating


class CountingStore:
    """Wraps a store and counts history lookups per user."""

    def __init__(self, inner: DataFrameRatingStore) -> None:
        self.inner = inner
        self.user_calls: Counter[str] = Counter()

    def ratings_by_user(self, user_id: str) -> UserHistory:
        self.user_calls[user_id] += 1
        return self.inner.ratings_by_user(user_id)

    def ratings_by_item(self, item_id: str) -> list[Rating]:
        return self.inner.ratings_by_item(item_id)

    def records(self, *, user_id=None, item_id=None):
        return self.inner.records(user_id=user_id, item_id=item_id)


class BrokenStore:
    def ratings_by_user(self, user_id: str) -> UserHistory:
        return {}

    def ratings_by_item(self, item_id: str) -> list[Rating]:
        raise StoreUnavailable("connection refused")

    def records(self, *, user_id=None, item_id=None):
        return iter(())


@pytest.fixture()
def store(reviews_df: pd.DataFrame) -> DataFrameRatingStore:
    return DataFrameRatingStore.from_dataframe(reviews_df)


def test_predicts_from_the_only_usable_neighbor(store: DataFrameRatingStore) -> None:
    predictor = UserCFPredictor(store)

    result = predictor.predict_rating({"user_id": "U", "item_id": "D", "stars": 3})

    # V correlates perfectly with U; W has no variance and X is anti-correlated.
    assert result is not None
    assert result.actual_stars == 3
    assert result.total_candidate_count == 1
    assert result.used_count == 1
    assert result.predicted_stars == pytest.approx(1.0)


def test_prediction_for_each_rater_of_an_item(store: DataFrameRatingStore) -> None:
    predictor = UserCFPredictor(store)

    by_user = {r.user_id: r for r in predictor.predict_records(store.ratings_by_item("D"))}

    assert by_user["V"].predicted_stars == pytest.approx(3.0)
    assert by_user["W"].predicted_stars is None
    assert by_user["W"].total_candidate_count == 0
    assert by_user["X"].predicted_stars is None


def test_no_overlap_is_insufficient_data(store: DataFrameRatingStore) -> None:
    result = UserCFPredictor(store).predict_rating(Rating("Y", "E", 4))

    assert result is not None
    assert result.predicted_stars is None
    assert result.total_candidate_count == 0
    assert result.used_count == 0
    assert result.has_prediction is False


@pytest.mark.parametrize(
    "record",
    [
        None,
        {"user_id": "U", "stars": 3},
        {"item_id": "D", "stars": 3},
        {"user_id": "U", "item_id": "D"},
        {"user_id": "U", "item_id": "D", "stars": None},
        {"user_id": "U", "item_id": "D", "stars": float("nan")},
        {"user_id": "U", "item_id": "D", "stars": "many"},
        {"user_id": "U", "item_id": "D", "stars": 4.7},
        {"user_id": "U", "item_id": "D", "stars": "4.7"},
        {"user_id": "U", "item_id": "D", "stars": 0},
        {"user_id": "U", "item_id": "D", "stars": 9},
        Rating("U", "D", 9),
    ],
)
def test_malformed_records_produce_no_result(store: DataFrameRatingStore, record: dict | Rating | None) -> None:
    assert parse_rating(record) is None
    assert UserCFPredictor(store).predict_rating(record) is None


def test_parse_rating_coerces_stars() -> None:
    assert parse_rating({"user_id": 7, "item_id": "D", "stars": 4.0}) == Rating("7", "D", 4)
    assert parse_rating({"user_id": "U", "item_id": "D", "stars": "2"}) == Rating("U", "D", 2)


def test_batch_skips_malformed_records_and_keeps_order(store: DataFrameRatingStore) -> None:
    records = [
        {"user_id": "U", "item_id": "D", "stars": 3},
        {"user_id": "U", "stars": 3},
        {"user_id": "V", "item_id": "D", "stars": 1},
    ]

    sequential = UserCFPredictor(store).predict_records(records)
    threaded = UserCFPredictor(store).predict_records(records, workers=3)

    assert [(r.user_id, r.item_id) for r in sequential] == [("U", "D"), ("V", "D")]
    assert threaded == sequential


def test_predict_pair(store: DataFrameRatingStore) -> None:
    predictor = UserCFPredictor(store)

    result = predictor.predict_pair("U", "D")
    assert result is not None
    assert result.predicted_stars == pytest.approx(1.0)

    assert predictor.predict_pair("U", "E") is None
    assert predictor.predict_pair("nobody", "D") is None


def test_history_cache_loads_each_user_once(store: DataFrameRatingStore) -> None:
    counting = CountingStore(store)
    cache = UserHistoryCache()
    predictor = UserCFPredictor(counting, cache=cache)

    first = predictor.predict_rating(Rating("U", "D", 3))
    second = predictor.predict_rating(Rating("U", "D", 3))

    assert first == second
    assert set(counting.user_calls) == {"U", "V", "W", "X"}
    assert all(n == 1 for n in counting.user_calls.values())
    assert len(cache) == 4
    assert cache.hits == 4


def test_without_cache_every_prediction_requeries(store: DataFrameRatingStore) -> None:
    counting = CountingStore(store)
    predictor = UserCFPredictor(counting)

    predictor.predict_rating(Rating("U", "D", 3))
    predictor.predict_rating(Rating("U", "D", 3))

    assert counting.user_calls["U"] == 2


def test_config_threshold_changes_candidates(store: DataFrameRatingStore) -> None:
    strict = UserCFPredictor(store, config=CFConfig(min_common=3))

    result = strict.predict_rating(Rating("U", "D", 3))

    assert result is not None
    assert result.total_candidate_count == 0
    assert result.predicted_stars is None


def test_store_failures_propagate() -> None:
    with pytest.raises(StoreUnavailable):
        UserCFPredictor(BrokenStore()).predict_rating(Rating("U", "D", 3))


def test_star_range_follows_config(store: DataFrameRatingStore) -> None:
    record = {"user_id": "U", "item_id": "D", "stars": 9}

    assert parse_rating(record, min_stars=1, max_stars=10) == Rating("U", "D", 9)
    assert UserCFPredictor(store, config=CFConfig(max_stars=10)).predict_rating(record) is not None


def test_more_usable_neighbors_than_the_sample_cap() -> None:
    # Ten raters of Q agree perfectly with T on {A, B}, so all rank equally and keep
    # store order: eight 1-star raters, one 2-star rater, then a 5-star rater.
    rows = [("T", "A", 5), ("T", "B", 4), ("T", "Q", 3)]
    q_stars = [1] * 8 + [2, 5]
    for k, stars in enumerate(q_stars):
        rater = f"N{k}"
        rows += [(rater, "A", 5), (rater, "B", 4), (rater, "Q", stars)]
    store = DataFrameRatingStore.from_dataframe(pd.DataFrame(rows, columns=["user_id", "item_id", "stars"]))

    result = UserCFPredictor(store).predict_rating(Rating("T", "Q", 3))

    # Nine raters contribute: the 2-star rater is in, the 5-star rater is not.
    assert result is not None
    assert result.total_candidate_count == 10
    assert result.used_count == 8
    assert result.predicted_stars == pytest.approx((8 * 1 + 2) / 9)
