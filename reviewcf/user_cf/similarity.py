"""Pearson similarity between two users' rating histories."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..store.ratings import UserHistory


MIN_COMMON = 2


@dataclass(frozen=True)
class SimilarityScore:
    coefficient: float  # Pearson correlation, within [-1, 1] up to rounding
    sample_size: int  # number of co-rated items it was computed over


def co_rated_stars(
    history_a: UserHistory,
    history_b: UserHistory,
    exclude_item: Optional[str] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Paired star arrays over the items both users rated, minus `exclude_item`."""
    common = [item_id for item_id in history_a if item_id != exclude_item and item_id in history_b]
    x = np.array([history_a[i].stars for i in common], dtype=np.float64)
    y = np.array([history_b[i].stars for i in common], dtype=np.float64)
    return x, y


def similarity(
    history_a: UserHistory,
    history_b: UserHistory,
    exclude_item: Optional[str] = None,
    *,
    min_common: int = MIN_COMMON,
) -> Optional[SimilarityScore]:
    """Pearson correlation of two users over their co-rated items.

    The target item is excluded so that the rating being predicted never feeds its
    own similarity signal. Returns None (undefined, not zero) when fewer than
    `min_common` items are co-rated or either side has zero variance.
    """
    x, y = co_rated_stars(history_a, history_b, exclude_item)
    n = int(x.shape[0])
    if n < int(min_common):
        return None

    dx = x - x.mean()
    dy = y - y.mean()
    covariance = float((dx * dy).sum())
    var_x = float((dx * dx).sum())
    var_y = float((dy * dy).sum())
    if var_x == 0.0 or var_y == 0.0:
        return None

    return SimilarityScore(
        coefficient=covariance / (math.sqrt(var_x) * math.sqrt(var_y)),
        sample_size=n,
    )
