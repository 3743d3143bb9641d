from __future__ import annotations

from typing import Optional, Sequence

from .neighbors import Neighbor


MIN_STARS = 1
MAX_STARS = 5


def weighted_prediction(
    neighbors: Sequence[Neighbor],
    limit: int,
    *,
    min_stars: int = MIN_STARS,
    max_stars: int = MAX_STARS,
) -> Optional[float]:
    """Similarity-weighted average of the neighbors' stars.

    A negatively correlated neighbor votes with its stars inverted on the
    `min_stars..max_stars` scale. Zero coefficients are skipped and do not count
    towards `limit`. The walk stops once more than `limit` neighbors contributed,
    so up to `limit + 1` neighbors are used. Returns None if nobody contributed.
    """
    total_stars = 0.0
    total_weight = 0.0
    used = 0
    for neighbor in neighbors:
        if used > int(limit):
            break
        coefficient = float(neighbor.similarity.coefficient)
        if coefficient > 0:
            total_weight += coefficient
            total_stars += neighbor.stars * coefficient
            used += 1
        elif coefficient < 0:
            weight = -coefficient
            total_weight += weight
            total_stars += (int(max_stars) - neighbor.stars + int(min_stars)) * weight
            used += 1

    if used == 0:
        return None
    return total_stars / total_weight
