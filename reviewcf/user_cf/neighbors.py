"""Neighbor usability filter and ranking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .similarity import SimilarityScore


MAX_SAMPLE = 8
MIN_PCC_THRESHOLD = 0.2


@dataclass(frozen=True)
class Neighbor:
    """Another user's rating of the target item plus their similarity to the target user."""

    rater_id: str
    stars: int
    similarity: SimilarityScore


def is_usable(
    score: Optional[SimilarityScore],
    *,
    reject_negative: bool = True,
    min_threshold: float = MIN_PCC_THRESHOLD,
) -> bool:
    """A similarity is usable when present, nonzero, non-negative (by default) and above threshold."""
    if score is None:
        return False
    if score.coefficient == 0.0:
        return False
    if reject_negative and score.coefficient < 0:
        return False
    if score.coefficient < float(min_threshold):
        return False
    return True


def rank_key(neighbor: Neighbor) -> tuple[int, float]:
    """Order by sample size, then by coefficient."""
    return (int(neighbor.similarity.sample_size), float(neighbor.similarity.coefficient))


def sample_limit(n_candidates: int, *, max_sample: int = MAX_SAMPLE) -> int:
    if n_candidates <= 0:
        return 0
    return min(int(n_candidates), int(max_sample))


def select(candidates: Sequence[Neighbor], *, max_sample: int = MAX_SAMPLE) -> tuple[list[Neighbor], int]:
    """Rank usable candidates and bound how many feed the prediction.

    Ranking is ascending on `rank_key`, so the prediction walks the least similar
    neighbors first. Returns (ordered neighbors, limit).
    """
    # TODO: choose between this ascending order and descending-by-similarity with a strict
    # `< limit` bound in weighted_prediction.
    ordered = sorted(candidates, key=rank_key)
    return ordered, sample_limit(len(ordered), max_sample=max_sample)
