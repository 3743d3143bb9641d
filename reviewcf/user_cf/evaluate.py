"""Accuracy of predicted vs. actual stars."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sklearn.metrics import mean_squared_error

from .predictor import PredictionResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccuracyReport:
    count: int
    rms: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        if self.count == 0:
            return {"count": 0}
        return {"count": int(self.count), "rms": float(self.rms)}

    def __str__(self) -> str:
        if self.count == 0:
            return "RMS(0)"
        return f"RMS({self.count}) = {self.rms}"


def evaluate_accuracy(results: Iterable[PredictionResult]) -> AccuracyReport:
    """Root-mean-square error over results that carry a prediction.

    Results without a prediction (insufficient data) are ignored. An empty batch
    yields `AccuracyReport(count=0)` rather than NaN.
    """
    actual: list[float] = []
    predicted: list[float] = []
    for result in results:
        if result.predicted_stars is None:
            continue
        actual.append(float(result.actual_stars))
        predicted.append(float(result.predicted_stars))

    if not actual:
        return AccuracyReport(count=0)

    rms = math.sqrt(mean_squared_error(actual, predicted))
    return AccuracyReport(count=len(actual), rms=float(rms))
