"""Pydantic schemas for the prediction API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, SerializerFunctionWrapHandler, model_serializer


class PredictRequest(BaseModel):
    """Predict the stored rating of one (user, item) pair."""

    user_id: str = Field(..., min_length=1, description="Reviewer id")
    item_id: str = Field(..., min_length=1, description="Reviewed item (business) id")


class PredictionItem(BaseModel):
    user_id: str
    item_id: str
    actual_stars: int
    total_candidate_count: int
    used_count: int
    predicted_stars: Optional[float] = None


class EvaluateRequest(BaseModel):
    """Batch evaluation; leave both ids empty to evaluate every stored rating."""

    user_id: Optional[str] = Field(None, description="Only evaluate this user's ratings")
    item_id: Optional[str] = Field(None, description="Only evaluate ratings of this item")
    include_results: bool = Field(False, description="Return per-record predictions too")


class AccuracyItem(BaseModel):
    """`{"count": n, "rms": x}`, or just `{"count": 0}` when nothing was predicted."""

    count: int
    rms: Optional[float] = None

    @model_serializer(mode="wrap")
    def _drop_missing_rms(self, handler: SerializerFunctionWrapHandler) -> dict:
        data = handler(self)
        if data.get("rms") is None:
            data.pop("rms", None)
        return data


class SkippedItem(BaseModel):
    malformed: int
    insufficient: int


class EvaluateResponse(BaseModel):
    accuracy: AccuracyItem
    skipped: SkippedItem
    results: Optional[list[PredictionItem]] = None
