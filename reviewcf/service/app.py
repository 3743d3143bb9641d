"""FastAPI service exposing single-rating prediction and batch RMSE evaluation."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException

from ..errors import StoreUnavailable
from ..paths import get_repo_root
from ..pipelines.evaluate_batch import evaluate_store, load_config, load_store
from ..store.ratings import DataFrameRatingStore
from ..user_cf.config import CFConfig
from ..user_cf.predictor import UserCFPredictor
from ..utils import setup_logging
from .schemas import EvaluateRequest, EvaluateResponse, PredictionItem, PredictRequest

logger = logging.getLogger(__name__)


def _get_env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    p = Path(str(raw))
    return p if p.is_absolute() else (get_repo_root() / p).resolve()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    repo_root = get_repo_root()
    config_path = _get_env_path("CONFIG_PATH", repo_root / "config.yaml")
    config = load_config(config_path)
    cfg = CFConfig.from_mapping(config.get("user_cf") if isinstance(config.get("user_cf"), dict) else None)

    logger.info("Starting service with config=%s", config_path)
    try:
        app.state.store = load_store(config, repo_root=repo_root)
    except StoreUnavailable:
        # Keep serving; requests answer 503 until the ratings become readable.
        logger.exception("Rating store unavailable at startup")
        app.state.store = None
    app.state.cf_config = cfg
    yield


app = FastAPI(title="Review Rating Prediction Service", lifespan=lifespan)


def _store(app_: FastAPI) -> DataFrameRatingStore:
    store = getattr(app_.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Rating store not available")
    return store


def _config(app_: FastAPI) -> CFConfig:
    cfg = getattr(app_.state, "cf_config", None)
    return cfg if cfg is not None else CFConfig()


@app.get("/health")
def health() -> dict:
    store = getattr(app.state, "store", None)
    return {"status": "ok" if store is not None else "degraded", "ratings": (len(store) if store is not None else 0)}


@app.post("/predict", response_model=PredictionItem)
def predict(req: PredictRequest) -> dict:
    """Predict the stored rating of a (user, item) pair from similar users."""
    predictor = UserCFPredictor(_store(app), config=_config(app))
    try:
        result = predictor.predict_pair(req.user_id, req.item_id)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    if result is None:
        raise HTTPException(status_code=404, detail=f"No rating for user_id={req.user_id} item_id={req.item_id}")
    return result.to_dict()


@app.post("/evaluate", response_model=EvaluateResponse)
def evaluate(req: EvaluateRequest) -> dict:
    """Predict the selected stored ratings and report RMSE."""
    try:
        summary = evaluate_store(_store(app), _config(app), user_id=req.user_id, item_id=req.item_id)
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return {
        "accuracy": summary["accuracy"],
        "skipped": summary["skipped"],
        "results": ([r.to_dict() for r in summary["results"]] if req.include_results else None),
    }
