import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel

from clinrev.application.config import AppConfig, resolve_config
from clinrev.application.factory import get_analytics_engine, get_repository
from clinrev.application.stats.analytics_engine import AnalyticsEngine
from clinrev.application.study_data import StudyDataRepository
from clinrev.consts import VERSION
from clinrev.domain.clock import now_ms
from clinrev.domain.errors import DuplicateSessionError, UnknownRatingError
from clinrev.domain.models import meta_index
from clinrev.domain.srs.models import Rating
from clinrev.domain.stats.models import SortMode
from clinrev.infrastructure.persistence.schema import (
    LifetimeStatsSchema,
    SessionSchema,
    SrsStateSchema,
)
from clinrev.interface._common import jsonable

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("clinrev.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"clinrev server v{VERSION} starting up...")
    yield
    # Shutdown
    logger.info("clinrev server shutting down...")


app = FastAPI(
    title="clinrev",
    description="Spaced repetition and analytics API for clinical vignette practice.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


def get_config() -> AppConfig:
    return resolve_config()


# One repository per data file so its write lock is shared across requests.
_repositories: dict[Path, StudyDataRepository] = {}


def get_repo(config: AppConfig = Depends(get_config)) -> StudyDataRepository:
    repo = _repositories.get(config.data_file)
    if repo is None:
        repo = _repositories[config.data_file] = get_repository(config)
    return repo


def get_engine(config: AppConfig = Depends(get_config)) -> AnalyticsEngine:
    return get_analytics_engine(config)


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@app.get("/analytics/report")
async def analytics_report(
    sort: SortMode = SortMode.WEAKNESS,
    q: str | None = None,
    repo: StudyDataRepository = Depends(get_repo),
    engine: AnalyticsEngine = Depends(get_engine),
):
    """
    Every analytics view for the stored history.
    ``report`` is null when no sessions have been recorded.
    """
    snapshot = await repo.get_all_data()
    result = engine.report(
        snapshot.sessions(),
        meta_index(snapshot.library()),
        now_ms(),
        sort=sort,
        query=q,
        stats=snapshot.lifetime_stats.to_domain(),
    )
    return {"report": jsonable(result)}


@app.get("/analytics/topics")
async def analytics_topics(
    sort: SortMode = SortMode.WEAKNESS,
    q: str | None = None,
    limit: int | None = None,
    repo: StudyDataRepository = Depends(get_repo),
    engine: AnalyticsEngine = Depends(get_engine),
):
    snapshot = await repo.get_all_data()
    ranked = engine.ranked_topics(
        snapshot.sessions(), meta_index(snapshot.library()), sort, q, limit
    )
    return {"topics": jsonable(ranked)}


@app.get("/analytics/lifetime")
async def analytics_lifetime(
    repo: StudyDataRepository = Depends(get_repo),
    engine: AnalyticsEngine = Depends(get_engine),
):
    snapshot = await repo.get_all_data()
    summary = engine.lifetime_summary(
        snapshot.sessions(), now_ms(), snapshot.lifetime_stats.to_domain()
    )
    return jsonable(summary)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@app.post("/sessions")
async def record_session(
    session: SessionSchema,
    repo: StudyDataRepository = Depends(get_repo),
):
    """Append a completed session; returns the refreshed lifetime stats."""
    try:
        stats = await repo.save_session(session.to_domain())
    except DuplicateSessionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return LifetimeStatsSchema.from_domain(stats).to_json()


# ---------------------------------------------------------------------------
# Spaced repetition
# ---------------------------------------------------------------------------


@app.get("/srs/due")
async def srs_due(repo: StudyDataRepository = Depends(get_repo)):
    items = await repo.due_items(now_ms())
    return {"count": len(items), "items": jsonable(items)}


class RateRequest(BaseModel):
    rating: str


@app.post("/srs/{card_id}/rate")
async def srs_rate(
    card_id: str,
    req: RateRequest,
    repo: StudyDataRepository = Depends(get_repo),
):
    try:
        rating = Rating.parse(req.rating)
    except UnknownRatingError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None
    card = await repo.rate_card(card_id, rating, now_ms())
    return SrsStateSchema.from_domain(card).to_json()


# ---------------------------------------------------------------------------
# Backup
# ---------------------------------------------------------------------------


@app.get("/export")
async def export_data(repo: StudyDataRepository = Depends(get_repo)) -> dict[str, Any]:
    snapshot = await repo.get_all_data()
    return snapshot.to_json()


@app.post("/import")
async def import_data(request: Request, repo: StudyDataRepository = Depends(get_repo)):
    """Replace all state with the posted backup. Rejected payloads change nothing."""
    body = await request.body()
    if not await repo.full_import(body):
        raise HTTPException(status_code=400, detail="Invalid backup format")
    return {"ok": True}
