from __future__ import annotations

import logging
import sys
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config as cfg
from .alignment import get_or_compute_alignment
from .dataset import Dataset, config_from_percentages, load_dataset
from .errors import DatasetError, InvalidScoringConfigError
from .models import MemberScores
from .run_log import load_recent_runs
from .scoring import compute_overall_score, get_score_description, get_score_level
from .store import InMemoryStore, JsonStore

# ── Configure logging ────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:     %(message)s",
    stream=sys.stderr,
    force=True,
)
LOGGER = logging.getLogger(__name__)


class AppState:
    def __init__(self) -> None:
        self.dataset: Dataset = Dataset()
        self.store: InMemoryStore = InMemoryStore()


state = AppState()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    t0 = time.perf_counter()
    try:
        state.dataset = load_dataset(cfg.DATA_DIR)
        state.store = JsonStore(cfg.STORE_DIR)
    except DatasetError:
        LOGGER.exception("Startup load failed; serving empty state.")
    LOGGER.info(
        "Startup (%s profile) in %.2fs: %d members, %d positions, %d score rows.",
        cfg.PROFILE,
        time.perf_counter() - t0,
        len(state.dataset.members),
        len(state.store.positions),
        len(state.store.member_scores),
    )
    yield


app = FastAPI(title="Civic Score", lifespan=lifespan)

# ── CORS middleware ──────────────────────────────────────────────────────────
_cors_origins = [o.strip() for o in cfg.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API key authentication middleware ────────────────────────────────────────
@app.middleware("http")
async def _api_key_middleware(request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
    """Require ``X-API-Key`` header when ``CIVIC_API_KEY`` is set.

    Skips auth for the health endpoint, the docs, and CORS preflight.
    """
    if cfg.API_KEY:
        exempt = {"/health", "/docs", "/openapi.json", "/redoc"}
        if request.url.path not in exempt and request.method != "OPTIONS":
            provided = request.headers.get("X-API-Key", "")
            if provided != cfg.API_KEY:
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Invalid or missing API key"},
                )
    return await call_next(request)


# ── Request logging middleware ───────────────────────────────────────────────
@app.middleware("http")
async def _request_logging_middleware(request: Request, call_next) -> Response:  # type: ignore[no-untyped-def]
    """Log every request with method, path, and response time."""
    t0 = time.perf_counter()
    response: Response = await call_next(request)
    elapsed_ms = (time.perf_counter() - t0) * 1000
    LOGGER.info(
        "%s %s %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


@app.exception_handler(InvalidScoringConfigError)
async def _invalid_config_handler(_request: Request, exc: InvalidScoringConfigError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# ── Health endpoint ──────────────────────────────────────────────────────────
@app.get("/health")
async def health() -> dict:
    """Service health check with data counts."""
    return {
        "status": "ok",
        "ready": len(state.store.member_scores) > 0,
        "members": len(state.dataset.members),
        "issues": len(state.dataset.issues),
        "positions": len(state.store.positions),
        "member_scores": len(state.store.member_scores),
        "cached_alignments": len(state.store.alignments),
    }


# ── Scores ───────────────────────────────────────────────────────────────────


def _scores_payload(scores: MemberScores, overall: int) -> dict:
    payload = asdict(scores)
    payload["overall_score"] = overall
    payload["level"] = get_score_level(overall)
    payload["description"] = get_score_description(overall)
    return payload


@app.get("/members/{member_id}/scores")
async def member_scores(
    member_id: str,
    user_id: str | None = None,
    productivity: float | None = Query(None),
    attendance: float | None = Query(None),
    bipartisanship: float | None = Query(None),
    issue_alignment: float | None = Query(None),
) -> dict:
    """A legislator's scores.

    With *user_id*, the user's stored record is served when one exists.
    Explicit weight percentages (missing ones default to 25) re-compose the
    overall score on the fly; an invalid set is rejected with 422.
    """
    scores = None
    if user_id is not None:
        scores = state.store.get_member_scores(member_id, user_id)
    if scores is None:
        scores = state.store.get_member_scores(member_id)
    if scores is None:
        raise HTTPException(status_code=404, detail=f"No scores for member {member_id!r}")

    weights = {
        "productivity": productivity,
        "attendance": attendance,
        "bipartisanship": bipartisanship,
        "issue_alignment": issue_alignment,
    }
    if all(v is None for v in weights.values()):
        return _scores_payload(scores, scores.overall_score)

    config = config_from_percentages({k: v for k, v in weights.items() if v is not None})
    return _scores_payload(scores, compute_overall_score(scores, config))


@app.get("/members/{member_id}/positions")
async def member_positions(member_id: str) -> dict:
    slugs = state.dataset.issue_slugs
    return {
        "member_id": member_id,
        "positions": [
            {**asdict(p), "issue_slug": slugs.get(p.issue_id, p.issue_id)}
            for p in state.store.positions_for(member_id)
        ],
    }


# ── Alignment ────────────────────────────────────────────────────────────────


@app.get("/alignment/{user_id}/{politician_id}")
async def alignment(user_id: str, politician_id: str) -> dict:
    result = get_or_compute_alignment(
        state.store,
        user_id,
        politician_id,
        state.dataset.answers.get(user_id, []),
        state.dataset.questions,
        priorities=state.dataset.priorities.get(user_id),
        issue_slugs=state.dataset.issue_slugs,
    )
    if result is None:
        raise HTTPException(status_code=404, detail="Not enough data to compute alignment")
    return asdict(result)


# ── States & runs ────────────────────────────────────────────────────────────


@app.get("/states")
async def states() -> list[dict]:
    return [asdict(s) for _, s in sorted(state.store.state_scores.items())]


@app.get("/runs")
async def runs(task: str | None = None, limit: int = Query(20, ge=1, le=200)) -> list[dict]:
    """Most recent batch runs from the run log, newest first."""
    return [asdict(r) for r in load_recent_runs(limit, task=task, log_path=cfg.RUN_LOG_PATH)]
