"""FastAPI application exposing the Macrobius tutor as a REST API."""

from __future__ import annotations

import asyncio
import logging
import os
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from macrobius_tutor.errors import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    TutorError,
    ValidationError,
)
from macrobius_tutor.services import TutorService
from macrobius_tutor.system import MacrobiusTutorSystem

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _get_system() -> MacrobiusTutorSystem:
    """Create a singleton MacrobiusTutorSystem; the config path comes from `MACROBIUS_TUTOR_CONFIG`."""
    logger.info("Initializing MacrobiusTutorSystem for FastAPI service")
    return MacrobiusTutorSystem.from_config()


@lru_cache(maxsize=1)
def _get_service_singleton() -> TutorService:
    """Return a cached TutorService instance."""
    return TutorService(_get_system())


async def get_service() -> TutorService:
    """FastAPI dependency that returns the shared TutorService."""
    return _get_service_singleton()


def _http_error(exc: TutorError) -> HTTPException:
    """Map the core error taxonomy onto HTTP status codes."""
    if isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, (DuplicateError, InvalidStateError)):
        status = 409
    elif isinstance(exc, ValidationError):
        status = 422
    else:
        status = 500
    return HTTPException(status_code=status, detail=str(exc))


async def _call(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a blocking service call off the event loop and translate domain errors."""
    try:
        return await asyncio.to_thread(func, *args, **kwargs)
    except TutorError as exc:
        logger.info("Request rejected: %s", exc)
        raise _http_error(exc) from exc


class ProfileRequest(BaseModel):
    learner_id: str = Field(..., description="Learner identifier")
    learning_style: Optional[str] = None
    proficiency_level: Optional[str] = None
    preferred_difficulty: Optional[float] = None
    learning_speed: Optional[float] = None
    retention_rate: Optional[float] = None
    motivation_factors: Optional[List[str]] = None
    weakness_areas: Optional[List[str]] = None
    strength_areas: Optional[List[str]] = None


class StartTutorRequest(BaseModel):
    context: Optional[Dict[str, Any]] = Field(
        default=None, description="Partial learning context, e.g. cultural_theme"
    )
    goals: Optional[List[str]] = None


class AskRequest(BaseModel):
    question: str = Field(..., description="Learner's question")
    context: Optional[Dict[str, Any]] = None


class HintRequest(BaseModel):
    topic: str
    level: str = Field(default="moderate", description="subtle, moderate or direct")


class ExplainRequest(BaseModel):
    concept: str
    modern_context: bool = True


class EndRequest(BaseModel):
    feedback: Optional[str] = None


class PracticeRequest(BaseModel):
    learner_id: str


class ActivityRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    activity_type: str = Field(..., description="quiz, reading, analysis, practice or review")
    topic: str
    difficulty: float
    accuracy: float = 0.0
    engagement: float = 0.0
    time_spent: float = Field(default=0.0, description="Minutes")
    completed: bool = False
    hints_used: int = 0
    activity_id: Optional[str] = None


class AdaptRequest(BaseModel):
    activity_id: str
    performance: Dict[str, float] = Field(..., description="Observed performance metrics")


class SmartHintRequest(BaseModel):
    context: str = Field(..., description="latin_analysis, etymology or translation")
    difficulty: float


class PathRequest(BaseModel):
    goals: List[str] = Field(default_factory=list)
    themes: Optional[List[str]] = None
    weekly_hours: float = 8
    options: Optional[Dict[str, Any]] = None


class ProgressRequest(BaseModel):
    module_id: str
    minutes: float
    completed: bool = False
    score: Optional[float] = None
    engagement: Optional[float] = None


class PathAdaptRequest(BaseModel):
    reason: str = "manual"
    adjustment: float


app = FastAPI(
    title="Macrobius Tutor API",
    description="REST API for the adaptive Macrobius tutor",
    version="0.1.0",
)

allow_origins = os.getenv("API_ALLOW_ORIGINS", "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in allow_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", summary="Health check")
async def health(service: TutorService = Depends(get_service)) -> Dict[str, Any]:
    """Return service health, including whether the corpus backend answers."""
    backend_ok = await asyncio.to_thread(service.backend_healthy)
    return {"status": "ok", "backend": "ok" if backend_ok else "fallback"}


@app.post("/profiles", status_code=201, summary="Create a learner profile")
async def create_profile(
    payload: ProfileRequest,
    service: TutorService = Depends(get_service),
) -> Dict[str, Any]:
    initial = payload.model_dump(exclude_none=True, exclude={"learner_id"})
    return await _call(service.create_profile, payload.learner_id, initial)


@app.get("/profiles/{learner_id}", summary="Fetch a learner profile")
async def get_profile(learner_id: str, service: TutorService = Depends(get_service)) -> Dict[str, Any]:
    return await _call(service.get_profile, learner_id)


@app.get(
    "/profiles/{learner_id}/recommendations",
    summary="Ranked personalised recommendations",
)
async def recommendations(
    learner_id: str, service: TutorService = Depends(get_service)
) -> List[Dict[str, Any]]:
    return await _call(service.recommendations, learner_id)


@app.post("/tutor/{learner_id}/start", summary="Start a tutoring session")
async def start_tutoring(
    learner_id: str,
    payload: Optional[StartTutorRequest] = None,
    service: TutorService = Depends(get_service),
) -> Dict[str, Any]:
    payload = payload or StartTutorRequest()
    return await _call(
        service.start_tutoring, learner_id, context=payload.context, goals=payload.goals
    )


@app.post("/tutor/{learner_id}/ask", summary="Ask the tutor a question")
async def ask(
    learner_id: str, payload: AskRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(service.ask, learner_id, payload.question, context=payload.context)


@app.post("/tutor/{learner_id}/hint", summary="Request a hint")
async def hint(
    learner_id: str, payload: HintRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(service.hint, learner_id, payload.topic, level=payload.level)


@app.post("/tutor/{learner_id}/explain", summary="Explain a cultural concept")
async def explain(
    learner_id: str, payload: ExplainRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(
        service.explain, learner_id, payload.concept, modern_context=payload.modern_context
    )


@app.post("/tutor/{learner_id}/end", summary="End the tutoring session")
async def end_tutoring(
    learner_id: str,
    payload: Optional[EndRequest] = None,
    service: TutorService = Depends(get_service),
) -> Dict[str, Any]:
    feedback = payload.feedback if payload else None
    return await _call(service.end_tutoring, learner_id, feedback=feedback)


@app.get("/profiles", summary="List learner profiles")
async def list_profiles(service: TutorService = Depends(get_service)) -> List[Dict[str, Any]]:
    return await _call(service.list_profiles)


@app.get("/profiles/{learner_id}/smart-recommendations", summary="Recommendations by time horizon")
async def smart_recommendations(
    learner_id: str, service: TutorService = Depends(get_service)
) -> Dict[str, List[Dict[str, Any]]]:
    return await _call(service.smart_recommendations, learner_id)


@app.get("/profiles/{learner_id}/insights", summary="Strengths, improvements and patterns")
async def insights(learner_id: str, service: TutorService = Depends(get_service)) -> Dict[str, Any]:
    return await _call(service.insights, learner_id)


@app.post("/profiles/{learner_id}/hints", summary="Hints for a Latin study task")
async def smart_hints(
    learner_id: str, payload: SmartHintRequest, service: TutorService = Depends(get_service)
) -> List[Dict[str, Any]]:
    return await _call(service.smart_hints, learner_id, payload.context, payload.difficulty)


@app.post("/sessions", status_code=201, summary="Start a practice session")
async def start_practice(
    payload: PracticeRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(service.start_practice, payload.learner_id)


@app.get("/sessions/{session_id}", summary="Fetch a learning session")
async def get_session(session_id: str, service: TutorService = Depends(get_service)) -> Dict[str, Any]:
    return await _call(service.get_session, session_id)


@app.post("/sessions/{session_id}/activities", summary="Record a practice activity")
async def record_activity(
    session_id: str, payload: ActivityRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(service.record_activity, session_id, payload.model_dump(exclude_none=True))


@app.post("/sessions/{session_id}/adapt", summary="Adapt an activity's difficulty")
async def adapt_difficulty(
    session_id: str, payload: AdaptRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(service.adapt_difficulty, session_id, payload.activity_id, payload.performance)


@app.post("/sessions/{session_id}/end", summary="End a practice session")
async def end_practice(
    session_id: str,
    payload: Optional[EndRequest] = None,
    service: TutorService = Depends(get_service),
) -> Dict[str, Any]:
    feedback = payload.feedback if payload else None
    return await _call(service.end_practice, session_id, feedback=feedback)


@app.post("/profiles/{learner_id}/paths", status_code=201, summary="Generate a learning path")
async def generate_path(
    learner_id: str, payload: PathRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(
        service.generate_path,
        learner_id,
        payload.goals,
        themes=payload.themes,
        weekly_hours=payload.weekly_hours,
        options=payload.options,
    )


@app.get("/profiles/{learner_id}/paths", summary="List a learner's paths")
async def list_paths(
    learner_id: str, service: TutorService = Depends(get_service)
) -> List[Dict[str, Any]]:
    return await _call(service.list_paths, learner_id)


@app.post("/profiles/{learner_id}/paths/optimize", summary="Re-sequence the current path")
async def optimize_path(learner_id: str, service: TutorService = Depends(get_service)) -> Dict[str, Any]:
    return await _call(service.optimize_path, learner_id)


@app.post("/paths/{path_id}/progress", summary="Record progress on a path module")
async def track_progress(
    path_id: str, payload: ProgressRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(
        service.track_progress,
        path_id,
        payload.module_id,
        payload.minutes,
        completed=payload.completed,
        score=payload.score,
        engagement=payload.engagement,
    )


@app.post("/paths/{path_id}/adapt", summary="Shift the difficulty of unfinished modules")
async def adapt_path(
    path_id: str, payload: PathAdaptRequest, service: TutorService = Depends(get_service)
) -> Dict[str, Any]:
    return await _call(service.adapt_path, path_id, payload.reason, payload.adjustment)
