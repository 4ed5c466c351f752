"""JSON-safe projections of the learning records and their inverse."""

from __future__ import annotations

from dataclasses import MISSING, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from macrobius_tutor.errors import ValidationError
from macrobius_tutor.learning.models import (
    Activity,
    AdaptationAction,
    AdaptationType,
    CulturalConnection,
    InteractionType,
    LearnerProfile,
    LearningSession,
    PerformanceMetrics,
    SessionSummary,
    TutorInteraction,
    TutorResource,
    TutorResponse,
    utcnow,
)


def to_jsonable(value: Any) -> Any:
    """Recursively convert dataclasses, enums, datetimes and tuples into JSON-ready values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_jsonable(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    return value


R = TypeVar("R")


def record_from_payload(record_type: Type[R], payload: Mapping[str, Any]) -> R:
    """
    Build a domain record from untrusted input such as a request body.

    Unknown keys and missing required fields raise `ValidationError` rather than the
    `TypeError` the dataclass constructor would.
    """
    known = {item.name: item for item in fields(record_type)}
    unknown = sorted(set(payload) - set(known))
    if unknown:
        raise ValidationError(f"Unknown {record_type.__name__} fields: {', '.join(unknown)}")
    missing = sorted(
        name
        for name, item in known.items()
        if name not in payload and item.default is MISSING and item.default_factory is MISSING
    )
    if missing:
        raise ValidationError(f"Missing {record_type.__name__} fields: {', '.join(missing)}")
    return record_type(**payload)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def profile_to_dict(profile: LearnerProfile) -> Dict[str, Any]:
    return to_jsonable(profile)


def profile_from_dict(data: Mapping[str, Any]) -> LearnerProfile:
    return LearnerProfile(
        learner_id=data["learner_id"],
        learning_style=data.get("learning_style", "mixed"),
        proficiency_level=data.get("proficiency_level", "beginner"),
        preferred_difficulty=data.get("preferred_difficulty", 0.5),
        learning_speed=data.get("learning_speed", 0.5),
        retention_rate=data.get("retention_rate", 0.7),
        motivation_factors=tuple(data.get("motivation_factors", ())),
        weakness_areas=tuple(data.get("weakness_areas", ())),
        strength_areas=tuple(data.get("strength_areas", ())),
        last_activity=_parse_time(data.get("last_activity")) or utcnow(),
    )


def _activity_from_dict(data: Mapping[str, Any]) -> Activity:
    return Activity(
        activity_type=data["activity_type"],
        topic=data["topic"],
        difficulty=data["difficulty"],
        accuracy=data.get("accuracy", 0.0),
        engagement=data.get("engagement", 0.0),
        time_spent=data.get("time_spent", 0.0),
        completed=data.get("completed", False),
        hints_used=data.get("hints_used", 0),
        activity_id=data["activity_id"],
    )


def _response_from_dict(data: Mapping[str, Any]) -> TutorResponse:
    return TutorResponse(
        content=data["content"],
        response_type=data["response_type"],
        cultural_connections=tuple(
            CulturalConnection(
                ancient_concept=item["ancient_concept"],
                modern_parallel=item["modern_parallel"],
                explanation=item["explanation"],
                relevance_score=item["relevance_score"],
                examples=tuple(item.get("examples", ())),
                theme=item.get("theme"),
            )
            for item in data.get("cultural_connections", ())
        ),
        modern_examples=tuple(data.get("modern_examples", ())),
        resources=tuple(TutorResource(**item) for item in data.get("resources", ())),
        confidence=data.get("confidence", 0.8),
        adaptation_suggestions=tuple(data.get("adaptation_suggestions", ())),
    )


def _interaction_from_dict(data: Mapping[str, Any]) -> TutorInteraction:
    return TutorInteraction(
        interaction_type=InteractionType(data["interaction_type"]),
        response=_response_from_dict(data["response"]),
        cultural_context=data["cultural_context"],
        effectiveness=data["effectiveness"],
        follow_up_needed=data.get("follow_up_needed", False),
        user_input=data.get("user_input"),
        interaction_id=data["interaction_id"],
        timestamp=_parse_time(data["timestamp"]),
    )


def _adaptation_from_dict(data: Mapping[str, Any]) -> AdaptationAction:
    return AdaptationAction(
        action_type=AdaptationType(data["action_type"]),
        reason=data["reason"],
        old_value=data["old_value"],
        new_value=data["new_value"],
        confidence=data["confidence"],
        activity_id=data.get("activity_id"),
        timestamp=_parse_time(data["timestamp"]),
    )


def _summary_from_dict(data: Mapping[str, Any]) -> SessionSummary:
    return SessionSummary(
        session_id=data["session_id"],
        learner_id=data["learner_id"],
        total_interactions=data["total_interactions"],
        topics_explored=tuple(data.get("topics_explored", ())),
        concepts_mastered=tuple(data.get("concepts_mastered", ())),
        areas_for_improvement=tuple(data.get("areas_for_improvement", ())),
        cultural_connections_made=data.get("cultural_connections_made", 0),
        recommended_next_steps=tuple(data.get("recommended_next_steps", ())),
        session_rating=data["session_rating"],
        feedback=data.get("feedback"),
    )


def session_to_dict(session: LearningSession) -> Dict[str, Any]:
    return to_jsonable(session)


def session_from_dict(data: Mapping[str, Any]) -> LearningSession:
    summary = data.get("summary")
    return LearningSession(
        session_id=data["session_id"],
        learner_id=data["learner_id"],
        start_time=_parse_time(data["start_time"]),
        kind=data.get("kind", "practice"),
        end_time=_parse_time(data.get("end_time")),
        activities=tuple(_activity_from_dict(item) for item in data.get("activities", ())),
        interactions=tuple(
            _interaction_from_dict(item) for item in data.get("interactions", ())
        ),
        performance=PerformanceMetrics(**data.get("performance", {})),
        adaptations=tuple(_adaptation_from_dict(item) for item in data.get("adaptations", ())),
        summary=_summary_from_dict(summary) if summary else None,
        feedback=data.get("feedback"),
    )
