from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional, Tuple, Type, TypeVar
from uuid import uuid4

from macrobius_tutor.errors import ValidationError

E = TypeVar("E", bound=Enum)

# Learner ids double as profile file names.
LEARNER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:12]}"


def clamp_unit(value: float) -> float:
    """Clamp a normalised scalar into [0, 1]."""
    return max(0.0, min(1.0, value))


def check_unit(name: str, value: float) -> float:
    """Reject a normalised scalar outside [0, 1] instead of clamping it."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"{name} must be within [0, 1], got {value}")
    return float(value)


def check_learner_id(learner_id: object) -> str:
    """Reject ids that are empty or could escape a directory when used as a file name."""
    if not isinstance(learner_id, str) or not LEARNER_ID_PATTERN.fullmatch(learner_id):
        raise ValidationError(
            f"learner_id must use only letters, digits, '_', '.' or '-'; got {learner_id!r}"
        )
    if set(learner_id) == {"."}:
        raise ValidationError(f"learner_id must not be a relative path marker: {learner_id!r}")
    return learner_id


def coerce_enum(enum_cls: Type[E], value: object, name: str) -> E:
    """Accept an enum member or its string value; anything else is a ValidationError."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed}; got {value!r}") from exc


def unique(items: Iterable[str]) -> Tuple[str, ...]:
    """Deduplicate while keeping first-seen order."""
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return tuple(seen)


class LearningStyle(str, Enum):
    VISUAL = "visual"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"
    READING = "reading"
    MIXED = "mixed"


class ProficiencyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


# Starting tutor difficulty for each proficiency level.
PROFICIENCY_DIFFICULTY = {
    ProficiencyLevel.BEGINNER: 0.3,
    ProficiencyLevel.INTERMEDIATE: 0.6,
    ProficiencyLevel.ADVANCED: 0.8,
    ProficiencyLevel.EXPERT: 0.9,
}


class ActivityType(str, Enum):
    QUIZ = "quiz"
    READING = "reading"
    ANALYSIS = "analysis"
    PRACTICE = "practice"
    REVIEW = "review"


class InteractionType(str, Enum):
    QUESTION = "question"
    EXPLANATION = "explanation"
    HINT = "hint"
    ENCOURAGEMENT = "encouragement"
    CORRECTION = "correction"
    GUIDANCE = "guidance"


class AdaptationType(str, Enum):
    DIFFICULTY_ADJUSTMENT = "difficulty_adjustment"
    CONTENT_SUGGESTION = "content_suggestion"
    PACE_CHANGE = "pace_change"
    STYLE_ADAPTATION = "style_adaptation"


class RecommendationType(str, Enum):
    CONTENT = "content"
    ACTIVITY = "activity"
    STRATEGY = "strategy"
    REVIEW = "review"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def weight(self) -> int:
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_WEIGHTS = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.CRITICAL: 4,
}


class SessionKind(str, Enum):
    PRACTICE = "practice"
    TUTORING = "tutoring"


@dataclass(frozen=True)
class LearnerProfile:
    """Per-learner model of style, proficiency and adaptive parameters.

    Instances are immutable snapshots; the profile store swaps in a new snapshot on
    every update so readers never observe a half-applied change.
    """

    learner_id: str
    learning_style: LearningStyle = LearningStyle.MIXED
    proficiency_level: ProficiencyLevel = ProficiencyLevel.BEGINNER
    preferred_difficulty: float = 0.5
    learning_speed: float = 0.5
    retention_rate: float = 0.7
    motivation_factors: Tuple[str, ...] = ("achievement", "knowledge")
    weakness_areas: Tuple[str, ...] = ()
    strength_areas: Tuple[str, ...] = ()
    last_activity: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        check_learner_id(self.learner_id)
        object.__setattr__(
            self, "learning_style", coerce_enum(LearningStyle, self.learning_style, "learning_style")
        )
        object.__setattr__(
            self,
            "proficiency_level",
            coerce_enum(ProficiencyLevel, self.proficiency_level, "proficiency_level"),
        )
        for name in ("preferred_difficulty", "learning_speed", "retention_rate"):
            object.__setattr__(self, name, check_unit(name, getattr(self, name)))
        for name in ("motivation_factors", "weakness_areas", "strength_areas"):
            object.__setattr__(self, name, unique(getattr(self, name)))

    @property
    def initial_difficulty(self) -> float:
        return PROFICIENCY_DIFFICULTY[self.proficiency_level]


@dataclass(frozen=True)
class Activity:
    """Single practice unit within a session. `time_spent` is in minutes."""

    activity_type: ActivityType
    topic: str
    difficulty: float
    accuracy: float = 0.0
    engagement: float = 0.0
    time_spent: float = 0.0
    completed: bool = False
    hints_used: int = 0
    activity_id: str = field(default_factory=lambda: new_id("activity"))

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "activity_type", coerce_enum(ActivityType, self.activity_type, "activity_type")
        )
        if not self.topic:
            raise ValidationError("activity topic must be a non-empty string")
        for name in ("difficulty", "accuracy", "engagement"):
            object.__setattr__(self, name, check_unit(name, getattr(self, name)))
        if self.time_spent < 0:
            raise ValidationError(f"time_spent must be >= 0, got {self.time_spent}")
        if self.hints_used < 0:
            raise ValidationError(f"hints_used must be >= 0, got {self.hints_used}")


@dataclass(frozen=True)
class PerformanceMetrics:
    """Aggregates derived from a session's activities; never edited by hand."""

    accuracy: float = 0.0
    speed: float = 0.0
    consistency: float = 0.0
    improvement: float = 0.0
    engagement: float = 0.0
    retention: float = 0.0


@dataclass(frozen=True)
class AdaptationAction:
    """Audit record of an automatic parameter change."""

    action_type: AdaptationType
    reason: str
    old_value: float
    new_value: float
    confidence: float
    activity_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class CulturalConnection:
    """An ancient concept mapped to a modern parallel, with a relevance score in [0, 1]."""

    ancient_concept: str
    modern_parallel: str
    explanation: str
    relevance_score: float
    examples: Tuple[str, ...] = ()
    theme: Optional[str] = None


@dataclass(frozen=True)
class TutorResource:
    resource_type: str
    title: str
    content: str
    cultural_relevance: float
    difficulty: float
    estimated_minutes: int


@dataclass(frozen=True)
class TutorResponse:
    content: str
    response_type: str
    cultural_connections: Tuple[CulturalConnection, ...] = ()
    modern_examples: Tuple[str, ...] = ()
    resources: Tuple[TutorResource, ...] = ()
    confidence: float = 0.8
    adaptation_suggestions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TutorInteraction:
    """Single turn within a tutoring session."""

    interaction_type: InteractionType
    response: TutorResponse
    cultural_context: str
    effectiveness: float
    follow_up_needed: bool = False
    user_input: Optional[str] = None
    interaction_id: str = field(default_factory=lambda: new_id("interaction"))
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class SessionSummary:
    session_id: str
    learner_id: str
    total_interactions: int
    topics_explored: Tuple[str, ...]
    concepts_mastered: Tuple[str, ...]
    areas_for_improvement: Tuple[str, ...]
    cultural_connections_made: int
    recommended_next_steps: Tuple[str, ...]
    session_rating: float
    feedback: Optional[str] = None


@dataclass(frozen=True)
class LearningSession:
    """One bounded engagement: practice activities and/or tutoring interactions.

    Once `end_time` is set the session is closed and never changes again.
    """

    session_id: str
    learner_id: str
    start_time: datetime
    kind: SessionKind = SessionKind.PRACTICE
    end_time: Optional[datetime] = None
    activities: Tuple[Activity, ...] = ()
    interactions: Tuple[TutorInteraction, ...] = ()
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    adaptations: Tuple[AdaptationAction, ...] = ()
    summary: Optional[SessionSummary] = None
    feedback: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", coerce_enum(SessionKind, self.kind, "kind"))
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValidationError("session end_time must not precede start_time")

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    def find_activity(self, activity_id: str) -> Optional[Activity]:
        for activity in self.activities:
            if activity.activity_id == activity_id:
                return activity
        return None


@dataclass(frozen=True)
class PersonalizedRecommendation:
    recommendation_id: str
    recommendation_type: RecommendationType
    title: str
    description: str
    reason: str
    priority: Priority
    estimated_minutes: int
    expected_benefit: str
    confidence: float

    @property
    def score(self) -> float:
        """Ordering key: priority weight times confidence."""
        return self.priority.weight * self.confidence
