from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from macrobius_tutor.errors import ValidationError
from macrobius_tutor.learning.models import InteractionType, SessionSummary, check_unit

DEFAULT_THEME = "General Roman Culture"
DEFAULT_GOALS = ("Understand cultural concepts", "Make modern connections")
DEFAULT_ENGAGEMENT = 0.8


class TutorState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    CLOSED = "closed"


class HintLevel(str, Enum):
    SUBTLE = "subtle"
    MODERATE = "moderate"
    DIRECT = "direct"


@dataclass(frozen=True)
class LearningContext:
    """What the tutor knows about the learner's current focus."""

    cultural_theme: str = DEFAULT_THEME
    difficulty: float = 0.6
    struggle_areas: Tuple[str, ...] = ()
    engagement: float = DEFAULT_ENGAGEMENT
    recent_performance: Tuple[float, ...] = ()
    current_module: Optional[str] = None
    current_activity: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "difficulty", check_unit("difficulty", self.difficulty))
        object.__setattr__(self, "engagement", check_unit("engagement", self.engagement))
        object.__setattr__(self, "struggle_areas", tuple(self.struggle_areas))
        object.__setattr__(self, "recent_performance", tuple(self.recent_performance))

    def merged(self, updates: Mapping[str, Any]) -> "LearningContext":
        """Return a copy with the given fields replaced; unknown keys are rejected."""
        allowed = set(self.__dataclass_fields__)
        unknown = sorted(set(updates) - allowed)
        if unknown:
            raise ValidationError(f"Unknown context fields: {', '.join(unknown)}")
        return replace(self, **{key: value for key, value in updates.items() if value is not None})


@dataclass(frozen=True)
class AdaptiveParameters:
    response_complexity: float
    cultural_connection_frequency: float
    modern_example_ratio: float = 0.4


@dataclass(frozen=True)
class TutorSession:
    """Tutor-side view of a tutoring session.

    Interactions themselves live in the session log under `session_id`.
    """

    session_id: str
    learner_id: str
    start_time: datetime
    context: LearningContext
    goals: Tuple[str, ...] = DEFAULT_GOALS
    cultural_focus: Tuple[str, ...] = ()
    parameters: AdaptiveParameters = field(
        default_factory=lambda: AdaptiveParameters(0.6, 0.6)
    )
    state: TutorState = TutorState.ACTIVE
    end_time: Optional[datetime] = None
    summary: Optional[SessionSummary] = None


@dataclass(frozen=True)
class LearningDifficulty:
    area: str
    level: float
    indicators: Tuple[str, ...]
    interventions: Tuple[str, ...]
    minutes_to_resolve: int


@dataclass(frozen=True)
class QuestionAnalysis:
    interaction_type: InteractionType
    complexity: float
    requires_follow_up: bool


@dataclass(frozen=True)
class TutorGuidance:
    guidance_type: str
    guidance: str
    reasoning: str
    cultural_examples: Tuple[str, ...]
    practice_activities: Tuple[str, ...]
    assessment_suggestions: Tuple[str, ...]


@dataclass(frozen=True)
class CulturalQuestion:
    question_id: str
    question: str
    cultural_theme: str
    difficulty: float
    expected_answer_types: Tuple[str, ...]
    cultural_context: str
    modern_relevance: str
    hints: Tuple[str, ...]
    related_concepts: Tuple[str, ...]


@dataclass(frozen=True)
class UnderstandingAssessment:
    overall_level: float
    strengths: Tuple[str, ...]
    weaknesses: Tuple[str, ...]
    confidence: float


@dataclass(frozen=True)
class UnderstandingReport:
    questions: Tuple[CulturalQuestion, ...]
    assessment: UnderstandingAssessment
    recommendations: Tuple[str, ...]

