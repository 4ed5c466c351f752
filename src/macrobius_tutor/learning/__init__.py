from .difficulty import DifficultyAdapter
from .engine import LearningEngine, OutcomePrediction, SmartRecommendations
from .hints import SmartHint
from .models import (
    Activity,
    ActivityType,
    LearnerProfile,
    LearningSession,
    LearningStyle,
    PerformanceMetrics,
    PersonalizedRecommendation,
    Priority,
    ProficiencyLevel,
    SessionSummary,
)
from .paths import LearningPath, LearningPathPlanner, PathOptions
from .progress import ProfileStore
from .recommendations import RecommendationGenerator
from .review import ReviewScheduler
from .session_log import SessionLog

__all__ = [
    "Activity",
    "ActivityType",
    "DifficultyAdapter",
    "LearnerProfile",
    "LearningEngine",
    "LearningPath",
    "LearningPathPlanner",
    "LearningSession",
    "LearningStyle",
    "OutcomePrediction",
    "PathOptions",
    "PerformanceMetrics",
    "PersonalizedRecommendation",
    "Priority",
    "ProficiencyLevel",
    "ProfileStore",
    "RecommendationGenerator",
    "ReviewScheduler",
    "SessionLog",
    "SessionSummary",
    "SmartHint",
    "SmartRecommendations",
]
