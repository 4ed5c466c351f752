from .classifier import classify_question, detect_difficulties
from .cultural import CulturalConnectionMapper
from .models import (
    AdaptiveParameters,
    HintLevel,
    LearningContext,
    TutorGuidance,
    TutorSession,
    TutorState,
    UnderstandingReport,
)
from .tutor import MacrobiusTutor

__all__ = [
    "AdaptiveParameters",
    "CulturalConnectionMapper",
    "HintLevel",
    "LearningContext",
    "MacrobiusTutor",
    "TutorGuidance",
    "TutorSession",
    "TutorState",
    "UnderstandingReport",
    "classify_question",
    "detect_difficulties",
]
