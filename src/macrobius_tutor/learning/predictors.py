"""Deterministic predictors behind a pluggable `Predictor` interface.

Each predictor maps a flat feature mapping to a score. The defaults are simple documented
formulas so that every code path is reproducible in tests; a trained model can replace
any of them as long as it honours the same `predict(features) -> float` contract.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional, Protocol, Sequence, runtime_checkable

from macrobius_tutor.learning.metrics import mean
from macrobius_tutor.learning.models import (
    Activity,
    ActivityType,
    LearnerProfile,
    LearningSession,
    LearningStyle,
    clamp_unit,
)

DEFAULT_EXPECTED_ACCURACY = 0.75
DEFAULT_EXPECTED_ENGAGEMENT = 0.8
STYLE_MATCH_BONUS = 0.1

# Activity types that suit each learning style; mixed learners get no bonus.
STYLE_AFFINITY: Dict[LearningStyle, frozenset] = {
    LearningStyle.VISUAL: frozenset({ActivityType.ANALYSIS, ActivityType.QUIZ}),
    LearningStyle.AUDITORY: frozenset({ActivityType.REVIEW, ActivityType.PRACTICE}),
    LearningStyle.KINESTHETIC: frozenset({ActivityType.PRACTICE, ActivityType.QUIZ}),
    LearningStyle.READING: frozenset({ActivityType.READING, ActivityType.ANALYSIS}),
    LearningStyle.MIXED: frozenset(),
}


@runtime_checkable
class Predictor(Protocol):
    def predict(self, features: Mapping[str, float]) -> float:
        ...


class TargetAccuracyPredictor:
    """Raw difficulty step from the distance between observed and target accuracy.

    Inside the dead band (``|accuracy - target| <= tolerance``) the step is zero.
    Outside it the step is ``step * |diff| / scale``, signed like the difference.
    Learning-speed scaling and clamping are left to the caller.
    """

    def __init__(
        self,
        target: float = 0.75,
        tolerance: float = 0.1,
        scale: float = 0.25,
        step: float = 0.1,
    ):
        self.target = target
        self.tolerance = tolerance
        self.scale = scale
        self.step = step

    def predict(self, features: Mapping[str, float]) -> float:
        diff = features["accuracy"] - self.target
        if diff > self.tolerance:
            return self.step * (diff / self.scale)
        if diff < -self.tolerance:
            return -self.step * (abs(diff) / self.scale)
        return 0.0


class AccuracyPredictor:
    """Recent mean accuracy, shifted by how far the activity sits from the preferred difficulty."""

    def predict(self, features: Mapping[str, float]) -> float:
        base = features.get("recent_accuracy", DEFAULT_EXPECTED_ACCURACY)
        gap = features.get("preferred_difficulty", 0.5) - features.get("difficulty", 0.5)
        return clamp_unit(base + gap * 0.5)


class EngagementPredictor:
    def predict(self, features: Mapping[str, float]) -> float:
        base = features.get("recent_engagement", DEFAULT_EXPECTED_ENGAGEMENT)
        return clamp_unit(base + STYLE_MATCH_BONUS * features.get("style_match", 0.0))


class RetentionPredictor:
    def predict(self, features: Mapping[str, float]) -> float:
        return clamp_unit(features.get("retention_rate", 0.7))


def extract_features(
    profile: LearnerProfile,
    sessions: Sequence[LearningSession],
    activity: Optional[Activity] = None,
    window: int = 5,
) -> Dict[str, float]:
    """Flatten a profile, its most recent sessions (newest first) and an activity into features.

    `recent_accuracy` and `recent_engagement` are only present when at least one of the
    first `window` sessions contains activities.
    """
    features: Dict[str, float] = {
        "preferred_difficulty": profile.preferred_difficulty,
        "learning_speed": profile.learning_speed,
        "retention_rate": profile.retention_rate,
    }
    measured = [session for session in sessions[:window] if session.activities]
    if measured:
        features["recent_accuracy"] = mean(session.performance.accuracy for session in measured)
        features["recent_engagement"] = mean(session.performance.engagement for session in measured)
    if activity is not None:
        features["difficulty"] = activity.difficulty
        affinity = STYLE_AFFINITY[profile.learning_style]
        features["style_match"] = 1.0 if activity.activity_type in affinity else 0.0
    return features
