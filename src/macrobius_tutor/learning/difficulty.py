from __future__ import annotations

from typing import Optional

from macrobius_tutor.config.schema import AdaptationConfig
from macrobius_tutor.learning.models import (
    Activity,
    AdaptationAction,
    AdaptationType,
    LearnerProfile,
    PerformanceMetrics,
    clamp_unit,
)
from macrobius_tutor.learning.predictors import Predictor, TargetAccuracyPredictor


class DifficultyAdapter:
    """
    Compute a bounded difficulty adjustment from observed accuracy.

    Algorithm
    ---------
    1. The predictor produces a raw step from ``accuracy - target`` (target 0.75,
       dead band 0.1, step ``0.1 * |diff| / 0.25`` outside the band).
    2. The step is scaled by the learner's `learning_speed`.
    3. The delta is clamped to ``[-max_delta, max_delta]`` (0.2 by default).
    4. The new difficulty is clamped to [0, 1].

    `adjust` is pure. `plan` additionally builds the `AdaptationAction` audit record that
    the caller appends to the session.

    Examples
    --------
    >>> adapter = DifficultyAdapter()
    >>> profile = LearnerProfile("marcus", learning_speed=1.0)
    >>> activity = Activity("quiz", "Saturnalia", difficulty=0.5, accuracy=0.95)
    >>> round(adapter.adjust(profile, activity, PerformanceMetrics(accuracy=0.95)), 2)
    0.58
    """

    def __init__(
        self,
        config: Optional[AdaptationConfig] = None,
        predictor: Optional[Predictor] = None,
    ):
        self.config = config or AdaptationConfig()
        self.predictor = predictor or TargetAccuracyPredictor(
            target=self.config.target_accuracy,
            tolerance=self.config.tolerance,
            scale=self.config.accuracy_scale,
            step=self.config.step,
        )

    def delta(self, profile: LearnerProfile, performance: PerformanceMetrics) -> float:
        """Return the bounded adjustment before it is added to the current difficulty."""
        raw = self.predictor.predict({"accuracy": performance.accuracy})
        scaled = raw * profile.learning_speed
        limit = self.config.max_delta
        return max(-limit, min(limit, scaled))

    def adjust(
        self, profile: LearnerProfile, activity: Activity, performance: PerformanceMetrics
    ) -> float:
        return clamp_unit(activity.difficulty + self.delta(profile, performance))

    def plan(
        self, profile: LearnerProfile, activity: Activity, performance: PerformanceMetrics
    ) -> AdaptationAction:
        new_difficulty = self.adjust(profile, activity, performance)
        return AdaptationAction(
            action_type=AdaptationType.DIFFICULTY_ADJUSTMENT,
            reason=f"Performance-based adjustment: accuracy={performance.accuracy:.2f}",
            old_value=activity.difficulty,
            new_value=new_difficulty,
            confidence=self.config.confidence,
            activity_id=activity.activity_id,
        )
