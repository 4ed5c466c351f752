from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from macrobius_tutor.config.schema import RecommendationConfig
from macrobius_tutor.learning.models import (
    LearnerProfile,
    LearningSession,
    LearningStyle,
    PersonalizedRecommendation,
    Priority,
    RecommendationType,
)
from macrobius_tutor.learning.review import ReviewScheduler

logger = logging.getLogger(__name__)

STYLE_ACTIVITIES: Dict[LearningStyle, Tuple[str, ...]] = {
    LearningStyle.VISUAL: ("Interactive diagrams", "Visual word maps", "3D visualizations"),
    LearningStyle.AUDITORY: ("Audio pronunciation", "Rhythm exercises", "Discussion forums"),
    LearningStyle.KINESTHETIC: ("Drag-and-drop exercises", "Interactive games", "Virtual labs"),
    LearningStyle.READING: ("Text analysis", "Reading comprehension", "Written exercises"),
    LearningStyle.MIXED: (
        "Multimedia presentations",
        "Interactive tutorials",
        "Adaptive exercises",
        "Multi-modal activities",
    ),
}

CONTENT_MINUTES = 30
ACTIVITY_MINUTES = 20
STRATEGY_MINUTES = 45


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def rank(recommendations: Iterable[PersonalizedRecommendation]) -> List[PersonalizedRecommendation]:
    """Sort by ``priority weight * confidence`` descending.

    The sort is stable, so equal scores keep their input order: content, then activity,
    then strategy, then review, each in generation order.
    """
    return sorted(recommendations, key=lambda item: item.score, reverse=True)


class RecommendationGenerator:
    """
    Derive prioritised suggestions from a profile and its session history.

    Four sub-generators run in a fixed order and their output is concatenated, then
    ranked with `rank`:

    1. Content: one per weakness area (high priority, confidence 0.8, 30 minutes).
    2. Activity: the fixed catalogue for the learner's style (medium, 0.7, 20 minutes).
    3. Strategy: only when a measured session's accuracy is further than the threshold
       (0.3) from the 0.75 target (high, 0.85, 45 minutes).
    4. Review: only when SM-2 finds topics due (medium, 0.9, 2 minutes per topic).

    Recommendation ids are derived from their content, so the same inputs always yield
    the same list.
    """

    def __init__(
        self,
        config: Optional[RecommendationConfig] = None,
        scheduler: Optional[ReviewScheduler] = None,
        target_accuracy: float = 0.75,
    ):
        self.config = config or RecommendationConfig()
        self.scheduler = scheduler or ReviewScheduler()
        self.target_accuracy = target_accuracy

    def content_recommendations(self, profile: LearnerProfile) -> List[PersonalizedRecommendation]:
        return [
            PersonalizedRecommendation(
                recommendation_id=f"content-{slugify(weakness)}",
                recommendation_type=RecommendationType.CONTENT,
                title=f"Focus on {weakness}",
                description=f"Targeted practice to improve your {weakness} skills",
                reason="Identified as a weakness area in your learning profile",
                priority=Priority.HIGH,
                estimated_minutes=CONTENT_MINUTES,
                expected_benefit=f"20% improvement in {weakness} proficiency",
                confidence=0.8,
            )
            for weakness in profile.weakness_areas
        ]

    def activity_recommendations(self, profile: LearnerProfile) -> List[PersonalizedRecommendation]:
        style = profile.learning_style.value
        return [
            PersonalizedRecommendation(
                recommendation_id=f"activity-{slugify(activity)}",
                recommendation_type=RecommendationType.ACTIVITY,
                title=activity,
                description=f"{activity} tailored to your {style} learning style",
                reason=f"Matches your preferred learning style ({style})",
                priority=Priority.MEDIUM,
                estimated_minutes=ACTIVITY_MINUTES,
                expected_benefit="Enhanced engagement and retention",
                confidence=0.7,
            )
            for activity in STYLE_ACTIVITIES[profile.learning_style]
        ]

    def has_consistency_issues(self, sessions: Sequence[LearningSession]) -> bool:
        """True when any session with activities strays too far from the target accuracy."""
        return any(
            abs(session.performance.accuracy - self.target_accuracy) > self.config.consistency_threshold
            for session in sessions
            if session.activities
        )

    def strategy_recommendations(
        self, sessions: Sequence[LearningSession]
    ) -> List[PersonalizedRecommendation]:
        if not self.has_consistency_issues(sessions):
            return []
        return [
            PersonalizedRecommendation(
                recommendation_id="strategy-consistency",
                recommendation_type=RecommendationType.STRATEGY,
                title="Improve Learning Consistency",
                description="Develop a regular study schedule to improve retention",
                reason="Performance shows inconsistency patterns",
                priority=Priority.HIGH,
                estimated_minutes=STRATEGY_MINUTES,
                expected_benefit="30% improvement in retention",
                confidence=0.85,
            )
        ]

    def review_recommendations(
        self, sessions: Sequence[LearningSession], now: Optional[datetime] = None
    ) -> List[PersonalizedRecommendation]:
        due = self.scheduler.due_items(sessions, now=now)
        if not due:
            return []
        topics = ", ".join(state.topic for state in due)
        return [
            PersonalizedRecommendation(
                recommendation_id="review-spaced",
                recommendation_type=RecommendationType.REVIEW,
                title="Spaced Repetition Review",
                description=f"Review {len(due)} items using spaced repetition: {topics}",
                reason="Optimal timing for retention reinforcement",
                priority=Priority.MEDIUM,
                estimated_minutes=len(due) * self.config.review_minutes_per_item,
                expected_benefit="Improved long-term retention",
                confidence=0.9,
            )
        ]

    def generate(
        self,
        profile: LearnerProfile,
        sessions: Sequence[LearningSession],
        now: Optional[datetime] = None,
    ) -> List[PersonalizedRecommendation]:
        recommendations: List[PersonalizedRecommendation] = []
        recommendations.extend(self.content_recommendations(profile))
        recommendations.extend(self.activity_recommendations(profile))
        recommendations.extend(self.strategy_recommendations(sessions))
        recommendations.extend(self.review_recommendations(sessions, now=now))
        ranked = rank(recommendations)
        logger.debug("Generated %d recommendations for %s", len(ranked), profile.learner_id)
        return ranked
