from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

from macrobius_tutor.learning.models import (
    Activity,
    LearningSession,
    PerformanceMetrics,
    SessionSummary,
    unique,
)

# Retention is not measured yet (no delayed-recall testing); every session reports this.
RETENTION_PLACEHOLDER = 0.8

MASTERY_ACCURACY = 0.8
DEFAULT_CONCEPTS_MASTERED = ("Basic understanding achieved",)
DEFAULT_SESSION_RATING = 4.2
NEXT_STEPS = (
    "Continue with next module",
    "Practice cultural connections",
    "Review challenging concepts",
)


def mean(values: Iterable[float]) -> float:
    items = list(values)
    if not items:
        return 0.0
    return sum(items) / len(items)


def consistency(accuracies: Sequence[float]) -> float:
    """Return ``max(0, 1 - stddev)``; a single observation is perfectly consistent."""
    if len(accuracies) < 2:
        return 1.0
    avg = mean(accuracies)
    variance = sum((value - avg) ** 2 for value in accuracies) / len(accuracies)
    return max(0.0, 1.0 - math.sqrt(variance))


def improvement(accuracies: Sequence[float]) -> float:
    """Mean accuracy of the second half minus the first half (split at ``n // 2``)."""
    if len(accuracies) < 2:
        return 0.0
    middle = len(accuracies) // 2
    return mean(accuracies[middle:]) - mean(accuracies[:middle])


def compute_performance(activities: Sequence[Activity]) -> PerformanceMetrics:
    """Recompute session metrics from the full activity list.

    An empty list yields zeroed metrics, matching a freshly started session.
    """
    if not activities:
        return PerformanceMetrics()
    accuracies = [activity.accuracy for activity in activities]
    return PerformanceMetrics(
        accuracy=mean(accuracies),
        speed=mean(1.0 if activity.completed else 0.0 for activity in activities),
        consistency=consistency(accuracies),
        improvement=improvement(accuracies),
        engagement=mean(activity.engagement for activity in activities),
        retention=RETENTION_PLACEHOLDER,
    )


def summarize_session(
    session: LearningSession,
    areas_for_improvement: Sequence[str] = (),
    feedback: Optional[str] = None,
) -> SessionSummary:
    """Build the closing summary for a session.

    Topics explored lists interaction contexts first (first-seen order), then activity
    topics not already listed. Concepts mastered are topics of completed activities with
    accuracy of at least 0.8, or a placeholder when there are none. The rating is a fixed
    4.2 for pure tutoring sessions and ``1 + 4 * mean accuracy`` otherwise.
    """
    topics: List[str] = [interaction.cultural_context for interaction in session.interactions]
    topics.extend(activity.topic for activity in session.activities)

    mastered = unique(
        activity.topic
        for activity in session.activities
        if activity.completed and activity.accuracy >= MASTERY_ACCURACY
    )

    if session.activities:
        rating = round(1.0 + 4.0 * session.performance.accuracy, 1)
    else:
        rating = DEFAULT_SESSION_RATING

    connections = sum(
        len(interaction.response.cultural_connections) for interaction in session.interactions
    )

    return SessionSummary(
        session_id=session.session_id,
        learner_id=session.learner_id,
        total_interactions=len(session.interactions),
        topics_explored=unique(topic for topic in topics if topic),
        concepts_mastered=mastered or DEFAULT_CONCEPTS_MASTERED,
        areas_for_improvement=unique(areas_for_improvement),
        cultural_connections_made=connections,
        recommended_next_steps=NEXT_STEPS,
        session_rating=rating,
        feedback=feedback,
    )
