"""Tests for session performance metrics and summaries."""

from __future__ import annotations

import pytest

from macrobius_tutor.learning.metrics import (
    DEFAULT_CONCEPTS_MASTERED,
    DEFAULT_SESSION_RATING,
    compute_performance,
    consistency,
    improvement,
    summarize_session,
)
from macrobius_tutor.learning.models import (
    Activity,
    CulturalConnection,
    InteractionType,
    LearningSession,
    PerformanceMetrics,
    TutorInteraction,
    TutorResponse,
)

from conftest import T0


def test_empty_activity_list_gives_zeroed_metrics():
    assert compute_performance([]) == PerformanceMetrics()


def test_metrics_follow_documented_formulas():
    activities = [
        Activity("quiz", "Saturnalia", 0.5, accuracy=0.6, engagement=0.7, completed=True),
        Activity("quiz", "Saturnalia", 0.5, accuracy=1.0, engagement=0.9, completed=False),
    ]
    metrics = compute_performance(activities)

    assert metrics.accuracy == pytest.approx(0.8)
    assert metrics.speed == pytest.approx(0.5)
    assert metrics.consistency == pytest.approx(0.8)
    assert metrics.improvement == pytest.approx(0.4)
    assert metrics.engagement == pytest.approx(0.8)
    assert metrics.retention == pytest.approx(0.8)


def test_single_observation_edge_cases():
    assert consistency([0.3]) == 1.0
    assert improvement([0.3]) == 0.0


def test_consistency_never_negative():
    assert consistency([0.0, 1.0, 0.0, 1.0]) >= 0.0


def test_summary_of_tutoring_session_uses_placeholders():
    connection = CulturalConnection("Convivium", "Business networking", "Dining as diplomacy", 0.78)
    interactions = (
        TutorInteraction(
            InteractionType.QUESTION,
            TutorResponse("...", "direct_answer", cultural_connections=(connection, connection)),
            cultural_context="Social Customs",
            effectiveness=0.8,
        ),
        TutorInteraction(
            InteractionType.EXPLANATION,
            TutorResponse("...", "explanation", cultural_connections=(connection,)),
            cultural_context="Philosophy",
            effectiveness=0.9,
        ),
        TutorInteraction(
            InteractionType.HINT,
            TutorResponse("...", "hint"),
            cultural_context="Social Customs",
            effectiveness=0.7,
        ),
    )
    session = LearningSession("s1", "marcus", T0, end_time=T0, interactions=interactions)

    summary = summarize_session(session, areas_for_improvement=["Law"], feedback="Useful")

    assert summary.total_interactions == 3
    assert summary.topics_explored == ("Social Customs", "Philosophy")
    assert summary.cultural_connections_made == 3
    assert summary.concepts_mastered == DEFAULT_CONCEPTS_MASTERED
    assert summary.session_rating == DEFAULT_SESSION_RATING
    assert summary.areas_for_improvement == ("Law",)
    assert summary.feedback == "Useful"


def test_summary_of_practice_session_reports_mastery():
    activities = (
        Activity("quiz", "Saturnalia", 0.5, accuracy=0.9, completed=True),
        Activity("reading", "Dream of Scipio", 0.5, accuracy=0.5, completed=True),
    )
    session = LearningSession(
        "s1", "marcus", T0, end_time=T0, activities=activities,
        performance=compute_performance(activities),
    )
    summary = summarize_session(session)

    assert summary.concepts_mastered == ("Saturnalia",)
    assert summary.topics_explored == ("Saturnalia", "Dream of Scipio")
    assert summary.session_rating == pytest.approx(3.8)
