from __future__ import annotations

import pytest

from macrobius_tutor.errors import ProfileNotFoundError
from macrobius_tutor.learning.insights import learning_effectiveness, learning_insights
from macrobius_tutor.learning.models import Activity, LearnerProfile


def _practice(engine, clock, *activities):
    session = engine.start_session("marcus")
    for activity in activities:
        engine.add_activity(session.session_id, activity)
    clock.advance(minutes=30)
    summary = engine.end_session(session.session_id)
    clock.advance(days=1)
    return summary


def test_insights_are_empty_without_history():
    assert learning_insights(LearnerProfile("marcus"), []).strengths == []
    assert learning_effectiveness([]).overall == 0.0


def test_insights_report_strengths_and_improvements(engine, clock):
    engine.create_profile("marcus", {"weakness_areas": ["Law"]})
    _practice(
        engine,
        clock,
        Activity("quiz", "Astronomy", 0.5, accuracy=0.9, engagement=0.9, completed=True),
        Activity("quiz", "Philosophy", 0.5, accuracy=0.4, engagement=0.9, completed=True),
    )

    insights = engine.insights("marcus")

    assert "Astronomy" in insights.strengths
    assert insights.improvements[:2] == ["Law", "Philosophy"]
    assert "Highly engaged during practice" in insights.patterns
    assert any("Law" in line for line in insights.recommendations)


def test_effectiveness_tracks_topic_trends(engine, clock):
    engine.create_profile("marcus")
    _practice(
        engine,
        clock,
        Activity("quiz", "Astronomy", 0.5, accuracy=0.4, completed=True),
        Activity("reading", "Philosophy", 0.5, accuracy=0.9, completed=True),
    )
    _practice(
        engine,
        clock,
        Activity("quiz", "Astronomy", 0.5, accuracy=0.8, completed=True),
        Activity("reading", "Philosophy", 0.5, accuracy=0.5, completed=True),
    )

    report = engine.effectiveness("marcus")

    assert report.improving == ["Astronomy"]
    assert report.declining == ["Philosophy"]
    assert report.by_topic["Astronomy"] == pytest.approx(0.6)
    assert report.by_activity_type["reading"] == pytest.approx(0.7)


def test_smart_recommendations_bucket_by_duration(engine):
    engine.create_profile("marcus", {"weakness_areas": ["Law"]})
    smart = engine.smart_recommendations("marcus")

    assert smart.immediate == []
    assert {item.title for item in smart.short_term} >= {"Focus on Law", "Multimedia presentations"}
    assert smart.long_term == []


def test_struggle_adds_strategy_and_quick_review(engine, clock):
    engine.create_profile("marcus")
    _practice(engine, clock, Activity("quiz", "Law", 0.5, accuracy=0.2))
    smart = engine.smart_recommendations("marcus")

    assert [item.title for item in smart.immediate] == ["Spaced Repetition Review"]
    assert "Improve Learning Consistency" in [item.title for item in smart.short_term]
    assert smart.long_term == []


def test_predictions_without_history_use_defaults(engine):
    engine.create_profile("marcus")
    prediction = engine.predict_outcomes("marcus", Activity("quiz", "Saturnalia", difficulty=0.5))

    assert prediction.expected_accuracy == pytest.approx(0.75)
    assert prediction.expected_engagement == pytest.approx(0.8)
    assert prediction.expected_retention == pytest.approx(0.7)
    assert prediction.confidence == 0.8


def test_visual_learner_gets_style_bonus(engine):
    engine.create_profile("marcus", {"learning_style": "visual"})
    prediction = engine.predict_outcomes("marcus", Activity("analysis", "Saturnalia", 0.5))
    assert prediction.expected_engagement == pytest.approx(0.9)


def test_unknown_learner_is_rejected(engine):
    with pytest.raises(ProfileNotFoundError):
        engine.recommendations("ghost")
