from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from macrobius_tutor.learning.metrics import mean
from macrobius_tutor.learning.models import LearnerProfile, LearningSession, unique

STRENGTH_ACCURACY = 0.8
IMPROVEMENT_ACCURACY = 0.6
TREND_DELTA = 0.1


@dataclass(frozen=True)
class LearningInsights:
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class EffectivenessReport:
    overall: float = 0.0
    by_topic: Dict[str, float] = field(default_factory=dict)
    by_activity_type: Dict[str, float] = field(default_factory=dict)
    improving: List[str] = field(default_factory=list)
    declining: List[str] = field(default_factory=list)


def _topic_accuracies(sessions: Sequence[LearningSession]) -> "OrderedDict[str, List[float]]":
    """Accuracy per topic in chronological order of practice."""
    scores: "OrderedDict[str, List[float]]" = OrderedDict()
    for session in sorted(sessions, key=lambda item: item.start_time):
        for activity in session.activities:
            scores.setdefault(activity.topic, []).append(activity.accuracy)
    return scores


def learning_insights(profile: LearnerProfile, sessions: Sequence[LearningSession]) -> LearningInsights:
    """Summarise strengths, improvement areas, behaviour patterns and advice.

    Returns an empty result when the learner has no sessions.
    """
    if not sessions:
        return LearningInsights()

    topic_means = {topic: mean(scores) for topic, scores in _topic_accuracies(sessions).items()}
    strengths = unique(
        list(profile.strength_areas)
        + [topic for topic, score in topic_means.items() if score >= STRENGTH_ACCURACY]
    )
    improvements = unique(
        list(profile.weakness_areas)
        + [topic for topic, score in topic_means.items() if score < IMPROVEMENT_ACCURACY]
    )

    measured = [session for session in sessions if session.activities]
    patterns: List[str] = []
    advice: List[str] = []
    if measured:
        avg_consistency = mean(session.performance.consistency for session in measured)
        avg_improvement = mean(session.performance.improvement for session in measured)
        avg_engagement = mean(session.performance.engagement for session in measured)
        avg_accuracy = mean(session.performance.accuracy for session in measured)

        if avg_consistency >= 0.8:
            patterns.append("Consistent accuracy across activities")
        elif avg_consistency < 0.6:
            patterns.append("Accuracy varies considerably between activities")
            advice.append("Keep sessions short and regular to stabilise accuracy")
        if avg_improvement > 0.05:
            patterns.append("Accuracy improves as sessions progress")
        elif avg_improvement < -0.05:
            patterns.append("Accuracy drops later in sessions")
            advice.append("Take a short break midway through longer sessions")
        if avg_engagement >= 0.8:
            patterns.append("Highly engaged during practice")
        if avg_accuracy > 0.85:
            advice.append("Consider increasing difficulty gradually")

    if improvements:
        advice.append(f"Focus on {', '.join(improvements[:3])} during your next sessions")
    if not advice:
        advice.append("Continue at the current pace")

    return LearningInsights(
        strengths=list(strengths),
        improvements=list(improvements),
        patterns=patterns,
        recommendations=advice,
    )


def learning_effectiveness(sessions: Sequence[LearningSession]) -> EffectivenessReport:
    """Measure how well practice is working overall, per topic and per activity type.

    A topic is improving when its last attempt beats its first by more than 0.1 and
    declining when it falls short by more than 0.1.
    """
    measured = [session for session in sessions if session.activities]
    if not measured:
        return EffectivenessReport()

    topic_scores = _topic_accuracies(measured)
    type_scores: Dict[str, List[float]] = {}
    for session in measured:
        for activity in session.activities:
            type_scores.setdefault(activity.activity_type.value, []).append(activity.accuracy)

    improving = [
        topic for topic, scores in topic_scores.items()
        if len(scores) > 1 and scores[-1] - scores[0] > TREND_DELTA
    ]
    declining = [
        topic for topic, scores in topic_scores.items()
        if len(scores) > 1 and scores[-1] - scores[0] < -TREND_DELTA
    ]

    return EffectivenessReport(
        overall=mean(session.performance.accuracy for session in measured),
        by_topic={topic: mean(scores) for topic, scores in topic_scores.items()},
        by_activity_type={kind: mean(scores) for kind, scores in type_scores.items()},
        improving=improving,
        declining=declining,
    )
