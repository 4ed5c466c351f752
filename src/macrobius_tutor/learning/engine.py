from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from macrobius_tutor.config.schema import RecommendationConfig
from macrobius_tutor.errors import ActivityNotFoundError, WrongSessionKindError
from macrobius_tutor.learning.difficulty import DifficultyAdapter
from macrobius_tutor.learning.hints import SmartHint, smart_hints
from macrobius_tutor.learning.insights import (
    EffectivenessReport,
    LearningInsights,
    learning_effectiveness,
    learning_insights,
)
from macrobius_tutor.learning.models import (
    Activity,
    LearnerProfile,
    LearningSession,
    PerformanceMetrics,
    PersonalizedRecommendation,
    SessionKind,
    SessionSummary,
    utcnow,
)
from macrobius_tutor.learning.predictors import (
    AccuracyPredictor,
    EngagementPredictor,
    Predictor,
    RetentionPredictor,
    extract_features,
)
from macrobius_tutor.learning.progress import ProfileStore
from macrobius_tutor.learning.recommendations import RecommendationGenerator
from macrobius_tutor.learning.session_log import SessionLog

logger = logging.getLogger(__name__)

PREDICTION_CONFIDENCE = 0.8
IMMEDIATE_MINUTES = 15
SHORT_TERM_MINUTES = 60


@dataclass(frozen=True)
class OutcomePrediction:
    expected_accuracy: float
    expected_engagement: float
    expected_retention: float
    confidence: float


@dataclass(frozen=True)
class SmartRecommendations:
    """Recommendations bucketed by time horizon (estimated minutes)."""

    immediate: List[PersonalizedRecommendation] = field(default_factory=list)
    short_term: List[PersonalizedRecommendation] = field(default_factory=list)
    long_term: List[PersonalizedRecommendation] = field(default_factory=list)


class LearningEngine:
    """
    Coordinate profiles, sessions, difficulty adaptation and recommendations.

    The engine is an explicitly constructed service object: every collaborator is
    injected, so tests can run against isolated in-memory stores.

    Attributes
    ----------
    profiles : ProfileStore
        Owner of learner profiles.
    sessions : SessionLog
        Owner of learning sessions.
    adapter : DifficultyAdapter
        Target-accuracy difficulty adjustment.
    recommender : RecommendationGenerator
        Content/activity/strategy/review suggestions.
    accuracy_model, engagement_model, retention_model : Predictor
        Deterministic predictors used by `predict_outcomes`.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        sessions: SessionLog,
        adapter: Optional[DifficultyAdapter] = None,
        recommender: Optional[RecommendationGenerator] = None,
        config: Optional[RecommendationConfig] = None,
        accuracy_model: Optional[Predictor] = None,
        engagement_model: Optional[Predictor] = None,
        retention_model: Optional[Predictor] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.profiles = profiles
        self.sessions = sessions
        self.adapter = adapter or DifficultyAdapter()
        self.config = config or RecommendationConfig()
        self.recommender = recommender or RecommendationGenerator(
            self.config, target_accuracy=self.adapter.config.target_accuracy
        )
        self.accuracy_model = accuracy_model or AccuracyPredictor()
        self.engagement_model = engagement_model or EngagementPredictor()
        self.retention_model = retention_model or RetentionPredictor()
        self.clock = clock

    def create_profile(
        self, learner_id: str, initial: Optional[Mapping[str, Any]] = None
    ) -> LearnerProfile:
        return self.profiles.create_profile(learner_id, initial, now=self.clock())

    def get_profile(self, learner_id: str) -> LearnerProfile:
        return self.profiles.get_profile(learner_id)

    def start_session(self, learner_id: str) -> LearningSession:
        return self.sessions.start_session(learner_id, kind=SessionKind.PRACTICE)

    def add_activity(self, session_id: str, activity: Activity) -> LearningSession:
        self._practice_session(session_id)
        return self.sessions.add_activity(session_id, activity)

    def end_session(self, session_id: str, feedback: Optional[str] = None) -> SessionSummary:
        """
        Close a practice session.

        Tutoring sessions are closed through the tutor so its state machine stays in step
        with the log; passing one here raises `WrongSessionKindError`.
        """
        self._practice_session(session_id)
        return self.sessions.end_session(session_id, feedback=feedback)

    def _practice_session(self, session_id: str) -> LearningSession:
        session = self.sessions.get_session(session_id)
        if session.kind is not SessionKind.PRACTICE:
            raise WrongSessionKindError(session_id, session.kind.value)
        return session

    def adapt_difficulty(
        self, session_id: str, activity_id: str, performance: PerformanceMetrics
    ) -> float:
        """
        Adjust the difficulty of an activity already logged in an open session.

        The computed change is appended to the session's adaptation audit trail.

        Raises
        ------
        SessionNotFoundError, SessionClosedError
            If the session is unknown or already closed.
        ActivityNotFoundError
            If the activity is not part of the session.
        """
        session = self.sessions.get_session(session_id)
        activity = session.find_activity(activity_id)
        if activity is None:
            raise ActivityNotFoundError(session_id, activity_id)
        profile = self.profiles.get_profile(session.learner_id)
        action = self.adapter.plan(profile, activity, performance)
        self.sessions.record_adaptation(session_id, action)
        logger.info(
            "Adjusted difficulty of %s in %s: %.2f -> %.2f",
            activity_id,
            session_id,
            action.old_value,
            action.new_value,
        )
        return action.new_value

    def recommendations(
        self, learner_id: str, now: Optional[datetime] = None
    ) -> List[PersonalizedRecommendation]:
        """Generate ranked recommendations from the most recent sessions."""
        profile = self.profiles.get_profile(learner_id)
        history = self.sessions.recent_sessions(learner_id, self.config.history_window)
        return self.recommender.generate(profile, history, now=now or self.clock())

    def smart_recommendations(
        self, learner_id: str, now: Optional[datetime] = None
    ) -> SmartRecommendations:
        ranked = self.recommendations(learner_id, now=now)
        return SmartRecommendations(
            immediate=[item for item in ranked if item.estimated_minutes <= IMMEDIATE_MINUTES],
            short_term=[
                item
                for item in ranked
                if IMMEDIATE_MINUTES < item.estimated_minutes <= SHORT_TERM_MINUTES
            ],
            long_term=[item for item in ranked if item.estimated_minutes > SHORT_TERM_MINUTES],
        )

    def predict_outcomes(self, learner_id: str, activity: Activity) -> OutcomePrediction:
        profile = self.profiles.get_profile(learner_id)
        history = self.sessions.recent_sessions(learner_id, self.config.history_window)
        features = extract_features(profile, history, activity)
        return OutcomePrediction(
            expected_accuracy=self.accuracy_model.predict(features),
            expected_engagement=self.engagement_model.predict(features),
            expected_retention=self.retention_model.predict(features),
            confidence=PREDICTION_CONFIDENCE,
        )

    def smart_hints(self, learner_id: str, context: str, difficulty: float) -> List[SmartHint]:
        """Hints for a Latin analysis, etymology or translation task, most confident first."""
        return smart_hints(context, difficulty, self.profiles.get_profile(learner_id))

    def insights(self, learner_id: str) -> LearningInsights:
        profile = self.profiles.get_profile(learner_id)
        return learning_insights(profile, self.sessions.sessions_for(learner_id, closed_only=True))

    def effectiveness(self, learner_id: str) -> EffectivenessReport:
        self.profiles.get_profile(learner_id)
        return learning_effectiveness(self.sessions.sessions_for(learner_id, closed_only=True))
