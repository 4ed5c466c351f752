"""Service layer for tutor operations - separates the CLI and API from core internals.

Every method returns plain JSON-ready dictionaries, so presentation code never holds
references to the engine's snapshots.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from macrobius_tutor.learning.models import Activity, PerformanceMetrics, PersonalizedRecommendation
from macrobius_tutor.learning.paths import LearningPath, PathOptions
from macrobius_tutor.learning.serialization import record_from_payload, to_jsonable
from macrobius_tutor.system import MacrobiusTutorSystem

logger = logging.getLogger(__name__)


class TutorService:
    """Plain-data API over a MacrobiusTutorSystem."""

    def __init__(self, system: MacrobiusTutorSystem):
        self.system = system

    # profiles

    def create_profile(
        self, learner_id: str, initial: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        return to_jsonable(self.system.engine.create_profile(learner_id, initial))

    def get_profile(self, learner_id: str) -> Dict[str, Any]:
        return to_jsonable(self.system.engine.get_profile(learner_id))

    def list_profiles(self) -> List[Dict[str, Any]]:
        return [to_jsonable(profile) for profile in self.system.profiles.list_profiles()]

    # practice sessions

    def start_practice(self, learner_id: str) -> Dict[str, Any]:
        return to_jsonable(self.system.engine.start_session(learner_id))

    def get_session(self, session_id: str) -> Dict[str, Any]:
        return to_jsonable(self.system.sessions.get_session(session_id))

    def record_activity(self, session_id: str, activity: Mapping[str, Any]) -> Dict[str, Any]:
        """Append an activity given as a plain mapping; bad keys raise ValidationError."""
        record = record_from_payload(Activity, activity)
        session = self.system.engine.add_activity(session_id, record)
        return to_jsonable(session)

    def adapt_difficulty(
        self, session_id: str, activity_id: str, performance: Mapping[str, Any]
    ) -> Dict[str, Any]:
        metrics = record_from_payload(PerformanceMetrics, performance)
        difficulty = self.system.engine.adapt_difficulty(session_id, activity_id, metrics)
        action = self.system.sessions.get_session(session_id).adaptations[-1]
        return {"difficulty": difficulty, "adaptation": to_jsonable(action)}

    def end_practice(self, session_id: str, feedback: Optional[str] = None) -> Dict[str, Any]:
        return to_jsonable(self.system.engine.end_session(session_id, feedback=feedback))

    # recommendations and insights

    def recommendations(self, learner_id: str) -> List[Dict[str, Any]]:
        return [
            self._recommendation(item) for item in self.system.engine.recommendations(learner_id)
        ]

    def smart_recommendations(self, learner_id: str) -> Dict[str, List[Dict[str, Any]]]:
        buckets = self.system.engine.smart_recommendations(learner_id)
        return {
            "immediate": [self._recommendation(item) for item in buckets.immediate],
            "short_term": [self._recommendation(item) for item in buckets.short_term],
            "long_term": [self._recommendation(item) for item in buckets.long_term],
        }

    def insights(self, learner_id: str) -> Dict[str, Any]:
        return to_jsonable(self.system.engine.insights(learner_id))

    def smart_hints(self, learner_id: str, context: str, difficulty: float) -> List[Dict[str, Any]]:
        return to_jsonable(self.system.engine.smart_hints(learner_id, context, difficulty))

    @staticmethod
    def _recommendation(item: PersonalizedRecommendation) -> Dict[str, Any]:
        payload = to_jsonable(item)
        payload["score"] = item.score
        return payload

    # learning paths

    def generate_path(
        self,
        learner_id: str,
        goals: Sequence[str],
        themes: Optional[Sequence[str]] = None,
        weekly_hours: float = 8,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        path_options = record_from_payload(PathOptions, options or {})
        path = self.system.paths.generate_path(
            learner_id, goals, themes=themes, weekly_hours=weekly_hours, options=path_options
        )
        return self._path(path)

    def list_paths(self, learner_id: str) -> List[Dict[str, Any]]:
        return [self._path(path) for path in self.system.paths.paths_for(learner_id)]

    def track_progress(
        self,
        path_id: str,
        module_id: str,
        minutes: float,
        completed: bool = False,
        score: Optional[float] = None,
        engagement: Optional[float] = None,
    ) -> Dict[str, Any]:
        path = self.system.paths.track_progress(
            path_id, module_id, minutes, completed=completed, score=score, engagement=engagement
        )
        return self._path(path)

    def adapt_path(self, path_id: str, reason: str, adjustment: float) -> Dict[str, Any]:
        return self._path(self.system.paths.adapt_path(path_id, reason, adjustment))

    def optimize_path(self, learner_id: str) -> Dict[str, Any]:
        return self._path(self.system.paths.optimize_path(learner_id))

    @staticmethod
    def _path(path: LearningPath) -> Dict[str, Any]:
        payload = to_jsonable(path)
        payload["estimated_hours"] = path.estimated_hours
        payload["achieved_milestones"] = [
            milestone.milestone_id for milestone in path.milestones if milestone.achieved
        ]
        return payload

    # tutoring

    def start_tutoring(
        self,
        learner_id: str,
        context: Optional[Mapping[str, Any]] = None,
        goals: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        session = self.system.tutor.start_session(learner_id, context=context, goals=goals)
        payload = to_jsonable(session)
        log_session = self.system.sessions.get_session(session.session_id)
        payload["greeting"] = log_session.interactions[0].response.content
        return payload

    def ask(
        self, learner_id: str, question: str, context: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        return to_jsonable(self.system.tutor.ask(learner_id, question, context=context))

    def hint(self, learner_id: str, topic: str, level: str = "moderate") -> Dict[str, Any]:
        return to_jsonable(self.system.tutor.hint(learner_id, topic, level=level))

    def explain(self, learner_id: str, concept: str, modern_context: bool = True) -> Dict[str, Any]:
        return to_jsonable(self.system.tutor.explain(learner_id, concept, modern_context=modern_context))

    def end_tutoring(self, learner_id: str, feedback: Optional[str] = None) -> Dict[str, Any]:
        summary = self.system.tutor.end_session(learner_id, feedback=feedback)
        logger.debug("Tutoring summary for %s: %s", learner_id, summary)
        return to_jsonable(summary)

    def backend_healthy(self) -> bool:
        return self.system.backend.health_check()
