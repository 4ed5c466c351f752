from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar

from macrobius_tutor.backend.base import MacrobiusBackend
from macrobius_tutor.backend.fallback import StaticBackend
from macrobius_tutor.backend.models import Passage
from macrobius_tutor.errors import (
    BackendUnavailable,
    NoActiveSessionError,
    SessionAlreadyActiveError,
    SessionClosedError,
    TutorError,
    ValidationError,
)
from macrobius_tutor.learning.engine import LearningEngine
from macrobius_tutor.learning.metrics import mean
from macrobius_tutor.learning.models import (
    InteractionType,
    LearnerProfile,
    LearningStyle,
    SessionKind,
    SessionSummary,
    TutorInteraction,
    TutorResource,
    TutorResponse,
    clamp_unit,
    new_id,
)
from macrobius_tutor.tutoring.classifier import classify_question, detect_difficulties
from macrobius_tutor.tutoring.cultural import CulturalConnectionMapper
from macrobius_tutor.tutoring.models import (
    DEFAULT_GOALS,
    DEFAULT_THEME,
    AdaptiveParameters,
    CulturalQuestion,
    HintLevel,
    LearningContext,
    LearningDifficulty,
    QuestionAnalysis,
    TutorGuidance,
    TutorSession,
    TutorState,
    UnderstandingAssessment,
    UnderstandingReport,
)
from macrobius_tutor.tutoring.templates import (
    FALLBACK_RESPONSE,
    complexity_tier,
    pick_greeting,
    render_hint,
    render_response,
)
from macrobius_tutor.utils.locks import KeyedLocks

logger = logging.getLogger(__name__)

T = TypeVar("T")

STRUGGLE_COMPLEXITY = 0.3
MAX_CONNECTIONS = 2
PASSAGE_DIFFICULTY = {"beginner": 0.3, "intermediate": 0.6, "advanced": 0.8}
UNDERSTANDING_PLACEHOLDER = 0.7
NEXT_STUDY_STEPS = (
    "Focus on cultural context",
    "Practice modern connections",
    "Review key concepts",
)


class MacrobiusTutor:
    """
    Conversational tutor over the learning engine.

    Each learner moves through ``idle -> active -> closed``; only one session per
    learner can be active at a time and a closed session accepts nothing further.
    Every turn is appended to the engine's session log, so closing a tutoring session
    produces the same summary and profile update as any other session.

    Parameters
    ----------
    engine : LearningEngine
        Provides profiles and the session log.
    mapper : CulturalConnectionMapper, optional
        Source of ancient-to-modern analogies.
    backend : MacrobiusBackend, optional
        Corpus service used to attach passages to explanations. When it reports
        `BackendUnavailable`, bundled sample passages are used instead.
    clock : Callable[[], datetime], optional
        Time source for interaction timestamps. Defaults to the engine's clock.
    """

    def __init__(
        self,
        engine: LearningEngine,
        mapper: Optional[CulturalConnectionMapper] = None,
        backend: Optional[MacrobiusBackend] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.engine = engine
        self.mapper = mapper or CulturalConnectionMapper()
        self.backend = backend
        self.clock = clock or engine.clock
        self._current: Dict[str, TutorSession] = {}
        self._history: Dict[str, List[TutorSession]] = {}
        self._locks = KeyedLocks()

    # ------------------------------------------------------------------ lifecycle

    def start_session(
        self,
        learner_id: str,
        context: Optional[Mapping[str, Any]] = None,
        goals: Optional[Sequence[str]] = None,
    ) -> TutorSession:
        """
        Move a learner from idle to active and greet them.

        Raises
        ------
        SessionAlreadyActiveError
            If the learner already has an active tutoring session.
        ProfileNotFoundError
            If the learner has no profile.
        """
        with self._locks.lock_for(learner_id):
            existing = self._reconciled(learner_id)
            if existing is not None and existing.state is TutorState.ACTIVE:
                raise SessionAlreadyActiveError(learner_id, existing.session_id)
            profile = self.engine.get_profile(learner_id)
            learning_context = self._initial_context(profile).merged(context or {})
            log_session = self.engine.sessions.start_session(learner_id, kind=SessionKind.TUTORING)
            session = TutorSession(
                session_id=log_session.session_id,
                learner_id=learner_id,
                start_time=log_session.start_time,
                context=learning_context,
                goals=tuple(goals) if goals else DEFAULT_GOALS,
                cultural_focus=(learning_context.cultural_theme,),
                parameters=self._initial_parameters(profile),
            )
            greeting = TutorResponse(
                content=pick_greeting(session.session_id, learning_context.cultural_theme),
                response_type="encouragement",
                confidence=0.9,
            )
            self._record(
                session,
                InteractionType.ENCOURAGEMENT,
                greeting,
                cultural_context=learning_context.cultural_theme,
                effectiveness=0.8,
            )
            self._current[learner_id] = session
        logger.info("Started tutoring session %s for %s", session.session_id, learner_id)
        return session

    def end_session(self, learner_id: str, feedback: Optional[str] = None) -> SessionSummary:
        """Close the active session; it is terminal afterwards."""
        with self._locks.lock_for(learner_id):
            session = self._require_active(learner_id)
            summary = self.engine.sessions.end_session(
                session.session_id,
                feedback=feedback,
                areas_for_improvement=session.context.struggle_areas,
            )
            log_session = self.engine.sessions.get_session(session.session_id)
            self._close(learner_id, session, log_session.end_time, summary)
        logger.info(
            "Ended tutoring session %s with %d interactions",
            session.session_id,
            summary.total_interactions,
        )
        return summary

    def active_session(self, learner_id: str) -> Optional[TutorSession]:
        with self._locks.lock_for(learner_id):
            session = self._reconciled(learner_id)
        if session is not None and session.state is TutorState.ACTIVE:
            return session
        return None

    def session_history(self, learner_id: str) -> List[TutorSession]:
        return list(self._history.get(learner_id, []))

    def state(self, learner_id: str) -> TutorState:
        with self._locks.lock_for(learner_id):
            session = self._reconciled(learner_id)
        return session.state if session is not None else TutorState.IDLE

    # ------------------------------------------------------------------ turns

    def ask(
        self, learner_id: str, question: str, context: Optional[Mapping[str, Any]] = None
    ) -> TutorResponse:
        """
        Answer a learner question.

        The template tier follows `context.difficulty` (low < 0.4 <= medium < 0.7 <= high)
        unless the question shows signs of struggle, in which case the low tier is used.
        Unexpected failures are logged and answered with a generic encouragement.
        """
        with self._locks.lock_for(learner_id):
            session = self._require_active(learner_id)
            if context:
                session = replace(session, context=session.context.merged(context))

            def answer() -> Tuple[TutorResponse, QuestionAnalysis, float]:
                analysis = classify_question(question)
                difficulties = detect_difficulties(question)
                complexity = STRUGGLE_COMPLEXITY if difficulties else session.context.difficulty
                response = self._contextual_response(
                    question, session, analysis, complexity, difficulties
                )
                return response, analysis, complexity

            outcome = self._guarded(session, "answer question", answer)
            if outcome is None:
                response = self._fallback_response()
                interaction_type = InteractionType.ENCOURAGEMENT
                follow_up = False
                complexity = session.parameters.response_complexity
            else:
                response, analysis, complexity = outcome
                interaction_type = analysis.interaction_type
                follow_up = analysis.requires_follow_up
            self._record(
                session,
                interaction_type,
                response,
                cultural_context=session.context.cultural_theme,
                effectiveness=0.8,
                follow_up=follow_up,
                user_input=question,
            )
            parameters = replace(session.parameters, response_complexity=complexity)
            self._current[learner_id] = replace(session, parameters=parameters)
        logger.debug(
            "Answered %s with %d cultural connections",
            session.session_id,
            len(response.cultural_connections),
        )
        return response

    def hint(self, learner_id: str, topic: str, level: str = "moderate") -> TutorResponse:
        try:
            hint_level = HintLevel(level)
        except ValueError as exc:
            raise ValidationError(f"Unknown hint level: {level}") from exc
        with self._locks.lock_for(learner_id):
            session = self._require_active(learner_id)
            response = self._guarded(
                session,
                "give hint",
                lambda: TutorResponse(
                    content=render_hint(hint_level.value, topic),
                    response_type="hint",
                    confidence=0.7,
                    adaptation_suggestions=("Consider providing more direct guidance if needed",),
                ),
            )
            if response is None:
                response = self._fallback_response()
                interaction_type, follow_up = InteractionType.ENCOURAGEMENT, False
            else:
                interaction_type, follow_up = InteractionType.HINT, hint_level is HintLevel.SUBTLE
            self._record(
                session,
                interaction_type,
                response,
                cultural_context=session.context.cultural_theme,
                effectiveness=0.7,
                follow_up=follow_up,
                user_input=topic,
            )
        return response

    def explain(self, learner_id: str, concept: str, modern_context: bool = True) -> TutorResponse:
        """Explain a cultural concept, optionally with modern examples and source passages."""
        with self._locks.lock_for(learner_id):
            session = self._require_active(learner_id)
            response = self._guarded(
                session,
                "explain concept",
                lambda: self._explanation(session, concept, modern_context),
            )
            if response is None:
                response = self._fallback_response()
                interaction_type, follow_up = InteractionType.ENCOURAGEMENT, False
            else:
                interaction_type, follow_up = InteractionType.EXPLANATION, True
            self._record(
                session,
                interaction_type,
                response,
                cultural_context=concept,
                effectiveness=0.9,
                follow_up=follow_up,
                user_input=concept,
            )
        return response

    def guidance(self, learner_id: str, current_struggle: Optional[str] = None) -> TutorGuidance:
        with self._locks.lock_for(learner_id):
            session = self._require_active(learner_id)
        theme = session.context.cultural_theme
        struggle = current_struggle or next(iter(session.context.struggle_areas), None)
        interventions = tuple(
            intervention
            for difficulty in detect_difficulties(current_struggle or "")
            for intervention in difficulty.interventions
        )
        examples = tuple(
            connection.ancient_concept
            for connection in self.mapper.find_connections(struggle or theme, limit=MAX_CONNECTIONS)
        )
        if struggle:
            return TutorGuidance(
                guidance_type="conceptual",
                guidance=f"Focus on understanding the core concepts of {struggle} before moving to applications",
                reasoning=f"Recent work shows gaps in foundational understanding of {struggle}",
                cultural_examples=examples,
                practice_activities=("Concept mapping", "Modern comparison exercises") + interventions,
                assessment_suggestions=("Quick comprehension check", "Cultural connection quiz"),
            )
        return TutorGuidance(
            guidance_type="enrichment",
            guidance=f"Extend your understanding by connecting {theme} to modern practice",
            reasoning="No struggle areas are recorded for this session",
            cultural_examples=examples,
            practice_activities=("Modern comparison exercises", "Passage reading"),
            assessment_suggestions=("Cultural connection quiz",),
        )

    def assess_understanding(self, learner_id: str, topic: str) -> UnderstandingReport:
        """
        Build assessment questions for `topic` and estimate current understanding.

        The estimate is the mean effectiveness of the learner's turns this session,
        discounted by the share of turns that needed a follow-up.
        """
        with self._locks.lock_for(learner_id):
            session = self._require_active(learner_id)
            interactions = self.engine.sessions.get_session(session.session_id).interactions
        context = session.context
        question = CulturalQuestion(
            question_id=new_id("question"),
            question=f"How did {topic} function in Roman society?",
            cultural_theme=context.cultural_theme,
            difficulty=context.difficulty,
            expected_answer_types=("social function", "cultural significance"),
            cultural_context=f"Understanding {topic} in its historical context",
            modern_relevance=f"Parallels to modern {topic}",
            hints=("Think about social structure", "Consider modern parallels"),
            related_concepts=("social hierarchy", "cultural practices"),
        )

        turns = [interaction for interaction in interactions if interaction.user_input is not None]
        if turns:
            follow_up_ratio = sum(1 for turn in turns if turn.follow_up_needed) / len(turns)
            level = clamp_unit(mean(turn.effectiveness for turn in turns) * (1 - 0.5 * follow_up_ratio))
            confidence = min(0.9, 0.5 + 0.1 * len(turns))
        else:
            level = UNDERSTANDING_PLACEHOLDER
            confidence = 0.5
        made_connections = any(turn.response.cultural_connections for turn in turns)
        strengths: Tuple[str, ...] = ("Basic concept grasp",)
        if made_connections:
            strengths += ("Modern connections",)
        weaknesses = context.struggle_areas or (() if made_connections else ("Modern connections",))

        recommendations = NEXT_STUDY_STEPS
        if level < 0.6:
            recommendations = (f"Review {topic} with simpler examples",) + recommendations
        return UnderstandingReport(
            questions=(question,),
            assessment=UnderstandingAssessment(
                overall_level=round(level, 4),
                strengths=strengths,
                weaknesses=tuple(weaknesses),
                confidence=round(confidence, 4),
            ),
            recommendations=recommendations,
        )

    # ------------------------------------------------------------------ helpers

    def _reconciled(self, learner_id: str) -> Optional[TutorSession]:
        """Return the learner's latest session, marked closed if the log already closed it."""
        session = self._current.get(learner_id)
        if session is None or session.state is TutorState.CLOSED:
            return session
        log_session = self.engine.sessions.get_session(session.session_id)
        if not log_session.is_closed:
            return session
        logger.warning(
            "Tutoring session %s was closed outside the tutor; marking it closed", session.session_id
        )
        return self._close(learner_id, session, log_session.end_time, log_session.summary)

    def _close(
        self,
        learner_id: str,
        session: TutorSession,
        end_time: Optional[datetime],
        summary: Optional[SessionSummary],
    ) -> TutorSession:
        closed = replace(session, state=TutorState.CLOSED, end_time=end_time, summary=summary)
        self._current[learner_id] = closed
        self._history.setdefault(learner_id, []).append(closed)
        return closed

    def _require_active(self, learner_id: str) -> TutorSession:
        session = self._reconciled(learner_id)
        if session is None:
            raise NoActiveSessionError(learner_id)
        if session.state is TutorState.CLOSED:
            raise SessionClosedError(session.session_id)
        return session

    @staticmethod
    def _initial_context(profile: LearnerProfile) -> LearningContext:
        return LearningContext(
            cultural_theme=DEFAULT_THEME,
            difficulty=profile.initial_difficulty,
            struggle_areas=profile.weakness_areas,
        )

    @staticmethod
    def _initial_parameters(profile: LearnerProfile) -> AdaptiveParameters:
        frequency = 0.8 if profile.learning_style is LearningStyle.VISUAL else 0.6
        return AdaptiveParameters(
            response_complexity=profile.initial_difficulty,
            cultural_connection_frequency=frequency,
        )

    def _contextual_response(
        self,
        question: str,
        session: TutorSession,
        analysis: QuestionAnalysis,
        complexity: float,
        difficulties: Sequence[LearningDifficulty],
    ) -> TutorResponse:
        theme = session.context.cultural_theme
        connections = self.mapper.find_connections(f"{question} {theme}", limit=MAX_CONNECTIONS)
        return TutorResponse(
            content=render_response(complexity_tier(complexity), theme),
            response_type=(
                "direct_answer" if analysis.interaction_type is InteractionType.QUESTION else "explanation"
            ),
            cultural_connections=tuple(connections),
            modern_examples=tuple(self.mapper.modern_examples(question)),
            resources=self._resources(session.context),
            confidence=0.85,
            adaptation_suggestions=tuple(
                intervention for difficulty in difficulties for intervention in difficulty.interventions
            ),
        )

    def _explanation(self, session: TutorSession, concept: str, modern_context: bool) -> TutorResponse:
        connections = self.mapper.find_connections(concept, limit=MAX_CONNECTIONS)
        content = f"{concept} was a fundamental aspect of Roman culture."
        if connections:
            lead = connections[0]
            content += f" {lead.explanation}."
            if modern_context:
                content += f" Today, we can see parallels in {lead.modern_parallel.lower()}."
        return TutorResponse(
            content=content,
            response_type="explanation",
            cultural_connections=tuple(connections),
            modern_examples=tuple(self.mapper.modern_examples(concept)) if modern_context else (),
            resources=self._resources(session.context) + self._passage_resources(concept),
            confidence=0.9,
        )

    @staticmethod
    def _guarded(session: TutorSession, action: str, build: Callable[[], T]) -> Optional[T]:
        """
        Run one response builder for a turn.

        Domain errors propagate. Any other failure is logged and reported as None so the
        caller can answer with `_fallback_response` and the session stays usable.
        """
        try:
            return build()
        except TutorError:
            raise
        except Exception:
            logger.exception("Failed to %s in session %s", action, session.session_id)
            return None

    @staticmethod
    def _fallback_response() -> TutorResponse:
        return TutorResponse(content=FALLBACK_RESPONSE, response_type="encouragement", confidence=0.5)

    @staticmethod
    def _resources(context: LearningContext) -> Tuple[TutorResource, ...]:
        return (
            TutorResource(
                resource_type="passage",
                title=f"Macrobius on {context.cultural_theme}",
                content="Related passage from Saturnalia",
                cultural_relevance=0.9,
                difficulty=context.difficulty,
                estimated_minutes=10,
            ),
            TutorResource(
                resource_type="explanation",
                title="Cultural Context Guide",
                content="Detailed background information",
                cultural_relevance=0.8,
                difficulty=round(context.difficulty * 0.8, 4),
                estimated_minutes=15,
            ),
        )

    def _passage_resources(self, concept: str) -> Tuple[TutorResource, ...]:
        if self.backend is None:
            return ()
        try:
            result = self.backend.search_passages(concept, limit=MAX_CONNECTIONS)
        except BackendUnavailable as exc:
            logger.warning("Passage search unavailable (%s); using sample passages", exc)
            result = StaticBackend().search_passages(concept, limit=MAX_CONNECTIONS)
        return tuple(self._passage_resource(passage) for passage in result.passages)

    @staticmethod
    def _passage_resource(passage: Passage) -> TutorResource:
        reference = f"{passage.book_number}.{passage.chapter_number}.{passage.section_number}"
        return TutorResource(
            resource_type="passage",
            title=f"{passage.work_type} {reference}",
            content=passage.latin_text,
            cultural_relevance=0.9,
            difficulty=PASSAGE_DIFFICULTY.get(passage.difficulty_level.lower(), 0.6),
            estimated_minutes=10,
        )

    def _record(
        self,
        session: TutorSession,
        interaction_type: InteractionType,
        response: TutorResponse,
        cultural_context: str,
        effectiveness: float,
        follow_up: bool = False,
        user_input: Optional[str] = None,
    ) -> TutorInteraction:
        interaction = TutorInteraction(
            interaction_type=interaction_type,
            response=response,
            cultural_context=cultural_context,
            effectiveness=effectiveness,
            follow_up_needed=follow_up,
            user_input=user_input,
            timestamp=self.clock(),
        )
        self.engine.sessions.add_interaction(session.session_id, interaction)
        return interaction
