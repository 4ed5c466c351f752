from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from macrobius_tutor.backend import MacrobiusBackend, StaticBackend
from macrobius_tutor.errors import (
    BackendUnavailable,
    NoActiveSessionError,
    ProfileNotFoundError,
    SessionAlreadyActiveError,
    SessionClosedError,
    ValidationError,
    WrongSessionKindError,
)
from macrobius_tutor.learning.models import Activity, InteractionType, SessionKind
from macrobius_tutor.tutoring import CulturalConnectionMapper, MacrobiusTutor, TutorState
from macrobius_tutor.tutoring.classifier import classify_question, detect_difficulties
from macrobius_tutor.tutoring.templates import (
    FALLBACK_RESPONSE,
    GREETINGS,
    HINT_TEMPLATES,
    render_response,
)

THEME = "General Roman Culture"


class BrokenMapper(CulturalConnectionMapper):
    def find_connections(self, concept, limit=None):
        raise RuntimeError("index unavailable")


class DownBackend(StaticBackend):
    def search_passages(self, query, theme=None, difficulty=None, limit=10):
        raise BackendUnavailable("connection refused", "/passages/search")


@pytest.fixture
def learner(engine):
    return engine.create_profile("marcus", {"proficiency_level": "intermediate"})


def _interactions(engine, session_id):
    return engine.sessions.get_session(session_id).interactions


# classifier


@pytest.mark.parametrize(
    "question,expected",
    [
        ("What is the Saturnalia?", InteractionType.QUESTION),
        ("Can you explain the convivium?", InteractionType.EXPLANATION),
        ("Please help me understand Saturn", InteractionType.EXPLANATION),
        ("I'm stuck on this passage", InteractionType.HINT),
        ("Tell me about Vettius", InteractionType.QUESTION),
        ("Somewhat unclear: please explain Janus", InteractionType.EXPLANATION),
        ("Nowhere to start, can you give a hint?", InteractionType.HINT),
    ],
)
def test_question_types(question, expected):
    assert classify_question(question).interaction_type is expected


def test_follow_up_and_complexity():
    analysis = classify_question("Why is this so complex?" * 10)
    assert analysis.requires_follow_up
    assert analysis.complexity == 0.8


def test_struggle_signals():
    areas = [item.area for item in detect_difficulties("I don’t understand, this is hard")]
    assert areas == ["conceptual_understanding", "difficulty_level"]
    assert detect_difficulties("What is a toga?") == ()


def test_keywords_match_whole_words_only():
    assert detect_difficulties("Richard read the hardcover Saturnalia") == ()
    assert not classify_question("A complexity of gods").requires_follow_up
    assert [item.area for item in detect_difficulties("This is HARD")] == ["difficulty_level"]


# lifecycle


def test_start_greets_and_records(tutor, engine, learner):
    session = tutor.start_session("marcus")

    assert tutor.state("marcus") is TutorState.ACTIVE
    assert session.context.cultural_theme == THEME
    assert session.context.difficulty == pytest.approx(0.6)
    greeting = _interactions(engine, session.session_id)[0]
    assert greeting.interaction_type is InteractionType.ENCOURAGEMENT
    assert greeting.response.content in {template.format(theme=THEME) for template in GREETINGS}


def test_context_overrides_are_merged(tutor, learner):
    session = tutor.start_session("marcus", context={"cultural_theme": "Astronomy"})
    assert session.context.cultural_theme == "Astronomy"
    assert session.cultural_focus == ("Astronomy",)


def test_unknown_context_field_is_rejected(tutor, learner):
    with pytest.raises(ValidationError):
        tutor.start_session("marcus", context={"mood": "sleepy"})


def test_only_one_active_session(tutor, learner):
    first = tutor.start_session("marcus")
    with pytest.raises(SessionAlreadyActiveError):
        tutor.start_session("marcus")

    tutor.end_session("marcus")
    second = tutor.start_session("marcus")

    assert second.session_id != first.session_id
    assert [item.session_id for item in tutor.session_history("marcus")] == [first.session_id]


def test_unknown_learner_cannot_start(tutor):
    assert tutor.state("ghost") is TutorState.IDLE
    with pytest.raises(ProfileNotFoundError):
        tutor.start_session("ghost")


def test_turns_require_an_active_session(tutor, learner):
    with pytest.raises(NoActiveSessionError):
        tutor.ask("marcus", "What is the Saturnalia?")

    tutor.start_session("marcus")
    tutor.end_session("marcus")

    assert tutor.state("marcus") is TutorState.CLOSED
    with pytest.raises(SessionClosedError):
        tutor.ask("marcus", "What is the Saturnalia?")
    with pytest.raises(SessionClosedError):
        tutor.end_session("marcus")


# turns


def test_struggling_learner_gets_simple_answer(tutor, engine, learner):
    session = tutor.start_session("marcus")

    simple = tutor.ask("marcus", "I'm confused about this")
    assert simple.content == render_response("low", THEME)
    assert "Simpler explanation" in simple.adaptation_suggestions
    assert tutor.active_session("marcus").parameters.response_complexity == pytest.approx(0.3)

    normal = tutor.ask("marcus", "What did Romans eat at banquets?")
    assert normal.content == render_response("medium", THEME)
    assert normal.response_type == "direct_answer"
    assert len(normal.cultural_connections) == 2
    assert normal.cultural_connections[0].theme == "social-customs"

    turns = _interactions(engine, session.session_id)
    assert [turn.user_input for turn in turns[1:]] == [
        "I'm confused about this",
        "What did Romans eat at banquets?",
    ]


def test_hard_context_uses_high_tier(tutor, learner):
    tutor.start_session("marcus")
    response = tutor.ask("marcus", "Who hosted the Saturnalia?", context={"difficulty": 0.9})
    assert response.content == render_response("high", THEME)


def test_failures_are_answered_gracefully(engine, learner):
    tutor = MacrobiusTutor(engine, mapper=BrokenMapper())
    session = tutor.start_session("marcus")

    response = tutor.ask("marcus", "What is the Saturnalia?")

    assert response.content == FALLBACK_RESPONSE
    assert response.confidence == 0.5
    last = _interactions(engine, session.session_id)[-1]
    assert last.interaction_type is InteractionType.ENCOURAGEMENT


def test_hint_levels(tutor, engine, learner):
    session = tutor.start_session("marcus")

    subtle = tutor.hint("marcus", "convivium", level="subtle")
    direct = tutor.hint("marcus", "convivium", level="direct")

    assert subtle.content == HINT_TEMPLATES["subtle"]
    assert "convivium" in direct.content
    assert direct.confidence == 0.7
    turns = _interactions(engine, session.session_id)
    assert [turn.follow_up_needed for turn in turns[1:]] == [True, False]


def test_invalid_hint_level(tutor, learner):
    tutor.start_session("marcus")
    with pytest.raises(ValidationError):
        tutor.hint("marcus", "convivium", level="loud")


def test_explain_links_modern_parallels(tutor, learner):
    tutor.start_session("marcus")
    response = tutor.explain("marcus", "Education")

    assert response.content.startswith("Education was a fundamental aspect of Roman culture.")
    assert "modern educational technology" in response.content
    assert response.cultural_connections[0].ancient_concept == "Structured knowledge transmission"
    assert response.modern_examples
    assert response.confidence == 0.9


def test_explain_without_modern_context(tutor, learner):
    tutor.start_session("marcus")
    response = tutor.explain("marcus", "Education", modern_context=False)
    assert "Today" not in response.content
    assert response.modern_examples == ()


def test_explain_attaches_backend_passages(engine, learner):
    tutor = MacrobiusTutor(engine, backend=StaticBackend())
    tutor.start_session("marcus")
    response = tutor.explain("marcus", "Convivium")
    titles = [resource.title for resource in response.resources]
    assert "Saturnalia 2.4.8" in titles


def test_explain_survives_backend_outage(engine, learner):
    backend: MacrobiusBackend = DownBackend()
    tutor = MacrobiusTutor(engine, backend=backend)
    tutor.start_session("marcus")
    response = tutor.explain("marcus", "Convivium")
    assert "Saturnalia 2.4.8" in [resource.title for resource in response.resources]


def test_guidance(tutor, engine):
    engine.create_profile("marcus", {"weakness_areas": ["Philosophy"]})
    tutor.start_session("marcus")

    focused = tutor.guidance("marcus")
    assert focused.guidance_type == "conceptual"
    assert "Philosophy" in focused.guidance

    confused = tutor.guidance("marcus", current_struggle="I'm confused by the convivium")
    assert "Simpler explanation" in confused.practice_activities


def test_guidance_without_struggles_is_enrichment(tutor, learner):
    tutor.start_session("marcus")
    assert tutor.guidance("marcus").guidance_type == "enrichment"


def test_understanding_estimate(tutor, learner):
    tutor.start_session("marcus")
    empty = tutor.assess_understanding("marcus", "the convivium")
    assert empty.assessment.overall_level == 0.7
    assert empty.assessment.confidence == 0.5

    tutor.ask("marcus", "What is a convivium?")
    tutor.hint("marcus", "convivium", level="subtle")
    report = tutor.assess_understanding("marcus", "the convivium")

    assert report.assessment.overall_level == pytest.approx(0.5625)
    assert report.assessment.confidence == pytest.approx(0.7)
    assert report.recommendations[0] == "Review the convivium with simpler examples"
    assert report.questions[0].question == "How did the convivium function in Roman society?"


# closing


def test_end_session_summarises_and_updates_profile(tutor, engine, clock, learner):
    tutor.start_session("marcus")
    tutor.ask("marcus", "What did Romans eat at banquets?")
    tutor.explain("marcus", "Education")
    clock.advance(minutes=25)

    summary = tutor.end_session("marcus", feedback="Gratias")

    assert summary.total_interactions == 3
    assert summary.cultural_connections_made == 4
    assert summary.feedback == "Gratias"
    assert summary.topics_explored == (THEME, "Education")
    profile = engine.get_profile("marcus")
    assert profile.retention_rate == pytest.approx(0.75)
    assert profile.learning_speed == pytest.approx(0.5)
    assert profile.last_activity == clock.now


def test_practice_calls_cannot_touch_tutoring_sessions(tutor, engine, learner):
    session = tutor.start_session("marcus")

    with pytest.raises(WrongSessionKindError):
        engine.end_session(session.session_id)
    with pytest.raises(WrongSessionKindError):
        engine.add_activity(session.session_id, Activity("quiz", "Saturnalia", 0.5))

    assert tutor.state("marcus") is TutorState.ACTIVE
    assert not engine.sessions.get_session(session.session_id).is_closed
    assert tutor.ask("marcus", "What is the Saturnalia?").content


def test_tutor_follows_sessions_closed_in_the_log(tutor, engine, learner):
    first = tutor.start_session("marcus")
    engine.sessions.end_session(first.session_id)

    assert tutor.state("marcus") is TutorState.CLOSED
    assert tutor.active_session("marcus") is None
    with pytest.raises(SessionClosedError):
        tutor.ask("marcus", "What is the Saturnalia?")
    with pytest.raises(SessionClosedError):
        tutor.end_session("marcus")

    second = tutor.start_session("marcus")
    assert second.session_id != first.session_id
    assert tutor.state("marcus") is TutorState.ACTIVE
    history = tutor.session_history("marcus")
    assert [item.session_id for item in history] == [first.session_id]
    assert history[0].end_time is not None


# failures


def test_explain_failure_falls_back(engine, learner):
    tutor = MacrobiusTutor(engine, mapper=BrokenMapper())
    session = tutor.start_session("marcus")

    response = tutor.explain("marcus", "Convivium")

    assert response.content == FALLBACK_RESPONSE
    assert response.confidence == 0.5
    last = _interactions(engine, session.session_id)[-1]
    assert last.interaction_type is InteractionType.ENCOURAGEMENT
    assert last.user_input == "Convivium"
    assert not last.follow_up_needed


def test_hint_failure_falls_back(tutor, engine, learner, monkeypatch):
    def broken_hint(level, topic):
        raise KeyError(level)

    session = tutor.start_session("marcus")
    monkeypatch.setattr("macrobius_tutor.tutoring.tutor.render_hint", broken_hint)

    response = tutor.hint("marcus", "convivium", level="direct")

    assert response.content == FALLBACK_RESPONSE
    last = _interactions(engine, session.session_id)[-1]
    assert last.interaction_type is InteractionType.ENCOURAGEMENT
    assert tutor.state("marcus") is TutorState.ACTIVE

    monkeypatch.undo()
    assert tutor.hint("marcus", "convivium", level="subtle").content == HINT_TEMPLATES["subtle"]


# concurrency


def test_concurrent_starts_open_one_session(tutor, engine, learner):
    barrier = threading.Barrier(6)

    def start(_):
        barrier.wait()
        try:
            return tutor.start_session("marcus")
        except SessionAlreadyActiveError:
            return None

    with ThreadPoolExecutor(max_workers=6) as pool:
        started = [session for session in pool.map(start, range(6)) if session is not None]

    assert len(started) == 1
    open_session = engine.sessions.active_session("marcus", kind=SessionKind.TUTORING)
    assert open_session.session_id == started[0].session_id
    assert len(engine.sessions.sessions_for("marcus")) == 1


def test_concurrent_turns_are_all_recorded(tutor, engine, learner):
    session = tutor.start_session("marcus")

    def turn(index):
        if index % 2:
            tutor.guidance("marcus")
            tutor.assess_understanding("marcus", "the convivium")
            return tutor.ask("marcus", f"What happened on day {index} of the Saturnalia?")
        return tutor.hint("marcus", "convivium")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(turn, range(16)))

    turns = _interactions(engine, session.session_id)
    assert len(turns) == 17
    assert sum(1 for item in turns if item.interaction_type is InteractionType.HINT) == 8
    assert tutor.end_session("marcus").total_interactions == 17
