"""Tests for learning path generation, progress tracking and adaptation."""

from __future__ import annotations

from datetime import timedelta

import pytest

from macrobius_tutor.errors import (
    PathModuleNotFoundError,
    PathNotFoundError,
    ProfileNotFoundError,
    ValidationError,
)
from macrobius_tutor.learning import LearningPathPlanner, PathOptions
from macrobius_tutor.learning.hints import HintKind, smart_hints
from macrobius_tutor.learning.models import AdaptationType, ProficiencyLevel
from macrobius_tutor.learning.paths import path_level


@pytest.fixture
def planner(profiles, clock):
    return LearningPathPlanner(profiles, clock=clock)


@pytest.fixture
def path(profiles, planner):
    profiles.create_profile("marcus")
    return planner.generate_path("marcus", ["Understand Roman banquets"], themes=["Philosophy"])


def _achieved(path):
    return [milestone.milestone_id for milestone in path.milestones if milestone.achieved]


@pytest.mark.parametrize(
    "goals,options,expected",
    [
        ([], PathOptions(), ProficiencyLevel.BEGINNER),
        (["Master Latin grammar"], PathOptions(), ProficiencyLevel.INTERMEDIATE),
        (["Master grammar", "Analyze the convivium"], PathOptions(), ProficiencyLevel.ADVANCED),
        ([], PathOptions(study_schedule="intensive"), ProficiencyLevel.ADVANCED),
        (
            ["Master grammar", "Analyze rituals", "Examine Stoicism"],
            PathOptions(study_schedule="intensive", cultural_depth="comprehensive"),
            ProficiencyLevel.EXPERT,
        ),
        (["Master grammar"], PathOptions(preferred_difficulty="expert"), ProficiencyLevel.EXPERT),
    ],
)
def test_path_level(goals, options, expected):
    assert path_level(options, goals) is expected


def test_unknown_options_are_rejected():
    with pytest.raises(ValidationError):
        PathOptions(preferred_difficulty="legendary")
    with pytest.raises(ValidationError):
        PathOptions(study_schedule="lazy")


def test_generated_path_is_chained(path, clock):
    modules = path.modules

    assert path.title == "Roman banquets through Philosophy"
    assert path.level is ProficiencyLevel.BEGINNER
    assert len(modules) == 4
    assert [module.position for module in modules] == [1, 2, 3, 4]
    assert modules[0].title == "Foundations of Roman Philosophy"
    assert [module.difficulty for module in modules] == pytest.approx([0.5, 0.55, 0.6, 0.65])
    assert modules[0].prerequisites == ()
    assert modules[1].prerequisites == (modules[0].module_id,)
    assert modules[0].unlocks == (modules[1].module_id,)
    assert modules[-1].unlocks == ()
    assert modules[0].activities == ("quiz", "analysis", "comparison")
    assert path.estimated_hours == 2
    # 120 remaining minutes at the default learning speed of 0.5
    assert path.estimated_completion == clock.now + timedelta(minutes=240)
    assert path.progress.current_module == modules[0].module_id
    assert [milestone.milestone_id for milestone in path.milestones] == [
        "milestone-1",
        "milestone-2",
        "milestone-3",
        "milestone-4",
        "cultural-0",
    ]


def test_module_levels_ramp_up(profiles, planner):
    profiles.create_profile("marcus")
    path = planner.generate_path("marcus", ["Master Stoic ethics"], weekly_hours=12)

    assert path.level is ProficiencyLevel.INTERMEDIATE
    assert [module.level for module in path.modules] == [
        ProficiencyLevel.BEGINNER,
        ProficiencyLevel.BEGINNER,
        ProficiencyLevel.INTERMEDIATE,
        ProficiencyLevel.INTERMEDIATE,
        ProficiencyLevel.INTERMEDIATE,
        ProficiencyLevel.ADVANCED,
    ]
    assert {module.estimated_minutes for module in path.modules} == {45}


def test_weekly_hours_cap_the_module_count(profiles, planner):
    profiles.create_profile("marcus")

    short = planner.generate_path("marcus", [], weekly_hours=1)
    assert len(short.modules) == 1
    assert [milestone.milestone_id for milestone in short.milestones] == ["milestone-4", "cultural-0"]

    with pytest.raises(ValidationError):
        planner.generate_path("marcus", [], weekly_hours=0)


def test_themes_default_to_profile_areas(profiles, planner):
    profiles.create_profile(
        "marcus", {"weakness_areas": ["Philosophy"], "strength_areas": ["Social Customs"]}
    )
    profiles.create_profile("livia")

    marcus = planner.generate_path("marcus", [])
    livia = planner.generate_path("livia", [])

    assert marcus.themes == ("Philosophy", "Social Customs")
    assert [module.theme for module in marcus.modules] == [
        "Philosophy",
        "Social Customs",
        "Philosophy",
        "Social Customs",
    ]
    assert livia.themes == ("Roman History",)
    assert livia.modules[0].title == "Roman History Foundations"


def test_options_shape_module_activities(profiles, planner):
    profiles.create_profile("marcus")
    options = PathOptions(peer_interaction=True, cultural_depth="comprehensive")
    path = planner.generate_path("marcus", [], options=options)
    assert path.modules[0].activities == (
        "quiz",
        "analysis",
        "comparison",
        "discussion",
        "research",
        "creative",
    )


def test_track_progress_updates_competency_and_milestones(path, planner, clock):
    first, second = path.modules[0].module_id, path.modules[1].module_id
    clock.advance(days=1)

    updated = planner.track_progress(path.path_id, first, 30, completed=True, score=0.8)

    progress = updated.progress
    assert progress.modules_completed == 1
    assert progress.completion == pytest.approx(0.25)
    assert progress.time_spent == 30
    assert progress.current_module == second
    competency = progress.competency("Philosophy")
    assert competency.scores == (0.8,)
    assert competency.knowledge == pytest.approx(0.02)
    assert competency.comprehension == pytest.approx(0.03)
    assert _achieved(updated) == ["milestone-1"]
    assert updated.milestones[0].achieved_at == clock.now
    assert updated.find_module(first).comprehension == 0.8

    in_progress = planner.track_progress(path.path_id, second, 10)
    assert in_progress.progress.current_module == second
    assert in_progress.find_module(second).time_spent == 10
    assert _achieved(in_progress) == ["milestone-1"]


def test_completion_without_scores_still_counts(path, planner):
    updated = planner.track_progress(path.path_id, path.modules[0].module_id, 30, completed=True)
    assert _achieved(updated) == ["milestone-1"]
    assert updated.progress.average_score is None


def test_cultural_mastery_needs_high_scores(path, planner):
    updated = planner.track_progress(path.path_id, path.modules[0].module_id, 30, score=0.95)
    assert _achieved(updated) == ["cultural-0"]


def test_low_scores_make_remaining_modules_easier(path, planner):
    module_id = path.modules[0].module_id
    for _ in range(2):
        updated = planner.track_progress(path.path_id, module_id, 10, score=0.5)
    assert updated.adaptations == ()

    updated = planner.track_progress(path.path_id, module_id, 10, score=0.5)

    (action,) = updated.adaptations
    assert action.action_type is AdaptationType.DIFFICULTY_ADJUSTMENT
    assert action.reason == "performance_based"
    assert action.old_value == pytest.approx(0.575)
    assert action.new_value == pytest.approx(0.475)
    assert [module.difficulty for module in updated.modules] == pytest.approx([0.4, 0.45, 0.5, 0.55])


def test_high_scores_make_remaining_modules_harder(path, planner):
    first = path.modules[0].module_id
    planner.track_progress(path.path_id, first, 30, completed=True, score=0.95)
    for _ in range(2):
        updated = planner.track_progress(path.path_id, path.modules[1].module_id, 10, score=0.95)

    assert len(updated.adaptations) == 1
    assert updated.find_module(first).difficulty == pytest.approx(0.5)
    assert [module.difficulty for module in updated.modules[1:]] == pytest.approx([0.65, 0.7, 0.75])


def test_middling_scores_leave_the_path_alone(path, planner):
    for _ in range(4):
        updated = planner.track_progress(path.path_id, path.modules[0].module_id, 10, score=0.8)
    assert updated.adaptations == ()


def test_manual_adaptation(path, planner):
    eased = planner.adapt_path(path.path_id, "manual", -0.6)

    assert [module.difficulty for module in eased.modules] == pytest.approx([0.0, 0.0, 0.0, 0.05])
    assert eased.adaptations[-1].reason == "manual"
    assert planner.adapt_path(path.path_id, "manual", 0) == eased


def test_finished_path_is_not_adapted(path, planner):
    for module in path.modules:
        finished = planner.track_progress(path.path_id, module.module_id, 30, completed=True)
    assert finished.progress.completion == 1.0
    assert finished.progress.current_module is None
    assert planner.adapt_path(path.path_id, "manual", 0.2) == finished


def test_optimize_puts_finished_modules_first(path, planner):
    first, second = path.modules[0].module_id, path.modules[1].module_id
    planner.track_progress(path.path_id, second, 30, completed=True)

    optimized = planner.optimize_path("marcus")

    assert [module.module_id for module in optimized.modules[:2]] == [second, first]
    assert [module.position for module in optimized.modules] == [1, 2, 3, 4]
    assert optimized.modules[0].prerequisites == ()
    assert optimized.modules[1].prerequisites == (second,)
    pending = [module.difficulty for module in optimized.modules[1:]]
    assert pending == sorted(pending)
    assert optimized.progress.current_module == first
    action = optimized.adaptations[-1]
    assert action.action_type is AdaptationType.CONTENT_SUGGESTION
    assert action.confidence == 0.85
    assert planner.get_path(path.path_id) == optimized


def test_current_path_follows_selection(path, planner):
    newer = planner.generate_path("marcus", [], themes=["Social Customs"])
    assert planner.current_path("marcus").path_id == newer.path_id

    planner.select_path(path.path_id)

    assert planner.current_path("marcus").path_id == path.path_id
    assert planner.optimize_path("marcus").path_id == path.path_id
    assert [item.path_id for item in planner.paths_for("marcus")] == [path.path_id, newer.path_id]


def test_lookup_errors(path, planner, profiles):
    with pytest.raises(PathNotFoundError):
        planner.get_path("path-missing")
    with pytest.raises(PathModuleNotFoundError):
        planner.track_progress(path.path_id, "module-missing", 10)
    with pytest.raises(ProfileNotFoundError):
        planner.generate_path("ghost", [])

    profiles.create_profile("livia")
    with pytest.raises(PathNotFoundError):
        planner.optimize_path("livia")
    assert planner.paths_for("livia") == []


@pytest.mark.parametrize("kwargs", [{"minutes": -1}, {"score": 1.5}, {"engagement": -0.1}])
def test_invalid_progress_is_rejected(path, planner, kwargs):
    arguments = {"minutes": 10, **kwargs}
    with pytest.raises(ValidationError):
        planner.track_progress(path.path_id, path.modules[0].module_id, **arguments)


# hints


def test_easy_material_gets_one_hint():
    (hint,) = smart_hints("etymology", 0.3)
    assert hint.kind is HintKind.ETYMOLOGICAL
    assert hint.confidence == 0.8


def test_hard_material_adds_strategy(engine):
    engine.create_profile("marcus")
    engine.create_profile("livia", {"proficiency_level": "advanced"})

    beginner = engine.smart_hints("marcus", "translation", 0.8)
    advanced = engine.smart_hints("livia", "translation", 0.8)

    assert [hint.kind for hint in beginner] == [HintKind.CONTEXTUAL, HintKind.STRATEGIC]
    assert beginner[1].confidence == 0.75
    assert advanced[1].confidence == 0.6


def test_invalid_hint_requests():
    with pytest.raises(ValidationError):
        smart_hints("poetry", 0.5)
    with pytest.raises(ValidationError):
        smart_hints("translation", 1.5)
