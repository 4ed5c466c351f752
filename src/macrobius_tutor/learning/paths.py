"""Personalised learning paths: a sequence of themed modules with milestones.

A path is generated from the learner's goals, cultural interests and weekly time budget.
Tracking progress on a module updates per-theme competencies, awards milestones, and
shifts the difficulty of the remaining modules when recent scores run consistently low
or high. Every automatic change is recorded as an `AdaptationAction` on the path.

Path level when the learner asks for ``adaptive`` (a "complex" goal names Master,
Analyze or Examine):

    expert        three or more complex goals on an intensive, comprehensive plan
    advanced      two or more complex goals, or any intensive plan
    intermediate  one complex goal
    beginner      otherwise
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from macrobius_tutor.errors import (
    PathModuleNotFoundError,
    PathNotFoundError,
    ValidationError,
)
from macrobius_tutor.learning.metrics import mean
from macrobius_tutor.learning.models import (
    AdaptationAction,
    AdaptationType,
    LearnerProfile,
    ProficiencyLevel,
    check_unit,
    clamp_unit,
    coerce_enum,
    new_id,
    unique,
    utcnow,
)
from macrobius_tutor.learning.progress import ProfileStore
from macrobius_tutor.utils.locks import KeyedLocks

logger = logging.getLogger(__name__)

DEFAULT_THEMES = ("Roman History",)
COMPLEX_GOAL_WORDS = ("master", "analyze", "examine")

# modules per path and minutes per module for each path level
PATH_SHAPES = {
    ProficiencyLevel.BEGINNER: (4, 30),
    ProficiencyLevel.INTERMEDIATE: (6, 45),
    ProficiencyLevel.ADVANCED: (8, 60),
    ProficiencyLevel.EXPERT: (10, 75),
}

# (share of the path completed before the step, module level) per path level
MODULE_LEVEL_STEPS = {
    ProficiencyLevel.BEGINNER: ((0.8, ProficiencyLevel.BEGINNER), (1.0, ProficiencyLevel.INTERMEDIATE)),
    ProficiencyLevel.INTERMEDIATE: (
        (0.3, ProficiencyLevel.BEGINNER),
        (0.8, ProficiencyLevel.INTERMEDIATE),
        (1.0, ProficiencyLevel.ADVANCED),
    ),
    ProficiencyLevel.ADVANCED: (
        (0.2, ProficiencyLevel.INTERMEDIATE),
        (0.7, ProficiencyLevel.ADVANCED),
        (1.0, ProficiencyLevel.EXPERT),
    ),
    ProficiencyLevel.EXPERT: ((0.5, ProficiencyLevel.ADVANCED), (1.0, ProficiencyLevel.EXPERT)),
}

MODULE_TITLES = {
    "Religious Practices": (
        "Introduction to Roman Religious Life",
        "Sacred Rituals and Ceremonies",
        "Priests and Religious Officials",
        "Festivals and Public Worship",
    ),
    "Social Customs": (
        "Roman Social Hierarchy",
        "Daily Life and Customs",
        "Marriage and Family Life",
        "Entertainment and Leisure",
    ),
    "Philosophy": (
        "Foundations of Roman Philosophy",
        "Stoicism in Daily Practice",
        "Ethics and Moral Philosophy",
        "Political Philosophy",
    ),
}

# (share of modules, title suffix, reward)
COMPLETION_MILESTONES = (
    (0.25, "Foundation", "Cultural Foundation Badge"),
    (0.5, "Explorer", "Cultural Explorer Certificate"),
    (0.75, "Scholar", "Cultural Scholar Recognition"),
    (1.0, "Master", "Cultural Master Distinction"),
)
COMPLETION_MIN_SCORE = 0.7
CULTURAL_MIN_SCORE = 0.85
CULTURAL_POINTS = 500

INITIAL_ENGAGEMENT = 0.85
BASE_MODULE_DIFFICULTY = 0.5
MODULE_DIFFICULTY_STEP = 0.05

RECENT_SCORE_WINDOW = 5
MIN_SCORES_FOR_ADAPTATION = 3
STRUGGLING_SCORE = 0.65
EXCELLING_SCORE = 0.9
PATH_ADJUSTMENT = 0.1
ADAPTATION_CONFIDENCE = 0.8
OPTIMIZATION_CONFIDENCE = 0.85
# Guards the completion estimate against a zero learning speed.
MIN_LEARNING_SPEED = 0.1


class StudySchedule(str, Enum):
    INTENSIVE = "intensive"
    REGULAR = "regular"
    CASUAL = "casual"


class CulturalDepth(str, Enum):
    SURVEY = "survey"
    FOCUSED = "focused"
    COMPREHENSIVE = "comprehensive"


class MilestoneKind(str, Enum):
    COMPLETION = "completion"
    CULTURAL = "cultural"


@dataclass(frozen=True)
class PathOptions:
    """Learner preferences that shape a generated path.

    `preferred_difficulty` is a proficiency label or ``"adaptive"``, in which case the
    level is inferred from the goals, schedule and depth (see the module docstring).
    """

    study_schedule: StudySchedule = StudySchedule.REGULAR
    preferred_difficulty: str = "adaptive"
    cultural_depth: CulturalDepth = CulturalDepth.FOCUSED
    modern_connections: bool = True
    peer_interaction: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "study_schedule", coerce_enum(StudySchedule, self.study_schedule, "study_schedule")
        )
        object.__setattr__(
            self, "cultural_depth", coerce_enum(CulturalDepth, self.cultural_depth, "cultural_depth")
        )
        if self.preferred_difficulty != "adaptive":
            level = coerce_enum(ProficiencyLevel, self.preferred_difficulty, "preferred_difficulty")
            object.__setattr__(self, "preferred_difficulty", level.value)


@dataclass(frozen=True)
class PathModule:
    module_id: str
    position: int
    title: str
    description: str
    theme: str
    level: ProficiencyLevel
    difficulty: float
    estimated_minutes: int
    activities: Tuple[str, ...]
    prerequisites: Tuple[str, ...] = ()
    unlocks: Tuple[str, ...] = ()
    completed: bool = False
    time_spent: float = 0.0
    comprehension: Optional[float] = None
    engagement: float = INITIAL_ENGAGEMENT


@dataclass(frozen=True)
class PathMilestone:
    milestone_id: str
    kind: MilestoneKind
    title: str
    description: str
    reward: str
    points: int
    minimum_score: float
    modules_required: int = 0
    themes: Tuple[str, ...] = ()
    achieved_at: Optional[datetime] = None

    @property
    def achieved(self) -> bool:
        return self.achieved_at is not None


@dataclass(frozen=True)
class ThemeCompetency:
    """Running competency in one cultural theme; all scores are in [0, 1]."""

    theme: str
    scores: Tuple[float, ...] = ()
    knowledge: float = 0.0
    comprehension: float = 0.0

    @property
    def proficiency(self) -> float:
        return mean(self.scores)


@dataclass(frozen=True)
class PathProgress:
    completion: float = 0.0
    modules_completed: int = 0
    total_modules: int = 0
    time_spent: float = 0.0
    current_module: Optional[str] = None
    recent_scores: Tuple[float, ...] = ()
    competencies: Tuple[ThemeCompetency, ...] = ()

    @property
    def average_score(self) -> Optional[float]:
        """Mean of every recorded score, or None before the first scored module."""
        scores = [score for competency in self.competencies for score in competency.scores]
        return mean(scores) if scores else None

    def competency(self, theme: str) -> Optional[ThemeCompetency]:
        for competency in self.competencies:
            if competency.theme == theme:
                return competency
        return None


@dataclass(frozen=True)
class LearningPath:
    path_id: str
    learner_id: str
    title: str
    description: str
    goals: Tuple[str, ...]
    themes: Tuple[str, ...]
    level: ProficiencyLevel
    options: PathOptions
    modules: Tuple[PathModule, ...]
    milestones: Tuple[PathMilestone, ...]
    progress: PathProgress
    created_at: datetime
    updated_at: datetime
    estimated_completion: datetime
    adaptations: Tuple[AdaptationAction, ...] = ()

    @property
    def estimated_hours(self) -> int:
        return round(sum(module.estimated_minutes for module in self.modules) / 60)

    def find_module(self, module_id: str) -> Optional[PathModule]:
        for module in self.modules:
            if module.module_id == module_id:
                return module
        return None


def path_level(options: PathOptions, goals: Sequence[str]) -> ProficiencyLevel:
    """Pick the path level from explicit preference or, when adaptive, from goal wording."""
    if options.preferred_difficulty != "adaptive":
        return ProficiencyLevel(options.preferred_difficulty)
    complex_goals = sum(
        1 for goal in goals if any(word in goal.lower() for word in COMPLEX_GOAL_WORDS)
    )
    intensive = options.study_schedule is StudySchedule.INTENSIVE
    comprehensive = options.cultural_depth is CulturalDepth.COMPREHENSIVE
    if complex_goals >= 3 and intensive and comprehensive:
        return ProficiencyLevel.EXPERT
    if complex_goals >= 2 or intensive:
        return ProficiencyLevel.ADVANCED
    if complex_goals >= 1:
        return ProficiencyLevel.INTERMEDIATE
    return ProficiencyLevel.BEGINNER


def module_level(index: int, total: int, level: ProficiencyLevel) -> ProficiencyLevel:
    """Module levels ramp up across the path; the last stretch sits one level above the path."""
    share = index / total
    for boundary, step_level in MODULE_LEVEL_STEPS[level]:
        if share < boundary:
            return step_level
    return MODULE_LEVEL_STEPS[level][-1][1]


def module_title(theme: str, position: int) -> str:
    titles = MODULE_TITLES.get(theme, (f"{theme} Foundations", f"{theme} Practices", f"{theme} Analysis"))
    return titles[min(position - 1, len(titles) - 1)]


def module_activities(options: PathOptions) -> Tuple[str, ...]:
    activities = ["quiz", "analysis", "comparison"]
    if options.peer_interaction:
        activities.append("discussion")
    if options.cultural_depth is CulturalDepth.COMPREHENSIVE:
        activities.extend(["research", "creative"])
    return tuple(activities)


def chain_modules(modules: Sequence[PathModule]) -> Tuple[PathModule, ...]:
    """Renumber modules in order and link each one to its neighbours."""
    chained = []
    for index, module in enumerate(modules):
        chained.append(
            replace(
                module,
                position=index + 1,
                prerequisites=(modules[index - 1].module_id,) if index > 0 else (),
                unlocks=(modules[index + 1].module_id,) if index < len(modules) - 1 else (),
            )
        )
    return tuple(chained)


def build_milestones(module_count: int, themes: Sequence[str]) -> Tuple[PathMilestone, ...]:
    lead = themes[0]
    milestones = []
    for number, (share, suffix, reward) in enumerate(COMPLETION_MILESTONES, start=1):
        required = math.floor(module_count * share)
        if required < 1:
            continue
        milestones.append(
            PathMilestone(
                milestone_id=f"milestone-{number}",
                kind=MilestoneKind.COMPLETION,
                title=f"{lead} {suffix}",
                description=f"Complete {required} of {module_count} modules",
                reward=reward,
                points=int(share * 1000),
                minimum_score=COMPLETION_MIN_SCORE,
                modules_required=required,
                themes=tuple(themes),
            )
        )
    for index, theme in enumerate(themes):
        milestones.append(
            PathMilestone(
                milestone_id=f"cultural-{index}",
                kind=MilestoneKind.CULTURAL,
                title=f"{theme} Cultural Mastery",
                description=f"Demonstrate comprehensive understanding of {theme} in Roman society",
                reward=f"{theme} Cultural Expert",
                points=CULTURAL_POINTS,
                minimum_score=CULTURAL_MIN_SCORE,
                themes=(theme,),
            )
        )
    return tuple(milestones)


def milestone_reached(milestone: PathMilestone, progress: PathProgress) -> bool:
    if milestone.kind is MilestoneKind.COMPLETION:
        average = progress.average_score
        return progress.modules_completed >= milestone.modules_required and (
            average is None or average >= milestone.minimum_score
        )
    competencies = [progress.competency(theme) for theme in milestone.themes]
    return all(
        competency is not None and competency.proficiency >= milestone.minimum_score
        for competency in competencies
    )


def update_competency(competency: Optional[ThemeCompetency], theme: str, score: float) -> ThemeCompetency:
    competency = competency or ThemeCompetency(theme=theme)
    return replace(
        competency,
        scores=competency.scores + (score,),
        knowledge=min(1.0, competency.knowledge + (0.05 if score > 0.8 else 0.02)),
        comprehension=min(1.0, competency.comprehension + (0.03 if score > 0.7 else 0.01)),
    )


def estimated_completion(
    modules: Sequence[PathModule], profile: LearnerProfile, now: datetime
) -> datetime:
    """Remaining module minutes stretched by the learner's speed (slower learners take longer)."""
    remaining = sum(module.estimated_minutes for module in modules if not module.completed)
    return now + timedelta(minutes=remaining / max(profile.learning_speed, MIN_LEARNING_SPEED))


class LearningPathPlanner:
    """
    Generate, track and adapt personalised learning paths.

    Paths live in memory, one list per learner in creation order. The learner's
    current path is the last one generated or selected. Updates swap in a new
    `LearningPath` snapshot under the learner's lock.

    Parameters
    ----------
    profiles : ProfileStore
        Source of learner profiles; every operation requires an existing profile.
    clock : Callable[[], datetime], default=utcnow
        Time source for timestamps and completion estimates.
    """

    def __init__(self, profiles: ProfileStore, clock: Callable[[], datetime] = utcnow):
        self.profiles = profiles
        self.clock = clock
        self._paths: Dict[str, List[LearningPath]] = {}
        self._current: Dict[str, str] = {}
        self._owners: Dict[str, str] = {}
        self._locks = KeyedLocks()

    def generate_path(
        self,
        learner_id: str,
        goals: Sequence[str],
        themes: Optional[Sequence[str]] = None,
        weekly_hours: float = 8,
        options: Optional[PathOptions] = None,
    ) -> LearningPath:
        """
        Build a new path and make it the learner's current one.

        The module count is the level's module count capped at one module per two
        weekly hours (at least one). Modules cycle through `themes`, which default to the
        learner's weaknesses and strengths, then to "Roman History".

        Raises
        ------
        ProfileNotFoundError
            If the learner has no profile.
        ValidationError
            If `weekly_hours` is not positive.
        """
        if weekly_hours <= 0:
            raise ValidationError(f"weekly_hours must be > 0, got {weekly_hours}")
        options = options or PathOptions()
        profile = self.profiles.get_profile(learner_id)
        goals = tuple(goal for goal in goals if goal)
        themes = unique(themes or ()) or unique(profile.weakness_areas + profile.strength_areas)
        themes = themes or DEFAULT_THEMES

        level = path_level(options, goals)
        max_modules, minutes = PATH_SHAPES[level]
        count = max(1, min(max_modules, math.floor(weekly_hours / 2)))
        path_id = new_id(f"path-{learner_id}")
        activities = module_activities(options)
        modules = chain_modules(
            [
                PathModule(
                    module_id=f"{path_id}-module-{index + 1}",
                    position=index + 1,
                    title=module_title(themes[index % len(themes)], index + 1),
                    description=self._module_description(themes[index % len(themes)], goals),
                    theme=themes[index % len(themes)],
                    level=module_level(index, count, level),
                    difficulty=clamp_unit(BASE_MODULE_DIFFICULTY + MODULE_DIFFICULTY_STEP * index),
                    estimated_minutes=minutes,
                    activities=activities,
                )
                for index in range(count)
            ]
        )

        now = self.clock()
        lead_goal = " ".join(goals[0].split()[-2:]) if goals else "Cultural Understanding"
        path = LearningPath(
            path_id=path_id,
            learner_id=learner_id,
            title=f"{lead_goal} through {themes[0]}",
            description=(
                f"A {level.value}-level journey exploring {', '.join(themes[:3])} "
                f"to achieve {len(goals)} learning goals through Macrobius texts."
            ),
            goals=goals,
            themes=themes,
            level=level,
            options=options,
            modules=modules,
            milestones=build_milestones(count, themes),
            progress=PathProgress(total_modules=count, current_module=modules[0].module_id),
            created_at=now,
            updated_at=now,
            estimated_completion=estimated_completion(modules, profile, now),
        )
        with self._locks.lock_for(learner_id):
            self._paths.setdefault(learner_id, []).append(path)
            self._current[learner_id] = path_id
            self._owners[path_id] = learner_id
        logger.info(
            "Generated %s path %s for %s with %d modules", level.value, path_id, learner_id, count
        )
        return path

    def paths_for(self, learner_id: str) -> List[LearningPath]:
        self.profiles.get_profile(learner_id)
        with self._locks.lock_for(learner_id):
            return list(self._paths.get(learner_id, []))

    def get_path(self, path_id: str) -> LearningPath:
        learner_id = self._owners.get(path_id)
        if learner_id is None:
            raise PathNotFoundError(path_id)
        with self._locks.lock_for(learner_id):
            return self._lookup(learner_id, path_id)

    def current_path(self, learner_id: str) -> LearningPath:
        """Return the learner's current path, raising PathNotFoundError if none exists."""
        self.profiles.get_profile(learner_id)
        with self._locks.lock_for(learner_id):
            path_id = self._current.get(learner_id)
            if path_id is None:
                raise PathNotFoundError(f"(current path of {learner_id})")
            return self._lookup(learner_id, path_id)

    def select_path(self, path_id: str) -> LearningPath:
        path = self.get_path(path_id)
        with self._locks.lock_for(path.learner_id):
            self._current[path.learner_id] = path_id
            updated = replace(path, updated_at=self.clock())
            self._swap(updated)
        return updated

    def track_progress(
        self,
        path_id: str,
        module_id: str,
        minutes: float,
        completed: bool = False,
        score: Optional[float] = None,
        engagement: Optional[float] = None,
    ) -> LearningPath:
        """
        Record study time (and optionally a score) on one module.

        Awards any milestone whose criteria are now met. When at least three of the
        last five scores exist and their mean falls below 0.65 or above 0.9, the
        remaining modules are made easier or harder through `adapt_path`.

        Raises
        ------
        PathNotFoundError, PathModuleNotFoundError
            For unknown ids.
        ValidationError
            If `minutes` is negative or `score`/`engagement` fall outside [0, 1].
        """
        if minutes < 0:
            raise ValidationError(f"minutes must be >= 0, got {minutes}")
        if score is not None:
            score = check_unit("score", score)
        if engagement is not None:
            engagement = check_unit("engagement", engagement)

        learner_id = self.get_path(path_id).learner_id
        with self._locks.lock_for(learner_id):
            path = self._lookup(learner_id, path_id)
            module = path.find_module(module_id)
            if module is None:
                raise PathModuleNotFoundError(path_id, module_id)

            changes: Dict[str, object] = {"time_spent": module.time_spent + minutes}
            if completed:
                changes["completed"] = True
            if score is not None:
                changes["comprehension"] = score
            if engagement is not None:
                changes["engagement"] = engagement
            updated_module = replace(module, **changes)
            modules = tuple(updated_module if item is module else item for item in path.modules)

            progress = path.progress
            competencies = progress.competencies
            recent_scores = progress.recent_scores
            if score is not None:
                competency = update_competency(progress.competency(module.theme), module.theme, score)
                competencies = tuple(
                    item for item in competencies if item.theme != module.theme
                ) + (competency,)
                recent_scores = (recent_scores + (score,))[-RECENT_SCORE_WINDOW:]
            done = sum(1 for item in modules if item.completed)
            next_module = next((item.module_id for item in modules if not item.completed), None)
            progress = replace(
                progress,
                completion=done / len(modules),
                modules_completed=done,
                time_spent=progress.time_spent + minutes,
                current_module=module_id if not updated_module.completed else next_module,
                recent_scores=recent_scores,
                competencies=competencies,
            )

            now = self.clock()
            milestones = []
            for milestone in path.milestones:
                if not milestone.achieved and milestone_reached(milestone, progress):
                    milestone = replace(milestone, achieved_at=now)
                    logger.info("Learner %s reached milestone %s", learner_id, milestone.title)
                milestones.append(milestone)
            profile = self.profiles.get_profile(learner_id)
            path = replace(
                path,
                modules=modules,
                milestones=tuple(milestones),
                progress=progress,
                updated_at=now,
                estimated_completion=estimated_completion(modules, profile, now),
            )
            self._swap(path)

            adjustment = self._performance_adjustment(progress.recent_scores) if score is not None else 0.0
            if adjustment:
                path = self.adapt_path(path_id, "performance_based", adjustment)
        return path

    def adapt_path(self, path_id: str, reason: str, adjustment: float) -> LearningPath:
        """
        Shift the difficulty of every unfinished module by `adjustment` (clamped to [0, 1]).

        The change is recorded as a difficulty adjustment whose old and new values are the
        mean difficulty of the unfinished modules. A path with nothing left to study is
        returned unchanged.
        """
        learner_id = self.get_path(path_id).learner_id
        with self._locks.lock_for(learner_id):
            path = self._lookup(learner_id, path_id)
            pending = [module for module in path.modules if not module.completed]
            if not pending or not adjustment:
                return path
            modules = tuple(
                module
                if module.completed
                else replace(module, difficulty=clamp_unit(module.difficulty + adjustment))
                for module in path.modules
            )
            now = self.clock()
            action = AdaptationAction(
                action_type=AdaptationType.DIFFICULTY_ADJUSTMENT,
                reason=reason,
                old_value=round(mean(module.difficulty for module in pending), 4),
                new_value=round(mean(module.difficulty for module in modules if not module.completed), 4),
                confidence=ADAPTATION_CONFIDENCE,
                timestamp=now,
            )
            path = replace(
                path, modules=modules, adaptations=path.adaptations + (action,), updated_at=now
            )
            self._swap(path)
        logger.info(
            "Adapted path %s (%s): difficulty %.2f -> %.2f",
            path_id,
            reason,
            action.old_value,
            action.new_value,
        )
        return path

    def optimize_path(self, learner_id: str) -> LearningPath:
        """
        Re-sequence the learner's current path.

        Finished modules keep their order; the unfinished ones follow, easiest first
        (ties keep their order). Prerequisites are re-linked along the new order, the
        completion estimate is refreshed, and a content suggestion is recorded.
        """
        profile = self.profiles.get_profile(learner_id)
        with self._locks.lock_for(learner_id):
            path = self.current_path(learner_id)
            finished = [module for module in path.modules if module.completed]
            pending = sorted(
                (module for module in path.modules if not module.completed),
                key=lambda module: module.difficulty,
            )
            modules = chain_modules(finished + pending)
            now = self.clock()
            action = AdaptationAction(
                action_type=AdaptationType.CONTENT_SUGGESTION,
                reason="Optimized learning path based on performance analysis",
                old_value=float(len(path.modules)),
                new_value=float(len(modules)),
                confidence=OPTIMIZATION_CONFIDENCE,
                timestamp=now,
            )
            next_module = next((module.module_id for module in modules if not module.completed), None)
            path = replace(
                path,
                modules=modules,
                progress=replace(path.progress, current_module=next_module),
                adaptations=path.adaptations + (action,),
                updated_at=now,
                estimated_completion=estimated_completion(modules, profile, now),
            )
            self._swap(path)
        logger.info("Optimized path %s for %s", path.path_id, learner_id)
        return path

    @staticmethod
    def _performance_adjustment(recent_scores: Sequence[float]) -> float:
        if len(recent_scores) < MIN_SCORES_FOR_ADAPTATION:
            return 0.0
        average = mean(recent_scores)
        if average < STRUGGLING_SCORE:
            return -PATH_ADJUSTMENT
        if average > EXCELLING_SCORE:
            return PATH_ADJUSTMENT
        return 0.0

    @staticmethod
    def _module_description(theme: str, goals: Sequence[str]) -> str:
        related = [
            goal
            for goal in goals
            if theme.lower() in goal.lower() or "cultural" in goal.lower() or "roman" in goal.lower()
        ][:2]
        description = f"Explore {theme} through Macrobius passages, connecting ancient practice to modern life"
        if related:
            description += f" while working towards: {', '.join(related)}"
        return description + "."

    def _lookup(self, learner_id: str, path_id: str) -> LearningPath:
        for path in self._paths.get(learner_id, []):
            if path.path_id == path_id:
                return path
        raise PathNotFoundError(path_id)

    def _swap(self, path: LearningPath) -> None:
        paths = self._paths[path.learner_id]
        for index, existing in enumerate(paths):
            if existing.path_id == path.path_id:
                paths[index] = path
                return
        paths.append(path)
