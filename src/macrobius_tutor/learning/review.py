"""
SM-2 spaced repetition over practised topics.

Every activity in a learner's closed session history counts as one review of its topic,
made at the session's start time. The activity's accuracy becomes an SM-2 grade:

    grade = round(accuracy * 5)      (0-5; an incomplete activity is capped at 2)

SM-2 Grade Scale:
0 - Complete blackout
1 - Incorrect, but recognised once shown
2 - Incorrect, but close
3 - Correct, with significant difficulty
4 - Correct, with some hesitation
5 - Correct, with perfect recall

A topic is due once ``last_reviewed + interval_days <= now``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from macrobius_tutor.config.schema import ReviewConfig
from macrobius_tutor.learning.models import Activity, LearningSession, utcnow

FAILED_GRADE_CAP = 2


@dataclass(frozen=True)
class ReviewState:
    topic: str
    easiness: float
    interval_days: int
    repetitions: int
    last_reviewed: datetime
    last_grade: int

    @property
    def due_at(self) -> datetime:
        return self.last_reviewed + timedelta(days=self.interval_days)


class ReviewScheduler:
    """Implements the SM-2 algorithm for topic-level review scheduling."""

    def __init__(self, config: Optional[ReviewConfig] = None):
        self.config = config or ReviewConfig()

    def grade(self, activity: Activity) -> int:
        grade = round(activity.accuracy * 5)
        if not activity.completed:
            grade = min(grade, FAILED_GRADE_CAP)
        return grade

    def update(
        self, state: Optional[ReviewState], topic: str, grade: int, reviewed_at: datetime
    ) -> ReviewState:
        """Apply one graded review and return the next state."""
        easiness = state.easiness if state else self.config.initial_easiness
        repetitions = state.repetitions if state else 0
        interval = state.interval_days if state else 0

        # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
        ef_delta = 0.1 - (5 - grade) * (0.08 + (5 - grade) * 0.02)
        new_easiness = max(self.config.minimum_easiness, easiness + ef_delta)

        if grade < 3:
            new_repetitions = 0
            new_interval = self.config.first_interval
        else:
            new_repetitions = repetitions + 1
            if new_repetitions == 1:
                new_interval = self.config.first_interval
            elif new_repetitions == 2:
                new_interval = self.config.second_interval
            else:
                new_interval = round(interval * new_easiness)

        return ReviewState(
            topic=topic,
            easiness=new_easiness,
            interval_days=new_interval,
            repetitions=new_repetitions,
            last_reviewed=reviewed_at,
            last_grade=grade,
        )

    def build_states(self, sessions: Iterable[LearningSession]) -> Dict[str, ReviewState]:
        """Replay every activity of the closed sessions in chronological order."""
        states: Dict[str, ReviewState] = {}
        closed = sorted(
            (session for session in sessions if session.is_closed),
            key=lambda session: session.start_time,
        )
        for session in closed:
            for activity in session.activities:
                states[activity.topic] = self.update(
                    states.get(activity.topic),
                    activity.topic,
                    self.grade(activity),
                    session.start_time,
                )
        return states

    def due_items(
        self, sessions: Iterable[LearningSession], now: Optional[datetime] = None
    ) -> List[ReviewState]:
        """Return topics due for review, the longest overdue first."""
        now = now or utcnow()
        due = [state for state in self.build_states(sessions).values() if state.due_at <= now]
        return sorted(due, key=lambda state: state.due_at)
