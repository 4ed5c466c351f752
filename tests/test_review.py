from __future__ import annotations

from datetime import timedelta

import pytest

from macrobius_tutor.learning import ReviewScheduler
from macrobius_tutor.learning.models import Activity, LearningSession

from conftest import T0


@pytest.fixture
def scheduler():
    return ReviewScheduler()


@pytest.mark.parametrize(
    "accuracy,completed,expected",
    [(1.0, True, 5), (0.6, True, 3), (0.1, True, 0), (1.0, False, 2), (0.2, False, 1)],
)
def test_grade_from_accuracy(scheduler, accuracy, completed, expected):
    activity = Activity("quiz", "Saturnalia", 0.5, accuracy=accuracy, completed=completed)
    assert scheduler.grade(activity) == expected


def test_perfect_recall_grows_interval(scheduler):
    state = None
    intervals, easiness = [], []
    for day in range(3):
        state = scheduler.update(state, "Saturnalia", 5, T0 + timedelta(days=day))
        intervals.append(state.interval_days)
        easiness.append(state.easiness)

    assert intervals == [1, 6, 17]
    assert easiness == pytest.approx([2.6, 2.7, 2.8])
    assert state.repetitions == 3


def test_failed_grade_resets_repetitions(scheduler):
    state = scheduler.update(None, "Saturnalia", 5, T0)
    state = scheduler.update(state, "Saturnalia", 5, T0)
    state = scheduler.update(state, "Saturnalia", 1, T0)
    assert state.repetitions == 0
    assert state.interval_days == 1


def test_easiness_never_drops_below_floor(scheduler):
    state = None
    for _ in range(5):
        state = scheduler.update(state, "Saturnalia", 0, T0)
    assert state.easiness == pytest.approx(1.3)


def test_due_items_only_replay_closed_sessions(scheduler):
    activity = Activity("quiz", "Saturnalia", 0.5, accuracy=0.9, completed=True)
    closed = LearningSession("s1", "marcus", T0, end_time=T0, activities=(activity,))
    still_open = LearningSession(
        "s2", "marcus", T0, activities=(Activity("quiz", "Dream of Scipio", 0.5, accuracy=0.9),)
    )

    assert scheduler.due_items([closed, still_open], now=T0) == []
    due = scheduler.due_items([closed, still_open], now=T0 + timedelta(days=1))
    assert [state.topic for state in due] == ["Saturnalia"]
    assert due[0].last_grade == 4
