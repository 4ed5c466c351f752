from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from macrobius_tutor.learning import LearningEngine, ProfileStore, SessionLog
from macrobius_tutor.tutoring import MacrobiusTutor

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def profiles():
    """In-memory profile store."""
    return ProfileStore()


@pytest.fixture
def session_log(profiles, clock):
    return SessionLog(profiles, clock=clock)


@pytest.fixture
def engine(profiles, session_log, clock):
    return LearningEngine(profiles, session_log, clock=clock)


@pytest.fixture
def tutor(engine):
    return MacrobiusTutor(engine)
