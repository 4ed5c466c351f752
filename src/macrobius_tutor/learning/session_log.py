from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence

from macrobius_tutor.errors import SessionClosedError, SessionNotFoundError
from macrobius_tutor.learning.metrics import compute_performance, summarize_session
from macrobius_tutor.learning.models import (
    Activity,
    AdaptationAction,
    LearningSession,
    SessionKind,
    SessionSummary,
    TutorInteraction,
    new_id,
    utcnow,
)
from macrobius_tutor.learning.progress import ProfileStore
from macrobius_tutor.utils.locks import KeyedLocks

if TYPE_CHECKING:
    from macrobius_tutor.storage.jsonl_store import SessionJsonlStore

logger = logging.getLogger(__name__)


class SessionLog:
    """
    Append-only record of learning sessions.

    The log exclusively owns `LearningSession` snapshots. Appending an activity or
    interaction swaps in a new snapshot with recomputed metrics; closing a session sets
    `end_time`, stores the summary, archives the session and folds it into the learner's
    profile exactly once. Closed sessions never change again.

    Each session id has its own lock, so `end_session` only finalises after every
    earlier append to that session has landed. The lock is dropped once the session
    closes; later callers re-check the closed snapshot and fail.

    Parameters
    ----------
    profiles : ProfileStore
        Store consulted when starting a session and updated when one closes.
    archive : SessionJsonlStore | None, default=None
        Optional JSONL archive. Previously closed sessions are loaded from it at
        construction, so history survives restarts.
    clock : Callable[[], datetime], default=utcnow
        Time source, injectable for deterministic tests.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        archive: Optional["SessionJsonlStore"] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.profiles = profiles
        self.archive = archive
        self.clock = clock
        self._sessions: Dict[str, LearningSession] = {}
        self._locks = KeyedLocks()
        if archive is not None:
            for session in archive.load():
                self._sessions[session.session_id] = session
            if self._sessions:
                logger.info("Loaded %d archived sessions from %s", len(self._sessions), archive.path)

    def start_session(
        self, learner_id: str, kind: SessionKind = SessionKind.PRACTICE
    ) -> LearningSession:
        """Open an empty session with zeroed metrics. Fails if the learner has no profile."""
        self.profiles.get_profile(learner_id)
        prefix = "tutor-session" if SessionKind(kind) is SessionKind.TUTORING else "session"
        session = LearningSession(
            session_id=new_id(f"{prefix}-{learner_id}"),
            learner_id=learner_id,
            start_time=self.clock(),
            kind=kind,
        )
        with self._locks.lock_for(session.session_id):
            self._sessions[session.session_id] = session
        logger.info("Started %s session %s for %s", session.kind.value, session.session_id, learner_id)
        return session

    def get_session(self, session_id: str) -> LearningSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def add_activity(self, session_id: str, activity: Activity) -> LearningSession:
        """Append an activity and recompute the session's performance metrics."""
        with self._locks.lock_for(session_id):
            session = self._open_session(session_id)
            activities = session.activities + (activity,)
            updated = replace(
                session, activities=activities, performance=compute_performance(activities)
            )
            self._sessions[session_id] = updated
        return updated

    def add_interaction(self, session_id: str, interaction: TutorInteraction) -> LearningSession:
        with self._locks.lock_for(session_id):
            session = self._open_session(session_id)
            updated = replace(session, interactions=session.interactions + (interaction,))
            self._sessions[session_id] = updated
        return updated

    def record_adaptation(self, session_id: str, action: AdaptationAction) -> LearningSession:
        """Append an entry to the session's adaptation audit trail."""
        with self._locks.lock_for(session_id):
            session = self._open_session(session_id)
            updated = replace(session, adaptations=session.adaptations + (action,))
            self._sessions[session_id] = updated
        return updated

    def end_session(
        self,
        session_id: str,
        feedback: Optional[str] = None,
        areas_for_improvement: Optional[Sequence[str]] = None,
    ) -> SessionSummary:
        """
        Close a session, summarise it and apply the one-time profile update.

        Parameters
        ----------
        session_id : str
            Session to close.
        feedback : str | None, default=None
            Optional free-text learner feedback stored with the summary.
        areas_for_improvement : Sequence[str] | None, default=None
            Struggle areas to report. Defaults to the learner's profile weaknesses.

        Raises
        ------
        SessionNotFoundError
            If the id is unknown.
        SessionClosedError
            If the session was already closed; a session closes exactly once.
        """
        with self._locks.lock_for(session_id):
            session = self._open_session(session_id)
            if areas_for_improvement is None:
                areas_for_improvement = self.profiles.get_profile(session.learner_id).weakness_areas
            end_time = max(self.clock(), session.start_time)
            closed = replace(session, end_time=end_time, feedback=feedback)
            summary = summarize_session(closed, areas_for_improvement, feedback)
            closed = replace(closed, summary=summary)
            self._sessions[session_id] = closed
            if self.archive is not None:
                self.archive.append(closed)
            self.profiles.apply_session_update(closed.learner_id, closed, now=end_time)
        self._locks.discard(session_id)
        logger.info(
            "Closed session %s (%d activities, %d interactions)",
            session_id,
            len(closed.activities),
            len(closed.interactions),
        )
        return summary

    def sessions_for(self, learner_id: str, closed_only: bool = False) -> List[LearningSession]:
        """Return a learner's sessions in chronological order of their start time."""
        sessions = [
            session
            for session in list(self._sessions.values())
            if session.learner_id == learner_id and (session.is_closed or not closed_only)
        ]
        return sorted(sessions, key=lambda session: session.start_time)

    def recent_sessions(
        self, learner_id: str, limit: int, closed_only: bool = False
    ) -> List[LearningSession]:
        """Return up to `limit` of a learner's sessions, newest first."""
        sessions = self.sessions_for(learner_id, closed_only=closed_only)
        return list(reversed(sessions))[:limit]

    def active_session(
        self, learner_id: str, kind: Optional[SessionKind] = None
    ) -> Optional[LearningSession]:
        """Return the learner's most recently started open session, optionally of one kind."""
        for session in reversed(self.sessions_for(learner_id)):
            if session.is_closed:
                continue
            if kind is None or session.kind is SessionKind(kind):
                return session
        return None

    def _open_session(self, session_id: str) -> LearningSession:
        try:
            session = self.get_session(session_id)
        except SessionNotFoundError:
            self._locks.discard(session_id)
            raise
        if session.is_closed:
            self._locks.discard(session_id)
            raise SessionClosedError(session_id)
        return session
