"""Typed failures raised by the adaptation core.

Lifecycle operations (start, add, end, apply) fail fast with one of these instead of
silently doing nothing. Callers may catch either the specific subclass or its category
(`NotFoundError`, `DuplicateError`, `InvalidStateError`, `ValidationError`).
`BackendUnavailable` never reaches the tutor: the backend boundary converts it into
fallback data.
"""

from __future__ import annotations

from typing import Optional


class TutorError(Exception):
    """Root of every error the adaptation core raises on purpose."""


class NotFoundError(TutorError, LookupError):
    """An unknown learner, session or activity id was referenced."""


class ProfileNotFoundError(NotFoundError):
    def __init__(self, learner_id: str):
        super().__init__(f"Learner profile not found: {learner_id}")
        self.learner_id = learner_id


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__(f"Learning session not found: {session_id}")
        self.session_id = session_id


class ActivityNotFoundError(NotFoundError):
    def __init__(self, session_id: str, activity_id: str):
        super().__init__(f"Activity {activity_id} not found in session {session_id}")
        self.session_id = session_id
        self.activity_id = activity_id


class PathNotFoundError(NotFoundError):
    def __init__(self, path_id: str):
        super().__init__(f"Learning path not found: {path_id}")
        self.path_id = path_id


class PathModuleNotFoundError(NotFoundError):
    def __init__(self, path_id: str, module_id: str):
        super().__init__(f"Module {module_id} not found in learning path {path_id}")
        self.path_id = path_id
        self.module_id = module_id


class NoActiveSessionError(NotFoundError):
    def __init__(self, learner_id: str):
        super().__init__(
            f"No active tutoring session for learner {learner_id}. Start a session first."
        )
        self.learner_id = learner_id


class DuplicateError(TutorError):
    """A record with the same identity already exists."""


class DuplicateProfileError(DuplicateError):
    def __init__(self, learner_id: str):
        super().__init__(f"Learner profile already exists: {learner_id}")
        self.learner_id = learner_id


class InvalidStateError(TutorError):
    """The requested transition is not allowed from the current state."""


class SessionClosedError(InvalidStateError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is closed and accepts no further changes")
        self.session_id = session_id


class SessionAlreadyActiveError(InvalidStateError):
    def __init__(self, learner_id: str, session_id: str):
        super().__init__(
            f"Learner {learner_id} already has an active tutoring session ({session_id})"
        )
        self.learner_id = learner_id
        self.session_id = session_id


class WrongSessionKindError(InvalidStateError):
    def __init__(self, session_id: str, kind: str):
        super().__init__(
            f"Session {session_id} is a {kind} session and is managed by the tutor, not the practice loop"
        )
        self.session_id = session_id
        self.kind = kind


class ValidationError(TutorError, ValueError):
    """Input outside its documented domain, e.g. a difficulty outside [0, 1]."""


class BackendUnavailable(TutorError):
    """The external Macrobius data service failed or timed out."""

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.endpoint = endpoint
