from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from macrobius_tutor.config.schema import ProfileDefaults
from macrobius_tutor.errors import DuplicateProfileError, ProfileNotFoundError, ValidationError
from macrobius_tutor.learning.metrics import RETENTION_PLACEHOLDER
from macrobius_tutor.learning.models import (
    LearnerProfile,
    LearningSession,
    check_learner_id,
    clamp_unit,
    utcnow,
)
from macrobius_tutor.learning.serialization import profile_from_dict, profile_to_dict
from macrobius_tutor.utils.locks import KeyedLocks

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "learning_style",
    "proficiency_level",
    "preferred_difficulty",
    "learning_speed",
    "retention_rate",
    "motivation_factors",
    "weakness_areas",
    "strength_areas",
)


def fold_session(
    profile: LearnerProfile, session: LearningSession, now: Optional[datetime] = None
) -> LearnerProfile:
    """
    Blend a finished session into a learner profile and return the new snapshot.

    This is a pure function: the same (profile, session, now) triple always yields the
    same profile. Each scalar is the mean of its old value and the session-derived value,
    then clamped to [0, 1].

    Parameters
    ----------
    profile : LearnerProfile
        Snapshot before the session.
    session : LearningSession
        The session being closed. Its `performance` must already reflect every activity.
    now : datetime | None, default=None
        Timestamp recorded as `last_activity`; defaults to the current UTC time.

    Returns
    -------
    LearnerProfile
        New snapshot with updated `retention_rate`, `learning_speed` and `last_activity`.

    Notes
    -----
    - Retention blends with the session's measured retention. A session without
      activities (pure tutoring) has nothing measured, so the retention placeholder
      (0.8) is used instead.
    - Learning speed blends with the session's completion ratio. A session without
      activities leaves it unchanged.
    """
    if session.activities:
        retention_sample = session.performance.retention
        learning_speed = (profile.learning_speed + session.performance.speed) / 2
    else:
        retention_sample = RETENTION_PLACEHOLDER
        learning_speed = profile.learning_speed

    return replace(
        profile,
        retention_rate=clamp_unit((profile.retention_rate + retention_sample) / 2),
        learning_speed=clamp_unit(learning_speed),
        last_activity=now or utcnow(),
    )


class ProfileStore:
    """
    Own every learner profile and serialise updates per learner.

    Profiles live in memory and, when a directory is configured, as one JSON file per
    learner in the format `{learner_id}.json`. Files are loaded lazily on first access
    and rewritten on every update. Profiles are never deleted; their history is kept by
    the session log.

    Every read-modify-write sequence runs under the learner's re-entrant lock, and the
    store swaps in a whole new snapshot, so concurrent readers see either the old or the
    new profile and never a mix.

    Profile Storage Format
    ----------------------
    Example: `data/profiles/marcus.json`
    ```json
    {
      "learner_id": "marcus",
      "learning_style": "visual",
      "proficiency_level": "intermediate",
      "preferred_difficulty": 0.5,
      "learning_speed": 0.62,
      "retention_rate": 0.75,
      "motivation_factors": ["achievement", "knowledge"],
      "weakness_areas": ["Philosophy"],
      "strength_areas": [],
      "last_activity": "2024-05-02T09:30:00+00:00"
    }
    ```

    Attributes
    ----------
    base_dir : Path | None
        Directory holding profile JSON files, or None for a purely in-memory store.
    defaults : ProfileDefaults
        Values used for any field not supplied at creation.

    Examples
    --------
    >>> store = ProfileStore(Path("data/profiles"))
    >>> profile = store.create_profile("marcus", {"learning_style": "visual"})
    >>> profile.proficiency_level.value
    'beginner'
    >>> store.get_profile("marcus").learning_style.value
    'visual'
    """

    def __init__(self, base_dir: Optional[Path] = None, defaults: Optional[ProfileDefaults] = None):
        self.base_dir = base_dir
        if self.base_dir is not None:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        self.defaults = defaults or ProfileDefaults()
        self._profiles: Dict[str, LearnerProfile] = {}
        self._locks = KeyedLocks()

    def lock_for(self, learner_id: str):
        """Return the re-entrant lock guarding one learner's profile."""
        return self._locks.lock_for(learner_id)

    def profile_path(self, learner_id: str) -> Optional[Path]:
        """
        Return the JSON file path for a given learner ID.

        Raises
        ------
        ValidationError
            If the id is not a plain file name or would resolve outside `base_dir`.
        """
        check_learner_id(learner_id)
        if self.base_dir is None:
            return None
        path = self.base_dir / f"{learner_id}.json"
        if path.resolve().parent != self.base_dir.resolve():
            raise ValidationError(f"Profile path for {learner_id!r} escapes {self.base_dir}")
        return path

    def has_profile(self, learner_id: str) -> bool:
        with self.lock_for(learner_id):
            return self._lookup(learner_id) is not None

    def create_profile(
        self,
        learner_id: str,
        initial: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> LearnerProfile:
        """
        Register a learner, filling unset fields from the configured defaults.

        Raises
        ------
        DuplicateProfileError
            If a profile with this id already exists (in memory or on disk).
        ValidationError
            For unknown fields, unknown enum labels or scalars outside [0, 1].
        """
        initial = dict(initial or {})
        unknown = sorted(set(initial) - set(PROFILE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown profile fields: {', '.join(unknown)}")

        values = self.defaults.model_dump()
        values.update({key: value for key, value in initial.items() if value is not None})
        for name in ("motivation_factors", "weakness_areas", "strength_areas"):
            values[name] = tuple(values.get(name) or ())

        with self.lock_for(learner_id):
            if self._lookup(learner_id) is not None:
                raise DuplicateProfileError(learner_id)
            profile = LearnerProfile(learner_id=learner_id, last_activity=now or utcnow(), **values)
            self._swap(profile)
        logger.info("Created learner profile %s (style=%s)", learner_id, profile.learning_style.value)
        return profile

    def get_profile(self, learner_id: str) -> LearnerProfile:
        with self.lock_for(learner_id):
            profile = self._lookup(learner_id)
        if profile is None:
            raise ProfileNotFoundError(learner_id)
        return profile

    def list_profiles(self) -> List[LearnerProfile]:
        """Return every known profile, including ones only present on disk, sorted by id."""
        learner_ids = set(self._profiles)
        if self.base_dir is not None:
            learner_ids.update(path.stem for path in self.base_dir.glob("*.json"))
        return [self.get_profile(learner_id) for learner_id in sorted(learner_ids)]

    def update_areas(
        self,
        learner_id: str,
        strengths: Optional[Iterable[str]] = None,
        weaknesses: Optional[Iterable[str]] = None,
    ) -> LearnerProfile:
        """Replace the strength and/or weakness topic lists of a profile."""
        with self.lock_for(learner_id):
            profile = self.get_profile(learner_id)
            changes: Dict[str, Any] = {}
            if strengths is not None:
                changes["strength_areas"] = tuple(strengths)
            if weaknesses is not None:
                changes["weakness_areas"] = tuple(weaknesses)
            updated = replace(profile, **changes)
            self._swap(updated)
        return updated

    def apply_session_update(
        self, learner_id: str, session: LearningSession, now: Optional[datetime] = None
    ) -> LearnerProfile:
        """Fold a closed session into the learner's profile (see `fold_session`)."""
        with self.lock_for(learner_id):
            profile = self.get_profile(learner_id)
            updated = fold_session(profile, session, now=now)
            self._swap(updated)
        logger.info(
            "Updated profile %s from session %s: speed %.2f -> %.2f, retention %.2f -> %.2f",
            learner_id,
            session.session_id,
            profile.learning_speed,
            updated.learning_speed,
            profile.retention_rate,
            updated.retention_rate,
        )
        return updated

    def _lookup(self, learner_id: str) -> Optional[LearnerProfile]:
        profile = self._profiles.get(learner_id)
        if profile is not None:
            return profile
        path = self.profile_path(learner_id)
        if path is None or not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            profile = profile_from_dict(json.load(handle))
        self._profiles[learner_id] = profile
        return profile

    def _swap(self, profile: LearnerProfile) -> None:
        path = self.profile_path(profile.learner_id)
        if path is not None:
            with path.open("w", encoding="utf-8") as handle:
                json.dump(profile_to_dict(profile), handle, indent=2)
        self._profiles[profile.learner_id] = profile
