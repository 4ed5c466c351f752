from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from macrobius_tutor.backend import HttpBackendClient, MacrobiusBackend, ResilientBackend, StaticBackend
from macrobius_tutor.config import Settings, load_settings
from macrobius_tutor.learning import (
    DifficultyAdapter,
    LearningEngine,
    LearningPathPlanner,
    ProfileStore,
    RecommendationGenerator,
    ReviewScheduler,
    SessionLog,
)
from macrobius_tutor.learning.models import utcnow
from macrobius_tutor.storage import SessionJsonlStore
from macrobius_tutor.tutoring import CulturalConnectionMapper, MacrobiusTutor
from macrobius_tutor.utils.logging import configure_logging

logger = logging.getLogger(__name__)


class MacrobiusTutorSystem:
    """
    Main facade wiring the adaptive learning core together.

    Both the CLI and the REST API construct one of these. All tunables come from the
    Settings object, normally loaded from config/default.yaml.

    Attributes
    ----------
    settings : Settings
        Loaded configuration.
    profiles : ProfileStore
        Learner profiles, persisted as JSON when `persist` is enabled.
    sessions : SessionLog
        Session history, archived to JSONL when `persist` is enabled.
    engine : LearningEngine
        Difficulty adaptation, recommendations, predictions and insights.
    paths : LearningPathPlanner
        Personalised learning paths, kept in memory.
    mapper : CulturalConnectionMapper
        Ancient-to-modern analogy lookup.
    backend : MacrobiusBackend
        Corpus service (with fallback) or bundled sample data.
    tutor : MacrobiusTutor
        Conversational tutoring state machine.
    """

    def __init__(
        self,
        settings: Settings,
        backend: Optional[MacrobiusBackend] = None,
        persist: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Parameters
        ----------
        settings : Settings
            Configuration object.
        backend : MacrobiusBackend, optional
            Overrides the backend chosen from `settings.backend`.
        persist : bool, default=True
            When False, profiles and sessions are kept in memory only.
        clock : Callable[[], datetime], default=utcnow
            Time source shared by every component.
        """
        self.settings = settings
        configure_logging(settings.logging.level, settings.logging.use_json)

        layout = settings.paths
        profiles_dir = layout.profiles_dir if persist else None
        archive = SessionJsonlStore(layout.sessions_log) if persist and layout.sessions_log else None

        self.profiles = ProfileStore(profiles_dir, defaults=settings.profile_defaults)
        self.sessions = SessionLog(self.profiles, archive=archive, clock=clock)
        adapter = DifficultyAdapter(settings.adaptation)
        recommender = RecommendationGenerator(
            settings.recommendations,
            scheduler=ReviewScheduler(settings.review),
            target_accuracy=settings.adaptation.target_accuracy,
        )
        self.engine = LearningEngine(
            self.profiles,
            self.sessions,
            adapter=adapter,
            recommender=recommender,
            config=settings.recommendations,
            clock=clock,
        )
        self.paths = LearningPathPlanner(self.profiles, clock=clock)
        self.mapper = CulturalConnectionMapper()
        self.backend = backend or self._build_backend(settings)
        self.tutor = MacrobiusTutor(self.engine, mapper=self.mapper, backend=self.backend, clock=clock)
        logger.info(
            "Macrobius tutor ready (persist=%s, backend=%s)", persist, type(self.backend).__name__
        )

    @staticmethod
    def _build_backend(settings: Settings) -> MacrobiusBackend:
        if settings.backend.enabled:
            return ResilientBackend(HttpBackendClient(settings.backend))
        return StaticBackend()

    @classmethod
    def from_config(
        cls,
        config_path: str | Path | None = None,
        backend: Optional[MacrobiusBackend] = None,
        persist: bool = True,
    ) -> "MacrobiusTutorSystem":
        """
        Load settings from YAML, create data directories and build the system.

        Raises
        ------
        FileNotFoundError
            If `config_path` is given but does not exist.
        ValueError
            If the configuration is invalid.
        """
        settings = load_settings(config_path)
        if persist:
            settings.paths.data_dir.mkdir(parents=True, exist_ok=True)
            if settings.paths.profiles_dir is not None:
                settings.paths.profiles_dir.mkdir(parents=True, exist_ok=True)
        return cls(settings, backend=backend, persist=persist)
