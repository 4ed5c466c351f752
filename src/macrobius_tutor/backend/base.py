from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from macrobius_tutor.backend.models import CulturalTheme, QuizQuestion, SearchResult, VocabularyWord


class MacrobiusBackend(ABC):
    """Abstract interface for the external Macrobius corpus service.

    Implementations raise `BackendUnavailable` (never a raw transport error) when the
    service fails or times out.
    """

    @abstractmethod
    def health_check(self) -> bool:
        """Return True when the service answers its health endpoint."""

    @abstractmethod
    def search_passages(
        self,
        query: str,
        theme: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = 10,
    ) -> SearchResult:
        """Full-text search over the passages, optionally filtered."""

    @abstractmethod
    def get_vocabulary(
        self, difficulty: Optional[str] = None, theme: Optional[str] = None, limit: int = 50
    ) -> List[VocabularyWord]:
        """Return vocabulary drawn from authentic passages."""

    @abstractmethod
    def generate_quiz_questions(
        self, theme: Optional[str] = None, difficulty: Optional[str] = None, count: int = 5
    ) -> List[QuizQuestion]:
        """Return multiple-choice questions built from the corpus."""

    @abstractmethod
    def get_cultural_themes(self) -> List[CulturalTheme]:
        """Return every cultural theme known to the service."""
