"""Clients for the external Macrobius corpus service, with offline fallback data."""

from .base import MacrobiusBackend
from .client import HttpBackendClient
from .fallback import ResilientBackend, StaticBackend
from .models import CulturalTheme, Passage, QuizQuestion, SearchResult, VocabularyWord

__all__ = [
    "CulturalTheme",
    "HttpBackendClient",
    "MacrobiusBackend",
    "Passage",
    "QuizQuestion",
    "ResilientBackend",
    "SearchResult",
    "StaticBackend",
    "VocabularyWord",
]
