from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class Passage(BaseModel):
    """A Macrobius passage as served by the corpus backend."""

    id: str
    work_type: str = Field("Saturnalia", description="Saturnalia or Commentarii.")
    book_number: int = Field(1, ge=1)
    chapter_number: int = Field(1, ge=1)
    section_number: int = Field(1, ge=1)
    latin_text: str
    cultural_theme: str
    modern_relevance: str = ""
    difficulty_level: str = Field("Intermediate", description="Beginner, Intermediate or Advanced.")
    word_count: int = Field(0, ge=0)
    cultural_keywords: List[str] = Field(default_factory=list)


class SearchResult(BaseModel):
    passages: List[Passage] = Field(default_factory=list)
    total_count: int = Field(0, ge=0)


class VocabularyWord(BaseModel):
    latin_word: str
    english_meaning: str
    cultural_context: str = ""
    source_passage: Optional[str] = None
    frequency: int = Field(0, ge=0)
    difficulty: str = "Intermediate"


class QuizQuestion(BaseModel):
    id: str
    question: str
    options: List[str]
    correct_answer: int = Field(..., ge=0, description="Index into options.")
    explanation: str = ""
    source_passage: Optional[str] = None
    cultural_context: str = ""
    difficulty: str = "Intermediate"


class CulturalTheme(BaseModel):
    id: str
    name: str
    description: str = ""
    passage_count: int = Field(0, ge=0)
    related_themes: List[str] = Field(default_factory=list)
    modern_connections: List[str] = Field(default_factory=list)
