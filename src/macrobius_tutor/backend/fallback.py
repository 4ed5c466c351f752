from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, TypeVar

from macrobius_tutor.backend.base import MacrobiusBackend
from macrobius_tutor.backend.models import (
    CulturalTheme,
    Passage,
    QuizQuestion,
    SearchResult,
    VocabularyWord,
)
from macrobius_tutor.errors import BackendUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

SAMPLE_PASSAGES: Sequence[Passage] = (
    Passage(
        id="sat_1_1_1",
        work_type="Saturnalia",
        book_number=1,
        chapter_number=1,
        section_number=1,
        latin_text=(
            "Quorum mihi scripta tractanti multa se variaque obtulere, quae vel cognitu dulcia vel "
            "utilia discentibus forent, ea studiosis eruditionis, Inter quos te potissimum, fili "
            "carissime Eustathi, excitandae atque acuendae rei litterariae gratia in ordinem digessi."
        ),
        cultural_theme="education",
        modern_relevance=(
            "The importance of organizing knowledge for educational purposes and passing wisdom "
            "to the next generation"
        ),
        difficulty_level="Intermediate",
        word_count=38,
        cultural_keywords=["educatio", "sapientia", "traditio"],
    ),
    Passage(
        id="sat_1_7_12",
        work_type="Saturnalia",
        book_number=1,
        chapter_number=7,
        section_number=12,
        latin_text=(
            "Saturni autem stella, quae phainon dicitur, quod phaeine sit, id est lucida, triginta "
            "fere annis cursum suum conficit: unde et a nostris Saturnus senex dicitur, quod senili "
            "tarditate moveatur."
        ),
        cultural_theme="astronomy",
        modern_relevance=(
            "Ancient understanding of planetary motion and the integration of observation with mythology"
        ),
        difficulty_level="Advanced",
        word_count=31,
        cultural_keywords=["astronomia", "planeta", "observatio"],
    ),
    Passage(
        id="sat_3_13_4",
        work_type="Saturnalia",
        book_number=3,
        chapter_number=13,
        section_number=4,
        latin_text=(
            "Nam religio nostra sic se habet ut numquam sine sacrificiis, numquam sine donis ad deos "
            "accedamus; quod observantissime a maioribus traditum ad nos usque descendit."
        ),
        cultural_theme="religious-practices",
        modern_relevance=(
            "The role of ritual and tradition in maintaining community bonds and spiritual connection"
        ),
        difficulty_level="Intermediate",
        word_count=24,
        cultural_keywords=["religio", "sacrificium", "traditio"],
    ),
    Passage(
        id="sat_2_4_8",
        work_type="Saturnalia",
        book_number=2,
        chapter_number=4,
        section_number=8,
        latin_text=(
            "Convivium autem nostrum non solum voluptatis causa, sed maxime virtutis exercendae "
            "gratia celebramus, ut inter epulas quoque honestarum rerum tractatio procedat."
        ),
        cultural_theme="social-customs",
        modern_relevance="The integration of pleasure and moral development in social gatherings",
        difficulty_level="Intermediate",
        word_count=22,
        cultural_keywords=["convivium", "virtus", "societas"],
    ),
    Passage(
        id="comm_1_2_15",
        work_type="Commentarii",
        book_number=1,
        chapter_number=2,
        section_number=15,
        latin_text=(
            "Philosophia enim, quae est mater omnium bonarum artium, nihil aliud docet quam ut recte "
            "vivamus et sapientes simus, quodque summum est, ut anima nostra ad divinorum "
            "contemplationem se erigat."
        ),
        cultural_theme="philosophy",
        modern_relevance="Philosophy as the foundation for ethical living and personal development",
        difficulty_level="Advanced",
        word_count=30,
        cultural_keywords=["philosophia", "sapientia", "contemplatio"],
    ),
)

SAMPLE_THEMES: Sequence[CulturalTheme] = (
    CulturalTheme(
        id="religious-practices",
        name="Religious Practices",
        description="Ancient Roman religious rituals, ceremonies, and spiritual beliefs",
        passage_count=1,
        related_themes=["philosophy", "social-customs"],
        modern_connections=["Religious diversity", "Community rituals"],
    ),
    CulturalTheme(
        id="social-customs",
        name="Social Customs",
        description="Roman social hierarchies, customs, and interpersonal relationships",
        passage_count=1,
        related_themes=["education", "law"],
        modern_connections=["Business networking", "Workplace relationships"],
    ),
    CulturalTheme(
        id="philosophy",
        name="Philosophy",
        description="Neo-Platonic philosophy, ethical discussions, and metaphysical concepts",
        passage_count=1,
        related_themes=["astronomy", "education"],
        modern_connections=["Leadership ethics", "Personal development"],
    ),
    CulturalTheme(
        id="education",
        name="Education",
        description="Learning methods, rhetorical training, and intellectual development",
        passage_count=1,
        related_themes=["literature", "philosophy"],
        modern_connections=["Curriculum design", "Lifelong learning"],
    ),
    CulturalTheme(
        id="roman-history",
        name="Roman History",
        description="Historical events, figures, and cultural development of Rome",
        related_themes=["law"],
        modern_connections=["Leadership lessons"],
    ),
    CulturalTheme(
        id="literature",
        name="Literature",
        description="Literary criticism, poetic analysis, and cultural commentary",
        related_themes=["education"],
        modern_connections=["Literary analysis", "Creative writing"],
    ),
    CulturalTheme(
        id="law",
        name="Law",
        description="Legal principles, judicial procedures, and Roman jurisprudence",
        related_themes=["roman-history", "social-customs"],
        modern_connections=["Judicial reasoning"],
    ),
    CulturalTheme(
        id="astronomy",
        name="Astronomy",
        description="Celestial observations, cosmic philosophy, and mathematical concepts",
        passage_count=1,
        related_themes=["philosophy"],
        modern_connections=["Systems thinking", "Environmental awareness"],
    ),
    CulturalTheme(
        id="general",
        name="General Cultural Commentary",
        description="Miscellaneous cultural observations and social commentary",
        modern_connections=["Cross-cultural understanding"],
    ),
)

SAMPLE_VOCABULARY: Sequence[VocabularyWord] = (
    VocabularyWord(
        latin_word="convivium",
        english_meaning="banquet, dinner party",
        cultural_context="social-customs",
        source_passage="sat_2_4_8",
        frequency=12,
        difficulty="Beginner",
    ),
    VocabularyWord(
        latin_word="virtus",
        english_meaning="virtue, excellence",
        cultural_context="philosophy",
        source_passage="sat_2_4_8",
        frequency=18,
        difficulty="Beginner",
    ),
    VocabularyWord(
        latin_word="religio",
        english_meaning="religious scruple, observance",
        cultural_context="religious-practices",
        source_passage="sat_3_13_4",
        frequency=9,
        difficulty="Intermediate",
    ),
    VocabularyWord(
        latin_word="eruditio",
        english_meaning="learning, erudition",
        cultural_context="education",
        source_passage="sat_1_1_1",
        frequency=7,
        difficulty="Intermediate",
    ),
    VocabularyWord(
        latin_word="contemplatio",
        english_meaning="contemplation",
        cultural_context="philosophy",
        source_passage="comm_1_2_15",
        frequency=5,
        difficulty="Advanced",
    ),
    VocabularyWord(
        latin_word="stella",
        english_meaning="star",
        cultural_context="astronomy",
        source_passage="sat_1_7_12",
        frequency=6,
        difficulty="Beginner",
    ),
)

SAMPLE_QUIZ: Sequence[QuizQuestion] = (
    QuizQuestion(
        id="quiz_convivium",
        question="According to Macrobius, why do Romans celebrate the convivium?",
        options=[
            "Only for pleasure",
            "Above all to exercise virtue",
            "To honour the emperor",
            "To settle legal disputes",
        ],
        correct_answer=1,
        explanation="The banquet is held 'maxime virtutis exercendae gratia'.",
        source_passage="sat_2_4_8",
        cultural_context="social-customs",
        difficulty="Beginner",
    ),
    QuizQuestion(
        id="quiz_saturn",
        question="Why is Saturn called 'senex' in the Saturnalia?",
        options=[
            "It is the oldest god",
            "It moves with the slowness of an old man",
            "It was discovered long ago",
            "It shines faintly",
        ],
        correct_answer=1,
        explanation="Saturn takes about thirty years to complete its course.",
        source_passage="sat_1_7_12",
        cultural_context="astronomy",
        difficulty="Advanced",
    ),
    QuizQuestion(
        id="quiz_religio",
        question="How do the Romans approach the gods according to Saturnalia 3.13?",
        options=[
            "Never without sacrifices and gifts",
            "Only on feast days",
            "Through philosophers",
            "Without any ritual",
        ],
        correct_answer=0,
        explanation="'numquam sine sacrificiis, numquam sine donis ad deos accedamus'.",
        source_passage="sat_3_13_4",
        cultural_context="religious-practices",
        difficulty="Intermediate",
    ),
    QuizQuestion(
        id="quiz_eustathius",
        question="For whom did Macrobius arrange the Saturnalia?",
        options=["His patron", "The senate", "His son Eustathius", "His students"],
        correct_answer=2,
        explanation="The preface addresses 'fili carissime Eustathi'.",
        source_passage="sat_1_1_1",
        cultural_context="education",
        difficulty="Intermediate",
    ),
)


def _same(value: Optional[str], wanted: Optional[str]) -> bool:
    return wanted is None or (value or "").lower() == wanted.lower()


class StaticBackend(MacrobiusBackend):
    """Serves bundled sample data with the same filtering semantics as the service."""

    def __init__(
        self,
        passages: Sequence[Passage] = SAMPLE_PASSAGES,
        themes: Sequence[CulturalTheme] = SAMPLE_THEMES,
        vocabulary: Sequence[VocabularyWord] = SAMPLE_VOCABULARY,
        quiz: Sequence[QuizQuestion] = SAMPLE_QUIZ,
    ):
        self.passages = list(passages)
        self.themes = list(themes)
        self.vocabulary = list(vocabulary)
        self.quiz = list(quiz)

    def health_check(self) -> bool:
        return True

    def search_passages(
        self,
        query: str,
        theme: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = 10,
    ) -> SearchResult:
        terms = [term for term in query.lower().split() if term]
        matches = []
        for passage in self.passages:
            if not (_same(passage.cultural_theme, theme) and _same(passage.difficulty_level, difficulty)):
                continue
            haystack = " ".join(
                [passage.latin_text, passage.modern_relevance, passage.cultural_theme]
                + passage.cultural_keywords
            ).lower()
            if all(term in haystack for term in terms):
                matches.append(passage)
        return SearchResult(passages=matches[:limit], total_count=len(matches))

    def get_vocabulary(
        self, difficulty: Optional[str] = None, theme: Optional[str] = None, limit: int = 50
    ) -> List[VocabularyWord]:
        words = [
            word
            for word in self.vocabulary
            if _same(word.difficulty, difficulty) and _same(word.cultural_context, theme)
        ]
        return words[:limit]

    def generate_quiz_questions(
        self, theme: Optional[str] = None, difficulty: Optional[str] = None, count: int = 5
    ) -> List[QuizQuestion]:
        questions = [
            question
            for question in self.quiz
            if _same(question.cultural_context, theme) and _same(question.difficulty, difficulty)
        ]
        return questions[:count]

    def get_cultural_themes(self) -> List[CulturalTheme]:
        return list(self.themes)


class ResilientBackend(MacrobiusBackend):
    """
    Wrap a primary backend and degrade to sample data when it is unavailable.

    `BackendUnavailable` from the primary is logged, remembered in `last_error` and
    answered from `fallback`; it never propagates to callers.
    """

    def __init__(self, primary: MacrobiusBackend, fallback: Optional[MacrobiusBackend] = None):
        self.primary = primary
        self.fallback = fallback or StaticBackend()
        self.last_error: Optional[BackendUnavailable] = None

    def _call(self, operation: str, primary: Callable[[], T], fallback: Callable[[], T]) -> T:
        try:
            result = primary()
        except BackendUnavailable as exc:
            self.last_error = exc
            logger.warning("Backend %s unavailable (%s); serving fallback data", operation, exc)
            return fallback()
        self.last_error = None
        return result

    def health_check(self) -> bool:
        try:
            healthy = self.primary.health_check()
        except BackendUnavailable as exc:
            self.last_error = exc
            logger.warning("Backend health check failed: %s", exc)
            return False
        self.last_error = None
        return healthy

    def search_passages(
        self,
        query: str,
        theme: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = 10,
    ) -> SearchResult:
        return self._call(
            "search_passages",
            lambda: self.primary.search_passages(query, theme, difficulty, limit),
            lambda: self.fallback.search_passages(query, theme, difficulty, limit),
        )

    def get_vocabulary(
        self, difficulty: Optional[str] = None, theme: Optional[str] = None, limit: int = 50
    ) -> List[VocabularyWord]:
        return self._call(
            "get_vocabulary",
            lambda: self.primary.get_vocabulary(difficulty, theme, limit),
            lambda: self.fallback.get_vocabulary(difficulty, theme, limit),
        )

    def generate_quiz_questions(
        self, theme: Optional[str] = None, difficulty: Optional[str] = None, count: int = 5
    ) -> List[QuizQuestion]:
        return self._call(
            "generate_quiz_questions",
            lambda: self.primary.generate_quiz_questions(theme, difficulty, count),
            lambda: self.fallback.generate_quiz_questions(theme, difficulty, count),
        )

    def get_cultural_themes(self) -> List[CulturalTheme]:
        return self._call(
            "get_cultural_themes",
            self.primary.get_cultural_themes,
            self.fallback.get_cultural_themes,
        )
