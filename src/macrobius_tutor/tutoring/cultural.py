from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from macrobius_tutor.learning.models import CulturalConnection
from macrobius_tutor.tutoring.templates import DEFAULT_MODERN_EXAMPLES

logger = logging.getLogger(__name__)

NAME_MATCH_SCORE = 0.8
KEYWORD_MATCH_SCORE = 0.1
GENERAL_THEME = "general"


@dataclass(frozen=True)
class ThemeEntry:
    theme_id: str
    name: str
    description: str
    modern_relevance: str
    keywords: Tuple[str, ...]
    aliases: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ConnectionEntry:
    theme_id: str
    ancient_concept: str
    modern_parallel: str
    explanation: str
    confidence: float
    examples: Tuple[str, ...] = ()


THEMES: Tuple[ThemeEntry, ...] = (
    ThemeEntry(
        "religious-practices",
        "Religious Practices",
        "Ancient Roman religious rituals, ceremonies, and spiritual beliefs",
        "Understanding religious diversity and spiritual practices in contemporary society",
        ("sacrum", "deus", "templum", "sacrificium", "pontifex", "augur", "religio"),
        ("religion", "religious", "ritual", "ceremony", "sacrifice", "gods", "temple"),
    ),
    ThemeEntry(
        "social-customs",
        "Social Customs",
        "Roman social hierarchies, customs, and interpersonal relationships",
        "Insights into modern social dynamics, workplace relationships, and cultural integration",
        ("paterfamilias", "cliens", "patronus", "dignitas", "honor", "amicitia", "hospitalitas"),
        ("banquet", "banquets", "dinner", "dining", "convivium", "customs", "hospitality", "patronage"),
    ),
    ThemeEntry(
        "philosophy",
        "Philosophy",
        "Neo-Platonic philosophy, ethical discussions, and metaphysical concepts",
        "Applications in modern ethics, leadership principles, and personal development",
        ("virtus", "sapientia", "ratio", "anima", "contemplatio", "veritas", "bonum"),
        ("ethics", "virtue", "wisdom", "soul", "dream", "platonic"),
    ),
    ThemeEntry(
        "education",
        "Education",
        "Learning methods, rhetorical training, and intellectual development",
        "Modern pedagogical approaches, critical thinking, and lifelong learning",
        ("magister", "discipulus", "doctrina", "ars", "exercitatio", "memoria", "eloquentia"),
        ("learning", "teaching", "teacher", "student", "rhetoric", "school"),
    ),
    ThemeEntry(
        "roman-history",
        "Roman History",
        "Historical events, figures, and cultural development of Rome",
        "Understanding historical patterns, leadership lessons, and societal development",
        ("imperium", "consul", "senatus", "populus", "respublica", "caesar", "victoria"),
        ("history", "empire", "senate", "republic", "emperor"),
    ),
    ThemeEntry(
        "literature",
        "Literature",
        "Literary criticism, poetic analysis, and cultural commentary",
        "Modern literary analysis, creative writing, and cultural criticism",
        ("poeta", "carmen", "versus", "fabula", "narratio", "stylus", "eloquium"),
        ("poetry", "poet", "virgil", "vergil", "literary", "story"),
    ),
    ThemeEntry(
        "law",
        "Law",
        "Legal principles, judicial procedures, and Roman jurisprudence",
        "Modern legal systems, ethics in law, and judicial reasoning",
        ("lex", "ius", "iudex", "crimen", "poena", "aequitas", "iustitia"),
        ("legal", "justice", "court", "judge"),
    ),
    ThemeEntry(
        "astronomy",
        "Astronomy",
        "Celestial observations, cosmic philosophy, and mathematical concepts",
        "Modern scientific thinking, environmental awareness, and systems thinking",
        ("stellae", "caelum", "orbis", "sol", "luna", "planeta", "mathematica"),
        ("stars", "planets", "planet", "cosmos", "cosmic", "sun", "moon", "sky"),
    ),
    ThemeEntry(
        GENERAL_THEME,
        "General Cultural Commentary",
        "Miscellaneous cultural observations and social commentary",
        "General cultural awareness and cross-cultural understanding",
        ("cultura", "mos", "consuetudo", "vita", "societas", "humanitas", "civilitas"),
        ("culture", "cultural", "roman", "rome", "society"),
    ),
)

_SPECIFIC_CONNECTIONS: Tuple[ConnectionEntry, ...] = (
    ConnectionEntry(
        "education",
        "Structured knowledge transmission",
        "Modern educational technology and learning management systems",
        "Ancient emphasis on organizing knowledge for effective learning mirrors modern "
        "educational design principles",
        0.85,
        ("Online learning platforms", "Curriculum design", "Knowledge management systems"),
    ),
    ConnectionEntry(
        "social-customs",
        "Social hierarchy and relationship building",
        "Professional networking and workplace dynamics",
        "Roman social customs provide insights into modern professional relationship building",
        0.78,
        ("Business networking", "Mentorship programs", "Corporate culture"),
    ),
    ConnectionEntry(
        "social-customs",
        "Hierarchical respect and deference to authority",
        "Workplace hierarchies and professional mentorship",
        "Patterns of deference in Roman households and schools reappear in modern organisations",
        0.85,
        ("workplace hierarchies", "educational systems", "professional mentorship"),
    ),
    ConnectionEntry(
        "philosophy",
        "Integration of virtue into daily activities",
        "Values-based education and mindful living",
        "Macrobius treats even dining as an occasion for moral discourse",
        0.82,
        ("ethical business practices", "values-based education", "mindful living"),
    ),
    ConnectionEntry(
        "education",
        "Emphasis on preserving and transmitting knowledge",
        "Digital archives and knowledge management",
        "The Saturnalia collects learning so that it can be handed to the next generation",
        0.79,
        ("digital archives", "educational technology", "knowledge management"),
    ),
    ConnectionEntry(
        "astronomy",
        "Connection between cosmic order and human behavior",
        "Systems thinking and environmental consciousness",
        "Roman cosmology links the order of the heavens to the conduct of human life",
        0.76,
        ("environmental consciousness", "systems thinking", "holistic worldviews"),
    ),
)

CONNECTIONS: Tuple[ConnectionEntry, ...] = _SPECIFIC_CONNECTIONS + tuple(
    ConnectionEntry(
        theme.theme_id,
        theme.name,
        theme.modern_relevance,
        theme.description,
        0.7,
    )
    for theme in THEMES
)


def _word_pattern(term: str) -> "re.Pattern[str]":
    return re.compile(r"\b" + re.escape(term.lower()) + r"\b")


class CulturalConnectionMapper:
    """
    Static lookup of ancient-to-modern analogies.

    Ranking is descending by relevance; entries with equal relevance keep the order
    of the backing table, so results are deterministic for a given concept.

    Parameters
    ----------
    themes : Sequence[ThemeEntry], optional
        Theme table used for matching. Defaults to the bundled Macrobius themes.
    connections : Sequence[ConnectionEntry], optional
        Connection table, in tie-break order.
    """

    def __init__(
        self,
        themes: Optional[Sequence[ThemeEntry]] = None,
        connections: Optional[Sequence[ConnectionEntry]] = None,
    ):
        self.themes: Tuple[ThemeEntry, ...] = tuple(themes if themes is not None else THEMES)
        self.connections: Tuple[ConnectionEntry, ...] = tuple(
            connections if connections is not None else CONNECTIONS
        )
        self._by_id: Dict[str, ThemeEntry] = {theme.theme_id: theme for theme in self.themes}

    def theme(self, theme_id: str) -> Optional[ThemeEntry]:
        return self._by_id.get(theme_id)

    def match_themes(self, text: str) -> Dict[str, float]:
        """Score each theme against free text; themes that do not match are omitted."""
        lowered = text.lower()
        scores: Dict[str, float] = {}
        for theme in self.themes:
            score = 0.0
            names = (theme.name, theme.theme_id.replace("-", " "), *theme.aliases)
            if any(_word_pattern(name).search(lowered) for name in names):
                score += NAME_MATCH_SCORE
            score += KEYWORD_MATCH_SCORE * sum(
                1 for keyword in theme.keywords if _word_pattern(keyword).search(lowered)
            )
            if score > 0:
                scores[theme.theme_id] = min(1.0, score)
        if not scores and GENERAL_THEME in self._by_id:
            scores[GENERAL_THEME] = 1.0
        return scores

    def find_connections(self, concept: str, limit: Optional[int] = None) -> List[CulturalConnection]:
        """
        Return connections relevant to `concept`, best first.

        Parameters
        ----------
        concept : str
            Topic, question or theme name to map.
        limit : int, optional
            Maximum number of connections to return.

        Returns
        -------
        List[CulturalConnection]
            Connections with `relevance_score` in [0, 1], ranked descending.

        Examples
        --------
        >>> mapper = CulturalConnectionMapper()
        >>> mapper.find_connections("Education")[0].ancient_concept
        'Structured knowledge transmission'
        """
        scores = self.match_themes(concept)
        candidates = [
            CulturalConnection(
                ancient_concept=entry.ancient_concept,
                modern_parallel=entry.modern_parallel,
                explanation=entry.explanation,
                relevance_score=round(scores[entry.theme_id] * entry.confidence, 4),
                examples=entry.examples,
                theme=entry.theme_id,
            )
            for entry in self.connections
            if entry.theme_id in scores
        ]
        ranked = sorted(candidates, key=lambda item: item.relevance_score, reverse=True)
        logger.debug("Mapped %r to %d cultural connections", concept, len(ranked))
        return ranked[:limit] if limit is not None else ranked

    def modern_examples(self, concept: str, limit: int = 3) -> List[str]:
        examples: List[str] = []
        for connection in self.find_connections(concept):
            for example in connection.examples:
                if example not in examples:
                    examples.append(example)
        if not examples:
            examples = list(DEFAULT_MODERN_EXAMPLES)
        return examples[:limit]
