from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from macrobius_tutor.learning.models import LearnerProfile, ProficiencyLevel, check_unit, coerce_enum

STRATEGIC_DIFFICULTY = 0.7


class HintContext(str, Enum):
    LATIN_ANALYSIS = "latin_analysis"
    ETYMOLOGY = "etymology"
    TRANSLATION = "translation"


class HintKind(str, Enum):
    GRAMMATICAL = "grammatical"
    CONTEXTUAL = "contextual"
    ETYMOLOGICAL = "etymological"
    STRATEGIC = "strategic"


@dataclass(frozen=True)
class SmartHint:
    hint: str
    kind: HintKind
    confidence: float


BASE_HINTS = {
    HintContext.LATIN_ANALYSIS: SmartHint(
        "Look at the word ending to determine the case", HintKind.GRAMMATICAL, 0.9
    ),
    HintContext.ETYMOLOGY: SmartHint(
        "This word shares roots with English derivatives", HintKind.ETYMOLOGICAL, 0.8
    ),
    HintContext.TRANSLATION: SmartHint(
        "Consider the context and sentence structure", HintKind.CONTEXTUAL, 0.85
    ),
}

STRATEGIC_HINTS = {
    HintContext.LATIN_ANALYSIS: "Find the main verb first, then match each noun to it",
    HintContext.ETYMOLOGY: "Split off prefixes and suffixes before looking for the stem",
    HintContext.TRANSLATION: "Translate clause by clause before smoothing the English",
}


def smart_hints(
    context: str, difficulty: float, profile: Optional[LearnerProfile] = None
) -> List[SmartHint]:
    """
    Return hints for a study context, most confident first.

    Every context has one base hint. Material at difficulty >= 0.7 adds a strategic
    hint, whose confidence is 0.75 for beginners and 0.6 otherwise.

    Raises
    ------
    ValidationError
        For an unknown context or a difficulty outside [0, 1].
    """
    kind = coerce_enum(HintContext, context, "context")
    difficulty = check_unit("difficulty", difficulty)
    hints = [BASE_HINTS[kind]]
    if difficulty >= STRATEGIC_DIFFICULTY:
        beginner = profile is not None and profile.proficiency_level is ProficiencyLevel.BEGINNER
        hints.append(SmartHint(STRATEGIC_HINTS[kind], HintKind.STRATEGIC, 0.75 if beginner else 0.6))
    return sorted(hints, key=lambda hint: hint.confidence, reverse=True)
