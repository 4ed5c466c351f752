"""Keyword rules for classifying learner questions and spotting signs of struggle.

The rules are a fixed, documented rule set (not a model):

Question type, first match wins:
    "what" / "who" / "where"              -> question
    "explain" / "help me understand"      -> explanation
    "hint" / "stuck"                      -> hint
    otherwise                             -> question

Terms match whole words only, so "somewhat" is not "what".

Follow-up is flagged when the text mentions "complex" or "difficult".

Difficulty signals (all that apply):
    "confused" / "don't understand"       -> conceptual_understanding, level 0.8
    "hard" / "difficult"                  -> difficulty_level, level 0.7
"""

from __future__ import annotations

import re
from typing import List, Pattern, Sequence, Tuple

from macrobius_tutor.learning.models import InteractionType
from macrobius_tutor.tutoring.models import LearningDifficulty, QuestionAnalysis


def word_pattern(terms: Sequence[str]) -> Pattern[str]:
    """Compile `terms` into one regex matching any of them as a whole word."""
    return re.compile(r"\b(?:" + "|".join(re.escape(term) for term in terms) + r")\b")


TYPE_RULES: Tuple[Tuple[Pattern[str], InteractionType], ...] = (
    (word_pattern(("what", "who", "where")), InteractionType.QUESTION),
    (word_pattern(("explain", "help me understand")), InteractionType.EXPLANATION),
    (word_pattern(("hint", "stuck")), InteractionType.HINT),
)
FOLLOW_UP_TERMS = word_pattern(("complex", "difficult"))

CONFUSION_TERMS = word_pattern(("confused", "don't understand"))
HARDNESS_TERMS = word_pattern(("hard", "difficult"))


def normalize(text: str) -> str:
    return text.lower().replace("’", "'")


def classify_question(question: str) -> QuestionAnalysis:
    text = normalize(question)
    interaction_type = InteractionType.QUESTION
    for pattern, kind in TYPE_RULES:
        if pattern.search(text):
            interaction_type = kind
            break
    return QuestionAnalysis(
        interaction_type=interaction_type,
        complexity=min(0.8, len(question) / 100),
        requires_follow_up=bool(FOLLOW_UP_TERMS.search(text)),
    )


def detect_difficulties(question: str) -> Tuple[LearningDifficulty, ...]:
    text = normalize(question)
    found: List[LearningDifficulty] = []
    if CONFUSION_TERMS.search(text):
        found.append(
            LearningDifficulty(
                area="conceptual_understanding",
                level=0.8,
                indicators=("Expressed confusion", "Direct statement of not understanding"),
                interventions=("Simpler explanation", "More examples", "Visual aids"),
                minutes_to_resolve=15,
            )
        )
    if HARDNESS_TERMS.search(text):
        found.append(
            LearningDifficulty(
                area="difficulty_level",
                level=0.7,
                indicators=("Perceived difficulty",),
                interventions=("Break into smaller parts", "Gradual complexity increase"),
                minutes_to_resolve=10,
            )
        )
    return tuple(found)
