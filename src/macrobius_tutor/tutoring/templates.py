from __future__ import annotations

import zlib
from typing import Dict, Tuple

GREETINGS: Tuple[str, ...] = (
    "Welcome! I'm here to help you explore {theme} in Macrobius. What would you like to understand today?",
    "Salve! Let's dive into the fascinating world of {theme}. What questions do you have?",
    "Ready to discover {theme}? I'm here to guide you through the cultural insights of ancient Rome.",
    "Hello! Let's explore how {theme} in Macrobius connects to our world today. Where shall we start?",
)

RESPONSE_TEMPLATES: Dict[str, str] = {
    "low": (
        "Let me explain this simply: {concept} was important in Roman culture because it "
        "shaped social interactions. For example, banquet customs."
    ),
    "medium": (
        "Great question! In Roman culture, {concept} played a significant role. Macrobius tells "
        "us that cultural practices had deep meaning. This connects to business networking "
        "today in interesting ways."
    ),
    "high": (
        "This is a complex cultural phenomenon. {concept} in ancient Rome involved multiple "
        "interconnected social functions. The nuances include hierarchical structures and "
        "symbolic meanings. Modern scholars interpret this as fundamental to Roman identity."
    ),
}

HINT_TEMPLATES: Dict[str, str] = {
    "subtle": "Think about how this concept might relate to something you know from modern life...",
    "moderate": (
        "Consider the social function of this practice in Roman society. How might it compare "
        "to similar practices today?"
    ),
    "direct": (
        "This concept is about {topic}. The key insight is the role it played in everyday Roman "
        "life. Try approaching it by comparing it with a modern practice you know well."
    ),
}

FALLBACK_RESPONSE = (
    "That's a great thing to wonder about. Let's keep exploring together: could you tell me a "
    "little more about what you would like to understand?"
)

DEFAULT_MODERN_EXAMPLES: Tuple[str, ...] = (
    "Modern business networking events",
    "University academic discussions",
    "International diplomatic dinners",
)

LOW_TIER_LIMIT = 0.4
MEDIUM_TIER_LIMIT = 0.7


def complexity_tier(complexity: float) -> str:
    """Map a complexity value to a template tier: low < 0.4 <= medium < 0.7 <= high."""
    if complexity < LOW_TIER_LIMIT:
        return "low"
    if complexity < MEDIUM_TIER_LIMIT:
        return "medium"
    return "high"


def render_response(tier: str, concept: str) -> str:
    return RESPONSE_TEMPLATES[tier].format(concept=concept)


def render_hint(level: str, topic: str) -> str:
    return HINT_TEMPLATES[level].format(topic=topic)


def pick_greeting(session_id: str, theme: str) -> str:
    """Choose a greeting deterministically from the session id."""
    index = zlib.crc32(session_id.encode("utf-8")) % len(GREETINGS)
    return GREETINGS[index].format(theme=theme)
