from __future__ import annotations

import pytest

from macrobius_tutor.tutoring import CulturalConnectionMapper
from macrobius_tutor.tutoring.cultural import ConnectionEntry
from macrobius_tutor.tutoring.templates import DEFAULT_MODERN_EXAMPLES


@pytest.fixture
def mapper():
    return CulturalConnectionMapper()


def test_education_maps_to_knowledge_transmission(mapper):
    connections = mapper.find_connections("Education")
    top = connections[0]
    assert top.ancient_concept == "Structured knowledge transmission"
    assert top.relevance_score == pytest.approx(0.68)
    assert top.theme == "education"


def test_connections_are_ranked_best_first(mapper):
    scores = [item.relevance_score for item in mapper.find_connections("Roman banquet customs")]
    assert scores == sorted(scores, reverse=True)
    assert all(0.0 <= score <= 1.0 for score in scores)


def test_equal_relevance_keeps_table_order():
    mapper = CulturalConnectionMapper(
        connections=[
            ConnectionEntry("law", "Legal formulae", "Contract templates", "", 0.7),
            ConnectionEntry("law", "Praetorian edict", "Case law", "", 0.7),
        ]
    )
    concepts = [item.ancient_concept for item in mapper.find_connections("law")]
    assert concepts == ["Legal formulae", "Praetorian edict"]


def test_latin_keywords_add_partial_relevance(mapper):
    scores = mapper.match_themes("virtus et sapientia")
    assert scores == pytest.approx({"philosophy": 0.2})


def test_unmatched_text_falls_back_to_general_theme(mapper):
    assert mapper.match_themes("xyzzy") == {"general": 1.0}
    connections = mapper.find_connections("xyzzy")
    assert [item.theme for item in connections] == ["general"]


def test_limit_truncates(mapper):
    assert len(mapper.find_connections("Roman banquet", limit=2)) == 2


def test_modern_examples_are_deduplicated(mapper):
    examples = mapper.modern_examples("Education", limit=10)
    assert examples[0] == "Online learning platforms"
    assert len(examples) == len(set(examples))


def test_modern_examples_fall_back_to_defaults(mapper):
    assert mapper.modern_examples("xyzzy") == list(DEFAULT_MODERN_EXAMPLES)


def test_results_are_repeatable(mapper):
    assert mapper.find_connections("Saturnalia astronomy") == mapper.find_connections(
        "Saturnalia astronomy"
    )
