from __future__ import annotations

import json

import httpx
import pytest

from macrobius_tutor.backend import HttpBackendClient, ResilientBackend, StaticBackend
from macrobius_tutor.config.schema import BackendConfig
from macrobius_tutor.errors import BackendUnavailable

PASSAGE = {
    "id": "sat_1_1_1",
    "work_type": "Saturnalia",
    "book_number": 1,
    "chapter_number": 1,
    "section_number": 1,
    "latin_text": "Quorum mihi scripta tractanti...",
    "cultural_theme": "education",
    "difficulty_level": "Intermediate",
}


def _client(handler) -> HttpBackendClient:
    config = BackendConfig(enabled=True, base_url="http://corpus.test/api/", timeout_seconds=1.0)
    return HttpBackendClient(config, transport=httpx.MockTransport(handler))


def test_search_posts_query_and_filters():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"passages": [PASSAGE], "total_count": 1})

    with _client(handler) as client:
        result = client.search_passages(" eruditio ", theme="education", limit=3)

    assert seen["path"] == "/api/passages/search"
    assert seen["body"] == {
        "query": "eruditio",
        "filters": {"limit": 3, "cultural_theme": "education"},
    }
    assert result.total_count == 1
    assert result.passages[0].id == "sat_1_1_1"


def test_wrapped_payloads_are_unwrapped():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["count"] == "2"
        return httpx.Response(
            200,
            json={
                "status": "success",
                "data": [
                    {"id": "q1", "question": "Quid?", "options": ["a", "b"], "correct_answer": 1}
                ],
            },
        )

    questions = _client(handler).generate_quiz_questions(count=2)
    assert [question.id for question in questions] == ["q1"]


def test_health_check():
    client = _client(lambda request: httpx.Response(200, json={"status": "healthy"}))
    assert client.health_check() is True


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.Response(200, json={"passages": "not a list"}),
    ],
)
def test_failures_surface_as_backend_unavailable(response):
    client = _client(lambda request: response)
    with pytest.raises(BackendUnavailable) as info:
        client.search_passages("convivium")
    assert info.value.endpoint == "/passages/search"


def test_timeout_is_backend_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(BackendUnavailable, match="timed out"):
        _client(handler).get_cultural_themes()


def test_list_endpoint_rejects_objects():
    client = _client(lambda request: httpx.Response(200, json={"words": []}))
    with pytest.raises(BackendUnavailable):
        client.get_vocabulary()


def test_resilient_backend_serves_fallback_and_recovers():
    state = {"up": False}

    def handler(request: httpx.Request) -> httpx.Response:
        if not state["up"]:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json=[{"id": "law", "name": "Law"}])

    backend = ResilientBackend(_client(handler))

    themes = backend.get_cultural_themes()
    assert len(themes) == len(StaticBackend().get_cultural_themes())
    assert isinstance(backend.last_error, BackendUnavailable)
    assert backend.health_check() is False

    state["up"] = True
    assert [theme.id for theme in backend.get_cultural_themes()] == ["law"]
    assert backend.last_error is None


def test_static_backend_search_requires_every_term():
    backend = StaticBackend()

    result = backend.search_passages("convivium virtus")
    assert [passage.id for passage in result.passages] == ["sat_2_4_8"]
    assert backend.search_passages("convivium stella").total_count == 0


def test_static_backend_filters():
    backend = StaticBackend()

    advanced = backend.search_passages("", difficulty="advanced")
    assert {passage.id for passage in advanced.passages} == {"sat_1_7_12", "comm_1_2_15"}
    assert advanced.total_count == 2

    limited = backend.search_passages("", limit=2)
    assert len(limited.passages) == 2
    assert limited.total_count == 5

    beginner = backend.get_vocabulary(difficulty="Beginner", theme="philosophy")
    assert [word.latin_word for word in beginner] == ["virtus"]
    assert backend.generate_quiz_questions(count=1)
