from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from macrobius_tutor.backend.base import MacrobiusBackend
from macrobius_tutor.backend.models import CulturalTheme, QuizQuestion, SearchResult, VocabularyWord
from macrobius_tutor.config.schema import BackendConfig
from macrobius_tutor.errors import BackendUnavailable

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class HttpBackendClient(MacrobiusBackend):
    """
    Blocking HTTP client for the Macrobius corpus service.

    Every request is bounded by the configured timeout. Transport failures, timeouts,
    non-2xx responses and payloads that do not match the expected schema all surface
    as `BackendUnavailable` carrying the endpoint that failed.

    Parameters
    ----------
    config : BackendConfig
        Base URL and timeout of the service.
    transport : httpx.BaseTransport, optional
        Custom transport, e.g. `httpx.MockTransport` in tests.
    """

    def __init__(self, config: BackendConfig, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self._client = httpx.Client(
            base_url=config.base_url.rstrip("/"),
            timeout=config.timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    def __enter__(self) -> "HttpBackendClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def health_check(self) -> bool:
        payload = self._request("GET", "/health")
        status = payload.get("status") if isinstance(payload, dict) else None
        return status in (None, "ok", "healthy", "up")

    def search_passages(
        self,
        query: str,
        theme: Optional[str] = None,
        difficulty: Optional[str] = None,
        limit: int = 10,
    ) -> SearchResult:
        filters: Dict[str, Any] = {"limit": limit}
        if theme:
            filters["cultural_theme"] = theme
        if difficulty:
            filters["difficulty_level"] = difficulty
        payload = self._request(
            "POST", "/passages/search", json={"query": query.strip(), "filters": filters}
        )
        return self._parse(SearchResult, payload, "/passages/search")

    def get_vocabulary(
        self, difficulty: Optional[str] = None, theme: Optional[str] = None, limit: int = 50
    ) -> List[VocabularyWord]:
        params = self._params(difficulty=difficulty, theme=theme, limit=limit)
        payload = self._request("GET", "/vocabulary", params=params)
        return self._parse_list(VocabularyWord, payload, "/vocabulary")

    def generate_quiz_questions(
        self, theme: Optional[str] = None, difficulty: Optional[str] = None, count: int = 5
    ) -> List[QuizQuestion]:
        params = self._params(theme=theme, difficulty=difficulty, count=count)
        payload = self._request("GET", "/quiz/generate", params=params)
        return self._parse_list(QuizQuestion, payload, "/quiz/generate")

    def get_cultural_themes(self) -> List[CulturalTheme]:
        payload = self._request("GET", "/cultural-themes")
        return self._parse_list(CulturalTheme, payload, "/cultural-themes")

    @staticmethod
    def _params(**values: Any) -> Dict[str, Any]:
        return {key: value for key, value in values.items() if value is not None}

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, endpoint, **kwargs)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            raise BackendUnavailable(
                f"Request to {endpoint} timed out after {self.config.timeout_seconds}s", endpoint
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise BackendUnavailable(
                f"API request failed with status {exc.response.status_code}", endpoint
            ) from exc
        except httpx.RequestError as exc:
            raise BackendUnavailable(f"Network error contacting backend: {exc}", endpoint) from exc
        except ValueError as exc:
            raise BackendUnavailable(f"Backend returned malformed JSON: {exc}", endpoint) from exc
        logger.debug("%s %s succeeded", method, endpoint)
        # Some deployments wrap payloads as {"data": ..., "status": ...}.
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    @staticmethod
    def _parse(model: Type[ModelT], payload: Any, endpoint: str) -> ModelT:
        try:
            return model.model_validate(payload)
        except PydanticValidationError as exc:
            raise BackendUnavailable(f"Unexpected payload from {endpoint}: {exc}", endpoint) from exc

    @classmethod
    def _parse_list(cls, model: Type[ModelT], payload: Any, endpoint: str) -> List[ModelT]:
        if not isinstance(payload, list):
            raise BackendUnavailable(f"Expected a list from {endpoint}", endpoint)
        return [cls._parse(model, item, endpoint) for item in payload]
