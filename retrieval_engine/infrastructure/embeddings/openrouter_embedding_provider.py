"""OpenRouter embedding provider — calls the OpenAI-compatible /embeddings endpoint.

Response: {"data": [{"index": 0, "embedding": [...]}], "model": "..."}
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from retrieval_engine.application.interfaces.embedding_provider import EmbeddingProvider
from retrieval_engine.domain.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)

# nomic-embed-text models require a task prefix; other models do not.
_NOMIC_DOCUMENT_PREFIX = "search_document: "
_NOMIC_QUERY_PREFIX = "search_query: "


# ── Response schema ──────────────────────────────────────────────────

class OpenRouterEmbeddingItem(BaseModel):
    index: int = 0
    embedding: list[float]


class OpenRouterEmbeddingResponse(BaseModel):
    data: list[OpenRouterEmbeddingItem]
    model: str | None = None


class OpenRouterEmbeddingProvider(EmbeddingProvider):
    """Infrastructure adapter — generates embeddings via OpenRouter."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
        app_name: str = "Document Retrieval Engine",
        model: str = "openai/text-embedding-3-small",
        *,
        dimensions: int = 128,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not api_key or not api_key.strip():
            raise ValueError("OpenRouter embeddings need an API key")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._app_name = app_name
        self._model = model
        self._dimensions = dimensions
        self._timeout = timeout
        self._http_client = http_client

    @property
    def name(self) -> str:
        return "openrouter"

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "X-Title": self._app_name,
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    @property
    def _is_nomic(self) -> bool:
        return "nomic" in self._model.lower()

    def _prepare_input(self, text: str, query_mode: bool) -> str:
        if not self._is_nomic:
            return text
        prefix = _NOMIC_QUERY_PREFIX if query_mode else _NOMIC_DOCUMENT_PREFIX
        return f"{prefix}{text}"

    async def embed(self, text: str) -> list[float]:
        return await self._request_embedding(text, query_mode=False)

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query; nomic models get the query task prefix."""
        return await self._request_embedding(text, query_mode=True)

    async def _request_embedding(self, text: str, *, query_mode: bool) -> list[float]:
        payload: dict[str, Any] = {
            "model": self._model,
            "input": [self._prepare_input(text, query_mode)],
            "dimensions": self._dimensions,
        }

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            response = await client.post(
                f"{self._base_url}/embeddings", headers=self._get_headers(), json=payload
            )
        except httpx.HTTPError as exc:
            raise EmbeddingProviderError(self.name, f"request failed: {exc}") from exc
        finally:
            if should_close:
                await client.aclose()

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error("OpenRouter embedding error %d: %s", response.status_code, error_text)
            raise EmbeddingProviderError(self.name, error_text, status_code=response.status_code)

        try:
            parsed = OpenRouterEmbeddingResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise EmbeddingProviderError(self.name, f"unexpected response shape: {exc}") from exc

        items = sorted(parsed.data, key=lambda item: item.index)
        if not items or not items[0].embedding:
            raise EmbeddingProviderError(self.name, "response contained no embedding")

        logger.debug("OpenRouter embedding (model=%s, dims=%d)", self._model, len(items[0].embedding))
        return items[0].embedding
