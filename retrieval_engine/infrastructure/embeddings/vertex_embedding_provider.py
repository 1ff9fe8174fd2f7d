"""Vertex AI embedding provider — calls the publisher model :predict endpoint.

Request:  {"instances": [{"content": text}], "parameters": {"outputDimensionality": N}}
Response: {"predictions": [{"embeddings": {"values": [...]}}]}

Auth: Application Default Credentials via google-auth, refreshed whenever the
access token has expired. A static ``access_token`` overrides ADC.
"""

import asyncio
import logging
from typing import Any

import google.auth
import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from pydantic import BaseModel, ValidationError

from retrieval_engine.application.interfaces.embedding_provider import EmbeddingProvider
from retrieval_engine.domain.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


# ── Response schema ──────────────────────────────────────────────────

class VertexEmbeddingValues(BaseModel):
    values: list[float]


class VertexPrediction(BaseModel):
    embeddings: VertexEmbeddingValues


class VertexPredictResponse(BaseModel):
    predictions: list[VertexPrediction]


class VertexEmbeddingProvider(EmbeddingProvider):
    """Infrastructure adapter — text embeddings from a Vertex AI publisher model."""

    def __init__(
        self,
        project_id: str,
        location: str,
        model: str = "text-embedding-004",
        *,
        access_token: str = "",
        credentials: Any = None,
        dimensions: int = 128,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        missing = [
            name
            for name, value in (("project_id", project_id), ("location", location), ("model", model))
            if not value or not value.strip()
        ]
        if missing:
            raise ValueError(f"Vertex AI embeddings need {', '.join(missing)}")

        self._project_id = project_id.strip()
        self._location = location.strip()
        self._model = model.strip()
        self._access_token = access_token.strip()
        self._credentials = credentials
        self._credentials_lock = asyncio.Lock()
        self._force_refresh = False
        self._dimensions = dimensions
        self._timeout = timeout
        self._http_client = http_client

    @property
    def name(self) -> str:
        return "vertex"

    @property
    def endpoint(self) -> str:
        return (
            f"https://{self._location}-aiplatform.googleapis.com/v1/projects/{self._project_id}"
            f"/locations/{self._location}/publishers/google/models/{self._model}:predict"
        )

    async def _get_token(self) -> str:
        """A currently valid bearer token, loading and refreshing ADC as needed."""
        if self._access_token:
            return self._access_token

        async with self._credentials_lock:
            try:
                if self._credentials is None:
                    self._credentials, _ = await asyncio.to_thread(
                        google.auth.default, scopes=[CLOUD_PLATFORM_SCOPE]
                    )
                    logger.info("Loaded Google application default credentials for Vertex AI")
                if self._force_refresh or not self._credentials.valid:
                    await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())
                    self._force_refresh = False
                    logger.debug("Refreshed Vertex AI access token")
            except GoogleAuthError as exc:
                raise EmbeddingProviderError(self.name, f"authentication failed: {exc}") from exc

            return self._credentials.token

    async def _get_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {await self._get_token()}",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def embed(self, text: str) -> list[float]:
        payload = {
            "instances": [{"content": text}],
            "parameters": {"outputDimensionality": self._dimensions},
        }

        headers = await self._get_headers()
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            response = await client.post(self.endpoint, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise EmbeddingProviderError(self.name, f"request failed: {exc}") from exc
        finally:
            if should_close:
                await client.aclose()

        if response.status_code == 401 and not self._access_token:
            self._force_refresh = True

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error("Vertex AI embedding error %d: %s", response.status_code, error_text)
            raise EmbeddingProviderError(self.name, error_text, status_code=response.status_code)

        try:
            parsed = VertexPredictResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise EmbeddingProviderError(self.name, f"unexpected response shape: {exc}") from exc

        if not parsed.predictions or not parsed.predictions[0].embeddings.values:
            raise EmbeddingProviderError(self.name, "response contained no embedding values")

        values = parsed.predictions[0].embeddings.values
        logger.debug("Vertex AI embedding (model=%s, dims=%d)", self._model, len(values))
        return values
