"""Unit tests for the Vertex AI and OpenRouter embedding adapters, using httpx.MockTransport."""

import json

import google.auth
import httpx
import pytest
from google.auth.exceptions import DefaultCredentialsError

from retrieval_engine.config import Settings
from retrieval_engine.domain.exceptions import EmbeddingProviderError
from retrieval_engine.infrastructure.dependencies import build_embedding_provider
from retrieval_engine.infrastructure.embeddings import OpenRouterEmbeddingProvider, VertexEmbeddingProvider
from retrieval_engine.infrastructure.embeddings.vertex_embedding_provider import CLOUD_PLATFORM_SCOPE


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestVertexEmbeddingProvider:
    async def test_parses_prediction_values(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"predictions": [{"embeddings": {"values": [0.1, 0.2, 0.3]}}]})

        async with _client(handler) as client:
            provider = VertexEmbeddingProvider(
                "my-project", "europe-west1", access_token="tok", dimensions=3, http_client=client
            )
            vector = await provider.embed("hello")

        assert vector == [0.1, 0.2, 0.3]
        assert seen["url"] == (
            "https://europe-west1-aiplatform.googleapis.com/v1/projects/my-project"
            "/locations/europe-west1/publishers/google/models/text-embedding-004:predict"
        )
        assert seen["auth"] == "Bearer tok"
        assert seen["body"] == {"instances": [{"content": "hello"}], "parameters": {"outputDimensionality": 3}}

    @pytest.mark.parametrize(
        "status,body",
        [
            (500, {"error": "boom"}),
            (200, {"predictions": []}),
            (200, {"predictions": [{"embeddings": {"values": []}}]}),
            (200, {"unexpected": True}),
        ],
    )
    async def test_errors_and_empty_vectors_raise(self, status, body):
        async with _client(lambda request: httpx.Response(status, json=body)) as client:
            provider = VertexEmbeddingProvider("p", "us-central1", access_token="tok", http_client=client)
            with pytest.raises(EmbeddingProviderError):
                await provider.embed("hello")

    async def test_transport_error_raises_provider_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable")

        async with _client(handler) as client:
            provider = VertexEmbeddingProvider("p", "us-central1", access_token="tok", http_client=client)
            with pytest.raises(EmbeddingProviderError):
                await provider.embed("hello")

    def test_requires_project_and_location(self):
        with pytest.raises(ValueError):
            VertexEmbeddingProvider("", "us-central1")
        with pytest.raises(ValueError):
            VertexEmbeddingProvider("p", " ")


class FakeCredentials:
    """Mimics google.auth credentials: a token that is valid until it expires."""

    def __init__(self, *, valid: bool = True, token: str = "adc-token-0"):
        self.valid = valid
        self.token = token
        self.refreshes = 0

    def refresh(self, request) -> None:
        self.refreshes += 1
        self.token = f"adc-token-{self.refreshes}"
        self.valid = True


def _recording_handler(seen: list[str], statuses: list[int] | None = None):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("Authorization"))
        status = statuses.pop(0) if statuses else 200
        if status != 200:
            return httpx.Response(status, json={"error": "unauthenticated"})
        return httpx.Response(200, json={"predictions": [{"embeddings": {"values": [1.0]}}]})

    return handler


class TestVertexCredentials:
    async def test_valid_credentials_are_used_without_refresh(self):
        seen: list[str] = []
        credentials = FakeCredentials()

        async with _client(_recording_handler(seen)) as client:
            provider = VertexEmbeddingProvider("p", "us-central1", credentials=credentials, http_client=client)
            await provider.embed("hello")

        assert seen == ["Bearer adc-token-0"]
        assert credentials.refreshes == 0

    async def test_expired_credentials_are_refreshed_before_each_request(self):
        seen: list[str] = []
        credentials = FakeCredentials(valid=False)

        async with _client(_recording_handler(seen)) as client:
            provider = VertexEmbeddingProvider("p", "us-central1", credentials=credentials, http_client=client)
            await provider.embed("first")
            credentials.valid = False  # token expired between calls
            await provider.embed("second")

        assert seen == ["Bearer adc-token-1", "Bearer adc-token-2"]
        assert credentials.refreshes == 2

    async def test_rejected_token_forces_refresh_on_next_call(self):
        seen: list[str] = []
        credentials = FakeCredentials()

        async with _client(_recording_handler(seen, statuses=[401, 200])) as client:
            provider = VertexEmbeddingProvider("p", "us-central1", credentials=credentials, http_client=client)
            with pytest.raises(EmbeddingProviderError) as exc_info:
                await provider.embed("hello")
            assert exc_info.value.status_code == 401

            assert await provider.embed("hello") == [1.0]

        assert seen == ["Bearer adc-token-0", "Bearer adc-token-1"]

    async def test_application_default_credentials_loaded_once(self, monkeypatch):
        calls: list[list[str]] = []
        credentials = FakeCredentials()

        def fake_default(scopes=None):
            calls.append(scopes)
            return credentials, "adc-project"

        monkeypatch.setattr(google.auth, "default", fake_default)
        seen: list[str] = []

        async with _client(_recording_handler(seen)) as client:
            provider = VertexEmbeddingProvider("p", "us-central1", http_client=client)
            await provider.embed("one")
            await provider.embed("two")

        assert calls == [[CLOUD_PLATFORM_SCOPE]]
        assert seen == ["Bearer adc-token-0", "Bearer adc-token-0"]

    async def test_missing_default_credentials_raise_provider_error(self, monkeypatch):
        def no_credentials(scopes=None):
            raise DefaultCredentialsError("no ADC configured")

        monkeypatch.setattr(google.auth, "default", no_credentials)

        async with _client(_recording_handler([])) as client:
            provider = VertexEmbeddingProvider("p", "us-central1", http_client=client)
            with pytest.raises(EmbeddingProviderError, match="authentication failed"):
                await provider.embed("hello")

    async def test_static_token_overrides_credentials(self, monkeypatch):
        def must_not_load(scopes=None):
            raise AssertionError("credentials should not be loaded")

        monkeypatch.setattr(google.auth, "default", must_not_load)
        seen: list[str] = []

        async with _client(_recording_handler(seen, statuses=[401])) as client:
            provider = VertexEmbeddingProvider("p", "us-central1", access_token="static", http_client=client)
            with pytest.raises(EmbeddingProviderError):
                await provider.embed("hello")
            await provider.embed("hello")

        assert seen == ["Bearer static", "Bearer static"]


class TestOpenRouterEmbeddingProvider:
    async def test_parses_first_item_by_index(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"data": [{"index": 1, "embedding": [9.0]}, {"index": 0, "embedding": [1.0, 2.0]}]},
            )

        async with _client(handler) as client:
            provider = OpenRouterEmbeddingProvider("key", dimensions=2, http_client=client)
            vector = await provider.embed("hello")

        assert vector == [1.0, 2.0]
        assert seen["url"] == "https://openrouter.ai/api/v1/embeddings"
        assert seen["body"]["input"] == ["hello"]
        assert seen["body"]["dimensions"] == 2

    async def test_nomic_models_get_document_prefix(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

        async with _client(handler) as client:
            provider = OpenRouterEmbeddingProvider("key", model="nomic-ai/nomic-embed-text-v1.5", http_client=client)
            await provider.embed("hello")

        assert seen["body"]["input"] == ["search_document: hello"]

    async def test_nomic_queries_get_query_prefix(self):
        inputs: list = []

        def handler(request: httpx.Request) -> httpx.Response:
            inputs.append(json.loads(request.content)["input"])
            return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

        async with _client(handler) as client:
            provider = OpenRouterEmbeddingProvider("key", model="nomic-ai/nomic-embed-text-v1.5", http_client=client)
            await provider.embed_query("what is the capital of France")
            await provider.embed("Paris is the capital of France.")

        assert inputs == [
            ["search_query: what is the capital of France"],
            ["search_document: Paris is the capital of France."],
        ]

    async def test_other_models_get_no_query_prefix(self):
        inputs: list = []

        def handler(request: httpx.Request) -> httpx.Response:
            inputs.append(json.loads(request.content)["input"])
            return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

        async with _client(handler) as client:
            provider = OpenRouterEmbeddingProvider("key", http_client=client)
            await provider.embed_query("capital of France")

        assert inputs == [["capital of France"]]

    @pytest.mark.parametrize("status,body", [(401, {"error": "bad key"}), (200, {"data": []})])
    async def test_errors_raise(self, status, body):
        async with _client(lambda request: httpx.Response(status, json=body)) as client:
            provider = OpenRouterEmbeddingProvider("key", http_client=client)
            with pytest.raises(EmbeddingProviderError) as exc_info:
                await provider.embed("hello")

        if status != 200:
            assert exc_info.value.status_code == status

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            OpenRouterEmbeddingProvider("")


class TestBuildEmbeddingProvider:
    def test_disabled_builds_nothing(self):
        settings = Settings(_env_file=None, embeddings_enabled=False, gcp_project_id="p")
        assert build_embedding_provider(settings) is None

    def test_vertex_provider(self):
        settings = Settings(
            _env_file=None, embeddings_enabled=True, embedding_provider="vertex", gcp_project_id="p"
        )
        assert isinstance(build_embedding_provider(settings), VertexEmbeddingProvider)

    def test_misconfigured_provider_is_none(self):
        settings = Settings(
            _env_file=None, embeddings_enabled=True, embedding_provider="openrouter", openrouter_api_key=""
        )
        assert build_embedding_provider(settings) is None

    def test_unknown_provider_is_none(self):
        settings = Settings(_env_file=None, embeddings_enabled=True, embedding_provider="acme")
        assert build_embedding_provider(settings) is None
