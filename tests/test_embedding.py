"""
Test suite for EmbeddingClient.

Covers batching, order reassembly, request shape and the failure taxonomy,
against a fake provider mounted on httpx.MockTransport.
"""

import httpx
import pytest
from pydantic import ValidationError

from readerrag.config import EmbeddingConfig, Settings
from readerrag.embedding import EmbeddingClient
from readerrag.errors import ConfigurationError, ProviderError, TransportError

from .conftest import ENDPOINT, FakeProvider, text_vector


class TestEmbeddingConfig:

    @pytest.mark.parametrize("field", ["api_key", "endpoint", "model_name"])
    def test_missing_required_field_raises(self, field: str) -> None:
        values = {"api_key": "k", "endpoint": ENDPOINT, "model_name": "m"}
        values[field] = ""

        with pytest.raises(ConfigurationError) as exc_info:
            EmbeddingConfig(**values)

        assert exc_info.value.field == field

    def test_settings_build_config(self) -> None:
        settings = Settings(
            EMBEDDING_API_KEY="k", EMBEDDING_API_ENDPOINT=ENDPOINT, EMBEDDING_MODEL_NAME="m", EMBEDDING_DIMENSIONS=64
        )
        config = settings.embedding_config()

        assert config.dimensions == 64
        assert config.batch_size == 10

    def test_settings_without_key_raise(self) -> None:
        with pytest.raises(ConfigurationError):
            Settings(EMBEDDING_API_KEY="").embedding_config()

    @pytest.mark.parametrize("batch_size", [0, 11, 25])
    def test_batch_size_outside_provider_limit_raises(self, batch_size: int) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            EmbeddingConfig(api_key="k", endpoint=ENDPOINT, model_name="m", batch_size=batch_size)

        assert exc_info.value.field == "batch_size"

    def test_settings_reject_oversized_batch(self) -> None:
        with pytest.raises(ValidationError):
            Settings(EMBEDDING_API_KEY="k", EMBEDDING_BATCH_SIZE=25)


class TestGetEmbeddings:

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_request(self, embedder: EmbeddingClient, provider: FakeProvider) -> None:
        assert await embedder.get_embeddings([]) == []
        assert provider.requests == []

    @pytest.mark.asyncio
    async def test_order_preserved_across_shuffled_batches(
        self, embedder: EmbeddingClient, provider: FakeProvider
    ) -> None:
        provider.shuffle = True
        texts = [f"text number {i}" * (i + 1) for i in range(25)]

        result = await embedder.get_embeddings(texts)

        assert len(provider.requests) == 3
        assert [len(r["input"]) for r in provider.requests] == [10, 10, 5]
        assert len(result) == 25
        assert result == [text_vector(t) for t in texts]

    @pytest.mark.asyncio
    async def test_request_shape(self, embedding_config: EmbeddingConfig, provider: FakeProvider) -> None:
        config = EmbeddingConfig(
            api_key=embedding_config.api_key,
            endpoint=embedding_config.endpoint,
            model_name=embedding_config.model_name,
            dimensions=1024,
        )
        async with EmbeddingClient(config, http_client=provider.client()) as client:
            await client.get_embeddings(["a", "b"])

        body = provider.requests[0]
        assert body == {"model": "embed-test", "input": ["a", "b"], "encoding_format": "float", "dimensions": 1024}
        assert provider.headers[0]["authorization"] == "Bearer sk-test"
        assert provider.headers[0]["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_dimensions_omitted_when_unset(self, embedder: EmbeddingClient, provider: FakeProvider) -> None:
        await embedder.get_embeddings(["a"])

        assert "dimensions" not in provider.requests[0]

    @pytest.mark.asyncio
    async def test_embed_query_returns_single_vector(self, embedder: EmbeddingClient) -> None:
        assert await embedder.embed_query("what?") == text_vector("what?")

    @pytest.mark.asyncio
    async def test_custom_batch_size(self, provider: FakeProvider) -> None:
        config = EmbeddingConfig(api_key="k", endpoint=ENDPOINT, model_name="m", batch_size=4)
        client = EmbeddingClient(config, http_client=provider.client())

        await client.get_embeddings([str(i) for i in range(9)])

        assert [len(r["input"]) for r in provider.requests] == [4, 4, 1]


class TestGetEmbeddingsFailures:

    @pytest.mark.asyncio
    async def test_provider_error_carries_status_reason_and_message(
        self, embedder: EmbeddingClient, provider: FakeProvider
    ) -> None:
        provider.fail_on_batch = 1
        provider.fail_status = 401
        provider.fail_body = {"error": {"message": "Invalid API key", "code": "invalid_api_key"}}

        with pytest.raises(ProviderError) as exc_info:
            await embedder.get_embeddings(["a"])

        err = exc_info.value
        assert err.status_code == 401
        assert err.reason == "Unauthorized"
        assert err.provider_message == "Invalid API key"
        assert "Invalid API key" in str(err)

    @pytest.mark.asyncio
    async def test_error_body_without_message(self, embedder: EmbeddingClient, provider: FakeProvider) -> None:
        provider.fail_on_batch = 1
        provider.fail_status = 503
        provider.fail_body = {}

        with pytest.raises(ProviderError) as exc_info:
            await embedder.get_embeddings(["a"])

        assert exc_info.value.status_code == 503
        assert exc_info.value.provider_message == ""

    @pytest.mark.asyncio
    async def test_failure_in_later_batch_aborts_whole_call(
        self, embedder: EmbeddingClient, provider: FakeProvider
    ) -> None:
        provider.fail_on_batch = 2

        with pytest.raises(ProviderError):
            await embedder.get_embeddings([str(i) for i in range(25)])

        # Batches run in order and stop at the failure
        assert len(provider.requests) == 2

    @pytest.mark.asyncio
    async def test_network_failure_is_transport_error(self, embedding_config: EmbeddingConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection reset", request=request)

        client = EmbeddingClient(embedding_config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(TransportError) as exc_info:
            await client.get_embeddings(["a"])

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_missing_data_list_is_provider_error(self, embedding_config: EmbeddingConfig) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"object": "list"}))
        client = EmbeddingClient(embedding_config, http_client=httpx.AsyncClient(transport=transport))

        with pytest.raises(ProviderError):
            await client.get_embeddings(["a"])

    @pytest.mark.asyncio
    async def test_missing_items_never_return_short_result(self, embedding_config: EmbeddingConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0], "object": "embedding"}]})

        client = EmbeddingClient(embedding_config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(ProviderError):
            await client.get_embeddings(["a", "b"])

    @pytest.mark.asyncio
    async def test_out_of_range_index_is_provider_error(self, embedding_config: EmbeddingConfig) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"index": 5, "embedding": [1.0], "object": "embedding"}]})

        client = EmbeddingClient(embedding_config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(ProviderError):
            await client.get_embeddings(["a"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("embedding", [[None, 1.0], ["x"], [[1.0]]])
    async def test_non_numeric_embedding_is_provider_error(
        self, embedding_config: EmbeddingConfig, embedding
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"index": 0, "embedding": embedding, "object": "embedding"}]})

        client = EmbeddingClient(embedding_config, http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        with pytest.raises(ProviderError) as exc_info:
            await client.get_embeddings(["a"])

        assert exc_info.value.status_code == 200
        assert "non-numeric" in exc_info.value.provider_message
        await client.http_client.aclose()
