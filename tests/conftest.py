"""
Shared test fixtures.

Provides: embedding config, a fake OpenAI-compatible provider on httpx.MockTransport,
a temporary SQLite-backed VectorStore, and a pipeline wired to both.
"""

import json
import random
from typing import Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from readerrag.config import EmbeddingConfig
from readerrag.db import init_db, make_engine, make_session_factory
from readerrag.embedding import EmbeddingClient
from readerrag.pipeline import RagPipeline
from readerrag.store import VectorStore

ENDPOINT = "https://embeddings.test/v1/embeddings"


def text_vector(text: str) -> List[float]:
    """Deterministic 3-d vector derived from the text, never zero."""
    total = sum(ord(c) for c in text)
    return [float(len(text) or 1), float(total % 97), float(total % 13) + 1.0]


class FakeProvider:
    """Scriptable embeddings endpoint.

    Attributes:
        requests: Parsed JSON bodies of every request received.
        shuffle: Return each batch's items in random order.
        fail_on_batch: 1-based batch number that gets an error response.
        fail_status: Status code for the failing batch.
        vector_for: Maps input text to the returned embedding.
    """

    def __init__(self, vector_for: Callable[[str], List[float]] = text_vector):
        self.requests: List[Dict] = []
        self.headers: List[httpx.Headers] = []
        self.shuffle = False
        self.fail_on_batch: Optional[int] = None
        self.fail_status = 500
        self.fail_body: Dict = {"error": {"message": "upstream exploded", "type": "server_error"}}
        self.vector_for = vector_for

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        self.headers.append(request.headers)
        if self.fail_on_batch == len(self.requests):
            return httpx.Response(self.fail_status, json=self.fail_body)
        items = [
            {"object": "embedding", "index": i, "embedding": self.vector_for(t)}
            for i, t in enumerate(body["input"])
        ]
        if self.shuffle:
            random.Random(len(self.requests)).shuffle(items)
        return httpx.Response(
            200,
            json={"object": "list", "data": items, "model": body["model"], "usage": {"total_tokens": 1}},
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def embedding_config() -> EmbeddingConfig:
    return EmbeddingConfig(api_key="sk-test", endpoint=ENDPOINT, model_name="embed-test")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def embedder(embedding_config: EmbeddingConfig, provider: FakeProvider) -> EmbeddingClient:
    return EmbeddingClient(embedding_config, http_client=provider.client())


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'vectors.db'}"


@pytest_asyncio.fixture
async def session_factory(database_url: str):
    engine = make_engine(database_url)
    await init_db(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def store(session_factory) -> VectorStore:
    return VectorStore(session_factory)


@pytest_asyncio.fixture
async def pipeline(embedder: EmbeddingClient, store: VectorStore):
    p = RagPipeline(embedder=embedder, store=store, chunk_size=500, chunk_overlap=50, top_k=3)
    yield p
    await embedder.http_client.aclose()
