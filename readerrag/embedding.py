"""Embedding client for OpenAI-compatible embeddings endpoints.

Provides:
- EmbeddingClient.get_embeddings: sequential batched embedding of many texts,
  results reassembled by the provider's per-item index.
- EmbeddingClient.embed_query: convenience helper for a single query string.

A failure on any batch aborts the whole call; callers never see partial results.
No retries are attempted here.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from readerrag.config import EmbeddingConfig
from readerrag.errors import ProviderError, TransportError
from readerrag.obs import span

logger = logging.getLogger(__name__)


def _error_message(resp: httpx.Response) -> str:
    """Extract ``error.message`` from a provider error body, if present."""
    try:
        body = resp.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or "")
    return ""


class EmbeddingClient:
    """Batching client for a single embedding model.

    Args:
        config: Validated provider configuration.
        http_client: Optional pre-built async client (tests inject a mock transport).
            When omitted the client creates and owns one.
    """

    def __init__(self, config: EmbeddingConfig, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def __aenter__(self) -> "EmbeddingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.http_client.aclose()

    def _payload(self, batch: Sequence[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.config.model_name,
            "input": list(batch),
            "encoding_format": "float",
        }
        if self.config.dimensions:
            payload["dimensions"] = self.config.dimensions
        return payload

    async def _embed_batch(self, batch: Sequence[str], offset: int, out: List[Optional[List[float]]]) -> None:
        """POST one batch and place each returned vector at ``offset + item.index``."""
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        try:
            resp = await self.http_client.post(
                self.config.endpoint,
                json=self._payload(batch),
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Embedding request to {self.config.endpoint} failed: {e}", cause=e) from e

        if not resp.is_success:
            message = _error_message(resp)
            logger.error("Embedding API error: %d %s %s", resp.status_code, resp.reason_phrase, message)
            raise ProviderError(resp.status_code, resp.reason_phrase, message, model=self.config.model_name)

        def malformed(message: str) -> ProviderError:
            logger.error("Invalid embedding API response for batch at %d: %s", offset, message)
            return ProviderError(resp.status_code, resp.reason_phrase, message, model=self.config.model_name)

        try:
            body = resp.json()
        except ValueError as e:
            raise malformed("Response body is not valid JSON.") from e
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise malformed("Invalid response structure from Embedding API.")

        for item in data:
            idx = item.get("index") if isinstance(item, dict) else None
            vec = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(idx, int) or not 0 <= idx < len(batch) or not isinstance(vec, list):
                raise malformed(f"Embedding item with index {idx!r} is invalid for a batch of {len(batch)}.")
            try:
                out[offset + idx] = [float(x) for x in vec]
            except (TypeError, ValueError) as e:
                raise malformed(f"Embedding item with index {idx} holds non-numeric values.") from e

        missing = [offset + i for i in range(len(batch)) if out[offset + i] is None]
        if missing:
            raise malformed(f"No embedding returned for {len(missing)} input(s) (first missing: {missing[0]}).")

    async def get_embeddings(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed texts in sequential batches, preserving input order.

        Args:
            texts: Strings to embed.

        Returns:
            List[List[float]]: One vector per input, ``result[i]`` for ``texts[i]``.

        Raises:
            ProviderError: Non-2xx or malformed provider response on any batch.
            TransportError: Network failure on any batch.
        """
        if not texts:
            return []

        size = self.config.batch_size
        total = len(texts)
        n_batches = (total + size - 1) // size
        logger.info(
            "Embedding %d text(s) with model %s in %d batch(es)",
            total, self.config.model_name, n_batches,
        )

        out: List[Optional[List[float]]] = [None] * total
        with span("embedding.get_embeddings", {"texts": total, "batches": n_batches, "model": self.config.model_name}):
            for b, offset in enumerate(range(0, total, size)):
                batch = texts[offset:offset + size]
                logger.debug(
                    "Processing batch %d/%d (indices %d to %d)",
                    b + 1, n_batches, offset, offset + len(batch) - 1,
                )
                await self._embed_batch(batch, offset, out)

        logger.info("Finished embedding %d text(s)", total)
        return out  # type: ignore[return-value]

    async def embed_query(self, text: str) -> List[float]:
        """Embed a single query string and return its embedding vector."""
        vectors = await self.get_embeddings([text])
        return vectors[0]
