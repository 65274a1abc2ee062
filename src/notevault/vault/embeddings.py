"""Embedding client for an OpenAI-compatible ``/embeddings`` endpoint.

Inputs are sent in provider-sized batches. Each batch response is re-ordered
by the ``index`` field the provider attaches to every vector, since the
provider does not promise to answer in input order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "text-embedding-3-small"
MAX_BATCH_SIZE = 2048  # OpenAI limit
MAX_ATTEMPTS = 3
RETRY_BASE_DELAY = 2.0
RETRY_MAX_DELAY = 30.0
REQUEST_TIMEOUT = 60.0


class EmbeddingError(Exception):
    """Base class for embedding failures."""


class EmbeddingConfigError(EmbeddingError):
    """API key or model missing. Never retried."""


class EmbeddingProtocolError(EmbeddingError):
    """The provider answered with something we cannot trust."""


class EmbeddingTransientError(EmbeddingError):
    """Rate limiting or server/network trouble that outlived the retries."""


def parse_embeddings_response(payload: Any, expected: int) -> list[list[float]]:
    """Validate a provider response and return vectors in input order."""
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
        raise EmbeddingProtocolError("Embeddings response missing 'data' field")

    data = payload["data"]
    if len(data) != expected:
        raise EmbeddingProtocolError(
            f"Embeddings response has {len(data)} vectors for {expected} inputs"
        )

    indexed: dict[int, list[float]] = {}
    for item in data:
        if not isinstance(item, dict) or not isinstance(item.get("embedding"), list):
            raise EmbeddingProtocolError("Embedding item missing 'embedding' field")
        index = item.get("index")
        if not isinstance(index, int) or isinstance(index, bool):
            raise EmbeddingProtocolError("Embedding item missing 'index' field")
        if not 0 <= index < expected or index in indexed:
            raise EmbeddingProtocolError(f"Embedding item has invalid index {index}")
        try:
            indexed[index] = [float(v) for v in item["embedding"]]
        except (TypeError, ValueError):
            raise EmbeddingProtocolError("Embedding item has non-numeric values") from None

    return [indexed[i] for i in range(expected)]


class EmbeddingClient:
    """Turn texts into vectors with batched, retried HTTP calls."""

    def __init__(
        self,
        api_key: str | None,
        model: str | None = DEFAULT_MODEL,
        base_url: str | None = None,
        max_batch_size: int = MAX_BATCH_SIZE,
        max_attempts: int = MAX_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.max_batch_size = max(1, min(max_batch_size, MAX_BATCH_SIZE))
        self.max_attempts = max(1, max_attempts)
        self.retry_base_delay = retry_base_delay
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> EmbeddingClient:
        return cls(
            api_key=settings.api_key,
            model=settings.embedding_model,
            base_url=settings.embedding_base_url,
            **kwargs,
        )

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy-create the HTTP client on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> EmbeddingClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def get_embedding(self, text: str) -> list[float]:
        results = await self.get_embeddings([text])
        return results[0]

    async def get_embeddings(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed ``texts``, returning one vector per input in input order."""
        texts = list(texts)
        if not texts:
            return []

        if not self._api_key:
            raise EmbeddingConfigError("Embedding API key is not configured")
        if not self.model:
            raise EmbeddingConfigError("Embedding model is not configured")

        batches = [
            texts[i:i + self.max_batch_size]
            for i in range(0, len(texts), self.max_batch_size)
        ]
        logger.debug("Generating embeddings for %d texts in %d batches", len(texts), len(batches))

        vectors: list[list[float]] = []
        for batch in batches:
            vectors.extend(await self._embed_batch(batch))
        return vectors

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        client = self._get_client()
        endpoint = f"{self.base_url}/embeddings"
        body = {"model": self.model, "input": batch, "encoding_format": "float"}
        headers = {"Authorization": f"Bearer {self._api_key}"}

        last_error: Exception | None = None
        for attempt in range(self.max_attempts):
            try:
                response = await client.post(endpoint, json=body, headers=headers)
            except httpx.TransportError as e:
                last_error = e
            else:
                status = response.status_code
                if status == 429 or status >= 500:
                    last_error = EmbeddingTransientError(
                        f"Embeddings request failed with {status}: {response.text[:200]}"
                    )
                elif response.is_error:
                    raise EmbeddingError(
                        f"Embeddings request failed with {status}: {response.text[:500]}"
                    )
                else:
                    try:
                        payload = response.json()
                    except ValueError as e:
                        raise EmbeddingProtocolError(f"Embeddings response is not JSON: {e}") from e
                    return parse_embeddings_response(payload, len(batch))

            if attempt < self.max_attempts - 1:
                delay = min(self.retry_base_delay * (2 ** attempt), RETRY_MAX_DELAY)
                logger.warning(
                    "Embeddings request failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1, self.max_attempts, delay, last_error,
                )
                await asyncio.sleep(delay)

        raise EmbeddingTransientError(
            f"Failed to get embeddings after {self.max_attempts} attempts: {last_error}"
        ) from last_error
