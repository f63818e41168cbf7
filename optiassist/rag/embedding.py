"""
Embedding client for the hosted embedding model

Converts text into fixed-length vectors through the OpenAI-compatible
``/embeddings`` endpoint. Vectors are validated against the configured
dimension so a mismatched vector can never reach the database.
"""

import asyncio
import logging
from collections.abc import Sequence

from optiassist.errors import EmbeddingError
from optiassist.llm.api_base import NO_RETRY, ModelAPIClient, RetryPolicy

logger = logging.getLogger(__name__)

# Model configuration
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBEDDING_DIMENSION = 1536
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONCURRENCY = 4


def to_vector_literal(values: Sequence[float]) -> str:
    """Format a vector as a pgvector literal: ``[0.1,0.2,0.3]``."""
    return "[" + ",".join(str(float(v)) for v in values) + "]"


class EmbeddingClient(ModelAPIClient):
    """Async client for a hosted embedding model."""

    error_class = EmbeddingError
    service_name = "Embedding API"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
        dimension: int = DEFAULT_EMBEDDING_DIMENSION,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> None:
        super().__init__(api_key, base_url, timeout, retry_policy)
        self.model = model
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Args:
            text: Non-empty input text.

        Returns:
            Vector of length ``self.dimension``.

        Raises:
            ValueError: If text is empty or whitespace only (no call is made).
            EmbeddingError: On upstream failure or an unexpected response shape.
        """
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        data = await self._post("/embeddings", {"model": self.model, "input": text})

        try:
            vector = [float(v) for v in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}") from e

        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"Embedding model {self.model} returned {len(vector)} dimensions, "
                f"expected {self.dimension}"
            )
        return vector

    async def embed_many(
        self, texts: Sequence[str], concurrency: int = DEFAULT_CONCURRENCY
    ) -> list[list[float]]:
        """
        Embed several texts with at most ``concurrency`` requests in flight.

        Results are returned in input order. The first failure cancels the
        remaining requests and propagates.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        semaphore = asyncio.Semaphore(concurrency)

        async def _bounded(text: str) -> list[float]:
            async with semaphore:
                return await self.embed(text)

        tasks = [asyncio.create_task(_bounded(t)) for t in texts]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            # Collect the cancelled and failed siblings before propagating
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
