"""Embeddings provider abstraction for remote and mock embedding models."""

import hashlib
import logging
import random

import httpx

from replyloop.lib.errors import ProviderError

logger = logging.getLogger(__name__)


class EmbeddingsProvider:
    """Abstract base class for embeddings providers.

    Callers must not assume a fixed dimensionality: each provider (and each
    model behind it) decides the vector length.
    """

    name = "embeddings"
    model = "unknown"

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for the given texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors (one per input text)

        Raises:
            ProviderError: If the backend is unreachable or rejects the request
        """
        raise NotImplementedError("Subclasses must implement embed()")

    async def close(self) -> None:
        """Release network resources, if any."""


class RemoteEmbeddingsProvider(EmbeddingsProvider):
    """OpenAI-compatible /embeddings endpoint over HTTP."""

    name = "remote"

    def __init__(
        self,
        api_key: str | None,
        model: str = "text-embedding-3-small",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize remote embeddings provider.

        Args:
            api_key: Bearer token for the endpoint
            model: Embedding model identifier
            base_url: API base URL (".../v1")
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

        logger.info(f"Initialized RemoteEmbeddingsProvider with model: {model}")

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = await self.client.post(
                f"{self.base_url}/embeddings",
                headers=headers,
                json={"model": self.model, "input": texts},
            )
            response.raise_for_status()
            data = response.json()

            # Format: {"data": [{"index": 0, "embedding": [...]}, ...]}
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            embeddings = [item["embedding"] for item in items]

        except httpx.HTTPStatusError as e:
            logger.error(f"Embeddings API returned {e.response.status_code}: {e.response.text[:200]}")
            raise ProviderError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling embeddings API: {e}")
            raise ProviderError(self.name, f"request failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected embeddings API response format: {e}")
            raise ProviderError(self.name, f"invalid response: {e}") from e

        if len(embeddings) != len(texts):
            raise ProviderError(
                self.name, f"expected {len(texts)} embeddings, got {len(embeddings)}"
            )

        logger.debug(f"Generated {len(embeddings)} embeddings via {self.model}")
        return embeddings

    async def close(self) -> None:
        await self.client.aclose()


class MockEmbeddingsProvider(EmbeddingsProvider):
    """Deterministic pseudo-random vectors for development and tests.

    Seeded from a SHA-256 of the text, so the same text always gives the same
    vector across processes.
    """

    name = "mock"

    def __init__(self, dimensions: int = 384, model: str = "mock-embedding"):
        self.dimensions = dimensions
        self.model = model
        logger.warning(
            f"Using MockEmbeddingsProvider ({dimensions}D) - not suitable for production!"
        )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        embeddings = []
        for text in texts:
            seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
            rng = random.Random(seed)
            embeddings.append([rng.uniform(-1.0, 1.0) for _ in range(self.dimensions)])

        logger.debug(f"Generated {len(embeddings)} mock embeddings")
        return embeddings
