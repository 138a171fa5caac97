"""Test doubles shared by unit and integration tests."""

import math

from replyloop.core.llm_connector import LLMConnector, LLMResponse
from replyloop.embeddings.provider import EmbeddingsProvider
from replyloop.lib.config import ProviderConfig
from replyloop.lib.errors import ProviderError


class FakeConnector(LLMConnector):
    """Returns scripted replies in order (the last one repeats) and records prompts."""

    def __init__(self, provider_id: str = "fake", replies: list[str] | None = None, fail: bool = False):
        super().__init__(ProviderConfig(provider_id=provider_id, model_name=f"{provider_id}-model"))
        self.replies = list(replies or ["好的。"])
        self.fail = fail
        self.prompts: list[str] = []
        self.calls: list[dict] = []

    async def generate(self, prompt, temperature=0.7, max_tokens=None, **kwargs):
        self.prompts.append(prompt)
        self.calls.append({"temperature": temperature, "max_tokens": max_tokens, **kwargs})
        if self.fail:
            raise ProviderError(self.provider_id, "backend unavailable")

        index = min(len(self.prompts) - 1, len(self.replies) - 1)
        return LLMResponse(
            content=self.replies[index],
            model_used=self.model_name,
            metadata={"prompt_tokens": len(prompt)},
        )


class ScriptedEmbeddingsProvider(EmbeddingsProvider):
    """Maps text to vectors by keyword so tests control exact similarities.

    The first key contained in the text wins; unmatched text gets `default`.
    """

    name = "scripted"
    model = "scripted-embedding"

    def __init__(self, vectors: dict[str, list[float]] | None = None, default: list[float] | None = None):
        self.vectors = dict(vectors or {})
        self.default = default or [0.0, 0.0, 1.0]
        self.calls: list[list[str]] = []
        self.fail = False

    async def embed(self, texts):
        self.calls.append(list(texts))
        if self.fail:
            raise ProviderError(self.name, "embedding backend unavailable")
        return [self._vector_for(text) for text in texts]

    def _vector_for(self, text: str) -> list[float]:
        for key, vector in self.vectors.items():
            if key in text:
                return list(vector)
        return list(self.default)


def unit_vector_at(similarity: float) -> list[float]:
    """3D unit vector whose cosine with [1, 0, 0] is `similarity`."""
    return [similarity, math.sqrt(1.0 - similarity**2), 0.0]
