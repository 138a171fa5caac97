"""Ollama provider implementation for locally hosted models."""

import logging

import httpx

from replyloop.core.llm_connector import LLMConnector, LLMResponse
from replyloop.lib.config import ProviderConfig
from replyloop.lib.errors import ProviderError

logger = logging.getLogger(__name__)


class OllamaProvider(LLMConnector):
    """Ollama /api/chat backend (the default "llama" economy tier)."""

    def __init__(self, config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize Ollama provider.

        Args:
            config: Provider configuration; base_url defaults to localhost
            transport: Optional httpx transport for tests
        """
        super().__init__(config)
        self.base_url = (config.base_url or "http://localhost:11434").rstrip("/")
        self.client = httpx.AsyncClient(timeout=config.timeout, transport=transport)

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs,
    ) -> LLMResponse:
        payload = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {"temperature": temperature},
        }

        # Ollama calls the token limit num_predict
        if max_tokens:
            payload["options"]["num_predict"] = max_tokens
        if kwargs.get("json_mode"):
            payload["format"] = "json"

        try:
            response = await self.client.post(f"{self.base_url}/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Ollama HTTP error: {e.response.status_code} - {e.response.text[:200]}")
            raise ProviderError(self.provider_id, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Ollama request error: {e}")
            raise ProviderError(self.provider_id, f"Ollama unavailable: {e}") from e

        prompt_tokens = data.get("prompt_eval_count", 0)
        completion_tokens = data.get("eval_count", 0)

        return LLMResponse(
            content=data.get("message", {}).get("content", ""),
            model_used=self.model_name,
            finish_reason="stop" if data.get("done", False) else "length",
            token_count=prompt_tokens + completion_tokens,
            metadata={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
            },
        )

    async def check_health(self) -> bool:
        try:
            response = await self.client.get(f"{self.base_url}/api/tags")
            response.raise_for_status()
            models = [m.get("name") for m in response.json().get("models", [])]
        except httpx.HTTPError as e:
            logger.error(f"Ollama health check failed: {e}")
            return False

        if self.model_name not in models:
            logger.warning(f"Model {self.model_name} not found in Ollama")
            return False
        return True

    async def close(self) -> None:
        await self.client.aclose()
