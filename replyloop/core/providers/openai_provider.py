"""OpenAI-compatible chat completions provider.

Covers OpenAI itself and every vendor exposing the same protocol
(OpenRouter, Gemini's and Anthropic's compatibility endpoints, vLLM, ...).
"""

import logging

import openai
from openai import AsyncOpenAI

from replyloop.core.llm_connector import LLMConnector, LLMResponse
from replyloop.lib.config import ProviderConfig
from replyloop.lib.errors import ProviderError

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(LLMConnector):
    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None):
        """Initialize provider.

        Args:
            config: Provider configuration (base_url, api_key_env, model_name)
            client: Pre-built client, mainly for tests
        """
        super().__init__(config)
        self.client = client or AsyncOpenAI(
            base_url=config.base_url,
            api_key=config.api_key or "not-set",
            timeout=config.timeout,
        )

    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        json_mode: bool = False,
        **kwargs,
    ) -> LLMResponse:
        params = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if max_tokens:
            params["max_tokens"] = max_tokens
        if json_mode:
            params["response_format"] = {"type": "json_object"}
        params.update(kwargs)

        try:
            response = await self.client.chat.completions.create(**params)
        except openai.APIStatusError as e:
            logger.error(f"{self.provider_id} rejected request: {e.status_code} {e.message}")
            raise ProviderError(self.provider_id, f"HTTP {e.status_code}: {e.message}") from e
        except openai.APIError as e:
            logger.error(f"{self.provider_id} generation error: {e}")
            raise ProviderError(self.provider_id, str(e)) from e

        choice = response.choices[0]
        usage = response.usage

        return LLMResponse(
            content=choice.message.content or "",
            model_used=response.model or self.model_name,
            finish_reason=choice.finish_reason or "stop",
            token_count=usage.total_tokens if usage else 0,
            metadata={
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
            },
        )

    async def close(self) -> None:
        await self.client.close()
