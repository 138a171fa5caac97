"""Unit tests for generation providers."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from replyloop.core.providers.factory import create_connector, create_connectors
from replyloop.core.providers.ollama_provider import OllamaProvider
from replyloop.core.providers.openai_provider import OpenAICompatibleProvider
from replyloop.lib.config import ProviderConfig
from replyloop.lib.errors import ProviderError

pytestmark = pytest.mark.unit


def ollama(handler):
    config = ProviderConfig(
        provider_id="llama", kind="ollama", model_name="llama3.1:8b", base_url="http://ollama.test/"
    )
    return OllamaProvider(config, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_ollama_generate():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "message": {"role": "assistant", "content": "您好！"},
                "done": True,
                "prompt_eval_count": 12,
                "eval_count": 3,
            },
        )

    provider = ollama(handler)
    response = await provider.generate("你好", temperature=0.3, max_tokens=64, json_mode=True)
    await provider.close()

    assert response.content == "您好！"
    assert response.token_count == 15
    assert response.finish_reason == "stop"
    assert seen["url"] == "http://ollama.test/api/chat"
    assert seen["body"]["model"] == "llama3.1:8b"
    assert seen["body"]["options"] == {"temperature": 0.3, "num_predict": 64}
    assert seen["body"]["format"] == "json"
    assert seen["body"]["stream"] is False


@pytest.mark.asyncio
async def test_ollama_errors_become_provider_error():
    provider = ollama(lambda request: httpx.Response(503, text="loading model"))
    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("你好")
    assert exc_info.value.provider == "llama"
    assert "HTTP 503" in str(exc_info.value)
    await provider.close()


@pytest.mark.asyncio
async def test_ollama_health_check():
    def handler(request):
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": [{"name": "llama3.1:8b"}]})

    provider = ollama(handler)
    assert await provider.check_health() is True
    await provider.close()

    missing = ollama(lambda request: httpx.Response(200, json={"models": []}))
    assert await missing.check_health() is False
    await missing.close()


def completion(content="您好。", model="gpt-4o-mini"):
    return SimpleNamespace(
        model=model,
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=4, total_tokens=14),
    )


def openai_provider(create):
    client = MagicMock()
    client.chat.completions.create = create
    config = ProviderConfig(provider_id="openai", model_name="gpt-4o-mini")
    return OpenAICompatibleProvider(config, client=client)


@pytest.mark.asyncio
async def test_openai_compatible_generate():
    create = AsyncMock(return_value=completion())
    provider = openai_provider(create)

    response = await provider.generate("你好", temperature=0.2, max_tokens=32, json_mode=True)

    assert response.content == "您好。"
    assert response.model_used == "gpt-4o-mini"
    assert response.token_count == 14
    assert response.metadata == {"prompt_tokens": 10, "completion_tokens": 4}
    kwargs = create.call_args.kwargs
    assert kwargs["messages"] == [{"role": "user", "content": "你好"}]
    assert kwargs["max_tokens"] == 32
    assert kwargs["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_openai_compatible_error_becomes_provider_error():
    request = httpx.Request("POST", "https://api.test/v1/chat/completions")
    create = AsyncMock(side_effect=openai.APIConnectionError(request=request))
    provider = openai_provider(create)

    with pytest.raises(ProviderError) as exc_info:
        await provider.generate("你好")
    assert exc_info.value.provider == "openai"


def test_factory_builds_by_kind():
    connectors = create_connectors(
        [
            ProviderConfig(provider_id="llama", kind="ollama", model_name="llama3.1:8b"),
            ProviderConfig(provider_id="openai", model_name="gpt-4o-mini"),
            ProviderConfig(provider_id="broken", kind="carrier-pigeon"),
        ]
    )

    assert isinstance(connectors["llama"], OllamaProvider)
    assert isinstance(connectors["openai"], OpenAICompatibleProvider)
    assert "broken" not in connectors

    with pytest.raises(ValueError):
        create_connector(ProviderConfig(provider_id="x", kind="unknown"))
