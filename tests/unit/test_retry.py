"""Unit tests for RetryPolicy."""

from unittest.mock import AsyncMock, patch

import pytest

from replyloop.lib.config import RetryConfig
from replyloop.lib.errors import ProviderError
from replyloop.lib.retry import RetryPolicy

pytestmark = pytest.mark.unit


def test_delay_is_exponential_and_capped():
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=5.0)
    assert [policy.delay_for(i) for i in range(4)] == [1.0, 2.0, 4.0, 5.0]


def test_from_config_enforces_one_attempt():
    assert RetryPolicy.from_config(RetryConfig(max_attempts=0)).max_attempts == 1


@pytest.mark.asyncio
async def test_default_policy_calls_once_and_propagates():
    fn = AsyncMock(side_effect=ProviderError("openai", "down"))

    with pytest.raises(ProviderError):
        await RetryPolicy().run(fn, "prompt")

    fn.assert_awaited_once_with("prompt")


@pytest.mark.asyncio
async def test_retries_provider_errors_until_success():
    fn = AsyncMock(side_effect=[ProviderError("openai", "down"), "ok"])

    with patch("replyloop.lib.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        result = await RetryPolicy(max_attempts=3, base_delay=0.5).run(fn, temperature=0.2)

    assert result == "ok"
    assert fn.await_count == 2
    sleep.assert_awaited_once_with(0.5)


@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    fn = AsyncMock(side_effect=ValueError("bad input"))

    with pytest.raises(ValueError):
        await RetryPolicy(max_attempts=3).run(fn)

    assert fn.await_count == 1
