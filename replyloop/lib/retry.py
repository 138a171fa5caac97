"""Explicit retry policy around provider calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from replyloop.lib.config import RetryConfig
from replyloop.lib.errors import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Retry with exponential backoff.

    Only ProviderError is retried. With max_attempts=1 (the default) a call
    is made exactly once and its error propagates unchanged.
    """

    max_attempts: int = 1
    base_delay: float = 1.0
    max_delay: float = 8.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, config.max_attempts),
            base_delay=config.base_delay,
            max_delay=config.max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff before the next attempt: base, 2*base, 4*base, ... capped."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def run(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Await fn(*args, **kwargs), retrying on ProviderError.

        Raises:
            ProviderError: From the last attempt when all attempts fail
        """
        for attempt in range(self.max_attempts):
            try:
                return await fn(*args, **kwargs)
            except ProviderError as e:
                if attempt >= self.max_attempts - 1:
                    raise
                wait_time = self.delay_for(attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{self.max_attempts} failed: {e}; retrying in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)

        raise RuntimeError("unreachable")  # pragma: no cover
