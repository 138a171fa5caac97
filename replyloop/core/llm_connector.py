"""Base connector abstraction for swappable generation backends."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from replyloop.lib.config import ProviderConfig

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Standardized generation result."""

    content: str
    model_used: str
    finish_reason: str = "stop"  # "stop", "length", ...
    token_count: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


class LLMConnector(ABC):
    """A generation backend.

    Adding a backend means subclassing this and implementing generate(); the
    router only ever sees provider ids.
    """

    def __init__(self, config: ProviderConfig):
        """Initialize connector.

        Args:
            config: Provider entry from the engine configuration
        """
        self.config = config
        self.provider_id = config.provider_id
        self.model_name = config.model_name
        logger.info(f"Initialized {config.kind} connector '{self.provider_id}' for {self.model_name}")

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs,
    ) -> LLMResponse:
        """Generate text for a single prompt.

        Args:
            prompt: Full prompt text
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            **kwargs: Provider-specific options (e.g. json_mode)

        Returns:
            LLMResponse with generated content

        Raises:
            ProviderError: If the backend is unreachable or rejects the request
        """

    async def check_health(self) -> bool:
        """Return True if the backend answers. Defaults to optimistic."""
        return True

    async def close(self) -> None:
        """Release network resources, if any."""
