"""Build generation connectors from provider configuration."""

import logging

from replyloop.core.llm_connector import LLMConnector
from replyloop.core.providers.ollama_provider import OllamaProvider
from replyloop.core.providers.openai_provider import OpenAICompatibleProvider
from replyloop.lib.config import ProviderConfig

logger = logging.getLogger(__name__)


def create_connector(config: ProviderConfig) -> LLMConnector:
    if config.kind == "ollama":
        return OllamaProvider(config)
    if config.kind == "openai_compatible":
        return OpenAICompatibleProvider(config)
    raise ValueError(f"Unknown provider kind '{config.kind}' for {config.provider_id}")


def create_connectors(configs: list[ProviderConfig]) -> dict[str, LLMConnector]:
    """Connectors keyed by provider id. Misconfigured entries are skipped."""
    connectors = {}
    for config in configs:
        try:
            connectors[config.provider_id] = create_connector(config)
        except ValueError as e:
            logger.error(f"Skipping provider {config.provider_id}: {e}")
    return connectors
