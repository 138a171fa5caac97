"""Factory for creating embeddings providers based on configuration."""

import logging
import os

from replyloop.embeddings.provider import (
    EmbeddingsProvider,
    MockEmbeddingsProvider,
    RemoteEmbeddingsProvider,
)
from replyloop.lib.config import EmbeddingsConfig

logger = logging.getLogger(__name__)


def create_embeddings_provider(config: EmbeddingsConfig) -> EmbeddingsProvider:
    """Build the embeddings provider named in the configuration.

    The mock provider is only used when asked for by name. A "remote"
    provider without an API key is a startup error, since mock vectors in
    the same index as real ones would rank noise.

    Args:
        config: Embeddings section of the engine configuration

    Returns:
        EmbeddingsProvider instance

    Raises:
        ValueError: Unknown provider, or "remote" with no API key set
    """
    if config.provider == "mock":
        logger.info(f"Using MockEmbeddingsProvider ({config.dimensions} dimensions)")
        return MockEmbeddingsProvider(dimensions=config.dimensions)

    if config.provider != "remote":
        raise ValueError(f"Unknown embeddings provider: {config.provider}")

    api_key = os.getenv(config.api_key_env) if config.api_key_env else None
    if not api_key:
        raise ValueError(
            f"Embeddings provider 'remote' needs {config.api_key_env} to be set; "
            f"use provider 'mock' for offline runs"
        )

    return RemoteEmbeddingsProvider(
        api_key=api_key,
        model=config.model,
        base_url=config.base_url,
        timeout=config.timeout,
    )
