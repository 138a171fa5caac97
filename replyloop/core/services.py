"""Object graph wiring: every component built once from an EngineConfig."""

import logging
from dataclasses import dataclass

from replyloop.core.llm_connector import LLMConnector
from replyloop.core.model_router import GenerationRouter
from replyloop.core.providers.factory import create_connectors
from replyloop.core.reply_engine import ReplyEngine
from replyloop.core.retrieval import RetrievalEngine
from replyloop.embeddings.factory import create_embeddings_provider
from replyloop.embeddings.gateway import EmbeddingGateway
from replyloop.embeddings.provider import EmbeddingsProvider
from replyloop.feedback.extraction import ExtractionEngine
from replyloop.feedback.organization import OrganizationEngine
from replyloop.lib.config import EngineConfig
from replyloop.lib.retry import RetryPolicy
from replyloop.storage.knowledge_service import KnowledgeService
from replyloop.storage.knowledge_store import KnowledgeStore
from replyloop.storage.message_store import MessageStore
from replyloop.storage.sqlite_store import SQLiteStore
from replyloop.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: EngineConfig
    knowledge_store: KnowledgeStore
    message_store: MessageStore
    vector_store: VectorStore
    embeddings_provider: EmbeddingsProvider
    gateway: EmbeddingGateway
    knowledge_service: KnowledgeService
    retrieval: RetrievalEngine
    router: GenerationRouter
    reply_engine: ReplyEngine
    extraction: ExtractionEngine
    organization: OrganizationEngine
    connectors: dict[str, LLMConnector]

    async def close(self) -> None:
        await self.embeddings_provider.close()
        for connector in self.connectors.values():
            await connector.close()


def _feedback_connector(
    connectors: dict[str, LLMConnector], provider_id: str | None, default: str
) -> LLMConnector:
    """Connector for extraction/organization calls: configured id, else the default provider."""
    chosen = provider_id or default
    if chosen in connectors:
        return connectors[chosen]
    if default in connectors:
        logger.warning(f"Provider {chosen} not configured for the knowledge loop, using {default}")
        return connectors[default]
    raise ValueError(f"Neither {chosen} nor default provider {default} is configured")


def build_services(
    config: EngineConfig,
    connectors: dict[str, LLMConnector] | None = None,
    embeddings_provider: EmbeddingsProvider | None = None,
) -> Services:
    """Wire every component.

    Args:
        config: Engine configuration
        connectors: Generation connectors keyed by provider id (built from
            config.providers if omitted)
        embeddings_provider: Embeddings provider (built from config if omitted)

    Raises:
        ValueError: If no connector can serve the knowledge loop
    """
    db = SQLiteStore(config.storage.sqlite_path)
    knowledge_store = KnowledgeStore(db)
    message_store = MessageStore(db)
    vector_store = VectorStore(db)

    if connectors is None:
        connectors = create_connectors(config.providers)
    if embeddings_provider is None:
        embeddings_provider = create_embeddings_provider(config.embeddings)

    retry = RetryPolicy.from_config(config.retry)
    default_provider = config.routing.default_provider

    gateway = EmbeddingGateway(embeddings_provider, vector_store, knowledge_store, retry)
    knowledge_service = KnowledgeService(knowledge_store, vector_store, gateway)
    retrieval = RetrievalEngine(gateway, vector_store, knowledge_store, message_store)
    router = GenerationRouter(connectors, config.routing)

    services = Services(
        config=config,
        knowledge_store=knowledge_store,
        message_store=message_store,
        vector_store=vector_store,
        embeddings_provider=embeddings_provider,
        gateway=gateway,
        knowledge_service=knowledge_service,
        retrieval=retrieval,
        router=router,
        reply_engine=ReplyEngine(retrieval, router, message_store, config, retry=retry),
        extraction=ExtractionEngine(
            _feedback_connector(connectors, config.extraction.provider, default_provider),
            knowledge_service,
            config.extraction,
            retry,
        ),
        organization=OrganizationEngine(
            _feedback_connector(connectors, config.organization.provider, default_provider),
            knowledge_service,
            config.organization,
            retry,
        ),
        connectors=connectors,
    )
    logger.info(
        f"Services ready: {len(connectors)} generation providers, "
        f"embeddings via {embeddings_provider.name}/{embeddings_provider.model}"
    )
    return services
