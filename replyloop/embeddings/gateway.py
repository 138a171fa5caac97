"""Text to vector conversion plus the write side of the vector store."""

import logging
from typing import Any

from replyloop.embeddings.provider import EmbeddingsProvider
from replyloop.lib.errors import NotFoundError, ValidationError
from replyloop.lib.retry import RetryPolicy
from replyloop.models.conversation import Message
from replyloop.models.knowledge import KnowledgeItem
from replyloop.models.response import BatchResult
from replyloop.storage.knowledge_store import KnowledgeStore
from replyloop.storage.vector_store import EmbeddingRecord, VectorStore

logger = logging.getLogger(__name__)


class EmbeddingGateway:
    """Embeds text through a provider and keeps embedding records current.

    Provider errors are never replaced by a fallback vector: they propagate as
    ProviderError. Batch methods isolate failures per item instead.
    """

    def __init__(
        self,
        provider: EmbeddingsProvider,
        vector_store: VectorStore,
        knowledge_store: KnowledgeStore,
        retry: RetryPolicy | None = None,
    ):
        self.provider = provider
        self.vector_store = vector_store
        self.knowledge_store = knowledge_store
        self.retry = retry or RetryPolicy()

    @property
    def model(self) -> str:
        return self.provider.model

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            ValidationError: If text is empty
            ProviderError: If the provider call fails
        """
        if not text or not text.strip():
            raise ValidationError("text", "cannot embed empty text")

        vectors = await self.retry.run(self.provider.embed, [text])
        return vectors[0]

    async def embed_knowledge_item(self, item: KnowledgeItem) -> EmbeddingRecord:
        vector = await self.embed(item.embedding_text())
        return self.vector_store.upsert(
            source_id=item.id,
            source_type="knowledge_item",
            vector=vector,
            model=self.model,
            metadata={"title": item.title, "category": item.category, "tags": item.tags},
        )

    async def embed_message(self, message: Message) -> EmbeddingRecord:
        vector = await self.embed(message.content)
        return self.vector_store.upsert(
            source_id=message.id,
            source_type="message",
            vector=vector,
            model=self.model,
            metadata={"customer_id": message.customer_id, "direction": message.direction},
        )

    async def embed_document(
        self, source_id: str, text: str, metadata: dict[str, Any] | None = None
    ) -> EmbeddingRecord:
        """Index free text (e.g. an uploaded file chunk) that has no store of its own.

        The text itself is kept in the record metadata so search results can
        be resolved without another lookup.
        """
        vector = await self.embed(text)
        return self.vector_store.upsert(
            source_id=source_id,
            source_type="document",
            vector=vector,
            model=self.model,
            metadata={**(metadata or {}), "text": text},
        )

    async def batch_embed_knowledge_items(self, item_ids: list[str]) -> BatchResult:
        """Re-embed the given items; one item's failure does not stop the rest."""
        result = BatchResult()

        for item_id in item_ids:
            try:
                item = self.knowledge_store.get(item_id)
                if item is None:
                    raise NotFoundError("knowledge_item", item_id)
                record = await self.embed_knowledge_item(item)
                result.record_success(item_id, {"dimensions": record.dimensions})
            except Exception as e:
                logger.error(f"Failed to embed knowledge item {item_id}: {e}")
                result.record_failure(item_id, str(e))

        logger.info(
            f"Batch embedding finished: {result.success}/{result.processed} succeeded, "
            f"{result.failed} failed"
        )
        return result

    async def regenerate_all(self) -> BatchResult:
        """Re-embed every knowledge item, e.g. after switching embedding model."""
        item_ids = self.knowledge_store.list_ids()
        logger.info(f"Regenerating embeddings for {len(item_ids)} knowledge items")
        return await self.batch_embed_knowledge_items(item_ids)
