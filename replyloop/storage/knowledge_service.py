"""Knowledge item writes coupled with embedding maintenance."""

import logging

from replyloop.embeddings.gateway import EmbeddingGateway
from replyloop.lib.errors import NotFoundError
from replyloop.models.knowledge import KnowledgeItem
from replyloop.storage.knowledge_store import KnowledgeStore
from replyloop.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


class KnowledgeService:
    """Keeps the vector store in step with knowledge item writes.

    Writes are last-writer-wins per item with no cross-item transaction. The
    item row is committed first and re-indexed afterwards, so a concurrent
    reader can briefly see new text matched through the previous embedding.
    An indexing failure is logged and leaves the item saved; a later
    regenerate or batch embed repairs it.
    """

    def __init__(
        self,
        store: KnowledgeStore,
        vector_store: VectorStore,
        gateway: EmbeddingGateway,
    ):
        self.store = store
        self.vector_store = vector_store
        self.gateway = gateway

    def get(self, item_id: str) -> KnowledgeItem:
        item = self.store.get(item_id)
        if item is None:
            raise NotFoundError("knowledge_item", item_id)
        return item

    async def create(self, item: KnowledgeItem) -> KnowledgeItem:
        self.store.create(item)
        await self._reindex(item)
        logger.info(f"Created knowledge item {item.id} ({item.title!r})")
        return item

    async def update(self, item: KnowledgeItem) -> bool:
        """Persist an edited item; re-embeds when its indexed text changed.

        Returns:
            False if the item no longer exists
        """
        previous = self.store.get(item.id)
        if previous is None or not self.store.update(item):
            logger.warning(f"Knowledge item {item.id} disappeared before update")
            return False

        text_changed = previous.embedding_text() != item.embedding_text()
        if text_changed or self.vector_store.get_by_source(item.id, "knowledge_item") is None:
            await self._reindex(item)
        return True

    def delete(self, item_id: str) -> bool:
        deleted = self.store.delete(item_id)
        self.vector_store.delete_by_source(item_id, "knowledge_item")
        if deleted:
            logger.info(f"Deleted knowledge item {item_id}")
        return deleted

    async def _reindex(self, item: KnowledgeItem) -> None:
        try:
            await self.gateway.embed_knowledge_item(item)
        except Exception as e:
            logger.error(f"Indexing knowledge item {item.id} failed, item kept unindexed: {e}")
