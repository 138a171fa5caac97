"""Vector retrieval over knowledge items, messages and documents."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from replyloop.embeddings.gateway import EmbeddingGateway
from replyloop.lib.errors import ValidationError
from replyloop.models.knowledge import KnowledgeItem
from replyloop.storage.knowledge_store import KnowledgeStore
from replyloop.storage.message_store import MessageStore
from replyloop.storage.vector_store import EmbeddingRecord, SourceType, VectorStore

logger = logging.getLogger(__name__)

# Given the matched records, return {source_id: entity} for those that still exist
Resolver = Callable[[list[EmbeddingRecord]], dict[str, Any]]


@dataclass
class RetrievedCandidate:
    source_id: str
    source_type: str
    similarity: float
    entity: Any


class RetrievalEngine:
    """Embeds a query, ranks stored vectors and resolves them to live entities.

    Matches whose source entity no longer exists are orphans: their embedding
    is deleted and they are left out of the results. Equal similarities keep
    the vector store's insertion order; there is no secondary ranking.
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        vector_store: VectorStore,
        knowledge_store: KnowledgeStore,
        message_store: MessageStore,
    ):
        self.gateway = gateway
        self.vector_store = vector_store
        self.resolvers: dict[str, Resolver] = {
            "knowledge_item": lambda records: knowledge_store.get_many(
                [r.source_id for r in records]
            ),
            "message": lambda records: message_store.get_many([r.source_id for r in records]),
            # Documents live only in the vector store; the record carries the text
            "document": lambda records: {r.source_id: r.metadata for r in records},
        }

    async def retrieve(
        self,
        query: str,
        source_type: SourceType = "knowledge_item",
        k: int = 5,
        min_similarity: float = 0.7,
        categories: list[str] | None = None,
        tags: list[str] | None = None,
    ) -> list[RetrievedCandidate]:
        """Rank stored entities of one source type against a query.

        Args:
            query: Free text query
            source_type: Which kind of embedding to search
            k: Maximum number of candidates before filtering
            min_similarity: Cosine similarity floor
            categories: Keep knowledge items whose category is in this set
            tags: Keep knowledge items sharing at least one of these tags

        Returns:
            Candidates ordered by similarity, highest first

        Raises:
            ValidationError: If query is empty
            ProviderError: If the query cannot be embedded
        """
        if not query or not query.strip():
            raise ValidationError("query", "query is required")

        query_vector = await self.gateway.embed(query)
        matches = self.vector_store.find_similar(
            query_vector, source_type=source_type, limit=k, threshold=min_similarity
        )
        if not matches:
            return []

        entities = self.resolvers[source_type]([record for record, _ in matches])

        candidates = []
        for record, similarity in matches:
            entity = entities.get(record.source_id)
            if entity is None:
                logger.warning(
                    f"Orphaned {source_type} embedding for {record.source_id}, deleting"
                )
                self.vector_store.delete_by_source(record.source_id, source_type)
                continue
            candidates.append(
                RetrievedCandidate(
                    source_id=record.source_id,
                    source_type=source_type,
                    similarity=similarity,
                    entity=entity,
                )
            )

        if categories or tags:
            candidates = [c for c in candidates if _matches_filters(c.entity, categories, tags)]

        logger.debug(f"Retrieved {len(candidates)} {source_type} candidates for query")
        return candidates

    async def search_knowledge_items(
        self,
        query: str,
        k: int = 5,
        min_similarity: float = 0.7,
        categories: list[str] | None = None,
        tags: list[str] | None = None,
    ) -> list[RetrievedCandidate]:
        return await self.retrieve(query, "knowledge_item", k, min_similarity, categories, tags)

    async def search_messages(
        self, query: str, k: int = 5, min_similarity: float = 0.7
    ) -> list[RetrievedCandidate]:
        return await self.retrieve(query, "message", k, min_similarity)


def _matches_filters(
    entity: Any, categories: list[str] | None, tags: list[str] | None
) -> bool:
    """Exact category membership and non-empty tag intersection."""
    if not isinstance(entity, KnowledgeItem):
        return False
    if categories and entity.category not in categories:
        return False
    if tags and not set(entity.tags) & set(tags):
        return False
    return True
