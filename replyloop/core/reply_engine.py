"""Reply generation: retrieve, route, prompt, generate, post-process, score."""

import logging

from replyloop.core.confidence import score_confidence
from replyloop.core.model_router import GenerationRouter
from replyloop.core.prompt_assembler import PromptAssembler
from replyloop.core.response_processor import ReplyPostProcessor
from replyloop.core.retrieval import RetrievalEngine
from replyloop.lib.config import EngineConfig
from replyloop.lib.errors import ValidationError
from replyloop.lib.retry import RetryPolicy
from replyloop.lib.text_similarity import normalized_similarity
from replyloop.models.knowledge import KnowledgeItem
from replyloop.models.response import GenerationResult, ReplySource
from replyloop.storage.message_store import MessageStore

logger = logging.getLogger(__name__)


def _require(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(field, f"{field} is required")
    return value


class ReplyEngine:
    """Entry point for customer-facing reply generation."""

    def __init__(
        self,
        retrieval: RetrievalEngine,
        router: GenerationRouter,
        message_store: MessageStore,
        config: EngineConfig,
        assembler: PromptAssembler | None = None,
        post_processor: ReplyPostProcessor | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.retrieval = retrieval
        self.router = router
        self.message_store = message_store
        self.config = config
        self.assembler = assembler or PromptAssembler(config.generation.history_window)
        self.post_processor = post_processor or ReplyPostProcessor(config.post_processing)
        self.retry = retry or RetryPolicy.from_config(config.retry)

    async def generate_reply(
        self,
        customer_id: str,
        message_id: str,
        query: str,
        max_results: int | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate a reply to a customer message.

        Args:
            customer_id: Customer whose history provides context
            message_id: Message being answered (left out of the history)
            query: Message text
            max_results: Knowledge candidates to retrieve
            temperature: Sampling temperature for generation
            max_tokens: Generation token limit

        Returns:
            GenerationResult with reply, confidence, sources and metadata

        Raises:
            ValidationError: Missing or invalid fields, before any provider call
            ProviderError: Embedding or generation backend failure
        """
        _require(customer_id, "customer_id")
        _require(message_id, "message_id")
        _require(query, "query")

        generation = self.config.generation
        max_results = self.config.retrieval.max_results if max_results is None else max_results
        temperature = generation.temperature if temperature is None else temperature
        max_tokens = generation.max_tokens if max_tokens is None else max_tokens

        if max_results < 1:
            raise ValidationError("max_results", "must be at least 1")
        if not 0.0 <= temperature <= 2.0:
            raise ValidationError("temperature", "must be between 0 and 2")
        if max_tokens < 1:
            raise ValidationError("max_tokens", "must be at least 1")

        history = self.message_store.recent_for_customer(
            customer_id, limit=generation.history_fetch_limit, exclude_id=message_id
        )
        candidates = await self.retrieval.retrieve(
            query,
            "knowledge_item",
            k=max_results,
            min_similarity=self.config.retrieval.min_similarity,
        )

        decision = self.router.select(query, candidates)
        connector = self.router.connector_for(decision)
        prompt = self.assembler.build(query, candidates, history)

        response = await self.retry.run(
            connector.generate, prompt, temperature=temperature, max_tokens=max_tokens
        )

        reply = self.post_processor.process(response.content, query)
        sources = [
            ReplySource(
                id=c.entity.id,
                title=c.entity.title,
                category=c.entity.category,
                relevance=c.similarity,
            )
            for c in candidates
        ]
        confidence = score_confidence(reply, sources)

        logger.info(
            f"Generated reply for customer {customer_id} via {decision.provider_id} "
            f"({len(sources)} sources, confidence={confidence:.2f})"
        )

        return GenerationResult(
            reply=reply,
            confidence=confidence,
            sources=sources,
            metadata={
                "provider": decision.provider_id,
                "model": response.model_used,
                "params": {
                    "max_results": max_results,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                "routing": decision.to_dict(),
                "usage": response.metadata,
            },
        )

    async def search_knowledge(
        self,
        query: str,
        max_results: int | None = None,
        categories: list[str] | None = None,
        tags: list[str] | None = None,
    ) -> list[KnowledgeItem]:
        """Vector search over knowledge items with optional category/tag filters."""
        _require(query, "query")
        k = self.config.retrieval.max_results if max_results is None else max_results
        if k < 1:
            raise ValidationError("max_results", "must be at least 1")

        candidates = await self.retrieval.search_knowledge_items(
            query,
            k=k,
            min_similarity=self.config.retrieval.min_similarity,
            categories=categories,
            tags=tags,
        )
        logger.info(f"Knowledge search returned {len(candidates)} items")
        return [c.entity for c in candidates]

    def evaluate_reply(self, reply: str, human_reply: str) -> float:
        """Edit-distance similarity between a generated reply and the human one (0-1)."""
        return normalized_similarity(reply, human_reply)
