"""Categories, tags and relations for knowledge items, suggested by a model."""

import logging

from replyloop.core.llm_connector import LLMConnector
from replyloop.feedback.knowledge_graph import (
    KnowledgeGraph,
    StructureReport,
    analyze_structure,
    build_knowledge_graph,
)
from replyloop.feedback.parsing import OrganizationOutput, StructureSuggestions, parse_model_output
from replyloop.feedback.prompts import KnowledgePrompts
from replyloop.lib.config import OrganizationConfig
from replyloop.lib.errors import MalformedModelOutput
from replyloop.lib.retry import RetryPolicy
from replyloop.models.knowledge import (
    CategorySuggestion,
    KnowledgeItem,
    OrganizationResult,
    Relation,
    TagSuggestion,
    normalize_tags,
)
from replyloop.models.response import BatchResult
from replyloop.storage.knowledge_service import KnowledgeService

logger = logging.getLogger(__name__)

NONE_LISTED = "（無）"


class OrganizationEngine:
    """Suggests and applies taxonomy for knowledge items.

    Neighbours come from keyword search over the knowledge store, not from
    embeddings, so organization works even before an item is indexed.
    """

    def __init__(
        self,
        connector: LLMConnector,
        knowledge_service: KnowledgeService,
        config: OrganizationConfig | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.connector = connector
        self.knowledge_service = knowledge_service
        self.store = knowledge_service.store
        self.config = config or OrganizationConfig()
        self.retry = retry or RetryPolicy()

    async def organize(self, item_id: str) -> OrganizationResult:
        """Ask the model for category, tag and relation suggestions.

        Returns:
            Suggestions; empty when the model output is malformed

        Raises:
            NotFoundError: If the item does not exist
            ProviderError: If the model call fails
        """
        item = self.knowledge_service.get(item_id)
        neighbors = self.store.find_related_by_text(
            f"{item.title} {item.content[:100]}",
            limit=self.config.neighbor_limit,
            exclude_id=item.id,
        )

        prompt = KnowledgePrompts.ORGANIZE.format(
            item_id=item.id,
            title=item.title,
            content=item.content,
            category=item.category or NONE_LISTED,
            tags=", ".join(item.tags) or NONE_LISTED,
            existing_categories=", ".join(self.store.list_categories()) or NONE_LISTED,
            existing_tags=", ".join(self.store.list_tags()) or NONE_LISTED,
            neighbors=self._describe_neighbors(neighbors),
        )

        response = await self.retry.run(
            self.connector.generate,
            prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            json_mode=True,
        )
        try:
            output = parse_model_output(response.content, OrganizationOutput)
        except MalformedModelOutput as e:
            logger.warning(f"Malformed organization output for {item.id}: {e.detail}")
            return OrganizationResult(knowledge_item_id=item.id)

        neighbor_ids = {n.id for n in neighbors}
        relations = []
        for suggestion in output.suggested_relations:
            if suggestion.target_id not in neighbor_ids:
                logger.debug(f"Dropping relation to unknown item {suggestion.target_id}")
                continue
            relations.append(
                Relation(
                    source_id=item.id,
                    target_id=suggestion.target_id,
                    relation_type=suggestion.relation_type,
                    strength=suggestion.strength,
                    reason=suggestion.reason,
                )
            )

        result = OrganizationResult(
            knowledge_item_id=item.id,
            suggested_categories=[
                CategorySuggestion(**c.model_dump()) for c in output.suggested_categories
            ],
            suggested_tags=[TagSuggestion(**t.model_dump()) for t in output.suggested_tags],
            suggested_relations=relations,
        )
        logger.info(
            f"Organized {item.id}: {len(result.suggested_categories)} categories, "
            f"{len(result.suggested_tags)} tags, {len(relations)} relations"
        )
        return result

    async def apply(
        self,
        result: OrganizationResult,
        apply_categories: bool = True,
        apply_tags: bool = True,
        apply_relations: bool = True,
    ) -> bool:
        """Write suggestions onto the item.

        Category is the most confident suggestion, tags the top max_tags by
        confidence, relations the top max_relations by strength. Applied
        relations replace the stored list; an empty suggestion list leaves it
        untouched.

        Returns:
            False if the item no longer exists
        """
        item = self.store.get(result.knowledge_item_id)
        if item is None:
            logger.warning(f"Cannot apply organization, item {result.knowledge_item_id} is gone")
            return False

        if apply_categories and result.suggested_categories:
            best = max(result.suggested_categories, key=lambda c: c.confidence)
            item.category = best.name

        if apply_tags and result.suggested_tags:
            ranked = sorted(result.suggested_tags, key=lambda t: t.confidence, reverse=True)
            item.tags = normalize_tags([t.name for t in ranked[: self.config.max_tags]])

        if apply_relations and result.suggested_relations:
            own = [r for r in result.suggested_relations if r.source_id == item.id]
            ranked = sorted(own, key=lambda r: r.strength, reverse=True)
            item.metadata = {
                **item.metadata,
                "relations": [
                    r.model_dump() for r in ranked[: self.config.max_relations]
                ],
            }

        applied = await self.knowledge_service.update(item)
        if applied:
            logger.info(f"Applied organization to {item.id}")
        return applied

    async def batch_organize(self, item_ids: list[str], auto_apply: bool = False) -> BatchResult:
        """Organize many items; one item's failure does not stop the rest."""
        batch = BatchResult()

        for item_id in item_ids:
            try:
                result = await self.organize(item_id)
                applied = await self.apply(result) if auto_apply else False
                batch.record_success(
                    item_id,
                    {
                        "categories": len(result.suggested_categories),
                        "tags": len(result.suggested_tags),
                        "relations": len(result.suggested_relations),
                        "applied": applied,
                    },
                )
            except Exception as e:
                logger.error(f"Organization failed for {item_id}: {e}")
                batch.record_failure(item_id, str(e))

        logger.info(
            f"Batch organization finished: {batch.success}/{batch.processed} succeeded, "
            f"{batch.failed} failed"
        )
        return batch

    def build_knowledge_graph(self, published_only: bool = True) -> KnowledgeGraph:
        items = self.store.all_items(is_published=True if published_only else None)
        return build_knowledge_graph(items)

    async def analyze_structure(self, include_suggestions: bool = True) -> StructureReport:
        """Taxonomy statistics plus optional model suggestions.

        Malformed suggestion output yields empty suggestions; provider errors
        propagate.
        """
        report = analyze_structure(self.store.all_items())
        if not include_suggestions or report.total_items == 0:
            return report

        distribution = "\n".join(
            f"- {name}: {count}" for name, count in report.category_distribution.items()
        )
        prompt = KnowledgePrompts.STRUCTURE_REVIEW.format(
            total_items=report.total_items,
            category_distribution=distribution or NONE_LISTED,
            all_tags=", ".join(self.store.list_tags()) or NONE_LISTED,
        )
        response = await self.retry.run(
            self.connector.generate,
            prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            json_mode=True,
        )
        try:
            report.suggestions = parse_model_output(response.content, StructureSuggestions)
        except MalformedModelOutput as e:
            logger.warning(f"Malformed structure suggestions: {e.detail}")
        return report

    @staticmethod
    def _describe_neighbors(neighbors: list[KnowledgeItem]) -> str:
        if not neighbors:
            return NONE_LISTED
        return "\n".join(
            f"- ID: {n.id} | 標題: {n.title} | 分類: {n.category or NONE_LISTED} | "
            f"內容: {n.content[:100]}"
            for n in neighbors
        )
