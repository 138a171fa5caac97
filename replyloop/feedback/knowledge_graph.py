"""Knowledge graph export and taxonomy statistics.

Relations are stored denormalized inside each source item's metadata. This
module rebuilds them as an explicit adjacency index keyed by item id.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from replyloop.feedback.parsing import StructureSuggestions
from replyloop.models.knowledge import KnowledgeItem, Relation

logger = logging.getLogger(__name__)


@dataclass
class KnowledgeGraph:
    nodes: list[dict[str, Any]] = field(default_factory=list)
    adjacency: dict[str, list[Relation]] = field(default_factory=dict)
    # target id -> relations pointing at it
    reverse_adjacency: dict[str, list[Relation]] = field(default_factory=dict)

    @property
    def edges(self) -> list[Relation]:
        return [relation for relations in self.adjacency.values() for relation in relations]

    def outgoing(self, item_id: str) -> list[Relation]:
        return self.adjacency.get(item_id, [])

    def incoming(self, item_id: str) -> list[Relation]:
        return self.reverse_adjacency.get(item_id, [])

    def degree(self, item_id: str) -> int:
        return len(self.outgoing(item_id)) + len(self.incoming(item_id))

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": self.nodes,
            "edges": [
                {
                    "source": r.source_id,
                    "target": r.target_id,
                    "type": r.relation_type,
                    "strength": r.strength,
                }
                for r in self.edges
            ],
        }


def build_knowledge_graph(items: list[KnowledgeItem]) -> KnowledgeGraph:
    """Graph over the given items. Edges to items outside the set are dropped."""
    known_ids = {item.id for item in items}
    graph = KnowledgeGraph()

    for item in items:
        graph.nodes.append(
            {"id": item.id, "label": item.title, "category": item.category, "tags": item.tags}
        )
        relations = []
        for relation in item.relations:
            if relation.target_id in known_ids and relation.target_id != item.id:
                relations.append(relation)
                graph.reverse_adjacency.setdefault(relation.target_id, []).append(relation)
        graph.adjacency[item.id] = relations

    logger.debug(f"Built knowledge graph: {len(graph.nodes)} nodes, {len(graph.edges)} edges")
    return graph


class ConnectedItem(BaseModel):
    id: str
    title: str
    connections: int


class TagCount(BaseModel):
    tag: str
    count: int


class StructureReport(BaseModel):
    total_items: int
    category_distribution: dict[str, int]
    top_tags: list[TagCount]
    unused_tags: list[str]
    relation_type_distribution: dict[str, int]
    isolated_items: int
    most_connected: list[ConnectedItem]
    suggestions: StructureSuggestions = Field(default_factory=StructureSuggestions)


def analyze_structure(items: list[KnowledgeItem], top_tags: int = 10, top_connected: int = 5) -> StructureReport:
    """Taxonomy and connectivity statistics (no model call).

    unused_tags are tags carried by a single item only.
    """
    graph = build_knowledge_graph(items)

    categories = Counter(item.category or "uncategorized" for item in items)
    tags = Counter(tag for item in items for tag in item.tags)
    relation_types = Counter(r.relation_type for r in graph.edges)

    degrees = {item.id: graph.degree(item.id) for item in items}
    connected = sorted(
        (item for item in items if degrees[item.id] > 0),
        key=lambda item: degrees[item.id],
        reverse=True,
    )

    return StructureReport(
        total_items=len(items),
        category_distribution=dict(categories),
        top_tags=[TagCount(tag=tag, count=count) for tag, count in tags.most_common(top_tags)],
        unused_tags=sorted(tag for tag, count in tags.items() if count == 1),
        relation_type_distribution=dict(relation_types),
        isolated_items=sum(1 for degree in degrees.values() if degree == 0),
        most_connected=[
            ConnectedItem(id=item.id, title=item.title, connections=degrees[item.id])
            for item in connected[:top_connected]
        ],
    )
