# replyloop/models/knowledge.py
import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

RelationType = Literal["related", "parent", "child", "similar", "contradicts"]
RELATION_TYPES: tuple[str, ...] = ("related", "parent", "child", "similar", "contradicts")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


def normalize_tags(tags: list[str]) -> list[str]:
    """Strip, drop empties and de-duplicate while keeping first-seen order."""
    seen: set[str] = set()
    result = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.add(tag)
            result.append(tag)
    return result


class Relation(BaseModel):
    """Directed edge stored in the source item's metadata["relations"]."""

    source_id: str
    target_id: str
    relation_type: RelationType
    strength: float = Field(ge=0.0, le=1.0)
    reason: str | None = None


class KnowledgeItem(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    content: str
    category: str = ""
    tags: list[str] = []
    source: str = "manual"
    source_url: str | None = None
    is_published: bool = False
    metadata: dict[str, Any] = {}
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)

    @property
    def relations(self) -> list[Relation]:
        return [Relation.model_validate(r) for r in self.metadata.get("relations", [])]

    def embedding_text(self) -> str:
        """Text that represents this item in the vector store."""
        return (
            f"Title: {self.title}\n"
            f"Content: {self.content}\n"
            f"Category: {self.category}\n"
            f"Tags: {', '.join(self.tags)}"
        )


class ExtractedFrom(BaseModel):
    conversation_id: str
    message_ids: list[str] = []


class ExtractionResult(BaseModel):
    """Knowledge candidate mined from a transcript or a correction. Never stored as-is."""

    title: str
    content: str
    category: str
    tags: list[str] = []
    source: str
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_from: ExtractedFrom

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class CategorySuggestion(BaseModel):
    name: str
    description: str = ""
    parent_category: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)


class TagSuggestion(BaseModel):
    name: str
    description: str = ""
    confidence: float = Field(ge=0.0, le=1.0)


class OrganizationResult(BaseModel):
    knowledge_item_id: str
    suggested_categories: list[CategorySuggestion] = []
    suggested_tags: list[TagSuggestion] = []
    suggested_relations: list[Relation] = []

    def is_empty(self) -> bool:
        return not (self.suggested_categories or self.suggested_tags or self.suggested_relations)
