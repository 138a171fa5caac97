"""Request and response bodies for the HTTP endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from replyloop.models.conversation import Conversation, Direction
from replyloop.models.knowledge import KnowledgeItem, OrganizationResult


class ReplyRequest(BaseModel):
    customer_id: str
    message_id: str
    query: str
    max_results: int | None = Field(None, ge=1, le=50)
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(None, ge=1)


class KnowledgeSearchRequest(BaseModel):
    query: str
    max_results: int | None = Field(None, ge=1, le=50)
    categories: list[str] | None = None
    tags: list[str] | None = None


class KnowledgeSearchResponse(BaseModel):
    items: list[KnowledgeItem]
    total: int


class KnowledgeCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    category: str = ""
    tags: list[str] = []
    source: str = "manual"
    source_url: str | None = None
    is_published: bool = False
    metadata: dict[str, Any] = {}


class KnowledgeUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    title: str | None = None
    content: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    source_url: str | None = None
    is_published: bool | None = None
    metadata: dict[str, Any] | None = None


class MessageCreateRequest(BaseModel):
    id: str | None = None
    customer_id: str
    direction: Direction
    content: str
    metadata: dict[str, Any] = {}
    embed: bool = False


class ConversationExtractionRequest(BaseModel):
    conversation: Conversation


class CorrectionExtractionRequest(BaseModel):
    original: str = ""
    corrected: str
    context: str = ""
    conversation_id: str = ""


class BatchExtractionRequest(BaseModel):
    conversations: list[Conversation]


class ApplyOrganizationRequest(BaseModel):
    result: OrganizationResult
    apply_categories: bool = True
    apply_tags: bool = True
    apply_relations: bool = True


class ApplyOrganizationResponse(BaseModel):
    applied: bool


class BatchOrganizationRequest(BaseModel):
    knowledge_item_ids: list[str]
    auto_apply: bool = False


class BatchEmbeddingRequest(BaseModel):
    knowledge_item_ids: list[str]


class EvaluateReplyRequest(BaseModel):
    reply: str
    human_reply: str


class EvaluateReplyResponse(BaseModel):
    similarity: float
