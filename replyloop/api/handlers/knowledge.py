"""Knowledge base endpoints: CRUD, search, extraction and organization."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query

from replyloop.api.dependencies import get_services
from replyloop.api.models.requests import (
    ApplyOrganizationRequest,
    ApplyOrganizationResponse,
    BatchExtractionRequest,
    BatchOrganizationRequest,
    ConversationExtractionRequest,
    CorrectionExtractionRequest,
    KnowledgeCreateRequest,
    KnowledgeSearchRequest,
    KnowledgeSearchResponse,
    KnowledgeUpdateRequest,
)
from replyloop.core.services import Services
from replyloop.feedback.knowledge_graph import StructureReport
from replyloop.lib.errors import NotFoundError
from replyloop.models.knowledge import KnowledgeItem, OrganizationResult
from replyloop.models.response import BatchResult, ExtractionOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/knowledge")


@router.post("/search", response_model=KnowledgeSearchResponse)
async def search_knowledge(
    request: KnowledgeSearchRequest, services: Services = Depends(get_services)
):
    """Semantic search, optionally narrowed by category and tags."""
    items = await services.reply_engine.search_knowledge(
        request.query,
        max_results=request.max_results,
        categories=request.categories,
        tags=request.tags,
    )
    return KnowledgeSearchResponse(items=items, total=len(items))


@router.post("/extract/conversation", response_model=ExtractionOutcome)
async def extract_from_conversation(
    request: ConversationExtractionRequest, services: Services = Depends(get_services)
):
    return await services.extraction.extract_from_conversation(request.conversation)


@router.post("/extract/correction", response_model=ExtractionOutcome)
async def extract_from_correction(
    request: CorrectionExtractionRequest, services: Services = Depends(get_services)
):
    """Learn from a human edit of an AI reply."""
    return await services.extraction.extract_from_correction(
        request.original, request.corrected, request.context, request.conversation_id
    )


@router.post("/extract/batch", response_model=BatchResult)
async def batch_extract(request: BatchExtractionRequest, services: Services = Depends(get_services)):
    return await services.extraction.batch_process_conversations(request.conversations)


@router.post("/organize/apply", response_model=ApplyOrganizationResponse)
async def apply_organization(
    request: ApplyOrganizationRequest, services: Services = Depends(get_services)
):
    applied = await services.organization.apply(
        request.result,
        apply_categories=request.apply_categories,
        apply_tags=request.apply_tags,
        apply_relations=request.apply_relations,
    )
    return ApplyOrganizationResponse(applied=applied)


@router.post("/organize/batch", response_model=BatchResult)
async def batch_organize(
    request: BatchOrganizationRequest, services: Services = Depends(get_services)
):
    return await services.organization.batch_organize(
        request.knowledge_item_ids, auto_apply=request.auto_apply
    )


@router.get("/graph")
async def knowledge_graph(
    published_only: bool = Query(True, description="Only include published items"),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Nodes and relation edges for visualisation."""
    return services.organization.build_knowledge_graph(published_only).to_dict()


@router.get("/structure", response_model=StructureReport)
async def knowledge_structure(
    include_suggestions: bool = Query(True, description="Ask the model for improvements"),
    services: Services = Depends(get_services),
):
    return await services.organization.analyze_structure(include_suggestions)


@router.get("", response_model=list[KnowledgeItem])
async def list_knowledge(
    query: str | None = Query(None, description="Substring of title or content"),
    category: list[str] | None = Query(None),
    tag: list[str] | None = Query(None),
    source: str | None = Query(None),
    is_published: bool | None = Query(None),
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
):
    """Keyword listing with filters and pagination, newest first."""
    return services.knowledge_store.search(
        query=query,
        categories=category,
        tags=tag,
        source=source,
        is_published=is_published,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=KnowledgeItem, status_code=201)
async def create_knowledge(
    request: KnowledgeCreateRequest, services: Services = Depends(get_services)
):
    item = KnowledgeItem(**request.model_dump())
    return await services.knowledge_service.create(item)


@router.get("/{item_id}", response_model=KnowledgeItem)
async def get_knowledge(item_id: str, services: Services = Depends(get_services)):
    return services.knowledge_service.get(item_id)


@router.patch("/{item_id}", response_model=KnowledgeItem)
async def update_knowledge(
    item_id: str, request: KnowledgeUpdateRequest, services: Services = Depends(get_services)
):
    """Update the given fields and refresh the embedding if the indexed text changed."""
    item = services.knowledge_service.get(item_id)
    updated = item.model_copy(update=request.model_dump(exclude_unset=True, exclude_none=True))
    # Re-validate so tags are normalized like on create
    updated = KnowledgeItem.model_validate(updated.model_dump())
    if not await services.knowledge_service.update(updated):
        raise NotFoundError("knowledge_item", item_id)
    return services.knowledge_service.get(item_id)


@router.delete("/{item_id}", status_code=204)
async def delete_knowledge(item_id: str, services: Services = Depends(get_services)):
    if not services.knowledge_service.delete(item_id):
        raise NotFoundError("knowledge_item", item_id)


@router.post("/{item_id}/organize", response_model=OrganizationResult)
async def organize_knowledge_item(item_id: str, services: Services = Depends(get_services)):
    """Suggest categories, tags and relations without applying them."""
    return await services.organization.organize(item_id)
