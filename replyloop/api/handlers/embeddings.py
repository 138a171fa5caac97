"""Embedding maintenance endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from replyloop.api.dependencies import get_services
from replyloop.api.models.requests import BatchEmbeddingRequest
from replyloop.core.services import Services
from replyloop.models.response import BatchResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/embeddings")


class DocumentEmbeddingRequest(BaseModel):
    source_id: str
    text: str
    metadata: dict[str, Any] = {}


class DocumentEmbeddingResponse(BaseModel):
    source_id: str
    dimensions: int
    model: str


@router.post("/batch", response_model=BatchResult)
async def batch_embed(request: BatchEmbeddingRequest, services: Services = Depends(get_services)):
    """(Re-)embed the listed knowledge items."""
    return await services.gateway.batch_embed_knowledge_items(request.knowledge_item_ids)


@router.post("/regenerate", response_model=BatchResult)
async def regenerate_embeddings(services: Services = Depends(get_services)):
    """Re-embed the whole knowledge base, e.g. after changing the embedding model."""
    return await services.gateway.regenerate_all()


@router.post("/documents", response_model=DocumentEmbeddingResponse)
async def embed_document(
    request: DocumentEmbeddingRequest, services: Services = Depends(get_services)
):
    record = await services.gateway.embed_document(request.source_id, request.text, request.metadata)
    return DocumentEmbeddingResponse(
        source_id=record.source_id, dimensions=record.dimensions, model=record.model
    )
