"""Reply generation and message log endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from replyloop.api.dependencies import get_services
from replyloop.api.models.requests import (
    EvaluateReplyRequest,
    EvaluateReplyResponse,
    MessageCreateRequest,
    ReplyRequest,
)
from replyloop.core.services import Services
from replyloop.models.conversation import Message
from replyloop.models.response import GenerationResult

logger = logging.getLogger(__name__)

router = APIRouter()


class MessageSearchRequest(BaseModel):
    query: str
    max_results: int = Field(5, ge=1, le=50)
    min_similarity: float | None = Field(None, ge=-1.0, le=1.0)


class MessageMatch(BaseModel):
    message: Message
    similarity: float


@router.post("/v1/replies", response_model=GenerationResult)
async def generate_reply(
    request: ReplyRequest,
    response: Response,
    services: Services = Depends(get_services),
):
    """Generate a knowledge-grounded reply to a customer message."""
    result = await services.reply_engine.generate_reply(
        customer_id=request.customer_id,
        message_id=request.message_id,
        query=request.query,
        max_results=request.max_results,
        temperature=request.temperature,
        max_tokens=request.max_tokens,
    )
    response.headers["X-Provider"] = str(result.metadata.get("provider", ""))
    return result


@router.post("/v1/replies/evaluate", response_model=EvaluateReplyResponse)
async def evaluate_reply(request: EvaluateReplyRequest, services: Services = Depends(get_services)):
    """Compare a generated reply with the reply a human agent actually sent."""
    similarity = services.reply_engine.evaluate_reply(request.reply, request.human_reply)
    return EvaluateReplyResponse(similarity=similarity)


@router.post("/v1/messages", response_model=Message, status_code=201)
async def append_message(request: MessageCreateRequest, services: Services = Depends(get_services)):
    """Append to the message log, optionally indexing it for similarity search."""
    fields = request.model_dump(exclude={"embed", "id"})
    message = Message(**fields) if request.id is None else Message(id=request.id, **fields)
    if services.message_store.get(message.id) is not None:
        raise HTTPException(status_code=409, detail=f"Message already exists: {message.id}")

    # Embed first: a failed embedding must leave no stored message behind
    if request.embed:
        await services.gateway.embed_message(message)
    services.message_store.append(message)
    return message


@router.post("/v1/messages/search", response_model=list[MessageMatch])
async def search_messages(request: MessageSearchRequest, services: Services = Depends(get_services)):
    min_similarity = (
        services.config.retrieval.min_similarity
        if request.min_similarity is None
        else request.min_similarity
    )
    candidates = await services.retrieval.search_messages(
        request.query, k=request.max_results, min_similarity=min_similarity
    )
    return [MessageMatch(message=c.entity, similarity=c.similarity) for c in candidates]
