"""Unit tests for KnowledgeService embedding maintenance."""

import pytest

from replyloop.lib.errors import NotFoundError
from replyloop.models.knowledge import KnowledgeItem

pytestmark = pytest.mark.unit


def make_item(**overrides):
    fields = {"title": "退貨政策", "content": "七天內可退貨", "category": "政策信息", "tags": ["退貨"]}
    fields.update(overrides)
    return KnowledgeItem(**fields)


@pytest.mark.asyncio
async def test_create_stores_and_embeds(knowledge_service, knowledge_store, vector_store):
    item = await knowledge_service.create(make_item())

    assert knowledge_store.get(item.id) is not None
    assert vector_store.get_by_source(item.id, "knowledge_item") is not None


@pytest.mark.asyncio
async def test_create_keeps_item_when_embedding_fails(
    knowledge_service, knowledge_store, vector_store, embeddings
):
    embeddings.fail = True

    item = await knowledge_service.create(make_item())

    assert knowledge_store.get(item.id) is not None
    assert vector_store.get_by_source(item.id, "knowledge_item") is None


@pytest.mark.asyncio
async def test_update_reembeds_only_when_text_changes(knowledge_service, embeddings):
    item = await knowledge_service.create(make_item())
    assert len(embeddings.calls) == 1

    assert await knowledge_service.update(item.model_copy(update={"is_published": True}))
    assert len(embeddings.calls) == 1

    assert await knowledge_service.update(item.model_copy(update={"content": "十四天內可退貨"}))
    assert len(embeddings.calls) == 2
    assert "十四天內可退貨" in embeddings.calls[-1][0]


@pytest.mark.asyncio
async def test_update_repairs_missing_embedding(knowledge_service, vector_store, embeddings):
    embeddings.fail = True
    item = await knowledge_service.create(make_item())
    embeddings.fail = False

    assert await knowledge_service.update(item.model_copy(update={"is_published": True}))

    assert vector_store.get_by_source(item.id, "knowledge_item") is not None


@pytest.mark.asyncio
async def test_update_missing_item_returns_false(knowledge_service):
    assert await knowledge_service.update(make_item()) is False


@pytest.mark.asyncio
async def test_delete_removes_embedding(knowledge_service, vector_store):
    item = await knowledge_service.create(make_item())

    assert knowledge_service.delete(item.id) is True
    assert vector_store.get_by_source(item.id, "knowledge_item") is None
    assert knowledge_service.delete(item.id) is False


def test_get_missing_raises(knowledge_service):
    with pytest.raises(NotFoundError) as exc_info:
        knowledge_service.get("nope")
    assert exc_info.value.entity_id == "nope"
