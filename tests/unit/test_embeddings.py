"""Unit tests for embeddings providers, factory and gateway."""

import json

import httpx
import pytest

from replyloop.embeddings.factory import create_embeddings_provider
from replyloop.embeddings.provider import MockEmbeddingsProvider, RemoteEmbeddingsProvider
from replyloop.lib.config import EmbeddingsConfig
from replyloop.lib.errors import ProviderError, ValidationError
from replyloop.models.conversation import Message
from replyloop.models.knowledge import KnowledgeItem

pytestmark = pytest.mark.unit


def remote(handler):
    return RemoteEmbeddingsProvider(
        api_key="sk-test",
        model="text-embedding-3-small",
        base_url="https://embeddings.test/v1/",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_remote_provider_orders_by_index():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "data": [
                    {"index": 1, "embedding": [0.0, 1.0]},
                    {"index": 0, "embedding": [1.0, 0.0]},
                ]
            },
        )

    provider = remote(handler)
    vectors = await provider.embed(["first", "second"])
    await provider.close()

    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert seen["url"] == "https://embeddings.test/v1/embeddings"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {"model": "text-embedding-3-small", "input": ["first", "second"]}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, text="overloaded"),
        lambda request: httpx.Response(200, json={"unexpected": True}),
        lambda request: httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]}),
    ],
    ids=["http-error", "bad-shape", "wrong-count"],
)
async def test_remote_provider_errors_become_provider_error(handler):
    provider = remote(handler)
    with pytest.raises(ProviderError):
        await provider.embed(["a", "b"])
    await provider.close()


@pytest.mark.asyncio
async def test_remote_provider_connection_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = remote(handler)
    with pytest.raises(ProviderError) as exc_info:
        await provider.embed(["a"])
    assert exc_info.value.provider == "remote"
    await provider.close()


@pytest.mark.asyncio
async def test_mock_provider_is_deterministic():
    provider = MockEmbeddingsProvider(dimensions=8)
    first, second, other = await provider.embed(["退貨", "退貨", "運費"])

    assert len(first) == 8
    assert first == second
    assert first != other
    assert all(-1.0 <= v <= 1.0 for v in first)


def test_factory(monkeypatch):
    monkeypatch.setenv("TEST_EMBED_KEY", "sk-test")
    provider = create_embeddings_provider(
        EmbeddingsConfig(provider="remote", api_key_env="TEST_EMBED_KEY")
    )
    assert isinstance(provider, RemoteEmbeddingsProvider)

    mock = create_embeddings_provider(EmbeddingsConfig(provider="mock", dimensions=16))
    assert isinstance(mock, MockEmbeddingsProvider)
    assert mock.dimensions == 16

    with pytest.raises(ValueError):
        create_embeddings_provider(EmbeddingsConfig(provider="bogus"))


def test_factory_requires_key_for_remote(monkeypatch):
    monkeypatch.delenv("TEST_EMBED_KEY", raising=False)
    with pytest.raises(ValueError, match="TEST_EMBED_KEY"):
        create_embeddings_provider(
            EmbeddingsConfig(provider="remote", api_key_env="TEST_EMBED_KEY")
        )


@pytest.mark.asyncio
async def test_gateway_rejects_empty_text(gateway, embeddings):
    with pytest.raises(ValidationError):
        await gateway.embed("   ")
    assert embeddings.calls == []


@pytest.mark.asyncio
async def test_gateway_propagates_provider_error(gateway, embeddings):
    embeddings.fail = True
    with pytest.raises(ProviderError):
        await gateway.embed("退貨")


@pytest.mark.asyncio
async def test_embed_knowledge_item_and_message(gateway, vector_store, embeddings):
    embeddings.vectors["退貨"] = [1.0, 0.0, 0.0]
    item = KnowledgeItem(title="退貨政策", content="七天內", category="政策信息", tags=["退貨"])
    message = Message(customer_id="c1", direction="inbound", content="想退貨")

    record = await gateway.embed_knowledge_item(item)
    await gateway.embed_message(message)

    assert record.vector == [1.0, 0.0, 0.0]
    assert record.model == "scripted-embedding"
    assert record.metadata == {"title": "退貨政策", "category": "政策信息", "tags": ["退貨"]}
    assert embeddings.calls[0] == [item.embedding_text()]
    assert vector_store.get_by_source(message.id, "message").metadata == {
        "customer_id": "c1",
        "direction": "inbound",
    }


@pytest.mark.asyncio
async def test_embed_document_keeps_text(gateway, vector_store):
    await gateway.embed_document("doc-1", "退貨須知全文", {"filename": "faq.md"})
    record = vector_store.get_by_source("doc-1", "document")
    assert record.metadata == {"filename": "faq.md", "text": "退貨須知全文"}


@pytest.mark.asyncio
async def test_batch_embed_isolates_failures(gateway, knowledge_store, vector_store):
    items = [KnowledgeItem(title=f"項目{i}", content="內容") for i in range(2)]
    for item in items:
        knowledge_store.create(item)

    result = await gateway.batch_embed_knowledge_items([items[0].id, "missing", items[1].id])

    assert (result.processed, result.success, result.failed) == (3, 2, 1)
    failed = [s for s in result.items if not s.success]
    assert failed[0].id == "missing"
    assert "not found" in failed[0].error
    assert vector_store.count("knowledge_item") == 2


@pytest.mark.asyncio
async def test_regenerate_all_reembeds_every_item(gateway, knowledge_store, vector_store, embeddings):
    for i in range(3):
        knowledge_store.create(KnowledgeItem(title=f"項目{i}", content="內容"))

    result = await gateway.regenerate_all()

    assert result.success == 3
    assert vector_store.count("knowledge_item") == 3
    assert len(embeddings.calls) == 3
