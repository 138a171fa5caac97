"""Pytest configuration and fixtures for the test suite.

Provides:
- unit / integration markers
- Temporary SQLite-backed stores
- Fake generation connectors and scripted embeddings
"""

import logging

import pytest

from helpers import FakeConnector, ScriptedEmbeddingsProvider
from replyloop.core.services import build_services
from replyloop.embeddings.gateway import EmbeddingGateway
from replyloop.lib.config import EngineConfig, ProviderConfig, StorageConfig
from replyloop.storage.knowledge_service import KnowledgeService
from replyloop.storage.knowledge_store import KnowledgeStore
from replyloop.storage.message_store import MessageStore
from replyloop.storage.sqlite_store import SQLiteStore
from replyloop.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)

PROVIDER_IDS = ("claude", "openai", "google", "llama")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")


@pytest.fixture
def db(tmp_path):
    return SQLiteStore(str(tmp_path / "replyloop-test.db"))


@pytest.fixture
def knowledge_store(db):
    return KnowledgeStore(db)


@pytest.fixture
def message_store(db):
    return MessageStore(db)


@pytest.fixture
def vector_store(db):
    return VectorStore(db)


@pytest.fixture
def embeddings():
    return ScriptedEmbeddingsProvider()


@pytest.fixture
def gateway(embeddings, vector_store, knowledge_store):
    return EmbeddingGateway(embeddings, vector_store, knowledge_store)


@pytest.fixture
def knowledge_service(knowledge_store, vector_store, gateway):
    return KnowledgeService(knowledge_store, vector_store, gateway)


@pytest.fixture
def engine_config(tmp_path):
    """Configuration with one provider per routing tier and a temp database."""
    config = EngineConfig(
        providers=[ProviderConfig(provider_id=pid, model_name=f"{pid}-model") for pid in PROVIDER_IDS],
        storage=StorageConfig(sqlite_path=str(tmp_path / "engine.db")),
    )
    return config


@pytest.fixture
def connectors():
    """One fake connector per tier provider, all answering with a short reply."""
    return {pid: FakeConnector(pid, replies=[f"{pid} 回覆。"]) for pid in PROVIDER_IDS}


@pytest.fixture
def services(engine_config, connectors, embeddings):
    return build_services(engine_config, connectors=connectors, embeddings_provider=embeddings)
