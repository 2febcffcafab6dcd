"""
Global test configuration and fixtures for ThreadVault testing.

This module provides shared fixtures, fake providers and test configuration
for all test modules in the ThreadVault project.
"""

import asyncio
import os
import tempfile
from pathlib import Path

import pytest

from threadvault.config.settings import Settings
from threadvault.context import VaultContext
from threadvault.core.store import TurnStore
from threadvault.memory.retrieval import RetrievalService
from threadvault.workflows.dialogue import DialogueOrchestrator

from tests.fixtures import FakeEmbeddingProvider, ScriptedLLMProvider

# ============================================================================
# TEST ENVIRONMENT SETUP
# ============================================================================


def pytest_configure(config):
    """Register the markers used across the suite."""
    config.addinivalue_line("markers", "unit: isolated component tests")
    config.addinivalue_line("markers", "integration: multi-component workflows")
    config.addinivalue_line("markers", "memory: embedding and retrieval tests")
    config.addinivalue_line("markers", "llm: LLM provider and dialogue tests")


@pytest.fixture(scope="session", autouse=True)
def test_environment():
    """Setup test environment variables and configuration."""
    os.environ["TESTING"] = "true"
    os.environ["LOG_LEVEL"] = "DEBUG"

    # Mock API keys for testing
    test_api_keys = {
        "EMBEDDING_API_KEY": "test-embedding-key",
        "ANTHROPIC_API_KEY": "test-anthropic-key",
    }

    for key, value in test_api_keys.items():
        if key not in os.environ:
            os.environ[key] = value

    yield

    # Cleanup
    for key in test_api_keys:
        if os.environ.get(key) == test_api_keys[key]:
            del os.environ[key]


# ============================================================================
# DATABASE AND STORE FIXTURES
# ============================================================================


@pytest.fixture
def temp_db():
    """Create a temporary SQLite database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    try:
        os.unlink(db_path)
    except FileNotFoundError:
        pass


@pytest.fixture
def temp_directory():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def store(temp_db):
    """Create a TurnStore with temporary database."""
    return TurnStore(temp_db)


# ============================================================================
# PROVIDER AND SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def embedding_provider():
    """Deterministic 8-dimensional embedding provider."""
    return FakeEmbeddingProvider()


@pytest.fixture
def llm_provider():
    """LLM provider with a scripted reply."""
    return ScriptedLLMProvider()


@pytest.fixture
def retrieval_service(embedding_provider, store):
    """Retrieval service over the temporary store."""
    return RetrievalService(embedding_provider, store)


@pytest.fixture
def orchestrator(store, retrieval_service, llm_provider):
    """Dialogue orchestrator wired to fakes."""
    return DialogueOrchestrator(store, retrieval_service, llm_provider)


@pytest.fixture
def test_settings(temp_db):
    """Settings pointing at the temporary database."""
    return Settings(db_path=temp_db, anthropic_api_key="test-anthropic-key")


@pytest.fixture
def vault_context(test_settings, embedding_provider, llm_provider):
    """VaultContext with fake providers installed."""
    context = VaultContext(test_settings)
    context.set_embedding_provider(embedding_provider)
    context.set_llm_provider(llm_provider)
    return context


@pytest.fixture
def async_test_runner():
    """Utility for running async tests."""

    def run_async(coro):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    return run_async
