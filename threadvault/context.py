"""
Process context for ThreadVault.

A ``VaultContext`` is built once at startup and handed to whatever needs the
store, the embedding provider or the LLM provider. Providers are created
lazily on first access, exactly once per context, and can be replaced
explicitly (tests, alternate backends).
"""

from typing import Optional

from loguru import logger

from .assistants.models.abstracts import AbstractLLMProvider
from .assistants.models.anthropic import AnthropicProvider
from .config.settings import Settings, load_settings
from .core.store import TurnStore
from .memory.embeddings import BaseEmbeddingProvider, create_embedding_provider
from .memory.retrieval import RetrievalService
from .workflows.dialogue import DialogueOrchestrator


class VaultContext:
    """Holds the shared store and providers for one process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[TurnStore] = None,
    ):
        self.settings = settings or load_settings()
        self.store = store or TurnStore(self.settings.db_path)
        self._embedding_provider: Optional[BaseEmbeddingProvider] = None
        self._llm_provider: Optional[AbstractLLMProvider] = None

    @property
    def embedding_provider(self) -> BaseEmbeddingProvider:
        """The embedding provider, built from settings on first access."""
        if self._embedding_provider is None:
            self._embedding_provider = create_embedding_provider(
                self.settings.embedding_config()
            )
        return self._embedding_provider

    def set_embedding_provider(self, provider: BaseEmbeddingProvider) -> None:
        """Replace the embedding provider."""
        logger.info(f"Embedding provider overridden with {provider.name}")
        self._embedding_provider = provider

    @property
    def llm_provider(self) -> AbstractLLMProvider:
        """The LLM provider, built from settings on first access."""
        if self._llm_provider is None:
            self._llm_provider = AnthropicProvider(self.settings.anthropic_api_key)
        return self._llm_provider

    def set_llm_provider(self, provider: AbstractLLMProvider) -> None:
        """Replace the LLM provider."""
        logger.info(f"LLM provider overridden with {provider.name}")
        self._llm_provider = provider

    def retrieval_service(self) -> RetrievalService:
        """A retrieval service over this context's store and embedding provider."""
        return RetrievalService(self.embedding_provider, self.store)

    def dialogue_orchestrator(self) -> DialogueOrchestrator:
        """A dialogue orchestrator wired to this context's collaborators."""
        return DialogueOrchestrator(
            self.store, self.retrieval_service(), self.llm_provider
        )
