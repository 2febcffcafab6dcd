"""
Memory System for ThreadVault

This package provides the embedding providers, vector similarity search and
retrieval service used to ground dialogue continuations in past turns.
"""

from .embeddings import (
    BaseEmbeddingProvider,
    EmbeddingConfig,
    EmbeddingProviderType,
    LocalEmbeddingProvider,
    OpenAIEmbeddingProvider,
    VoyageAIEmbeddingProvider,
    create_embedding_provider,
)
from .retrieval import RetrievalService
from .vectorstore import SimilarityStore, VectorQuery

__all__ = [
    "BaseEmbeddingProvider",
    "EmbeddingConfig",
    "EmbeddingProviderType",
    "LocalEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "VoyageAIEmbeddingProvider",
    "create_embedding_provider",
    "RetrievalService",
    "SimilarityStore",
    "VectorQuery",
]
