"""
Embedding providers for turn retrieval.

This module provides a local sentence-transformers embedding and two remote
API embeddings (OpenAI and VoyageAI) behind one contract, plus the factory
that builds a provider from configuration.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
import numpy as np
from loguru import logger
from openai import APIStatusError, AsyncOpenAI

from ..core.errors import (
    EmbeddingDimensionError,
    EmbeddingProviderError,
    ProviderConfigurationError,
)

DEFAULT_MAX_TOKENS = 8192
CHARS_PER_TOKEN = 4


class EmbeddingProviderType(str, Enum):
    """Available embedding providers."""

    LOCAL = "local"
    OPENAI = "openai"
    VOYAGEAI = "voyageai"


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration accepted by ``create_embedding_provider``."""

    provider: Union[EmbeddingProviderType, str] = EmbeddingProviderType.LOCAL
    api_key: Optional[str] = None
    model: Optional[str] = None


def _resolve_dimensions(
    model_name: str, known: Dict[str, int], dimensions: Optional[int]
) -> int:
    if dimensions is not None:
        return dimensions
    if model_name not in known:
        raise ProviderConfigurationError(
            f"Unknown embedding dimensions for model '{model_name}'; "
            f"pass dimensions explicitly"
        )
    return known[model_name]


class BaseEmbeddingProvider(ABC):
    """
    Abstract base class for embedding providers.

    Subclasses declare ``name`` and ``dimensions`` and implement ``embed``.
    The base supplies input truncation, a sequential ``embed_batch`` and
    the vector length check every implementation runs its output through.
    """

    name: str
    dimensions: int

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Compute the embedding of a single text."""

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed several texts.

        Default implementation embeds each text in order, one at a time, so
        the i-th vector always belongs to the i-th text.

        Args:
            texts: Texts to embed

        Returns:
            List[List[float]]: One vector per input text
        """
        embeddings = []
        for text in texts:
            embeddings.append(await self.embed(text))
        return embeddings

    def truncate_text(self, text: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> str:
        """Cut text to roughly ``max_tokens`` tokens (4 characters per token)."""
        max_chars = max_tokens * CHARS_PER_TOKEN
        if len(text) <= max_chars:
            return text
        return text[:max_chars]

    def _as_vector(self, values: Any) -> List[float]:
        vector = np.asarray(values, dtype=float).ravel().tolist()
        if len(vector) != self.dimensions:
            raise EmbeddingDimensionError(self.dimensions, len(vector))
        return vector

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, dimensions={self.dimensions})"


class LocalEmbeddingProvider(BaseEmbeddingProvider):
    """
    In-process sentence-transformers embedding.

    The model is loaded on first use. Concurrent first calls all await the
    same in-flight load.
    """

    DEFAULT_MODEL = "BAAI/bge-large-en-v1.5"
    MODEL_DIMENSIONS = {
        "BAAI/bge-large-en-v1.5": 1024,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-small-en-v1.5": 384,
        "all-MiniLM-L6-v2": 384,
        "all-mpnet-base-v2": 768,
        "sentence-transformers/all-MiniLM-L6-v2": 384,
    }

    def __init__(
        self,
        model_name: Optional[str] = None,
        dimensions: Optional[int] = None,
        max_seq_length: int = 512,
    ):
        self.model_name = model_name or self.DEFAULT_MODEL
        self.dimensions = _resolve_dimensions(
            self.model_name, self.MODEL_DIMENSIONS, dimensions
        )
        self.name = f"local:{self.model_name}"
        self.max_seq_length = max_seq_length
        self._model = None
        self._init_task: Optional[asyncio.Future] = None

    async def _ensure_initialized(self):
        if self._model is not None:
            return self._model

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())

        try:
            await asyncio.shield(self._init_task)
        except Exception:
            # Let the next caller try again after a failed load
            self._init_task = None
            raise
        return self._model

    async def _initialize(self) -> None:
        logger.info(f"Loading sentence transformer model: {self.model_name}")
        model = await asyncio.to_thread(self._load_model)

        reported = model.get_sentence_embedding_dimension()
        if reported is not None and reported != self.dimensions:
            raise ProviderConfigurationError(
                f"Model {self.model_name} produces {reported}-dimensional vectors, "
                f"expected {self.dimensions}"
            )

        self._model = model
        logger.info(f"Loaded sentence transformer model: {self.model_name}")

    def _load_model(self):
        from sentence_transformers import SentenceTransformer

        model = SentenceTransformer(self.model_name)
        model.max_seq_length = self.max_seq_length
        return model

    async def embed(self, text: str) -> List[float]:
        model = await self._ensure_initialized()
        truncated = self.truncate_text(text)
        embedding = await asyncio.to_thread(
            model.encode, truncated, convert_to_numpy=True, normalize_embeddings=True
        )
        return self._as_vector(embedding)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        model = await self._ensure_initialized()
        truncated = [self.truncate_text(text) for text in texts]
        embeddings = await asyncio.to_thread(
            model.encode, truncated, convert_to_numpy=True, normalize_embeddings=True
        )
        return [self._as_vector(embedding) for embedding in embeddings]


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """OpenAI embeddings API provider."""

    DEFAULT_MODEL = "text-embedding-3-large"
    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(
        self,
        api_key: str,
        model_name: Optional[str] = None,
        dimensions: Optional[int] = None,
        client: Any = None,
    ):
        self.model_name = model_name or self.DEFAULT_MODEL
        self.dimensions = _resolve_dimensions(
            self.model_name, self.MODEL_DIMENSIONS, dimensions
        )
        self.name = f"openai:{self.model_name}"

        if client is None:
            client = AsyncOpenAI(api_key=api_key)
        self.client = client

    async def _create(self, payload: Union[str, List[str]]) -> List[List[float]]:
        try:
            response = await self.client.embeddings.create(
                model=self.model_name, input=payload
            )
        except APIStatusError as e:
            logger.error(f"OpenAI embedding API error: {e.status_code}")
            raise EmbeddingProviderError("openai", e.status_code, e.message) from e

        data = sorted(response.data, key=lambda item: item.index)
        return [self._as_vector(item.embedding) for item in data]

    async def embed(self, text: str) -> List[float]:
        vectors = await self._create(self.truncate_text(text))
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        return await self._create([self.truncate_text(text) for text in texts])


class VoyageAIEmbeddingProvider(BaseEmbeddingProvider):
    """VoyageAI embeddings HTTP API provider."""

    DEFAULT_MODEL = "voyage-3"
    BASE_URL = "https://api.voyageai.com/v1"
    MODEL_DIMENSIONS = {
        "voyage-3": 1024,
        "voyage-3-large": 1024,
        "voyage-3-lite": 512,
        "voyage-3.5": 1024,
        "voyage-3.5-lite": 1024,
        "voyage-code-3": 1024,
    }

    def __init__(
        self,
        api_key: str,
        model_name: Optional[str] = None,
        dimensions: Optional[int] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model_name = model_name or self.DEFAULT_MODEL
        self.dimensions = _resolve_dimensions(
            self.model_name, self.MODEL_DIMENSIONS, dimensions
        )
        self.name = f"voyageai:{self.model_name}"
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._api_key = api_key
        self._transport = transport

    async def _post(self, payload: Union[str, List[str]]) -> List[List[float]]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        async with httpx.AsyncClient(timeout=None, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/embeddings",
                headers=headers,
                json={"model": self.model_name, "input": payload},
            )

        if not response.is_success:
            logger.error(
                f"VoyageAI embedding API error: {response.status_code} {response.text}"
            )
            detail = " ".join(
                part for part in (response.reason_phrase, response.text.strip()) if part
            )
            raise EmbeddingProviderError("voyageai", response.status_code, detail)

        data = sorted(response.json()["data"], key=lambda item: item.get("index", 0))
        return [self._as_vector(item["embedding"]) for item in data]

    async def embed(self, text: str) -> List[float]:
        vectors = await self._post(self.truncate_text(text))
        return vectors[0]

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        return await self._post([self.truncate_text(text) for text in texts])


def create_embedding_provider(config: EmbeddingConfig) -> BaseEmbeddingProvider:
    """
    Factory function to create embedding providers.

    Args:
        config: Provider selection, API key and optional model override

    Returns:
        BaseEmbeddingProvider: Configured embedding provider

    Raises:
        ProviderConfigurationError: Unknown provider, or a remote provider
            selected without an API key
    """
    raw = config.provider
    try:
        provider = EmbeddingProviderType(
            raw.value if isinstance(raw, EmbeddingProviderType) else str(raw).strip().lower()
        )
    except ValueError:
        raise ProviderConfigurationError(f"Unknown embedding provider: {raw}")

    if provider == EmbeddingProviderType.LOCAL:
        instance: BaseEmbeddingProvider = LocalEmbeddingProvider(config.model)

    elif provider == EmbeddingProviderType.OPENAI:
        if not config.api_key:
            raise ProviderConfigurationError("OpenAI API key required")
        instance = OpenAIEmbeddingProvider(config.api_key, config.model)

    else:
        if not config.api_key:
            raise ProviderConfigurationError("VoyageAI API key required")
        instance = VoyageAIEmbeddingProvider(config.api_key, config.model)

    logger.info(f"Created embedding provider {instance.name} ({instance.dimensions} dims)")
    return instance
