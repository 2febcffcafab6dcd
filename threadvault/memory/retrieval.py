"""
Retrieval service for dialogue grounding.

Embeds turns and queries, runs similarity search over the turn store and
re-ranks dialogue candidates by a blend of similarity and recency.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from ..core.errors import EmbeddingDimensionError
from ..core.models import RetrievedContext, TurnSearchResult
from ..core.schemas import SearchTurnsInput
from ..core.store import TurnStore
from .embeddings import BaseEmbeddingProvider
from .vectorstore import MAX_K, SimilarityStore, VectorQuery

SIMILARITY_WEIGHT = 0.7
RECENCY_WEIGHT = 0.3
RECENCY_DECAY_DAYS = 30.0
CANDIDATE_FACTOR = 2
SNIPPET_LENGTH = 200
SECONDS_PER_DAY = 60 * 60 * 24


def recency_score(age_in_days: float) -> float:
    """Exponential decay over a 30-day scale."""
    return math.exp(-age_in_days / RECENCY_DECAY_DAYS)


def combined_score(similarity: float, age_in_days: float) -> float:
    """Ranking score used for dialogue context."""
    return SIMILARITY_WEIGHT * similarity + RECENCY_WEIGHT * recency_score(age_in_days)


def extract_snippet(content: str, max_length: int = SNIPPET_LENGTH) -> str:
    """Return content unchanged if short enough, else its prefix plus '...'."""
    if len(content) <= max_length:
        return content
    return content[:max_length] + "..."


class RetrievalService:
    """
    Embedding and retrieval operations over the turn store.

    This is the only component that writes turn embeddings.
    """

    def __init__(
        self,
        embedding_provider: BaseEmbeddingProvider,
        store: TurnStore,
        similarity_store: Optional[SimilarityStore] = None,
    ):
        self.embedding_provider = embedding_provider
        self.store = store
        self.similarity_store = similarity_store or SimilarityStore(store)

    async def embed_turn(self, content: str) -> List[float]:
        """Embed turn content with the active provider."""
        return await self.embedding_provider.embed(content)

    async def upsert_turn_embedding(self, turn_id: str) -> None:
        """
        Compute and store the embedding of a turn, replacing any prior vector.

        Content updates must call this again; staleness is not detected.

        Args:
            turn_id: Turn to embed

        Raises:
            NotFoundError: The turn does not exist (nothing is written)
            EmbeddingDimensionError: The provider returned a vector of the
                wrong length (nothing is written)
        """
        turn = await self.store.find_turn(turn_id)
        embedding = await self.embed_turn(turn.content)

        if len(embedding) != self.embedding_provider.dimensions:
            raise EmbeddingDimensionError(
                self.embedding_provider.dimensions, len(embedding)
            )

        await self.store.update_turn_embedding(
            turn_id, embedding, self.embedding_provider.name
        )
        logger.debug(f"Stored {len(embedding)}-dim embedding for turn {turn_id}")

    async def ensure_turn_embedding(self, turn_id: str) -> bool:
        """
        Make sure a turn carries an embedding from the active provider.

        Safe to call repeatedly. Regenerates when the turn has no embedding or
        one produced by a different provider or dimension.

        Returns:
            bool: True if an embedding was (re)generated
        """
        signature = await self.store.embedding_signature(turn_id)
        if signature == (self.embedding_provider.name, self.embedding_provider.dimensions):
            return False

        await self.upsert_turn_embedding(turn_id)
        return True

    async def search_similar_turns(
        self, search: Union[SearchTurnsInput, Dict[str, Any]]
    ) -> List[TurnSearchResult]:
        """
        Embed the query and return the most similar embedded turns.

        Embedding errors propagate to the caller.

        Args:
            search: Query text, K and optional filters

        Returns:
            List[TurnSearchResult]: Turns joined with thread id and title,
            most similar first
        """
        if not isinstance(search, SearchTurnsInput):
            search = SearchTurnsInput.model_validate(search)

        query_embedding = await self.embed_turn(search.query)
        query = VectorQuery(
            k=search.k,
            thread_id=search.thread_id,
            role=search.role,
            start_date=search.start_date,
            end_date=search.end_date,
            tag_ids=tuple(search.tag_ids) if search.tag_ids else None,
            provider_name=self.embedding_provider.name,
            dimensions=self.embedding_provider.dimensions,
        )
        results = await self.similarity_store.search(query_embedding, query)
        logger.debug(f"Found {len(results)} similar turns for query: {search.query[:50]}")
        return results

    async def get_retrieved_context_for_dialogue(
        self,
        thread_id: str,
        query: str,
        k: int = 5,
        now: Optional[datetime] = None,
    ) -> List[RetrievedContext]:
        """
        Retrieve prompt-ready context from one thread.

        Fetches ``2k`` candidates by similarity, re-ranks them by
        ``0.7 * similarity + 0.3 * exp(-age_in_days / 30)`` and keeps the
        top ``k``.

        Args:
            thread_id: Thread to search within
            query: Text to match
            k: Number of context items; 0 returns nothing without searching
            now: Reference time for turn age (defaults to the current time)

        Returns:
            List[RetrievedContext]: Best first, with snippets of at most
            200 characters plus an ellipsis
        """
        if k < 0:
            raise ValueError(f"k must not be negative, got {k}")
        if k == 0:
            return []

        candidates = await self.search_similar_turns(
            SearchTurnsInput(
                query=query,
                k=min(k * CANDIDATE_FACTOR, MAX_K),
                thread_id=thread_id,
            )
        )

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        scored = []
        for result in candidates:
            age_in_days = (now - result.turn.created_at).total_seconds() / SECONDS_PER_DAY
            scored.append((combined_score(result.similarity, age_in_days), result))

        scored.sort(key=lambda item: item[0], reverse=True)

        return [
            RetrievedContext(
                turn=result.turn,
                similarity=result.similarity,
                snippet=extract_snippet(result.turn.content),
            )
            for _, result in scored[:k]
        ]
