"""
Vector similarity search over stored turn embeddings.

``VectorQuery`` describes a search as a set of independent, conjunctive
predicates and renders them as a parameterized WHERE clause.
``SimilarityStore`` fetches the matching embedded turns and ranks them by
cosine similarity.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from ..core.models import Role, TurnSearchResult
from ..core.store import TurnStore, to_db_timestamp

MAX_K = 100


@dataclass(frozen=True)
class VectorQuery:
    """
    A top-K similarity query with optional filters.

    Attributes:
        k: Number of results, 1 to 100
        thread_id: Exact thread match
        role: Exact role match
        start_date: Inclusive lower bound on creation time
        end_date: Inclusive upper bound on creation time
        tag_ids: Owning thread carries at least one of these tags
        provider_name: Only compare against vectors from this provider
        dimensions: Only compare against vectors of this length
    """

    k: int = 10
    thread_id: Optional[str] = None
    role: Optional[Role] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    tag_ids: Optional[Tuple[str, ...]] = None
    provider_name: Optional[str] = None
    dimensions: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.k, bool) or not isinstance(self.k, int):
            raise ValueError(f"k must be an integer, got {self.k!r}")
        if not 1 <= self.k <= MAX_K:
            raise ValueError(f"k must be between 1 and {MAX_K}, got {self.k}")
        if self.tag_ids is not None and not isinstance(self.tag_ids, tuple):
            object.__setattr__(self, "tag_ids", tuple(self.tag_ids))

    def to_sql(self) -> Tuple[str, Tuple[Any, ...]]:
        """
        Render the filters as a WHERE clause over ``turns t``.

        Returns:
            Tuple[str, Tuple[Any, ...]]: Clause text with ``?`` placeholders
            and the matching parameters
        """
        conditions = ["t.embedding IS NOT NULL"]
        params: List[Any] = []

        if self.thread_id:
            conditions.append("t.thread_id = ?")
            params.append(self.thread_id)

        if self.role:
            conditions.append("t.role = ?")
            params.append(Role(self.role).value)

        if self.start_date:
            conditions.append("t.created_at >= ?")
            params.append(to_db_timestamp(self.start_date))

        if self.end_date:
            conditions.append("t.created_at <= ?")
            params.append(to_db_timestamp(self.end_date))

        if self.tag_ids:
            placeholders = ", ".join("?" for _ in self.tag_ids)
            conditions.append(
                "EXISTS (SELECT 1 FROM thread_tags tt "
                "WHERE tt.thread_id = t.thread_id "
                f"AND tt.tag_id IN ({placeholders}))"
            )
            params.extend(self.tag_ids)

        return " AND ".join(conditions), tuple(params)


class SimilarityStore:
    """Nearest-neighbour search over the embeddings held by a TurnStore."""

    def __init__(self, store: TurnStore):
        self.store = store

    async def search(
        self, query_embedding: Sequence[float], query: VectorQuery
    ) -> List[TurnSearchResult]:
        """
        Return the top-K turns by cosine similarity.

        Only turns that carry an embedding are considered. Embeddings from a
        different provider or of a different length are skipped and must be
        regenerated before they can match again.

        Ranking is exhaustive: every embedded turn the filters admit is
        loaded and scored in memory before the top K are cut, so narrow
        searches over large vaults with thread, role, date or tag filters.

        Args:
            query_embedding: Query vector
            query: Filters and K

        Returns:
            List[TurnSearchResult]: Sorted by similarity descending, ties by
            turn id ascending
        """
        candidates = await self.store.query_embedded_turns(query)
        dimensions = query.dimensions or len(query_embedding)

        comparable = []
        stale = 0
        for candidate in candidates:
            if len(candidate.embedding) != dimensions or (
                query.provider_name and candidate.provider_name != query.provider_name
            ):
                stale += 1
                continue
            comparable.append(candidate)

        if stale:
            logger.warning(
                f"Skipped {stale} turn embeddings from another provider or dimension; "
                f"re-embed them to include them in search"
            )

        if not comparable:
            return []

        matrix = np.asarray([c.embedding for c in comparable], dtype=float)
        query_vec = np.asarray(query_embedding, dtype=float)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vec)
        with np.errstate(divide="ignore", invalid="ignore"):
            similarities = np.where(norms > 0, matrix @ query_vec / norms, 0.0)
        similarities = np.clip(similarities, 0.0, 1.0)

        results = [
            TurnSearchResult(
                turn=candidate.turn,
                similarity=float(similarity),
                thread=candidate.thread,
            )
            for candidate, similarity in zip(comparable, similarities)
        ]
        results.sort(key=lambda r: (-r.similarity, r.turn.id))

        logger.debug(f"Similarity search matched {len(results)} of {len(candidates)} turns")
        return results[: query.k]
