"""
Unit tests for the retrieval service.

Tests for:
- Recency scoring and snippet extraction
- Turn embedding writes and idempotent ensure
- Similarity search requests
- Dialogue context re-ranking
"""

import math
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from pydantic import ValidationError

from threadvault.core.errors import EmbeddingDimensionError, NotFoundError
from threadvault.core.models import Role, ThreadRef, Turn, TurnSearchResult
from threadvault.core.schemas import SearchTurnsInput
from threadvault.memory.retrieval import (
    RetrievalService,
    combined_score,
    extract_snippet,
    recency_score,
)

from tests.fixtures import FakeEmbeddingProvider, WrongSizeEmbeddingProvider

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _result(content, similarity, age_days, thread_id):
    turn = Turn(
        id=str(uuid4()),
        thread_id=thread_id,
        role=Role.MESSIAH,
        content=content,
        order_index=0,
        created_at=NOW - timedelta(days=age_days),
        updated_at=NOW - timedelta(days=age_days),
    )
    return TurnSearchResult(
        turn=turn, similarity=similarity, thread=ThreadRef(id=thread_id, title="T")
    )


class StubSimilarityStore:
    """Returns fixed candidates and records the queries it receives."""

    def __init__(self, results):
        self.results = results
        self.queries = []

    async def search(self, query_embedding, query):
        self.queries.append(query)
        return self.results[: query.k]


@pytest.mark.unit
@pytest.mark.memory
class TestScoring:
    """Test scoring helpers."""

    def test_recency_decay(self):
        """Test the 30-day exponential decay."""
        assert recency_score(0) == 1.0
        assert recency_score(30) == pytest.approx(math.exp(-1))

    def test_combined_score(self):
        """Test the 0.7 / 0.3 blend."""
        assert combined_score(0.9, 0) == pytest.approx(0.93)
        assert combined_score(0.95, 60) == pytest.approx(0.665 + 0.3 * math.exp(-2))

    def test_snippet_short_content_unchanged(self):
        """Test content within 200 characters is kept whole."""
        assert extract_snippet("a" * 200) == "a" * 200

    def test_snippet_long_content_truncated(self):
        """Test longer content keeps a 200 character prefix and an ellipsis."""
        snippet = extract_snippet("b" * 201)
        assert snippet == "b" * 200 + "..."
        assert len(snippet) == 203


@pytest.mark.unit
@pytest.mark.memory
class TestTurnEmbeddings:
    """Test embedding writes."""

    def test_upsert_writes_vector(self, store, retrieval_service, async_test_runner):
        """Test the stored signature matches the active provider."""

        async def scenario():
            thread = await store.create_thread("Embed")
            turn = await store.create_turn(thread.id, Role.MESSIAH, "hello")
            await retrieval_service.upsert_turn_embedding(turn.id)
            return await store.embedding_signature(turn.id)

        assert async_test_runner(scenario()) == ("fake:hash", 8)

    def test_upsert_unknown_turn(self, store, async_test_runner):
        """Test a missing turn raises NotFoundError before any write."""
        store_spy = AsyncMock(wraps=store)
        service = RetrievalService(FakeEmbeddingProvider(), store_spy)

        with pytest.raises(NotFoundError):
            async_test_runner(service.upsert_turn_embedding(str(uuid4())))

        store_spy.update_turn_embedding.assert_not_called()

    def test_upsert_rejects_wrong_dimensions(self, store, async_test_runner):
        """Test a vector of the wrong length is never stored."""
        service = RetrievalService(WrongSizeEmbeddingProvider(dimensions=4), store)

        async def scenario():
            thread = await store.create_thread("Wrong")
            turn = await store.create_turn(thread.id, Role.MESSIAH, "hello")
            with pytest.raises(EmbeddingDimensionError):
                await service.upsert_turn_embedding(turn.id)
            return await store.embedding_signature(turn.id)

        assert async_test_runner(scenario()) is None

    def test_ensure_is_idempotent(self, store, embedding_provider, retrieval_service, async_test_runner):
        """Test ensure embeds once and then skips."""

        async def scenario():
            thread = await store.create_thread("Ensure")
            turn = await store.create_turn(thread.id, Role.MESSIAH, "once")
            first = await retrieval_service.ensure_turn_embedding(turn.id)
            second = await retrieval_service.ensure_turn_embedding(turn.id)
            return first, second

        first, second = async_test_runner(scenario())

        assert (first, second) == (True, False)
        assert embedding_provider.calls == ["once"]

    def test_ensure_regenerates_other_provider(self, store, async_test_runner):
        """Test vectors from another provider are replaced."""
        old = RetrievalService(FakeEmbeddingProvider(name="old:model"), store)
        new = RetrievalService(FakeEmbeddingProvider(name="new:model"), store)

        async def scenario():
            thread = await store.create_thread("Switch")
            turn = await store.create_turn(thread.id, Role.NOTE, "switch")
            await old.upsert_turn_embedding(turn.id)
            regenerated = await new.ensure_turn_embedding(turn.id)
            return regenerated, await store.embedding_signature(turn.id)

        regenerated, signature = async_test_runner(scenario())

        assert regenerated is True
        assert signature == ("new:model", 8)


@pytest.mark.unit
@pytest.mark.memory
class TestSearch:
    """Test similarity search through the service."""

    def test_self_match_scores_one(self, store, retrieval_service, async_test_runner):
        """Test a turn's own content finds it with similarity close to 1."""

        async def scenario():
            thread = await store.create_thread("Self")
            turn = await store.create_turn(thread.id, Role.MESSIAH, "the river at dawn")
            await store.create_turn(thread.id, Role.REFLECTION, "something else")
            await retrieval_service.upsert_turn_embedding(turn.id)
            results = await retrieval_service.search_similar_turns(
                {"query": "the river at dawn", "k": 5}
            )
            return turn, results

        turn, results = async_test_runner(scenario())

        assert len(results) == 1
        assert results[0].turn.id == turn.id
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].thread.title == "Self"

    def test_search_validates_input(self, retrieval_service, async_test_runner):
        """Test bad requests fail before embedding."""
        with pytest.raises(ValidationError):
            async_test_runner(retrieval_service.search_similar_turns({"query": "q", "k": 0}))
        with pytest.raises(ValidationError):
            async_test_runner(
                retrieval_service.search_similar_turns({"query": "q", "thread_id": "nope"})
            )
        assert retrieval_service.embedding_provider.calls == []

    def test_search_rejects_inverted_dates(self):
        """Test start_date after end_date is invalid."""
        with pytest.raises(ValidationError):
            SearchTurnsInput(query="q", start_date=NOW, end_date=NOW - timedelta(days=1))

    def test_naive_dates_taken_as_utc(self):
        """Test naive filter dates are read as UTC."""
        search = SearchTurnsInput(query="q", start_date=datetime(2024, 1, 1))
        assert search.start_date.tzinfo == timezone.utc


@pytest.mark.unit
@pytest.mark.memory
class TestDialogueContext:
    """Test context retrieval for dialogue prompts."""

    def test_fresher_turn_outranks_more_similar_older_turn(self, store, async_test_runner):
        """Test recency can outweigh a small similarity edge."""
        thread_id = str(uuid4())
        fresh = _result("fresh", 0.90, 0, thread_id)
        old = _result("old", 0.95, 60, thread_id)
        similarity = StubSimilarityStore([old, fresh])
        service = RetrievalService(FakeEmbeddingProvider(), store, similarity)

        context = async_test_runner(
            service.get_retrieved_context_for_dialogue(thread_id, "query", k=2, now=NOW)
        )

        assert [c.turn.content for c in context] == ["fresh", "old"]
        assert context[0].similarity == 0.90

    def test_fetches_twice_k_candidates(self, store, async_test_runner):
        """Test 2k candidates are requested and k kept."""
        thread_id = str(uuid4())
        results = [_result(f"r{i}", 0.9 - i * 0.05, 1, thread_id) for i in range(6)]
        similarity = StubSimilarityStore(results)
        service = RetrievalService(FakeEmbeddingProvider(), store, similarity)

        context = async_test_runner(
            service.get_retrieved_context_for_dialogue(thread_id, "query", k=3, now=NOW)
        )

        assert similarity.queries[0].k == 6
        assert similarity.queries[0].thread_id == thread_id
        assert len(context) == 3

    def test_candidate_count_capped(self, store, async_test_runner):
        """Test K above 50 requests at most 100 candidates."""
        similarity = StubSimilarityStore([])
        service = RetrievalService(FakeEmbeddingProvider(), store, similarity)

        async_test_runner(
            service.get_retrieved_context_for_dialogue(str(uuid4()), "query", k=60)
        )
        assert similarity.queries[0].k == 100

    def test_zero_k_skips_search(self, store, async_test_runner):
        """Test k=0 returns nothing without embedding or searching."""
        similarity = StubSimilarityStore([])
        provider = FakeEmbeddingProvider()
        service = RetrievalService(provider, store, similarity)

        context = async_test_runner(
            service.get_retrieved_context_for_dialogue(str(uuid4()), "query", k=0)
        )

        assert context == []
        assert similarity.queries == []
        assert provider.calls == []

    def test_negative_k(self, retrieval_service, async_test_runner):
        """Test a negative k is rejected."""
        with pytest.raises(ValueError):
            async_test_runner(
                retrieval_service.get_retrieved_context_for_dialogue(str(uuid4()), "q", k=-1)
            )

    def test_snippets_are_truncated(self, store, async_test_runner):
        """Test long turns are shortened for the prompt."""
        thread_id = str(uuid4())
        similarity = StubSimilarityStore([_result("c" * 500, 0.8, 0, thread_id)])
        service = RetrievalService(FakeEmbeddingProvider(), store, similarity)

        context = async_test_runner(
            service.get_retrieved_context_for_dialogue(thread_id, "query", now=NOW)
        )

        assert context[0].snippet == "c" * 200 + "..."
        assert context[0].turn.content == "c" * 500

    def test_fewer_candidates_than_k(self, store, retrieval_service, async_test_runner):
        """Test a small thread returns what it has."""

        async def scenario():
            thread = await store.create_thread("Small")
            for text in ["one", "two"]:
                turn = await store.create_turn(thread.id, Role.MESSIAH, text)
                await retrieval_service.upsert_turn_embedding(turn.id)
            return await retrieval_service.get_retrieved_context_for_dialogue(
                thread.id, "one", k=5
            )

        context = async_test_runner(scenario())

        assert len(context) == 2
        assert context[0].turn.content == "one"
