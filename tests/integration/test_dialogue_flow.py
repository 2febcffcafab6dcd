"""
Integration tests for ThreadVault dialogue flows.

Tests complete dialogue sessions through a VaultContext: several
continuations on one thread, persistence across store instances, the
Anthropic provider wired with a fake chat model, and provider switches.
"""

import pytest
from langchain_core.messages import AIMessage

from threadvault.assistants.models.anthropic import AnthropicProvider
from threadvault.context import VaultContext
from threadvault.core.models import Role
from threadvault.core.store import TurnStore

from tests.fixtures import TEST_DATA_CONSTANTS, FakeEmbeddingProvider, ScriptedLLMProvider


class EchoChatModel:
    """Chat model that answers with the last human message reversed."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs

    async def ainvoke(self, messages):
        text = messages[-1].content[::-1]
        return AIMessage(
            content=text,
            usage_metadata={"input_tokens": 5, "output_tokens": 3, "total_tokens": 8},
            response_metadata={"stop_reason": "end_turn"},
        )


@pytest.mark.integration
class TestDialogueSession:
    """Test multi-turn sessions."""

    def test_three_continuations(self, vault_context, llm_provider, async_test_runner):
        """Test turns alternate and history grows with each continuation."""
        llm_provider.replies = ["first reply", "second reply", "third reply"]
        orchestrator = vault_context.dialogue_orchestrator()
        store = vault_context.store

        async def scenario():
            thread = await store.create_thread(
                TEST_DATA_CONSTANTS["thread_title"],
                TEST_DATA_CONSTANTS["thread_description"],
            )
            for content in ["one", "two", "three"]:
                await orchestrator.continue_dialogue(
                    {"thread_id": thread.id, "messiah_content": content, "retrieval_k": 3}
                )
            return await store.find_turns_by_thread(thread.id)

        turns = async_test_runner(scenario())

        assert [t.order_index for t in turns] == list(range(6))
        assert [t.role for t in turns] == [Role.MESSIAH, Role.REFLECTION] * 3
        assert turns[-1].content == "third reply"

        last_request = llm_provider.requests[-1]
        assert len(last_request.messages) == 5
        assert last_request.messages[-1].content == "three"
        assert "Description: Daily reflections before sunrise" in last_request.system
        assert "[3] (similarity:" in last_request.system

    def test_seeded_thread_context(self, vault_context, async_test_runner):
        """Test seeded turns are retrieved as context once embedded."""
        store = vault_context.store
        retrieval = vault_context.retrieval_service()
        orchestrator = vault_context.dialogue_orchestrator()

        async def scenario():
            thread = await store.create_thread("Seeded")
            for role, content in TEST_DATA_CONSTANTS["sample_turns"]:
                turn = await store.create_turn(thread.id, Role(role), content)
                await retrieval.ensure_turn_embedding(turn.id)
            return await orchestrator.continue_dialogue(
                {
                    "thread_id": thread.id,
                    "messiah_content": "The river was loud today.",
                    "retrieval_k": 2,
                }
            )

        response = async_test_runner(scenario())

        assert response.messiah_turn.order_index == 4
        assert len(response.retrieved_context) == 2
        assert {c.turn.content for c in response.retrieved_context} == {
            "The river was loud today."
        }

    def test_history_survives_store_reopen(self, vault_context, temp_db, llm_provider, async_test_runner):
        """Test a fresh store on the same file continues the numbering."""
        orchestrator = vault_context.dialogue_orchestrator()
        thread = async_test_runner(vault_context.store.create_thread("Durable"))
        async_test_runner(
            orchestrator.continue_dialogue({"thread_id": thread.id, "messiah_content": "before"})
        )

        reopened = VaultContext(vault_context.settings, store=TurnStore(temp_db))
        reopened.set_embedding_provider(FakeEmbeddingProvider())
        reopened.set_llm_provider(llm_provider)
        response = async_test_runner(
            reopened.dialogue_orchestrator().continue_dialogue(
                {"thread_id": thread.id, "messiah_content": "after"}
            )
        )

        assert response.messiah_turn.order_index == 2
        assert llm_provider.requests[-1].messages[0].content == "**MESSIAH:**\nbefore"


@pytest.mark.integration
@pytest.mark.llm
class TestAnthropicWiring:
    """Test the orchestrator with AnthropicProvider and a fake chat model."""

    def test_reflection_from_chat_model(self, vault_context, async_test_runner):
        """Test the chat model reply and usage land on the REFLECTION turn."""
        vault_context.set_llm_provider(
            AnthropicProvider("test-key", chat_model_factory=EchoChatModel)
        )
        orchestrator = vault_context.dialogue_orchestrator()

        async def scenario():
            thread = await vault_context.store.create_thread("Echo")
            return await orchestrator.continue_dialogue(
                {"thread_id": thread.id, "messiah_content": "stressed"}
            )

        response = async_test_runner(scenario())

        assert response.reflection_turn.content == "desserts"
        assert response.reflection_turn.token_count_estimate == 8
        assert response.usage.total == 8


@pytest.mark.integration
@pytest.mark.memory
class TestProviderSwitch:
    """Test re-embedding after the embedding provider changes."""

    def test_old_vectors_ignored_until_reembedded(self, vault_context, async_test_runner):
        """Test search only sees turns embedded by the active provider."""
        store = vault_context.store

        async def scenario():
            thread = await store.create_thread("Switch")
            turn = await store.create_turn(thread.id, Role.NOTE, "lantern")
            await vault_context.retrieval_service().upsert_turn_embedding(turn.id)

            vault_context.set_embedding_provider(
                FakeEmbeddingProvider(dimensions=16, name="fake:wide")
            )
            retrieval = vault_context.retrieval_service()
            before = await retrieval.search_similar_turns({"query": "lantern"})
            regenerated = await retrieval.ensure_turn_embedding(turn.id)
            after = await retrieval.search_similar_turns({"query": "lantern"})
            return turn, before, regenerated, after

        turn, before, regenerated, after = async_test_runner(scenario())

        assert before == []
        assert regenerated is True
        assert [r.turn.id for r in after] == [turn.id]


@pytest.mark.integration
@pytest.mark.llm
class TestPartialFailure:
    """Test a failed completion mid-session."""

    def test_session_recovers_after_failure(self, vault_context, async_test_runner):
        """Test the next continuation succeeds after one failure."""
        failing = ScriptedLLMProvider(error=RuntimeError("timeout"))
        vault_context.set_llm_provider(failing)
        store = vault_context.store
        thread = async_test_runner(store.create_thread("Retry"))

        with pytest.raises(RuntimeError):
            async_test_runner(
                vault_context.dialogue_orchestrator().continue_dialogue(
                    {"thread_id": thread.id, "messiah_content": "lost reply"}
                )
            )

        failing.error = None
        response = async_test_runner(
            vault_context.dialogue_orchestrator().continue_dialogue(
                {"thread_id": thread.id, "messiah_content": "try again"}
            )
        )

        assert response.messiah_turn.order_index == 1
        assert response.reflection_turn.order_index == 2
        assert failing.requests[-1].messages[0].content == "**MESSIAH:**\nlost reply"
