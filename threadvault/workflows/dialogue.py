"""
Dialogue continuation workflow.

One call appends a MESSIAH turn, grounds a REFLECTION reply in retrieved
context from the same thread and appends that reply.

The sequence is not atomic: a failure after the MESSIAH turn is written
leaves that turn (and possibly its embedding) in place. The error is logged
with the id of the orphaned turn and re-raised unchanged.
"""

from typing import Any, Dict, List, Sequence, Union

from loguru import logger

from ..assistants.models.abstracts import (
    AbstractLLMProvider,
    CompletionParams,
    Message,
)
from ..core.models import DialogueResponse, RetrievedContext, Role, Thread, Turn
from ..core.schemas import ContinueDialogueInput
from ..core.store import TurnStore
from ..memory.retrieval import RetrievalService
from ..monitoring.logger import log_operation

HISTORY_LIMIT = 10
DIALOGUE_TEMPERATURE = 1.0

PERSONA_PROMPT = """You are engaging in a deeply personal messianic dialogue. This is a spiritual practice of the user.

Respond as REFLECTION - a contemplative, insightful voice that:
- Honors the spiritual and personal nature of this dialogue
- Provides thoughtful reflection without editorializing the practice
- Stays grounded and respectful
- Focuses on insight, depth, and resonance"""


def build_system_prompt(thread: Thread, context: Sequence[RetrievedContext]) -> str:
    """
    Assemble the system prompt for a REFLECTION reply.

    Args:
        thread: Thread being continued
        context: Retrieved context, best first

    Returns:
        str: Persona, thread header and an enumerated context block
    """
    prompt = f'{PERSONA_PROMPT}\n\nThread: "{thread.title}"\n'
    if thread.description:
        prompt += f"Description: {thread.description}"

    if context:
        prompt += "\n\nRelevant context from previous turns:\n\n"
        for i, item in enumerate(context, start=1):
            prompt += f"[{i}] (similarity: {item.similarity:.2f})\n{item.snippet}\n\n"

    return prompt


def build_history(turns: Sequence[Turn], new_content: str) -> List[Message]:
    """
    Map prior turns to a user/assistant transcript ending with the new turn.

    MESSIAH turns become user messages, everything else assistant messages.
    Prior turns carry their role as a bold prefix.
    """
    history = [
        Message(
            role="user" if turn.role == Role.MESSIAH else "assistant",
            content=f"**{turn.role.value}:**\n{turn.content}",
        )
        for turn in turns[-HISTORY_LIMIT:]
    ]
    history.append(Message(role="user", content=new_content))
    return history


class DialogueOrchestrator:
    """
    Runs dialogue continuations against a store, a retrieval service and an
    LLM provider.
    """

    def __init__(
        self,
        store: TurnStore,
        retrieval: RetrievalService,
        llm: AbstractLLMProvider,
    ):
        self.store = store
        self.retrieval = retrieval
        self.llm = llm

    async def continue_dialogue(
        self, request: Union[ContinueDialogueInput, Dict[str, Any]]
    ) -> DialogueResponse:
        """
        Continue a thread with a new MESSIAH turn and a generated REFLECTION.

        Args:
            request: Thread id, new content, retrieval K, model and max tokens

        Returns:
            DialogueResponse: Both new turns, the retrieved context and the
            LLM token usage

        Raises:
            pydantic.ValidationError: Invalid request (nothing is written)
            NotFoundError: The thread does not exist (nothing is written)
        """
        if not isinstance(request, ContinueDialogueInput):
            request = ContinueDialogueInput.model_validate(request)

        with log_operation("continue_dialogue", thread_id=request.thread_id):
            thread = await self.store.find_thread(request.thread_id)
            prior_turns = await self.store.get_recent_turns(
                thread.id, n=HISTORY_LIMIT
            )

            messiah_turn = await self.store.create_turn(
                thread.id, Role.MESSIAH, request.messiah_content
            )
            logger.info(
                f"Created MESSIAH turn {messiah_turn.id} at index {messiah_turn.order_index}"
            )

            try:
                return await self._respond(request, thread, prior_turns, messiah_turn)
            except Exception:
                logger.error(
                    f"Dialogue continuation failed after MESSIAH turn {messiah_turn.id} "
                    f"was stored; the turn was not rolled back"
                )
                raise

    async def _respond(
        self,
        request: ContinueDialogueInput,
        thread: Thread,
        prior_turns: Sequence[Turn],
        messiah_turn: Turn,
    ) -> DialogueResponse:
        await self.retrieval.upsert_turn_embedding(messiah_turn.id)

        retrieved_context: List[RetrievedContext] = []
        if request.retrieval_k > 0:
            retrieved_context = await self.retrieval.get_retrieved_context_for_dialogue(
                thread.id, request.messiah_content, request.retrieval_k
            )
        logger.info(f"Retrieved {len(retrieved_context)} context items")

        completion = await self.llm.complete(
            CompletionParams(
                model=request.model,
                messages=build_history(prior_turns, request.messiah_content),
                max_tokens=request.max_tokens,
                temperature=DIALOGUE_TEMPERATURE,
                system=build_system_prompt(thread, retrieved_context),
            )
        )
        logger.info(
            f"Completion finished ({completion.stop_reason}): "
            f"{completion.usage.input_tokens} in / {completion.usage.output_tokens} out"
        )

        reflection_turn = await self.store.create_turn(
            thread.id,
            Role.REFLECTION,
            completion.content,
            token_count_estimate=completion.usage.total,
        )
        await self.retrieval.upsert_turn_embedding(reflection_turn.id)

        return DialogueResponse(
            messiah_turn=messiah_turn,
            reflection_turn=reflection_turn,
            retrieved_context=retrieved_context,
            usage=completion.usage,
        )
