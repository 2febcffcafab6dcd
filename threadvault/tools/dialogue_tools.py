"""
Dialogue tools exposing ThreadVault operations by name.

Each tool takes a JSON string and answers with a JSON string carrying
``success`` and either ``result`` or ``error``, so an agent or tool-call
dispatcher can drive search, thread browsing, turn creation and editing,
and dialogue continuation.
"""

import asyncio
import json
from abc import abstractmethod
from typing import Any, Dict, List

from langchain_core.tools import BaseTool
from loguru import logger
from pydantic import Field

from threadvault.context import VaultContext
from threadvault.core.models import Role


def _ok(result: Any) -> str:
    return json.dumps({"success": True, "result": result}, ensure_ascii=False)


def _fail(message: str) -> str:
    return json.dumps({"success": False, "error": message}, ensure_ascii=False)


class VaultTool(BaseTool):
    """
    Base class for tools bound to a VaultContext.

    Subclasses implement ``_execute`` with the parsed JSON input.
    """

    context: VaultContext = Field(description="Shared ThreadVault context")

    @abstractmethod
    async def _execute(self, data: Dict[str, Any]) -> Any:
        """Run the operation on parsed input and return a JSON-ready result."""

    async def _arun(self, input_data: str) -> str:
        try:
            data = json.loads(input_data) if isinstance(input_data, str) else input_data
            if not isinstance(data, dict):
                return _fail("Input must be a JSON object")
            return _ok(await self._execute(data))
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON input for {self.name}: {e}")
            return _fail(f"Invalid JSON input: {str(e)}")
        except Exception as e:
            logger.error(f"Tool {self.name} failed: {e}")
            return _fail(f"{type(e).__name__}: {str(e)}")

    def _run(self, input_data: str) -> str:
        return asyncio.run(self._arun(input_data))


class SearchTurnsTool(VaultTool):
    """Semantic search over embedded turns."""

    name: str = "search_turns"
    description: str = """Find turns similar in meaning to a query.
    Input: JSON with 'query', optional 'k' (1-100), 'thread_id', 'role', 'tag_ids', 'start_date', 'end_date'
    Output: JSON list of matches with turn, thread and similarity"""

    async def _execute(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        results = await self.context.retrieval_service().search_similar_turns(data)
        return [result.model_dump(mode="json") for result in results]


class ContinueDialogueTool(VaultTool):
    """Append a MESSIAH turn and generate the REFLECTION reply."""

    name: str = "continue_dialogue"
    description: str = """Continue a dialogue thread with a new message and an AI reflection.
    Input: JSON with 'thread_id', 'messiah_content', optional 'retrieval_k' (0-50), 'model', 'max_tokens' (1-8192)
    Output: JSON with both new turns, retrieved context and token usage"""

    async def _execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data.setdefault("model", self.context.settings.dialogue_model)
        response = await self.context.dialogue_orchestrator().continue_dialogue(data)
        return response.model_dump(mode="json")


class GetRecentTurnsTool(VaultTool):
    """Read the latest turns of a thread."""

    name: str = "get_recent_turns"
    description: str = """Get the most recent turns of a thread, oldest first.
    Input: JSON with 'thread_id' and optional 'n' (default 10)
    Output: JSON list of turns"""

    async def _execute(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        turns = await self.context.store.get_recent_turns(
            data["thread_id"], n=int(data.get("n", 10))
        )
        return [turn.model_dump(mode="json") for turn in turns]


class CreateTurnTool(VaultTool):
    """Append a turn to a thread and embed it."""

    name: str = "create_turn"
    description: str = """Append a turn to the end of a thread and index it for search.
    Input: JSON with 'thread_id', 'role' (MESSIAH|REFLECTION|NOTE), 'content', optional 'annotations'
    Output: JSON with the created turn"""

    async def _execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        content = data.get("content") or ""
        if not content:
            raise ValueError("content must not be empty")

        turn = await self.context.store.create_turn(
            data["thread_id"],
            Role(data["role"]),
            content,
            annotations=data.get("annotations"),
        )
        await self.context.retrieval_service().upsert_turn_embedding(turn.id)
        return turn.model_dump(mode="json")


class UpdateTurnTool(VaultTool):
    """Edit a turn and keep its embedding current."""

    name: str = "update_turn"
    description: str = """Edit the content and/or annotations of an existing turn.
    Input: JSON with 'turn_id' and at least one of 'content', 'annotations'
    Output: JSON with the updated turn"""

    async def _execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        turn_id = data["turn_id"]
        if "content" not in data and "annotations" not in data:
            raise ValueError("content or annotations is required")

        store = self.context.store
        if "content" in data:
            content = data["content"] or ""
            if not content:
                raise ValueError("content must not be empty")
            turn = await store.update_turn_content(turn_id, content)
            await self.context.retrieval_service().upsert_turn_embedding(turn.id)
        if "annotations" in data:
            turn = await store.update_turn_annotations(turn_id, data["annotations"])
        return turn.model_dump(mode="json")


class ListThreadsTool(VaultTool):
    """List dialogue threads."""

    name: str = "list_threads"
    description: str = """List dialogue threads, most recently updated first.
    Input: JSON with optional 'include_archived' (default false) and 'limit' (default 50)
    Output: JSON list of threads"""

    async def _execute(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        threads = await self.context.store.list_threads(
            include_archived=bool(data.get("include_archived", False)),
            limit=int(data.get("limit", 50)),
        )
        return [thread.model_dump(mode="json") for thread in threads]


class GetThreadTool(VaultTool):
    """Load a thread with its tags and turns."""

    name: str = "get_thread"
    description: str = """Get a thread with its tags and every turn in order.
    Input: JSON with 'thread_id'
    Output: JSON with the thread, its 'tags' and its 'turns'"""

    async def _execute(self, data: Dict[str, Any]) -> Dict[str, Any]:
        store = self.context.store
        thread = await store.find_thread(data["thread_id"])
        tags = await store.find_thread_tags(thread.id)
        turns = await store.find_turns_by_thread(thread.id)

        result = thread.model_dump(mode="json")
        result["tags"] = [tag.model_dump(mode="json") for tag in tags]
        result["turns"] = [turn.model_dump(mode="json") for turn in turns]
        return result


class ListTurnsTool(VaultTool):
    """List the turns of a thread."""

    name: str = "list_turns"
    description: str = """List the turns of a thread in order.
    Input: JSON with 'thread_id', optional 'limit' and 'role' (MESSIAH|REFLECTION|NOTE)
    Output: JSON list of turns"""

    async def _execute(self, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        limit = data.get("limit")
        role = data.get("role")
        turns = await self.context.store.find_turns_by_thread(
            data["thread_id"],
            limit=int(limit) if limit is not None else None,
            role=Role(role) if role else None,
        )
        return [turn.model_dump(mode="json") for turn in turns]


def get_dialogue_tools(context: VaultContext) -> List[VaultTool]:
    """
    Build every dialogue tool bound to one context.

    Args:
        context: Shared ThreadVault context

    Returns:
        List[VaultTool]: Tools keyed by their ``name``
    """
    return [
        SearchTurnsTool(context=context),
        ContinueDialogueTool(context=context),
        GetRecentTurnsTool(context=context),
        CreateTurnTool(context=context),
        UpdateTurnTool(context=context),
        ListThreadsTool(context=context),
        GetThreadTool(context=context),
        ListTurnsTool(context=context),
    ]
