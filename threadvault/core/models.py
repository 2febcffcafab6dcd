"""
Data model for ThreadVault.

This module defines the records exchanged between the store, the retrieval
service and the dialogue orchestrator: threads, turns, tags, search results
and the ephemeral retrieved-context projection. All models use Pydantic for
validation and type safety.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Closed set of turn roles."""

    MESSIAH = "MESSIAH"  # human role
    REFLECTION = "REFLECTION"  # AI role
    NOTE = "NOTE"


class ThreadStatus(str, Enum):
    """Lifecycle status of a thread."""

    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class Thread(BaseModel):
    """
    An ordered conversation composed of turns.

    Attributes:
        id: Unique thread identifier (UUID string)
        title: Display title
        description: Optional free-text description
        status: Active or archived
        metadata: Free-form metadata
        created_at: Creation timestamp
        updated_at: Last modification timestamp
    """

    id: str
    title: str
    description: Optional[str] = None
    status: ThreadStatus = ThreadStatus.ACTIVE
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Tag(BaseModel):
    """A label attached to threads."""

    id: str
    name: str
    color: Optional[str] = None


class Turn(BaseModel):
    """
    One message within a dialogue thread.

    Attributes:
        id: Unique turn identifier
        thread_id: Owning thread
        role: MESSIAH, REFLECTION or NOTE
        content: Message text
        order_index: Position within the thread, ascending
        token_count_estimate: Optional token usage estimate
        annotations: Optional structured annotations
        created_at: Creation timestamp
        updated_at: Last modification timestamp
    """

    id: str
    thread_id: str
    role: Role
    content: str
    order_index: int
    token_count_estimate: Optional[int] = None
    annotations: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ThreadRef(BaseModel):
    """Minimal thread identity joined onto search results."""

    id: str
    title: str


class TurnSearchResult(BaseModel):
    """A turn matched by vector similarity search."""

    turn: Turn
    similarity: float = Field(ge=0.0, le=1.0)
    thread: ThreadRef


class RetrievedContext(BaseModel):
    """
    Prompt-ready projection of a retrieved turn.

    Created per retrieval call and discarded once the prompt is built.
    """

    turn: Turn
    similarity: float
    snippet: str


class TokenUsage(BaseModel):
    """Token counts reported by the LLM provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


class DialogueResponse(BaseModel):
    """Result of one dialogue continuation."""

    messiah_turn: Turn
    reflection_turn: Turn
    retrieved_context: List[RetrievedContext] = Field(default_factory=list)
    usage: TokenUsage
