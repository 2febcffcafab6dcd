"""
Input schemas for the public entry points.

Each schema is validated before any side effect takes place; invalid input
raises ``pydantic.ValidationError``.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .models import Role

MAX_SEARCH_K = 100
MAX_RETRIEVAL_K = 50
MAX_OUTPUT_TOKENS = 8192
DEFAULT_DIALOGUE_MODEL = "claude-3-7-sonnet-20250219"


def _validate_uuid(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise ValueError(f"Invalid UUID: {value}")


class SearchTurnsInput(BaseModel):
    """
    Similarity search request.

    Attributes:
        query: Free text to embed and search for
        k: Number of results, 1 to 100
        thread_id: Restrict to one thread
        role: Restrict to one role
        tag_ids: Restrict to threads carrying any of these tags
        start_date: Inclusive lower bound on turn creation time
        end_date: Inclusive upper bound on turn creation time
    """

    query: str
    k: int = Field(default=10, ge=1, le=MAX_SEARCH_K)
    thread_id: Optional[str] = None
    role: Optional[Role] = None
    tag_ids: Optional[List[str]] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("thread_id")
    @classmethod
    def _check_thread_id(cls, value: Optional[str]) -> Optional[str]:
        return _validate_uuid(value)

    @field_validator("start_date", "end_date")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive datetimes are taken as UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _check_date_range(self) -> "SearchTurnsInput":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class ContinueDialogueInput(BaseModel):
    """
    Dialogue continuation request.

    Attributes:
        thread_id: Thread to continue (UUID)
        messiah_content: New human-role message, non-empty
        retrieval_k: Number of context snippets to retrieve, 0 to 50
        model: LLM model identifier
        max_tokens: Output token cap, 1 to 8192
    """

    thread_id: str
    messiah_content: str = Field(min_length=1)
    retrieval_k: int = Field(default=5, ge=0, le=MAX_RETRIEVAL_K)
    model: str = Field(default=DEFAULT_DIALOGUE_MODEL, min_length=1)
    max_tokens: int = Field(default=4096, ge=1, le=MAX_OUTPUT_TOKENS)

    @field_validator("thread_id")
    @classmethod
    def _check_thread_id(cls, value: Optional[str]) -> Optional[str]:
        return _validate_uuid(value)
