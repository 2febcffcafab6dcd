from abc import ABCMeta, abstractmethod
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from threadvault.core.models import TokenUsage


class ModelsEnum(Enum):
    """
    An enumeration class for language models.
    """

    def __init__(self, index: int, model_name: str):
        """
        Initialize the enumeration with an index and model name.

        Args:
            index (int): The index of the language model.
            model_name (str): The name of the language model.
        """
        self.index = index
        self.model_name = model_name


class Message(BaseModel):
    """A single transcript entry sent to the LLM."""

    role: Literal["user", "assistant"]
    content: str


class CompletionParams(BaseModel):
    """Parameters of one completion request."""

    model: str
    messages: List[Message]
    max_tokens: int = Field(ge=1)
    temperature: float = 1.0
    system: Optional[str] = None


class CompletionResponse(BaseModel):
    """Text and accounting returned by a completion request."""

    content: str
    usage: TokenUsage
    stop_reason: str = "unknown"


class AbstractLLMProvider(metaclass=ABCMeta):
    """
    An abstract base class for LLM completion providers.
    """

    name: str

    @abstractmethod
    async def complete(self, params: CompletionParams) -> CompletionResponse:
        """
        Run one completion.

        Args:
            params (CompletionParams): Model, transcript, system prompt and
                sampling settings.

        Returns:
            CompletionResponse: The generated text, token usage and stop reason.
        """
        pass
