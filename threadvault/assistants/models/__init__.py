"""
Models module for ThreadVault LLM completion.
"""

from threadvault.assistants.models.abstracts import (
    AbstractLLMProvider,
    CompletionParams,
    CompletionResponse,
    Message,
    ModelsEnum,
)
from threadvault.assistants.models.anthropic import (
    AnthropicModelsEnum,
    AnthropicProvider,
)

__all__ = [
    "AbstractLLMProvider",
    "CompletionParams",
    "CompletionResponse",
    "Message",
    "ModelsEnum",
    "AnthropicModelsEnum",
    "AnthropicProvider",
]
