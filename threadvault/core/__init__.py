"""
Core data model, input schemas, errors and storage for ThreadVault.
"""

from .errors import (
    EmbeddingDimensionError,
    EmbeddingProviderError,
    NotFoundError,
    ProviderConfigurationError,
    ThreadVaultError,
)
from .models import (
    DialogueResponse,
    RetrievedContext,
    Role,
    Tag,
    Thread,
    ThreadStatus,
    TokenUsage,
    Turn,
    TurnSearchResult,
)
from .schemas import ContinueDialogueInput, SearchTurnsInput
from .store import TurnStore

__all__ = [
    "ThreadVaultError",
    "NotFoundError",
    "ProviderConfigurationError",
    "EmbeddingProviderError",
    "EmbeddingDimensionError",
    "Role",
    "ThreadStatus",
    "Thread",
    "Tag",
    "Turn",
    "TurnSearchResult",
    "RetrievedContext",
    "TokenUsage",
    "DialogueResponse",
    "SearchTurnsInput",
    "ContinueDialogueInput",
    "TurnStore",
]
