"""
Error taxonomy for ThreadVault.

Validation errors are raised by the pydantic input schemas
(``pydantic.ValidationError``) before any side effect; everything else
raised by the core derives from ``ThreadVaultError``.
"""

from typing import Optional


class ThreadVaultError(Exception):
    """Base class for ThreadVault errors."""


class NotFoundError(ThreadVaultError):
    """A referenced thread, turn or tag does not exist."""

    def __init__(self, entity: str, identifier: str):
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class ProviderConfigurationError(ThreadVaultError):
    """A provider cannot be built from the given configuration."""


class EmbeddingProviderError(ThreadVaultError):
    """A remote embedding API answered with a non-success status."""

    def __init__(
        self, provider: str, status_code: int, detail: Optional[str] = None
    ):
        message = f"{provider} API error: {status_code}"
        if detail:
            message += f" {detail}"
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.detail = detail


class EmbeddingDimensionError(ThreadVaultError):
    """A vector's length disagrees with the provider's declared dimensions."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual
