"""
Environment configuration for ThreadVault.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from ..core.schemas import DEFAULT_DIALOGUE_MODEL
from ..memory.embeddings import EmbeddingConfig, EmbeddingProviderType


@dataclass(frozen=True)
class Settings:
    """Process-wide settings"""

    embedding_provider: str = EmbeddingProviderType.LOCAL.value
    embedding_api_key: Optional[str] = None
    embedding_model: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    db_path: str = "threadvault.db"
    dialogue_model: str = DEFAULT_DIALOGUE_MODEL
    log_level: str = "INFO"
    log_format: str = "text"
    log_file: Optional[str] = None

    def embedding_config(self) -> EmbeddingConfig:
        """Embedding provider configuration derived from these settings."""
        return EmbeddingConfig(
            provider=self.embedding_provider,
            api_key=self.embedding_api_key,
            model=self.embedding_model,
        )

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks
        return (
            f"Settings(embedding_provider={self.embedding_provider!r}, "
            f"embedding_model={self.embedding_model!r}, db_path={self.db_path!r}, "
            f"dialogue_model={self.dialogue_model!r}, log_level={self.log_level!r})"
        )


def _get(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Load settings from environment variables.

    Args:
        env: Mapping to read instead of ``os.environ``

    Returns:
        Settings: Settings with defaults for anything unset
    """
    env = os.environ if env is None else env
    defaults = Settings()

    return Settings(
        embedding_provider=(
            _get(env, "EMBEDDING_PROVIDER") or defaults.embedding_provider
        ).lower(),
        embedding_api_key=_get(env, "EMBEDDING_API_KEY"),
        embedding_model=_get(env, "EMBEDDING_MODEL"),
        anthropic_api_key=_get(env, "ANTHROPIC_API_KEY"),
        db_path=_get(env, "THREADVAULT_DB_PATH") or defaults.db_path,
        dialogue_model=_get(env, "DIALOGUE_MODEL") or defaults.dialogue_model,
        log_level=(_get(env, "LOG_LEVEL") or defaults.log_level).upper(),
        log_format=(_get(env, "LOG_FORMAT") or defaults.log_format).lower(),
        log_file=_get(env, "LOG_FILE"),
    )
