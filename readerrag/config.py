"""Application configuration and environment-driven settings.

Defines the Settings class based on pydantic-settings to centralize configuration for:
- The embedding provider (API key, endpoint, model name, optional dimensions)
- The vector store database URL and write policy
- Chunking and retrieval knobs
- Logging and optional OpenTelemetry console export

EmbeddingConfig is the strongly-typed view of the provider settings handed to the
embedding client; it is validated once when built.
"""
from dataclasses import dataclass
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from readerrag.errors import ConfigurationError

# Largest input list the provider accepts in one request
MAX_BATCH_SIZE = 10


@dataclass(frozen=True)
class EmbeddingConfig:
    """Connection parameters for an OpenAI-compatible embeddings endpoint.

    Attributes:
        api_key: Bearer token sent in the Authorization header.
        endpoint: Full URL the batches are POSTed to.
        model_name: Model identifier sent as ``model``.
        dimensions: Optional output dimensionality sent as ``dimensions``.
        batch_size: Maximum number of inputs per request, 1 to MAX_BATCH_SIZE.
        timeout_seconds: Per-request timeout.
    """
    api_key: str
    endpoint: str
    model_name: str
    dimensions: Optional[int] = None
    batch_size: int = 10
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        for field, label in (
            ("api_key", "Embedding API key"),
            ("endpoint", "Embedding API endpoint"),
            ("model_name", "Embedding model name"),
        ):
            if not (getattr(self, field) or "").strip():
                raise ConfigurationError(f"{label} not configured.", field=field)
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"Embedding batch size must be between 1 and {MAX_BATCH_SIZE}.", field="batch_size"
            )


class Settings(BaseSettings):
    """Strongly-typed application settings loaded from environment variables.

    Uses pydantic-settings to populate fields from a .env file or process env.
    See individual field names for semantics and safe defaults.
    """
    # Master switch
    RAG_ENABLED: bool = True

    # Embedding provider
    EMBEDDING_API_KEY: str = Field(default="", description="Embedding provider API key")
    EMBEDDING_API_ENDPOINT: str = "https://dashscope.aliyuncs.com/compatible-mode/v1/embeddings"
    EMBEDDING_MODEL_NAME: str = "text-embedding-v3"
    EMBEDDING_DIMENSIONS: Optional[int] = None
    EMBEDDING_BATCH_SIZE: int = Field(default=MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE)
    EMBEDDING_TIMEOUT_SECONDS: float = 30.0

    # Vector store
    DATABASE_URL: str = "sqlite+aiosqlite:///data/readerrag.db"
    VECTOR_STORE_ATOMIC_WRITES: bool = False

    # Chunking / retrieval
    CHUNK_SIZE: int = 500
    CHUNK_OVERLAP: int = 50
    TOP_K: int = 3

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_CONSOLE_EXPORT: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    def embedding_config(self) -> EmbeddingConfig:
        """Build the validated provider configuration.

        Returns:
            EmbeddingConfig: Frozen provider parameters.

        Raises:
            ConfigurationError: If the API key, endpoint or model name is missing.
        """
        return EmbeddingConfig(
            api_key=self.EMBEDDING_API_KEY,
            endpoint=self.EMBEDDING_API_ENDPOINT,
            model_name=self.EMBEDDING_MODEL_NAME,
            dimensions=self.EMBEDDING_DIMENSIONS,
            batch_size=self.EMBEDDING_BATCH_SIZE,
            timeout_seconds=self.EMBEDDING_TIMEOUT_SECONDS,
        )


settings = Settings()
