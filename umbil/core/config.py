"""Global configuration (12-factor style).

Environment variables (all optional, see `.env.example`):

* ``OPENAI_API_KEY``     - enables OpenAI embeddings and the rewrite model
* ``EMBEDDING_MODEL``    - default: ``"text-embedding-3-small"``
* ``REWRITE_MODEL``      - default: ``"gpt-4.1-mini"``
* ``LLM_BASE_URL``       - OpenAI-compatible host for the rewrite model
* ``SUPABASE_URL``       - enables knowledge-base persistence when set
* ``SUPABASE_KEY``       - required if ``SUPABASE_URL`` is set
* ``SUPABASE_TABLE_PREFIX`` - optional prefix for the documents table
* ``MATCH_THRESHOLD`` / ``MATCH_COUNT`` - vector search tuning
* ``CHUNK_MAX_SIZE`` / ``CHUNK_MIN_SIZE`` / ``CHUNK_OVERLAP_SIZE`` - chunker
* ``API_AUTH_KEY``       - when set, admin routes require ``x-api-key``
* ``LOG_LEVEL``          - default: ``"INFO"``

Test environment variables:
* ``TEST_EMBEDDING_MODEL``        - default: uses EMBEDDING_MODEL value
* ``TEST_SUPABASE_TABLE_PREFIX``  - default: ``"test_"``

Usage:

    from umbil.core.config import Settings
    settings = Settings()  # auto-loads & validates env vars

    # For tests:
    test_settings = Settings.for_testing()
"""

from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """Typed view over process environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    openai_api_key: str | None = None

    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536

    # Rewrite step run before chunking on admin ingestion
    rewrite_model: str = "gpt-4.1-mini"
    rewrite_temperature: float = 0.3
    llm_base_url: str | None = None

    # Supabase (optional)
    supabase_url: str | None = None
    supabase_key: str | None = None
    supabase_table_prefix: str | None = None
    documents_table: str = "documents"
    match_function: str = "match_docs"

    match_threshold: float = 0.5
    match_count: int = 5

    chunk_max_size: int = 1000
    chunk_min_size: int = 100
    chunk_overlap_size: int = 100

    # Optional API auth for admin endpoints (x-api-key header)
    api_auth_key: str | None = None

    log_level: str = "INFO"

    # Test-specific environment variables
    test_embedding_model: str | None = None
    test_supabase_table_prefix: str | None = "test_"

    @classmethod
    def for_testing(cls) -> "Settings":
        """Returns a Settings instance configured for testing.

        Uses TEST_* environment variables when available, falling back to
        regular values if not set.
        """
        settings = cls()

        if settings.test_embedding_model:
            settings.embedding_model = settings.test_embedding_model
        if settings.test_supabase_table_prefix:
            settings.supabase_table_prefix = settings.test_supabase_table_prefix

        return settings

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def chunker_options(self) -> dict[str, int]:
        """Keyword arguments for ``MarkdownChunker``."""
        return {
            "max_chunk_size": self.chunk_max_size,
            "min_chunk_size": self.chunk_min_size,
            "overlap_size": self.chunk_overlap_size,
        }
