from umbil.core.config import Settings


def get_test_settings() -> Settings:
    """Returns a Settings instance for testing.

    Automatically uses TEST_EMBEDDING_MODEL and TEST_SUPABASE_TABLE_PREFIX
    environment variables when available.
    """
    return Settings.for_testing()


def build_document(*blocks: str) -> str:
    """Join markdown blocks with blank lines, the way authors write them."""
    return "\n\n".join(blocks)
