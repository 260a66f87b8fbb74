from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from umbil.core.config import Settings


@pytest.fixture
def mock_embeddings():
    """Embeddings double returning one small vector per text."""
    embeddings = MagicMock()
    embeddings.embed_documents.side_effect = lambda texts: [
        [0.1, 0.2, 0.3] for _ in texts
    ]
    embeddings.embed_query.return_value = [0.1, 0.2, 0.3]
    return embeddings


@pytest.fixture
def mock_store():
    """Knowledge store double that reports every record as written."""
    store = MagicMock()
    store.insert_documents.side_effect = lambda records: len(records)
    store.delete_by_source.return_value = True
    store.match_documents.return_value = []
    return store


@pytest.fixture
def supabase_settings() -> Settings:
    s = Settings()
    # Inject fake supabase creds
    s.supabase_url = "https://example.supabase.co"
    s.supabase_key = "anon-key"
    return s
