from __future__ import annotations

from types import SimpleNamespace

import pytest

from umbil.core.config import Settings
from umbil.core.knowledge_store import SupabaseKnowledgeStore
from umbil.core.knowledge_store import SupabaseTables

pytestmark = pytest.mark.unit


class _MockTable:
    def __init__(self, fail_on: str | None = None):
        self.ops = []
        self.fail_on = fail_on

    def insert(self, payload):
        self.ops.append(("insert", payload))
        return self

    def delete(self):
        self.ops.append(("delete",))
        return self

    def select(self, *args, count=None):
        self.ops.append(("select", args, count))
        return self

    def eq(self, key, val):
        self.ops.append(("eq", key, val))
        return self

    def limit(self, n):
        self.ops.append(("limit", n))
        return self

    def execute(self):
        if self.fail_on and any(op[0] == self.fail_on for op in self.ops):
            raise RuntimeError("postgrest error")
        inserted = [op[1] for op in self.ops if op[0] == "insert"]
        return SimpleNamespace(data=inserted[-1] if inserted else [], count=7)


class _MockRpc:
    def __init__(self, rows):
        self.rows = rows

    def execute(self):
        return SimpleNamespace(data=self.rows)


class _MockClient:
    def __init__(self):
        self._tables: dict[str, _MockTable] = {}
        self.rpc_calls = []
        self.rpc_rows = [{"id": 1, "content": "chunk", "metadata": {"source": "x"}}]

    def table(self, name):
        return self._tables.setdefault(name, _MockTable())

    def rpc(self, name, params):
        self.rpc_calls.append((name, params))
        return _MockRpc(self.rpc_rows)


@pytest.fixture
def mock_client():
    return _MockClient()


@pytest.fixture
def mock_create_client(mocker, mock_client):
    return mocker.patch(
        "umbil.core.knowledge_store.create_client", return_value=mock_client
    )


def test_construct_store_requires_config(mock_create_client):
    with pytest.raises(RuntimeError, match="SUPABASE_URL"):
        SupabaseKnowledgeStore(cfg=Settings())


def test_construct_store_ok(mock_create_client, supabase_settings):
    store = SupabaseKnowledgeStore(cfg=supabase_settings)
    assert store.client is not None
    assert store.tables.documents == "documents"
    mock_create_client.assert_called_once_with(
        "https://example.supabase.co", "anon-key"
    )


def test_from_settings_applies_table_prefix(mock_create_client, supabase_settings):
    supabase_settings.supabase_table_prefix = "test_"
    store = SupabaseKnowledgeStore.from_settings(supabase_settings)
    assert store.tables.documents == "test_documents"


def test_with_prefix_handles_empty_prefix():
    assert SupabaseTables.with_prefix("").documents == "documents"


def test_insert_documents(mock_create_client, mock_client, supabase_settings):
    store = SupabaseKnowledgeStore(cfg=supabase_settings)
    records = [
        {"content": "a", "metadata": {"source": "s"}, "embedding": [0.1]},
        {"content": "b", "metadata": {"source": "s"}, "embedding": [0.2]},
    ]

    assert store.insert_documents(records) == 2
    assert mock_client.table("documents").ops == [("insert", records)]


def test_insert_nothing_skips_the_client(
    mock_create_client, mock_client, supabase_settings
):
    store = SupabaseKnowledgeStore(cfg=supabase_settings)

    assert store.insert_documents([]) == 0
    assert mock_client._tables == {}


def test_delete_by_source_filters_on_metadata(
    mock_create_client, mock_client, supabase_settings
):
    store = SupabaseKnowledgeStore(cfg=supabase_settings)

    assert store.delete_by_source("NICE CKS") is True
    assert mock_client.table("documents").ops == [
        ("delete",),
        ("eq", "metadata->>source", "NICE CKS"),
    ]


def test_delete_by_source_reports_failure(
    mock_create_client, mock_client, supabase_settings
):
    mock_client._tables["documents"] = _MockTable(fail_on="delete")
    store = SupabaseKnowledgeStore(cfg=supabase_settings)

    assert store.delete_by_source("NICE CKS") is False


def test_match_documents_uses_configured_defaults(
    mock_create_client, mock_client, supabase_settings
):
    store = SupabaseKnowledgeStore(cfg=supabase_settings)

    rows = store.match_documents([0.1, 0.2])

    assert rows == mock_client.rpc_rows
    assert mock_client.rpc_calls == [
        (
            "match_docs",
            {"query_embedding": [0.1, 0.2], "match_threshold": 0.5, "match_count": 5},
        )
    ]


def test_match_documents_overrides(mock_create_client, mock_client, supabase_settings):
    mock_client.rpc_rows = None
    store = SupabaseKnowledgeStore(cfg=supabase_settings)

    assert store.match_documents([0.3], match_threshold=0.8, match_count=2) == []
    _, params = mock_client.rpc_calls[0]
    assert params["match_threshold"] == 0.8
    assert params["match_count"] == 2


def test_count_documents(mock_create_client, supabase_settings):
    store = SupabaseKnowledgeStore(cfg=supabase_settings)
    assert store.count_documents() == 7
