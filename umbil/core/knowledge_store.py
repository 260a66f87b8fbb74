"""Supabase-backed persistence for knowledge-base chunks.

This module provides a thin wrapper around the Supabase Python client to
store embedded chunks and run vector similarity search through a Postgres
function.

The schema can map to the following SQL (pgvector):

    create table if not exists documents (
      id bigserial primary key,
      content text not null,
      metadata jsonb default '{}'::jsonb,
      embedding vector(1536)
    );

    create or replace function match_docs (
      query_embedding vector(1536),
      match_threshold float,
      match_count int
    ) returns table (id bigint, content text, metadata jsonb, similarity float)
    language sql stable as $$
      select id, content, metadata, 1 - (embedding <=> query_embedding)
      from documents
      where 1 - (embedding <=> query_embedding) > match_threshold
      order by embedding <=> query_embedding
      limit match_count;
    $$;
"""

from __future__ import annotations

import logging
from typing import Any, cast

from umbil.core.config import Settings

try:
    # Import lazily to keep import-time errors out of unit tests when the
    # dependency is not needed. Tests can patch these symbols.
    from supabase import create_client
except Exception:  # pragma: no cover - handled in tests via monkeypatch
    create_client = None  # type: ignore

logger = logging.getLogger(__name__)


class SupabaseTables:
    documents: str

    def __init__(self, documents: str = "documents") -> None:
        self.documents = documents

    @classmethod
    def with_prefix(cls, prefix: str, documents: str = "documents") -> SupabaseTables:
        prefix = prefix or ""
        return cls(documents=f"{prefix}{documents}")


class SupabaseKnowledgeStore:
    """Chunk records (content + metadata + embedding) in Supabase Postgres."""

    def __init__(
        self, cfg: Settings | None = None, tables: SupabaseTables | None = None
    ):
        self.cfg = cfg or Settings()
        self.tables = tables or SupabaseTables(documents=self.cfg.documents_table)

        if not self.cfg.supabase_url or not self.cfg.supabase_key:
            raise RuntimeError(
                "Supabase configuration missing. Set SUPABASE_URL and SUPABASE_KEY."
            )

        if create_client is None:
            raise RuntimeError(
                "Supabase client is unavailable. Ensure 'supabase' package is installed."
            )

        self.client = create_client(self.cfg.supabase_url, self.cfg.supabase_key)

    @classmethod
    def from_settings(cls, cfg: Settings) -> SupabaseKnowledgeStore:
        """Build a store honouring ``supabase_table_prefix``."""
        tables = None
        if cfg.supabase_table_prefix:
            tables = SupabaseTables.with_prefix(
                cfg.supabase_table_prefix, documents=cfg.documents_table
            )
        return cls(cfg=cfg, tables=tables)

    # ----------------------------- Writes -------------------------------
    def insert_documents(self, records: list[dict[str, Any]]) -> int:
        """Insert ``{content, metadata, embedding}`` rows; returns rows written."""
        if not records:
            return 0
        res = self.client.table(self.tables.documents).insert(records).execute()
        data_any = getattr(res, "data", res)
        data_list = cast("list[dict[str, Any]] | None", data_any)
        written = len(data_list) if data_list else len(records)
        logger.info("Stored %d chunks in %s", written, self.tables.documents)
        return written

    def delete_by_source(self, source: str) -> bool:
        """Delete every chunk ingested from *source*. Returns True on success."""
        try:
            (
                self.client.table(self.tables.documents)
                .delete()
                .eq("metadata->>source", source)
                .execute()
            )
            return True
        except Exception:
            logger.exception("Could not delete chunks for source %r", source)
            return False

    # ----------------------------- Reads --------------------------------
    def match_documents(
        self,
        query_embedding: list[float],
        match_threshold: float | None = None,
        match_count: int | None = None,
    ) -> list[dict[str, Any]]:
        """Vector similarity search via the ``match_docs`` RPC."""
        params = {
            "query_embedding": query_embedding,
            "match_threshold": (
                self.cfg.match_threshold if match_threshold is None else match_threshold
            ),
            "match_count": self.cfg.match_count if match_count is None else match_count,
        }
        res = self.client.rpc(self.cfg.match_function, params).execute()
        data_any = getattr(res, "data", res)
        data_list = cast("list[dict[str, Any]] | None", data_any)
        return data_list or []

    def count_documents(self) -> int:
        """Lightweight probe used by the health check."""
        res = (
            self.client.table(self.tables.documents)
            .select("id", count="exact")
            .limit(1)
            .execute()
        )
        count = getattr(res, "count", None)
        return int(count or 0)
