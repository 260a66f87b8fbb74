"""Ingestion pipeline: (rewrite) -> chunk -> embed -> store."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from langchain_core.embeddings import Embeddings

from umbil.core.embeddings import embed_texts
from umbil.core.knowledge_store import SupabaseKnowledgeStore
from umbil.ingestion.rewriter import Rewriter
from umbil.utils.markdown_chunker import MarkdownChunker

__all__ = ["IngestionError", "IngestionPipeline", "IngestionResult"]

logger = logging.getLogger(__name__)

REWRITTEN_TYPE = "umbil_rewrite_original"
GUIDELINE_TYPE = "guideline"

# Loader keys that are stored as columns or re-derived, not copied to metadata
_RESERVED_KEYS = {"id", "content"}


class IngestionError(RuntimeError):
    """Rewrite, embedding or storage failed for one source."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


@dataclass
class IngestionResult:
    source: str
    chunks_processed: int
    message: str
    success: bool = True


class IngestionPipeline:
    """Turns raw guideline text into embedded chunk rows in the knowledge store."""

    def __init__(
        self,
        store: SupabaseKnowledgeStore,
        embeddings: Embeddings,
        chunker: MarkdownChunker | None = None,
        rewriter: Rewriter | None = None,
    ):
        self.store = store
        self.embeddings = embeddings
        self.chunker = chunker or MarkdownChunker()
        self.rewriter = rewriter

    def ingest(
        self,
        text: str,
        source: str,
        rewrite: bool = True,
        replace_existing: bool = False,
    ) -> IngestionResult:
        """Ingest one document.

        Args:
            text: Raw markdown or plain text.
            source: Human-readable origin, stored on every chunk.
            rewrite: Run the LLM rewrite step before chunking.
            replace_existing: Delete chunks previously stored for *source*.

        Raises:
            ValueError: *text* or *source* is blank.
            IngestionError: rewrite, embedding or storage failed.
        """
        if not text or not text.strip() or not source or not source.strip():
            raise ValueError("Missing text or source")

        body = text
        if rewrite:
            if self.rewriter is None:
                raise IngestionError(source, "rewrite requested but no rewriter set")
            try:
                body = self.rewriter(text)
            except Exception as e:
                raise IngestionError(source, f"rewrite failed: {e}") from e

        chunks = self.chunker.chunk_markdown(body)
        doc_type = REWRITTEN_TYPE if rewrite else GUIDELINE_TYPE
        records = [
            {
                "content": chunk.content,
                "metadata": {
                    **_base_metadata(source, doc_type),
                    "headers": chunk.metadata.headers,
                    "chunk_type": chunk.metadata.type,
                },
            }
            for chunk in chunks
        ]

        processed = self._embed_and_store(records, source, replace_existing)

        if rewrite:
            message = "Contents have been rewritten and stored as Umbil Original."
        else:
            message = "Contents have been chunked and stored."
        logger.info("Ingested %s: %d chunks", source, processed)
        return IngestionResult(
            source=source, chunks_processed=processed, message=message
        )

    def ingest_chunks(
        self, chunks: list[dict[str, Any]], replace_existing: bool = False
    ) -> int:
        """Store loader output (see ``parse_markdown_file``) without re-chunking."""
        if not chunks:
            return 0
        source = str(chunks[0].get("source", ""))
        records = []
        for chunk in chunks:
            extra = {k: v for k, v in chunk.items() if k not in _RESERVED_KEYS}
            chunk_source = str(chunk.get("source", source))
            metadata = {**_base_metadata(chunk_source, GUIDELINE_TYPE), **extra}
            records.append({"content": chunk["content"], "metadata": metadata})
        return self._embed_and_store(records, source, replace_existing)

    def _embed_and_store(
        self,
        records: list[dict[str, Any]],
        source: str,
        replace_existing: bool = False,
    ) -> int:
        """Embed and insert *records*, replacing the rows stored for *source*.

        Old rows are deleted only after every embedding is in hand. A failed
        delete stops the insert so a source is never stored twice.
        """
        if not records:
            return 0
        try:
            vectors = embed_texts(self.embeddings, [r["content"] for r in records])
        except Exception as e:
            raise IngestionError(source, f"embedding failed: {e}") from e

        for record, vector in zip(records, vectors):
            record["embedding"] = vector

        if replace_existing and not self.store.delete_by_source(source):
            raise IngestionError(source, "could not delete previously stored chunks")

        try:
            return self.store.insert_documents(records)
        except Exception as e:
            raise IngestionError(source, f"storage failed: {e}") from e


def _base_metadata(source: str, doc_type: str) -> dict[str, Any]:
    return {"source": source, "type": doc_type, "original_ref": f"Based on: {source}"}
