"""Curated-guideline lookup used to ground answers.

Embeds the question, asks the knowledge store for the closest chunks and
renders them as a context block for the answer prompt.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.embeddings import Embeddings

from umbil.core.embeddings import prepare_for_embedding
from umbil.core.knowledge_store import SupabaseKnowledgeStore

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE = "Unknown Source"


class KnowledgeRetriever:
    """Vector search over ingested guideline chunks."""

    def __init__(
        self,
        store: SupabaseKnowledgeStore,
        embeddings: Embeddings,
        match_threshold: float = 0.5,
        match_count: int = 5,
    ):
        self.store = store
        self.embeddings = embeddings
        self.match_threshold = match_threshold
        self.match_count = match_count

    def search(self, query: str) -> list[dict[str, Any]]:
        embedding = self.embeddings.embed_query(prepare_for_embedding(query))
        return self.store.match_documents(
            embedding,
            match_threshold=self.match_threshold,
            match_count=self.match_count,
        )

    def get_local_context(self, query: str) -> str:
        """Return a formatted context block, or ``""`` when nothing matches.

        Lookup failures are logged and reported as an empty context so that
        answering can continue without curated guidelines.
        """
        try:
            documents = self.search(query)
        except Exception:
            logger.exception("Knowledge base lookup failed")
            return ""

        if not documents:
            return ""

        return format_context(documents)


def format_context(documents: list[dict[str, Any]]) -> str:
    blocks = []
    for doc in documents:
        metadata = doc.get("metadata") or {}
        source = metadata.get("source") or UNKNOWN_SOURCE
        blocks.append(f"--- Source: {source} ---\n{doc.get('content', '')}")
    context_text = "\n\n".join(blocks)
    return f"-- Curated guidelines --\n{context_text}\n------\n"
