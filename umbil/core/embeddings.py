"""Wrapper around OpenAI text embeddings.

*Keeps everything behind a thin, testable abstraction so you can swap
models later (e.g. Azure, local models) without rewiring callers.*
"""

from __future__ import annotations

from functools import lru_cache
import logging
import math

from langchain_core.embeddings import Embeddings
from langchain_openai import OpenAIEmbeddings
from pydantic import SecretStr

from umbil.core.config import Settings

logger = logging.getLogger(__name__)


class _FallbackEmbeddings(Embeddings):
    """Deterministic lightweight embeddings for tests when OpenAI is unavailable."""

    def __init__(self, dim: int = 384):
        self.dim = dim

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._hash_embed(t) for t in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._hash_embed(text)

    def _hash_embed(self, text: str) -> list[float]:
        vec = [0.0] * self.dim
        if not text:
            return vec
        for i, ch in enumerate(text.encode("utf-8")):
            vec[i % self.dim] += (ch % 53) / 53.0
        # L2 normalise
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]


def prepare_for_embedding(text: str) -> str:
    """Flatten newlines; the embedding model is fed single-line input."""
    return text.replace("\n", " ")


def embed_texts(embeddings: Embeddings, texts: list[str]) -> list[list[float]]:
    """Embed a batch of chunk contents."""
    return embeddings.embed_documents([prepare_for_embedding(t) for t in texts])


@lru_cache(maxsize=1)
def get_embeddings() -> Embeddings:
    """Singleton OpenAIEmbeddings instance.

    Cached so that repeated calls don't re-instantiate network clients.
    """
    cfg = Settings()
    if not cfg.openai_api_key:
        logger.warning("OPENAI_API_KEY not set; using deterministic local embeddings")
        return _FallbackEmbeddings(dim=cfg.embedding_dim)
    try:
        return OpenAIEmbeddings(
            model=cfg.embedding_model,
            api_key=SecretStr(cfg.openai_api_key),
            chunk_size=1000,  # Match OpenAI API limit
        )
    except Exception:
        logger.exception("Could not create OpenAI embeddings; using local fallback")
        return _FallbackEmbeddings(dim=cfg.embedding_dim)
