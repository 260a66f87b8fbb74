from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from fastapi import Header
from fastapi import HTTPException
from pydantic import BaseModel
from pydantic import Field

from umbil.core.config import Settings
from umbil.core.embeddings import get_embeddings
from umbil.core.knowledge_store import SupabaseKnowledgeStore
from umbil.core.retriever import KnowledgeRetriever
from umbil.ingestion.pipeline import IngestionPipeline
from umbil.ingestion.rewriter import build_rewriter
from umbil.utils.markdown_chunker import MarkdownChunker

logger = logging.getLogger(__name__)

router = APIRouter()


class IngestionRequest(BaseModel):
    text: str = Field(default="", description="Guideline text (markdown)")
    source: str = Field(default="", description="Where the text came from")
    rewrite: bool = Field(
        default=True, description="Rewrite into original wording before chunking"
    )
    replace_existing: bool = Field(
        default=False, description="Delete chunks previously stored for this source"
    )
    use_test_supabase: bool = Field(
        default=False,
        description="Use test Supabase tables (prefix) instead of production",
    )


class IngestionResponse(BaseModel):
    success: bool
    chunks_processed: int
    message: str


class ChunkPreviewRequest(BaseModel):
    text: str = Field(..., description="Markdown to chunk")
    max_chunk_size: int | None = Field(default=None, ge=1)
    min_chunk_size: int | None = Field(default=None, ge=0)
    overlap_size: int | None = Field(default=None, ge=0)


class ChunkMetadataModel(BaseModel):
    headers: list[str]
    type: str


class ChunkModel(BaseModel):
    content: str
    metadata: ChunkMetadataModel


class ChunkPreviewResponse(BaseModel):
    chunks: list[ChunkModel]


class ContextRequest(BaseModel):
    query: str = Field(..., description="Clinical question")
    use_test_supabase: bool = Field(default=False)


class ContextResponse(BaseModel):
    context: str


def _settings_for_request(use_test_supabase: bool = False) -> Settings:
    return Settings.for_testing() if use_test_supabase else Settings()


def _require_api_key_if_configured(cfg: Settings, x_api_key: str | None) -> None:
    """Require x-api-key header if API auth key is configured.

    If no api_auth_key is set in configuration, this is a no-op.
    """
    if cfg.api_auth_key and x_api_key != cfg.api_auth_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def get_ingestion_pipeline(cfg: Settings, rewrite: bool) -> IngestionPipeline:
    return IngestionPipeline(
        store=SupabaseKnowledgeStore.from_settings(cfg),
        embeddings=get_embeddings(),
        chunker=MarkdownChunker(**cfg.chunker_options()),
        rewriter=build_rewriter(cfg) if rewrite else None,
    )


def get_retriever(cfg: Settings) -> KnowledgeRetriever | None:
    """Create a retriever if Supabase is configured, else return None."""
    if not cfg.supabase_configured:
        return None
    return KnowledgeRetriever(
        store=SupabaseKnowledgeStore.from_settings(cfg),
        embeddings=get_embeddings(),
        match_threshold=cfg.match_threshold,
        match_count=cfg.match_count,
    )


@router.post("/admin/ingestion")
def ingest(
    req: IngestionRequest,
    x_api_key: str | None = Header(default=None, alias="x-api-key"),
) -> IngestionResponse:
    cfg = _settings_for_request(req.use_test_supabase)
    _require_api_key_if_configured(cfg, x_api_key)

    if not req.text.strip() or not req.source.strip():
        raise HTTPException(status_code=400, detail="Missing text or source")

    try:
        pipeline = get_ingestion_pipeline(cfg, rewrite=req.rewrite)
        result = pipeline.ingest(
            req.text,
            req.source,
            rewrite=req.rewrite,
            replace_existing=req.replace_existing,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.exception("Ingest error for %r", req.source)
        raise HTTPException(status_code=500, detail=str(e)) from e

    return IngestionResponse(
        success=result.success,
        chunks_processed=result.chunks_processed,
        message=result.message,
    )


@router.post("/admin/chunk")
def preview_chunks(
    req: ChunkPreviewRequest,
    x_api_key: str | None = Header(default=None, alias="x-api-key"),
) -> ChunkPreviewResponse:
    """Show how a document would be chunked, without embedding or storing it."""
    cfg = _settings_for_request()
    _require_api_key_if_configured(cfg, x_api_key)

    options: dict[str, Any] = cfg.chunker_options()
    overrides = req.model_dump(
        include={"max_chunk_size", "min_chunk_size", "overlap_size"},
        exclude_none=True,
    )
    options.update(overrides)
    if "max_chunk_size" in overrides and "min_chunk_size" not in overrides:
        options["min_chunk_size"] = min(
            options["min_chunk_size"], overrides["max_chunk_size"]
        )
    try:
        chunker = MarkdownChunker(**options)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    chunks = chunker.chunk_markdown(req.text)
    return ChunkPreviewResponse(
        chunks=[ChunkModel.model_validate(chunk.to_dict()) for chunk in chunks]
    )


@router.post("/knowledge/context")
def knowledge_context(req: ContextRequest) -> ContextResponse:
    if not req.query.strip():
        raise HTTPException(status_code=400, detail="Query cannot be empty")

    cfg = _settings_for_request(req.use_test_supabase)
    retriever = get_retriever(cfg)
    if retriever is None:
        return ContextResponse(context="")
    return ContextResponse(context=retriever.get_local_context(req.query))
