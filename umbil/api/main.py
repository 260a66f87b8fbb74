from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from umbil.api.routes_knowledge import router as knowledge_router
from umbil.core.config import Settings
from umbil.core.knowledge_store import SupabaseKnowledgeStore
from umbil.core.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging(Settings().log_level)
    app = FastAPI(title="Umbil Knowledge API", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, object]:
        settings = Settings()
        supabase_configured = settings.supabase_configured
        api_auth_required = bool(settings.api_auth_key)

        supabase_can_query = False
        supabase_error: str | None = None
        document_count: int | None = None
        if supabase_configured:
            try:
                supa = SupabaseKnowledgeStore.from_settings(settings)
                document_count = supa.count_documents()
                supabase_can_query = True
            except Exception as e:  # avoid leaking secrets; return brief reason
                supabase_can_query = False
                supabase_error = str(e)[:200]

        return {
            "status": "ok",
            "supabase_configured": supabase_configured,
            "supabase_can_query": supabase_can_query,
            "supabase_error": supabase_error,
            "document_count": document_count,
            "api_auth_required": api_auth_required,
        }

    app.include_router(knowledge_router)
    return app


app = create_app()
