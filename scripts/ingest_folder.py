"""CLI helper - bulk-ingest an entire directory of ``.md`` guideline files.

Usage::

    python -m scripts.ingest_folder ~/Guidelines
    python -m scripts.ingest_folder ~/Guidelines --dry-run
"""

from __future__ import annotations

import pathlib

import click

from umbil.core.config import Settings
from umbil.core.embeddings import get_embeddings
from umbil.core.knowledge_store import SupabaseKnowledgeStore
from umbil.core.logging_config import configure_logging
from umbil.ingestion.markdown_loader import parse_markdown_file
from umbil.ingestion.pipeline import IngestionPipeline
from umbil.utils.markdown_chunker import MarkdownChunker


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument(
    "directory", type=click.Path(exists=True, file_okay=False, path_type=pathlib.Path)
)
@click.option("--dry-run", is_flag=True, help="Parse + chunk but skip Supabase upload.")
@click.option(
    "--replace", is_flag=True, help="Delete chunks previously stored for each file."
)
def main(
    directory: pathlib.Path,
    dry_run: bool,
    replace: bool = False,
    pipeline: IngestionPipeline | None = None,
) -> None:
    """Index every ``.md`` under *DIRECTORY* (recursive)."""
    cfg = Settings()
    configure_logging(cfg.log_level)
    chunker = MarkdownChunker(**cfg.chunker_options())

    if pipeline is None and not dry_run:
        pipeline = IngestionPipeline(
            store=SupabaseKnowledgeStore.from_settings(cfg),
            embeddings=get_embeddings(),
            chunker=chunker,
        )

    paths = sorted(directory.rglob("*.md"))
    if not paths:
        click.echo("No markdown files found - exiting.")
        raise SystemExit(0)

    total = 0
    with click.progressbar(paths, label="Ingesting files...") as bar:
        for p in bar:
            chunks = parse_markdown_file(p, chunker=chunker)
            total += len(chunks)
            if pipeline is not None and not dry_run:
                pipeline.ingest_chunks(chunks, replace_existing=replace)

    click.echo(f"Done. {total} chunks from {len(paths)} files.")


if __name__ == "__main__":  # pragma: no cover
    main()
