"""Local file ingestor.

Reads a plain-text or Markdown file, then chunks, embeds and stores it in a
session through RagPipeline.process_document. PDF extraction is left to the host
application; hand this module the extracted text saved as .txt instead.

Usage:
  python -m readerrag.ingestion.ingest_file --session s1 --file notes.md
  python -m readerrag.ingestion.ingest_file --session s1 --file notes.md --document-id notes --replace

Configuration:
- Database: readerrag.config.settings.DATABASE_URL
- Embeddings: readerrag.config.settings.EMBEDDING_* (API key, endpoint, model name)
- Chunk params: readerrag.config.settings.CHUNK_SIZE, CHUNK_OVERLAP
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from readerrag.config import settings
from readerrag.db import init_db, make_engine, make_session_factory
from readerrag.embedding import EmbeddingClient
from readerrag.errors import ConfigurationError
from readerrag.pipeline import IngestResult, RagPipeline, RequestContext
from readerrag.store import VectorStore

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = {".txt", ".md", ".markdown"}


def read_text_file(path: Path) -> str:
    """Return the text of a .txt/.md file.

    Raises:
        ValueError: For unsupported file types.
    """
    if path.suffix.lower() not in TEXT_SUFFIXES:
        raise ValueError(f"Unsupported file type {path.suffix!r}; expected one of {sorted(TEXT_SUFFIXES)}")
    text = path.read_text(encoding="utf-8", errors="replace")
    logger.info("Read %d chars from %s", len(text), path)
    return text


async def ingest_file(
    session_id: str, path: Path, document_id: Optional[str] = None, replace: bool = False
) -> IngestResult:
    """Ingest one file into a session using the configured database and provider."""
    engine = make_engine(settings.DATABASE_URL)
    try:
        await init_db(engine)
        store = VectorStore(make_session_factory(engine), atomic_writes=settings.VECTOR_STORE_ATOMIC_WRITES)
        async with EmbeddingClient(settings.embedding_config()) as embedder:
            pipeline = RagPipeline(
                embedder=embedder,
                store=store,
                chunk_size=settings.CHUNK_SIZE,
                chunk_overlap=settings.CHUNK_OVERLAP,
                top_k=settings.TOP_K,
                enabled=settings.RAG_ENABLED,
            )
            ctx = RequestContext(session_id=session_id)
            return await pipeline.process_document(
                ctx, document_id or path.name, read_text_file(path), replace=replace
            )
    finally:
        await engine.dispose()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Ingest a .txt/.md file into a retrieval session.")
    parser.add_argument("--session", required=True, help="Session id to store the chunks under")
    parser.add_argument("--file", required=True, type=Path, help="Path of the file to ingest")
    parser.add_argument("--document-id", default=None, help="Document id (default: file name)")
    parser.add_argument("--replace", action="store_true", help="Delete the document's previous chunks first")
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: settings.LOG_LEVEL)",
    )
    args = parser.parse_args(argv)

    from readerrag.obs import configure_logging

    configure_logging(args.log_level)
    logger.info("Starting ingestion of %s into session %s", args.file, args.session)

    try:
        result = asyncio.run(ingest_file(args.session, args.file, args.document_id, args.replace))
    except (ConfigurationError, ValueError, OSError) as e:
        logger.error("Cannot ingest %s: %s", args.file, e)
        print(f"[INGEST] {args.file} -> {e}", file=sys.stderr)
        return 2
    if not result.ok:
        logger.error("Ingestion failed for %s: %s", args.file, result.cause)
        print(f"[INGEST] {args.file} -> {result.error}", file=sys.stderr)
        return 1
    print(f"[INGEST] {args.file} -> {result.value} chunks")
    return 0


if __name__ == "__main__":
    sys.exit(main())
