"""FastAPI application entrypoint and routes.

Exposes the ingestion and query entry points of the retrieval core over HTTP.
The database schema is initialized at startup; the pipeline (and with it the
embedding client) is built on first use so that a missing provider configuration
surfaces as a 503 on the requests that need it rather than blocking startup.
"""
import logging

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from starlette.responses import JSONResponse

from readerrag.config import settings
from readerrag.db import init_db, make_engine, make_session_factory
from readerrag.embedding import EmbeddingClient
from readerrag.errors import ConfigurationError, StorageError
from readerrag.obs import configure_logging, span
from readerrag.pipeline import RagPipeline, RequestContext, RequestInProgressError, Result, build_context_block
from readerrag.schemas import (
    ContextChunk,
    DeleteResponse,
    IngestRequest,
    IngestResponse,
    QueryRequest,
    QueryResponse,
)
from readerrag.store import VectorStore

logger = logging.getLogger(__name__)

app = FastAPI(title="readerrag", version="0.1.0")


@app.on_event("startup")
async def on_startup() -> None:
    """Create the engine, ensure the schema exists and build the vector store."""
    configure_logging()
    engine = make_engine(settings.DATABASE_URL)
    await init_db(engine)
    app.state.engine = engine
    app.state.store = VectorStore(make_session_factory(engine), atomic_writes=settings.VECTOR_STORE_ATOMIC_WRITES)
    app.state.pipeline = None
    # One context per session so the in-flight guard spans overlapping requests
    app.state.contexts = {}
    logger.info("Vector store ready at %s", engine.url.render_as_string(hide_password=True))


@app.on_event("shutdown")
async def on_shutdown() -> None:
    """Close the embedding client and dispose of the engine."""
    pipeline = getattr(app.state, "pipeline", None)
    if pipeline is not None:
        await pipeline.aclose()
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()


def get_store(request: Request) -> VectorStore:
    return request.app.state.store


def get_pipeline(request: Request) -> RagPipeline:
    """Return the shared pipeline, building it on first use.

    Raises:
        HTTPException: 503 when the embedding provider is not configured.
    """
    pipeline = request.app.state.pipeline
    if pipeline is None:
        try:
            embedder = EmbeddingClient(settings.embedding_config())
        except ConfigurationError as e:
            logger.error("Embedding provider not configured: %s", e)
            raise HTTPException(status_code=503, detail=e.message) from e
        pipeline = RagPipeline(
            embedder=embedder,
            store=request.app.state.store,
            chunk_size=settings.CHUNK_SIZE,
            chunk_overlap=settings.CHUNK_OVERLAP,
            top_k=settings.TOP_K,
            enabled=settings.RAG_ENABLED,
        )
        request.app.state.pipeline = pipeline
    return pipeline


def get_context(session_id: str, request: Request) -> RequestContext:
    """Return the session's shared request context, creating it on first use."""
    contexts = request.app.state.contexts
    ctx = contexts.get(session_id)
    if ctx is None:
        ctx = contexts[session_id] = RequestContext(session_id=session_id)
    return ctx


def raise_for_failure(result: Result) -> None:
    """Map a failed pipeline result to an HTTP error; 409 when the session is busy."""
    if result.ok:
        return
    status = 409 if isinstance(result.cause, RequestInProgressError) else 502
    raise HTTPException(status_code=status, detail=result.error)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Unhandled storage failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Vector store unavailable."})


@app.get("/health")
def health():
    """Liveness probe endpoint.

    Returns:
        dict: {"status": "ok"} when the service is running.
    """
    return {"status": "ok"}


@app.post("/sessions/{session_id}/documents", response_model=IngestResponse)
async def ingest_document(
    session_id: str,
    req: IngestRequest,
    pipeline: RagPipeline = Depends(get_pipeline),
    ctx: RequestContext = Depends(get_context),
) -> IngestResponse:
    """Chunk, embed and store a document's text in a session."""
    with span("ingest", {"session_id": session_id, "document_id": req.document_id}):
        result = await pipeline.process_document(ctx, req.document_id, req.text, replace=req.replace)
    raise_for_failure(result)
    return IngestResponse(document_id=req.document_id, chunk_count=result.value)


@app.post("/sessions/{session_id}/query", response_model=QueryResponse)
async def query(
    session_id: str,
    req: QueryRequest,
    pipeline: RagPipeline = Depends(get_pipeline),
    ctx: RequestContext = Depends(get_context),
) -> QueryResponse:
    """Return the session's chunks most relevant to a question."""
    with span("query", {"session_id": session_id, "top_k": req.top_k}):
        result = await pipeline.retrieve_context(ctx, req.question, top_k=req.top_k)
    raise_for_failure(result)
    return QueryResponse(
        chunks=[ContextChunk(text=c.text, score=c.score) for c in result.value],
        context=build_context_block(result.value),
    )


@app.delete("/sessions/{session_id}", status_code=204)
async def clear_session(
    session_id: str, request: Request, store: VectorStore = Depends(get_store)
) -> Response:
    """Delete every stored chunk of a session."""
    await store.clear_session_data(session_id)
    contexts = request.app.state.contexts
    if session_id in contexts and not contexts[session_id].in_flight:
        del contexts[session_id]
    return Response(status_code=204)


@app.delete("/sessions/{session_id}/documents/{document_id}", response_model=DeleteResponse)
async def delete_document(
    session_id: str, document_id: str, store: VectorStore = Depends(get_store)
) -> DeleteResponse:
    """Delete one document's chunks from a session."""
    deleted = await store.delete_document(session_id, document_id)
    return DeleteResponse(deleted=deleted)
