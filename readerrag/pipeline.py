"""Ingestion and query orchestration.

RagPipeline ties the pieces together:
- process_document: read -> chunk -> embed -> store, tracked on a RequestContext.
- retrieve_context: embed the question -> rank the session's chunks.
- build_context_block: format retrieved chunks for the downstream LLM prompt.

Neither operation retries. Internal errors are logged and mapped to one
user-visible message per operation; the underlying exception stays on the
result for callers that need it.
"""
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Iterator, List, Optional, TypeVar

from readerrag.embedding import EmbeddingClient
from readerrag.errors import RagError
from readerrag.retrieval import ScoredChunk
from readerrag.store import EmbeddedChunk, VectorStore
from readerrag.utils import DEFAULT_CHUNK_OVERLAP, DEFAULT_CHUNK_SIZE, chunk_text

logger = logging.getLogger(__name__)

T = TypeVar("T")

INGEST_FAILED = "Failed to process document."
QUESTION_FAILED = "Failed to answer question."
REQUEST_IN_PROGRESS = "A request is already in progress for this session."


class DocumentState(str, Enum):
    """Processing states of one document request."""

    IDLE = "idle"
    READING = "reading"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORING = "storing"
    DONE = "done"
    FAILED = "failed"


class RequestInProgressError(RagError):
    """Raised when a context already has a user-initiated request in flight."""

    def __init__(self, session_id: str) -> None:
        super().__init__(REQUEST_IN_PROGRESS, {"session_id": session_id})


@dataclass
class RequestContext:
    """Per-session request state passed explicitly into pipeline calls.

    Attributes:
        session_id: Scope for storage and retrieval.
        request_id: Correlation id used in log lines.
        state: Last state reached by process_document.
        in_flight: True while a user-initiated request is running.
    """
    session_id: str
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: DocumentState = DocumentState.IDLE
    in_flight: bool = False

    @contextmanager
    def begin(self) -> Iterator["RequestContext"]:
        """Mark the context busy for the enclosed block.

        Raises:
            RequestInProgressError: If another request already holds the context.
        """
        if self.in_flight:
            raise RequestInProgressError(self.session_id)
        self.in_flight = True
        try:
            yield self
        finally:
            self.in_flight = False


@dataclass
class Result(Generic[T]):
    """Outcome of a pipeline operation.

    Attributes:
        value: Payload on success.
        error: User-visible failure message, None on success.
        cause: Underlying exception on failure.
    """
    value: Optional[T] = None
    error: Optional[str] = None
    cause: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


IngestResult = Result[int]
RetrievalResult = Result[List[ScoredChunk]]


def build_context_block(chunks: List[ScoredChunk]) -> str:
    """Create an enumerated context block from retrieved chunks.

    Args:
        chunks: Ranked retrieval results.

    Returns:
        str: ``[n] (score 0.873)`` headers followed by chunk text, blank-line separated.
    """
    lines: List[str] = []
    for i, c in enumerate(chunks, start=1):
        lines.append(f"[{i}] (score {c.score:.3f})\n{c.text}")
    return "\n\n".join(lines)


class RagPipeline:
    """Document ingestion and question retrieval over one vector store.

    Args:
        embedder: Client for the embedding provider.
        store: Vector store shared by all sessions.
        chunk_size: Chunk window width in characters.
        chunk_overlap: Characters shared by consecutive chunks.
        top_k: Default number of chunks returned per question.
        enabled: When False both operations short-circuit without I/O.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: VectorStore,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        top_k: int = 3,
        enabled: bool = True,
    ):
        self.embedder = embedder
        self.store = store
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.top_k = top_k
        self.enabled = enabled

    async def aclose(self) -> None:
        await self.embedder.aclose()

    async def process_document(
        self, ctx: RequestContext, document_id: str, raw_text: Optional[str], replace: bool = False
    ) -> IngestResult:
        """Chunk, embed and store one document in the context's session.

        Args:
            ctx: Session context; its state tracks progress.
            document_id: Identifier of the document within the session.
            raw_text: Text from the file reader.
            replace: Delete the document's previous records before storing.

        Returns:
            IngestResult: Number of chunks stored, or a user-visible error.
        """
        if not self.enabled:
            logger.info("[%s] RAG is disabled, skipping document %s", ctx.request_id, document_id)
            return Result(value=0)
        try:
            with ctx.begin():
                ctx.state = DocumentState.READING
                text = raw_text or ""
                logger.info("[%s] Processing document %s (%d chars)", ctx.request_id, document_id, len(text))

                ctx.state = DocumentState.CHUNKING
                chunks = chunk_text(text, self.chunk_size, self.chunk_overlap)
                if not chunks:
                    ctx.state = DocumentState.DONE
                    return Result(value=0)

                ctx.state = DocumentState.EMBEDDING
                vectors = await self.embedder.get_embeddings(chunks)

                ctx.state = DocumentState.STORING
                records = [EmbeddedChunk(text=t, vector=v) for t, v in zip(chunks, vectors)]
                if replace:
                    await self.store.replace_document(ctx.session_id, document_id, records)
                else:
                    await self.store.store_embeddings(ctx.session_id, document_id, records)

                ctx.state = DocumentState.DONE
                logger.info("[%s] Document %s stored as %d chunks", ctx.request_id, document_id, len(records))
                return Result(value=len(records))
        except RequestInProgressError as e:
            return Result(error=REQUEST_IN_PROGRESS, cause=e)
        except (RagError, ValueError) as e:
            failed_at = ctx.state
            ctx.state = DocumentState.FAILED
            logger.error("[%s] Ingest of %s failed while %s: %s", ctx.request_id, document_id, failed_at.value, e)
            return Result(error=INGEST_FAILED, cause=e)

    async def retrieve_context(
        self, ctx: RequestContext, question: str, top_k: Optional[int] = None
    ) -> RetrievalResult:
        """Embed a question and return the session's most similar chunks.

        Args:
            ctx: Session context.
            question: Free-form user question.
            top_k: Override for the pipeline's default.

        Returns:
            RetrievalResult: Ranked chunks (possibly empty), or a user-visible error.
        """
        if not self.enabled or not question.strip():
            return Result(value=[])
        k = self.top_k if top_k is None else top_k
        try:
            with ctx.begin():
                query_vector = await self.embedder.embed_query(question)
                chunks = await self.store.find_similar_chunks(ctx.session_id, query_vector, k)
        except RequestInProgressError as e:
            return Result(error=REQUEST_IN_PROGRESS, cause=e)
        except RagError as e:
            logger.error("[%s] Retrieval for session %s failed: %s", ctx.request_id, ctx.session_id, e)
            return Result(error=QUESTION_FAILED, cause=e)
        logger.info("[%s] Retrieved %d chunk(s) for session %s", ctx.request_id, len(chunks), ctx.session_id)
        return Result(value=chunks)

    async def clear_session(self, ctx: RequestContext) -> int:
        """Delete all stored chunks of the context's session."""
        removed = await self.store.clear_session_data(ctx.session_id)
        ctx.state = DocumentState.IDLE
        return removed
