"""Durable vector store for embedded chunks.

VectorStore owns the lifetime of ChunkRecord rows:
- store_embeddings: idempotent upsert keyed by (session, document, chunk index).
  Each record is committed on its own unless atomic_writes is set, so a failure
  mid-batch leaves the earlier records persisted.
- find_similar_chunks: loads one session's rows through the session_id index and
  ranks them exhaustively by cosine similarity.
- clear_session_data / delete_document / replace_document: lifecycle deletes.

Every SQLAlchemy failure surfaces as StorageError.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from readerrag.db import session_scope
from readerrag.errors import StorageError
from readerrag.models import ChunkRecord
from readerrag.obs import span
from readerrag.retrieval import ScoredChunk, rank_chunks
from readerrag.utils import stable_chunk_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddedChunk:
    """A chunk's text paired with its embedding, ready to persist."""
    text: str
    vector: Sequence[float]


def _as_floats(vector: Iterable[float]) -> List[float]:
    # pgvector hands back numpy arrays; JSON columns hand back lists
    return [float(x) for x in vector]


class VectorStore:
    """Session-scoped store of ChunkRecord rows.

    Args:
        session_factory: Async session factory from readerrag.db.make_session_factory.
        atomic_writes: Persist each store_embeddings call in one transaction
            instead of one transaction per record.
    """

    def __init__(self, session_factory: async_sessionmaker, atomic_writes: bool = False):
        self._sessions = session_factory
        self.atomic_writes = atomic_writes

    @staticmethod
    async def _upsert(db: AsyncSession, session_id: str, document_id: str, index: int, chunk: EmbeddedChunk) -> None:
        await db.merge(
            ChunkRecord(
                id=stable_chunk_id(session_id, document_id, index),
                session_id=session_id,
                document_id=document_id,
                chunk_index=index,
                text=chunk.text,
                vector=_as_floats(chunk.vector),
            )
        )

    async def store_embeddings(self, session_id: str, document_id: str, chunks: Sequence[EmbeddedChunk]) -> None:
        """Persist one record per chunk, overwriting records at the same positions.

        Args:
            session_id: Owning session.
            document_id: Source document.
            chunks: Chunks in document order; position ``i`` becomes chunk_index ``i``.

        Raises:
            StorageError: If a write fails. Without atomic_writes, records written
                before the failure stay persisted.
        """
        if not chunks:
            return
        logger.info("Storing %d chunks for document %s in session %s", len(chunks), document_id, session_id)
        with span("store.store_embeddings", {"session_id": session_id, "document_id": document_id, "chunks": len(chunks)}):
            written = 0
            try:
                if self.atomic_writes:
                    async with session_scope(self._sessions) as db:
                        for i, chunk in enumerate(chunks):
                            await self._upsert(db, session_id, document_id, i, chunk)
                    written = len(chunks)
                else:
                    for i, chunk in enumerate(chunks):
                        async with session_scope(self._sessions) as db:
                            await self._upsert(db, session_id, document_id, i, chunk)
                        written += 1
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to store embeddings for document %s after %d/%d records: %s",
                    document_id, written, len(chunks), e,
                )
                raise StorageError("write", e) from e
        logger.debug("Stored %d chunks for document %s", written, document_id)

    async def find_similar_chunks(
        self, session_id: str, query_vector: Sequence[float], top_k: int = 3
    ) -> List[ScoredChunk]:
        """Return the session's ``top_k`` chunks most similar to ``query_vector``.

        Args:
            session_id: Query scope; other sessions are never read.
            query_vector: Embedded question.
            top_k: Maximum number of results.

        Returns:
            List[ScoredChunk]: Descending by score; empty when the session has no chunks.

        Raises:
            StorageError: If the read fails.
            DimensionMismatchError: If a stored vector's length differs from the query's.
        """
        stmt = (
            select(ChunkRecord.text, ChunkRecord.vector)
            .where(ChunkRecord.session_id == session_id)
            .order_by(ChunkRecord.document_id, ChunkRecord.chunk_index)
        )
        try:
            async with session_scope(self._sessions) as db:
                rows = (await db.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error("Failed to read records for session %s: %s", session_id, e)
            raise StorageError("read", e) from e

        logger.info("Retrieved %d records for session %s", len(rows), session_id)
        if not rows:
            return []
        with span("store.find_similar_chunks", {"session_id": session_id, "candidates": len(rows), "top_k": top_k}):
            return rank_chunks(query_vector, ((text, _as_floats(vec)) for text, vec in rows), top_k)

    async def clear_session_data(self, session_id: str) -> int:
        """Delete every record of a session.

        Returns:
            int: Number of records deleted.
        """
        try:
            async with session_scope(self._sessions) as db:
                result = await db.execute(delete(ChunkRecord).where(ChunkRecord.session_id == session_id))
        except SQLAlchemyError as e:
            logger.error("Failed to clear session %s: %s", session_id, e)
            raise StorageError("delete", e) from e
        logger.info("Cleared %d records for session %s", result.rowcount, session_id)
        return result.rowcount

    async def delete_document(self, session_id: str, document_id: str) -> int:
        """Delete every record of one document within a session.

        Returns:
            int: Number of records deleted.
        """
        stmt = delete(ChunkRecord).where(
            ChunkRecord.session_id == session_id,
            ChunkRecord.document_id == document_id,
        )
        try:
            async with session_scope(self._sessions) as db:
                result = await db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to delete document %s in session %s: %s", document_id, session_id, e)
            raise StorageError("delete", e) from e
        logger.info("Deleted %d records for document %s in session %s", result.rowcount, document_id, session_id)
        return result.rowcount

    async def replace_document(self, session_id: str, document_id: str, chunks: Sequence[EmbeddedChunk]) -> None:
        """Drop a document's previous records, then store ``chunks``.

        Unlike a plain re-store this also removes trailing records when the new
        version has fewer chunks.
        """
        await self.delete_document(session_id, document_id)
        await self.store_embeddings(session_id, document_id, chunks)

    async def count_chunks(self, session_id: str, document_id: Optional[str] = None) -> int:
        """Count records in a session, optionally restricted to one document."""
        stmt = select(func.count()).select_from(ChunkRecord).where(ChunkRecord.session_id == session_id)
        if document_id is not None:
            stmt = stmt.where(ChunkRecord.document_id == document_id)
        try:
            async with session_scope(self._sessions) as db:
                return int((await db.execute(stmt)).scalar_one())
        except SQLAlchemyError as e:
            raise StorageError("read", e) from e
