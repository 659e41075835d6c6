"""Database ORM models.

Defines the single persistent entity of the vector store:
- ChunkRecord: one embedded chunk of a document, owned by a session. The
  session_id index is the query scope for similarity search; the
  (session_id, document_id) index serves document-level deletes.
"""
from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from readerrag.db import Base

# pgvector column on PostgreSQL, plain JSON array everywhere else
VectorType = JSON().with_variant(Vector(), "postgresql")


class ChunkRecord(Base):
    """Vector-embedded document chunk scoped to a session.

    The primary key is derived from (session_id, document_id, chunk_index) by
    readerrag.utils.stable_chunk_id, so writes to the same position overwrite.
    Rows are never updated in place by application code other than that upsert.
    """
    __tablename__ = "chunk_records"

    id = Column(String(64), primary_key=True)
    session_id = Column(String(255), nullable=False)
    document_id = Column(String(255), nullable=False)
    chunk_index = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    vector = Column(VectorType, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_chunk_records_session", "session_id"),
        Index("idx_chunk_records_session_doc", "session_id", "document_id"),
    )

    def __repr__(self) -> str:
        return f"<ChunkRecord {self.session_id}/{self.document_id}#{self.chunk_index}>"
