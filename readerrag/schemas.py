"""Pydantic request/response schemas for the API.

Defines the public contracts used by the FastAPI endpoints:
- IngestRequest / IngestResponse: document ingestion into a session.
- QueryRequest / QueryResponse: question retrieval with the formatted context block.
- ContextChunk: one retrieved chunk and its similarity score.
- DeleteResponse: number of records removed.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class IngestRequest(BaseModel):
    """Request body for ingesting a document's extracted text.

    Attributes:
        document_id: Identifier of the document within the session.
        text: Plain text produced by the file reader.
        replace: Drop previously stored chunks of this document first.
    """
    document_id: str = Field(..., min_length=1, max_length=255)
    text: str
    replace: bool = False


class IngestResponse(BaseModel):
    document_id: str
    chunk_count: int


class QueryRequest(BaseModel):
    """Request body for retrieving context for a question.

    Attributes:
        question: The user question.
        top_k: Optional override for the number of chunks returned.
    """
    question: str = Field(..., min_length=1, description="User question")
    top_k: Optional[int] = Field(default=None, ge=1, le=50)


class ContextChunk(BaseModel):
    text: str
    score: float


class QueryResponse(BaseModel):
    """Retrieved chunks, best first, plus the context block built from them."""
    chunks: List[ContextChunk]
    context: str


class DeleteResponse(BaseModel):
    deleted: int
