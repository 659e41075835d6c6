"""Utility helpers for record identifiers and text chunking.

This module provides:
- stable_chunk_id: deterministic SHA-1 identifier for a (session, document, index) triple
- chunk_text: fixed-size character windows with overlap
"""
import hashlib
import logging
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500
DEFAULT_CHUNK_OVERLAP = 50


def stable_chunk_id(session_id: str, document_id: str, chunk_index: int) -> str:
    """Compute the record id for one chunk position.

    The same triple always maps to the same id, so re-ingesting a document
    overwrites the records at the same positions.

    Args:
        session_id: Owning session.
        document_id: Source document within the session.
        chunk_index: Zero-based chunk position.

    Returns:
        str: 40-char SHA-1 hex digest.
    """
    # Unit separator keeps ("a_b", "c") and ("a", "b_c") apart
    raw = "\x1f".join((session_id, document_id, str(chunk_index)))
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def chunk_text(text: str, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_CHUNK_OVERLAP) -> List[str]:
    """Split text into fixed-size character chunks with overlap.

    Windows of ``chunk_size`` characters start every ``chunk_size - overlap``
    characters; the last window may be shorter. Chunks are verbatim substrings.
    If ``overlap >= chunk_size`` it is clamped to ``chunk_size // 5``.

    Args:
        text: Input string to split.
        chunk_size: Window width in characters.
        overlap: Characters shared by consecutive chunks.

    Returns:
        List[str]: Ordered chunks; empty when ``text`` is empty.

    Raises:
        ValueError: If ``chunk_size`` is not positive or ``overlap`` is negative.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must be non-negative, got {overlap}")
    if not text:
        return []
    if overlap >= chunk_size:
        adjusted = chunk_size // 5
        logger.warning(
            "Chunk overlap (%d) was >= chunk size (%d); adjusted overlap to %d",
            overlap, chunk_size, adjusted,
        )
        overlap = adjusted

    step = chunk_size - overlap
    chunks: List[str] = []
    start = 0
    n = len(text)
    while start < n:
        end = min(n, start + chunk_size)
        chunks.append(text[start:end])
        if end == n:
            break
        start += step

    logger.debug(
        "Split text (%d chars) into %d chunks (size=%d, overlap=%d)",
        n, len(chunks), chunk_size, overlap,
    )
    return chunks
