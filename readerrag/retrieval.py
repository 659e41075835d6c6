"""Exact similarity ranking over session-scoped candidates.

This module implements:
- ScoredChunk: (text, score) result pair
- cosine_similarity: cosine of the angle between two vectors
- rank_chunks: brute-force top-K over (text, vector) candidates

Search is exhaustive: every candidate in the session is scored, O(n) per query.
Session corpora are a handful of documents (tens to low hundreds of chunks), so no
approximate index is used. If sessions grow into the thousands of chunks, an ANN
index can replace rank_chunks behind VectorStore.find_similar_chunks unchanged.
"""
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from readerrag.errors import DimensionMismatchError


@dataclass(frozen=True)
class ScoredChunk:
    """A retrieved chunk and its cosine similarity to the query.

    Attributes:
        text: Chunk content.
        score: Cosine similarity in [-1, 1].
    """
    text: str
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity ``dot(a, b) / (|a| * |b|)``.

    Args:
        a: First vector.
        b: Second vector, same length as ``a``.

    Returns:
        float: Similarity in [-1, 1]; 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise DimensionMismatchError(va.size, vb.size)
    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    score = float(np.dot(va, vb) / (na * nb))
    # Rounding can push identical vectors a hair past 1
    return max(-1.0, min(1.0, score))


def rank_chunks(
    query_vector: Sequence[float],
    candidates: Iterable[Tuple[str, Sequence[float]]],
    top_k: int,
) -> List[ScoredChunk]:
    """Score every candidate against the query and keep the best ``top_k``.

    Args:
        query_vector: Embedded question.
        candidates: (text, vector) pairs, typically every chunk of one session.
        top_k: Maximum number of results.

    Returns:
        List[ScoredChunk]: Descending by score; ties keep candidate order.

    Raises:
        DimensionMismatchError: If any candidate vector's length differs from the query's.
    """
    if top_k <= 0:
        return []
    scored = [ScoredChunk(text=t, score=cosine_similarity(query_vector, v)) for t, v in candidates]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[:top_k]
