"""Dense retriever: cosine similarity over the in-memory vector store.

  similarity(a, b) = dot(a, b) / (|a| * |b|)

Chunks without an embedding are not candidates at all; they are never scored
as 0. A genuine score of 0 (orthogonal vectors) is still a valid result.
Ties keep store insertion order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from lampbook.errors import DimensionMismatch
from lampbook.models import Chunk
from lampbook.rag.store import VectorStore


@dataclass
class ScoredChunk:
    """A retrieved chunk together with its cosine similarity to the query."""

    chunk: Chunk
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of *a* and *b*.

    A zero-length (all zeros) vector has no direction; it scores 0.0.

    Raises:
        DimensionMismatch: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def search(
    query_vector: Sequence[float],
    store: VectorStore,
    top_k: int = 5,
    source_ids: Iterable[str] | None = None,
) -> list[ScoredChunk]:
    """Rank stored chunks against *query_vector* and return the best *top_k*.

    Args:
        query_vector: Embedding of the query.
        store: Vector store to search.
        top_k: Maximum number of results.
        source_ids: If given, only chunks of these sources are candidates.

    Returns:
        ScoredChunks, best first. Empty if there are no candidates.
    """
    if top_k < 1:
        return []

    scored = [
        ScoredChunk(chunk=chunk, score=cosine_similarity(query_vector, chunk.embedding))
        for chunk in store.chunks(source_ids)
        if chunk.embedding is not None
    ]
    # list.sort is stable, also with reverse=True
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[:top_k]
