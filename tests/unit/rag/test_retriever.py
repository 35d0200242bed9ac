"""Tests for cosine similarity and top-K search."""

from __future__ import annotations

import pytest

from lampbook.errors import DimensionMismatch
from lampbook.models import Chunk
from lampbook.rag.retriever import cosine_similarity, search
from lampbook.rag.store import VectorStore


class _ListStore:
    """Minimal store stand-in serving a fixed chunk list."""

    def __init__(self, chunks: list[Chunk]) -> None:
        self._chunks = chunks

    def chunks(self, source_ids=None) -> list[Chunk]:
        if source_ids is None:
            return list(self._chunks)
        wanted = set(source_ids)
        return [c for c in self._chunks if c.source_id in wanted]


def _chunk(source_id: str, index: int, embedding: list[float] | None) -> Chunk:
    return Chunk(source_id, f"{source_id}.txt", index, f"text {source_id}/{index}", embedding)


# ------------------------------------------------------------------
# cosine_similarity()
# ------------------------------------------------------------------


def test_cosine_identical_is_one():
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_cosine_opposite_is_minus_one():
    assert cosine_similarity([1.0, 0.0], [-2.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_orthogonal_is_zero():
    assert cosine_similarity([1.0, 0.0], [0.0, 5.0]) == pytest.approx(0.0)


def test_cosine_symmetric_and_scale_invariant():
    a, b = [1.0, 2.0, 0.5], [0.3, -1.0, 4.0]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity([x * 10 for x in a], b))


def test_cosine_zero_vector_scores_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_cosine_dimension_mismatch():
    with pytest.raises(DimensionMismatch) as info:
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
    assert (info.value.left, info.value.right) == (2, 3)


# ------------------------------------------------------------------
# search()
# ------------------------------------------------------------------


def test_search_empty_store(gateway):
    assert search([1.0, 0.0], VectorStore(gateway)) == []


def test_search_top_k_of_ten_sorted():
    chunks = [_chunk("src_a", i, [1.0, i / 10]) for i in range(10)]
    results = search([0.0, 1.0], _ListStore(chunks), top_k=3)
    assert [r.chunk.index for r in results] == [9, 8, 7]
    assert results[0].score >= results[1].score >= results[2].score


def test_search_fewer_candidates_than_k():
    chunks = [_chunk("src_a", 0, [1.0, 0.0]), _chunk("src_a", 1, [0.0, 1.0])]
    assert len(search([1.0, 0.0], _ListStore(chunks), top_k=5)) == 2


def test_search_skips_chunks_without_embedding():
    chunks = [_chunk("src_a", 0, None), _chunk("src_a", 1, [1.0, 0.0])]
    results = search([1.0, 0.0], _ListStore(chunks))
    assert [r.chunk.index for r in results] == [1]


def test_search_keeps_zero_scores():
    chunks = [_chunk("src_a", 0, [0.0, 1.0])]
    results = search([1.0, 0.0], _ListStore(chunks))
    assert len(results) == 1
    assert results[0].score == pytest.approx(0.0)


def test_search_ties_keep_insertion_order():
    chunks = [_chunk("src_a", i, [1.0, 1.0]) for i in range(4)]
    results = search([1.0, 1.0], _ListStore(chunks), top_k=4)
    assert [r.chunk.index for r in results] == [0, 1, 2, 3]


def test_search_restricted_to_source_ids():
    chunks = [_chunk("src_a", 0, [1.0, 0.0]), _chunk("src_b", 0, [1.0, 0.0])]
    results = search([1.0, 0.0], _ListStore(chunks), source_ids=["src_b"])
    assert [r.chunk.source_id for r in results] == ["src_b"]


def test_search_empty_source_filter_has_no_candidates():
    chunks = [_chunk("src_a", 0, [1.0, 0.0])]
    assert search([1.0, 0.0], _ListStore(chunks), source_ids=[]) == []


def test_search_non_positive_top_k():
    chunks = [_chunk("src_a", 0, [1.0, 0.0])]
    assert search([1.0, 0.0], _ListStore(chunks), top_k=0) == []


@pytest.mark.asyncio
async def test_search_over_real_store_ranks_relevant_source_first(gateway):
    store = VectorStore(gateway)
    await store.upsert("src_sky", "sky.txt", "The sky is blue. Blue is the color of the sky.")
    await store.upsert("src_grass", "grass.txt", "Grass is green.")
    query = await gateway.embed_one("what color is the sky")
    results = search(query, store, top_k=1)
    assert results[0].chunk.source_id == "src_sky"
