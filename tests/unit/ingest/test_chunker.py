"""Tests for SentenceChunker and whitespace normalisation."""

from __future__ import annotations

import string

import pytest

from lampbook.ingest.chunker import SentenceChunker, normalize_whitespace
from lampbook.models import Chunk


def _letters(n: int) -> str:
    """n characters with no whitespace and no sentence terminators."""
    alphabet = string.ascii_lowercase
    return "".join(alphabet[i % 26] for i in range(n))


# ------------------------------------------------------------------
# normalize_whitespace()
# ------------------------------------------------------------------


def test_normalize_collapses_runs():
    assert normalize_whitespace("a  b\n\n\nc \t d") == "a b c d"


def test_normalize_trims():
    assert normalize_whitespace("   hello world \n") == "hello world"


def test_normalize_keeps_single_newline():
    assert normalize_whitespace("line one.\nline two.") == "line one.\nline two."


# ------------------------------------------------------------------
# Construction
# ------------------------------------------------------------------


def test_defaults():
    chunker = SentenceChunker()
    assert (chunker.chunk_size, chunker.overlap, chunker.boundary_window) == (1000, 200, 100)


def test_overlap_not_smaller_than_size_raises():
    with pytest.raises(ValueError, match="overlap"):
        SentenceChunker(chunk_size=100, overlap=100)


def test_zero_chunk_size_raises():
    with pytest.raises(ValueError, match="chunk_size"):
        SentenceChunker(chunk_size=0, overlap=0)


# ------------------------------------------------------------------
# split()
# ------------------------------------------------------------------


def test_empty_text_yields_nothing():
    assert SentenceChunker().split("") == []
    assert SentenceChunker().split("   \n\n  ") == []


def test_short_text_single_chunk():
    assert SentenceChunker().split("The sky is  blue.") == ["The sky is blue."]


def test_text_of_exactly_chunk_size_single_chunk():
    text = _letters(1000)
    assert SentenceChunker().split(text) == [text]


def test_no_terminators_fixed_windows():
    text = _letters(2500)
    chunks = SentenceChunker().split(text)
    assert chunks == [text[0:1000], text[800:1800], text[1600:2500]]


def test_consecutive_chunks_overlap():
    text = _letters(2500)
    chunks = SentenceChunker().split(text)
    for left, right in zip(chunks, chunks[1:]):
        assert left[-200:] == right[:200]


def test_chunks_cover_whole_text():
    text = _letters(3333)
    chunks = SentenceChunker(chunk_size=1000, overlap=200).split(text)
    rebuilt = chunks[0] + "".join(c[200:] for c in chunks[1:])
    assert rebuilt == text


def test_zero_overlap_disjoint():
    text = _letters(2000)
    assert SentenceChunker(chunk_size=1000, overlap=0).split(text) == [
        text[:1000],
        text[1000:],
    ]


def test_end_snaps_to_nearby_sentence_boundary():
    text = "a" * 949 + ". " + "b" * 1000
    chunks = SentenceChunker().split(text)
    assert chunks[0] == "a" * 949 + "."


def test_terminator_outside_window_ignored():
    text = "a" * 800 + ". " + "b" * 1500
    chunks = SentenceChunker().split(text)
    assert len(chunks[0]) == 1000


def test_newline_terminator_recognised():
    text = "a" * 979 + "!\n" + "b" * 1000
    chunks = SentenceChunker().split(text)
    assert chunks[0] == "a" * 979 + "!"


def test_boundary_after_end_preferred_when_closer():
    text = "a" * 1010 + "? " + "b" * 1000
    chunks = SentenceChunker().split(text)
    assert chunks[0] == "a" * 1010 + "?"


def test_small_windows_always_progress():
    text = "Hi. " * 50
    chunks = SentenceChunker(chunk_size=10, overlap=9, boundary_window=100).split(text)
    assert chunks
    assert all(c for c in chunks)


# ------------------------------------------------------------------
# chunk()
# ------------------------------------------------------------------


def test_chunk_returns_indexed_chunks():
    chunks = SentenceChunker().chunk("src_1", "notes.txt", _letters(2500))
    assert all(isinstance(c, Chunk) for c in chunks)
    assert [c.index for c in chunks] == [0, 1, 2]
    assert all(c.source_id == "src_1" and c.source_name == "notes.txt" for c in chunks)
    assert all(c.embedding is None for c in chunks)


def test_chunk_ids_derived_from_source_and_index():
    chunks = SentenceChunker().chunk("src_1", "notes.txt", _letters(1500))
    assert [c.id for c in chunks] == ["src_1_chunk_0", "src_1_chunk_1"]
