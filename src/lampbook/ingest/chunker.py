"""Sentence-aware overlapping chunker.

Text is whitespace-normalised, then walked in windows of ``chunk_size``
characters. A window's end is moved to the nearest sentence terminator within
``boundary_window`` characters either side of it, so chunks rarely cut a
sentence in half. Consecutive windows overlap by ``overlap`` characters.
"""

from __future__ import annotations

import re

from lampbook.models import Chunk

_TERMINATORS: tuple[str, ...] = (". ", "! ", "? ", ".\n", "!\n", "?\n")
_WHITESPACE_RUN = re.compile(r"\s{2,}")


def normalize_whitespace(text: str) -> str:
    """Collapse runs of two or more whitespace characters to one space and trim."""
    return _WHITESPACE_RUN.sub(" ", text).strip()


class SentenceChunker:
    """Split plain text into overlapping, sentence-aligned character windows.

    Args:
        chunk_size: Target window length in characters.
        overlap: Characters shared between consecutive windows; must be
            smaller than ``chunk_size``.
        boundary_window: How far (each side) from the tentative end to look
            for a sentence terminator.
    """

    def __init__(
        self, chunk_size: int = 1000, overlap: int = 200, boundary_window: int = 100
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        if boundary_window < 0:
            raise ValueError("boundary_window must be >= 0")
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.boundary_window = boundary_window

    def split(self, text: str) -> list[str]:
        """Return the ordered, non-empty chunk texts for *text*."""
        clean = normalize_whitespace(text)
        length = len(clean)
        segments: list[str] = []
        start = 0

        while start < length:
            end = start + self.chunk_size
            if end < length:
                end = self._sentence_break(clean, start, end)

            segment = clean[start:end].strip()
            if segment:
                segments.append(segment)

            if end >= length:
                break
            next_start = end - self.overlap
            # A boundary pulled back close to start would stall the walk.
            start = next_start if next_start > start else end

        return segments

    def chunk(self, source_id: str, source_name: str, text: str) -> list[Chunk]:
        """Split *text* into sequentially indexed Chunk objects (no embeddings)."""
        return [
            Chunk(source_id=source_id, source_name=source_name, index=i, text=t)
            for i, t in enumerate(self.split(text))
        ]

    def _sentence_break(self, text: str, start: int, end: int) -> int:
        """Return the terminator boundary closest to *end*, or *end* if none is near."""
        lo = max(start + 1, end - self.boundary_window)
        hi = min(len(text), end + self.boundary_window)
        window = text[lo:hi]

        best = end
        best_distance: int | None = None
        for terminator in _TERMINATORS:
            pos = window.find(terminator)
            while pos != -1:
                boundary = lo + pos + len(terminator)
                distance = abs(boundary - end)
                if best_distance is None or distance < best_distance:
                    best, best_distance = boundary, distance
                pos = window.find(terminator, pos + 1)
        return best
