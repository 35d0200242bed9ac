"""In-memory vector store keyed by source id.

One chunk set per source. ``upsert()`` chunks and embeds *outside* the writer
lock, then swaps the finished set in under it, so a failed or superseded
embedding run never leaves a half-populated source behind.

Each source id carries a generation counter. ``upsert()`` claims a fresh
generation when it starts, and ``remove()`` and ``clear()`` bump it too. An
upsert commits only if its generation is still the current one, so the
last-started upsert wins and a removed source is never resurrected.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from lampbook.ingest.chunker import SentenceChunker
from lampbook.models import Chunk
from lampbook.rag.embeddings import EmbeddingGateway


@dataclass
class VectorStoreStats:
    total_chunks: int = 0
    unique_source_count: int = 0
    source_ids: list[str] = field(default_factory=list)


class VectorStore:
    """Chunks + embeddings for the sources of one workspace.

    Args:
        gateway: Embedding gateway used to embed chunk texts.
        chunker: Chunker used to split source text (defaults to 1000/200).
    """

    def __init__(
        self, gateway: EmbeddingGateway, chunker: SentenceChunker | None = None
    ) -> None:
        self._gateway = gateway
        self._chunker = chunker or SentenceChunker()
        self._by_source: dict[str, list[Chunk]] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def upsert(self, source_id: str, source_name: str, full_text: str) -> int:
        """Replace the chunk set of *source_id* with freshly embedded chunks.

        Returns the number of chunks stored (0 if the result was discarded
        because the source was removed, or a later upsert for it started,
        meanwhile).

        Raises:
            EmbeddingFailure: The store is left exactly as it was before the call.
        """
        self._bump(source_id)
        generation = self._generations[source_id]
        epoch = self._epoch

        chunks = self._chunker.chunk(source_id, source_name, full_text)
        embeddings = await self._gateway.embed_batch([c.text for c in chunks])
        for chunk, embedding in zip(chunks, embeddings):
            chunk.embedding = embedding

        async with self._lock:
            if self._epoch != epoch or self._generations.get(source_id, 0) != generation:
                logger.debug("Discarding stale upsert for source {}", source_id)
                return 0
            self._by_source.pop(source_id, None)
            if chunks:
                self._by_source[source_id] = chunks

        logger.debug("Indexed {} chunks for source {}", len(chunks), source_id)
        return len(chunks)

    async def remove(self, source_id: str) -> None:
        """Delete all chunks of *source_id*. No-op if absent."""
        async with self._lock:
            self._by_source.pop(source_id, None)
            self._bump(source_id)

    async def clear(self) -> None:
        """Empty the store."""
        async with self._lock:
            self._by_source.clear()
            self._generations.clear()
            self._epoch += 1

    def _bump(self, source_id: str) -> None:
        self._generations[source_id] = self._generations.get(source_id, 0) + 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def chunks(self, source_ids: Iterable[str] | None = None) -> list[Chunk]:
        """Return stored chunks in insertion order, optionally filtered by source."""
        if source_ids is None:
            return [c for chunks in self._by_source.values() for c in chunks]
        wanted = set(source_ids)
        return [
            c
            for sid, chunks in self._by_source.items()
            if sid in wanted
            for c in chunks
        ]

    def has_source(self, source_id: str) -> bool:
        return source_id in self._by_source

    def stats(self) -> VectorStoreStats:
        return VectorStoreStats(
            total_chunks=sum(len(c) for c in self._by_source.values()),
            unique_source_count=len(self._by_source),
            source_ids=list(self._by_source),
        )

    def __len__(self) -> int:
        return sum(len(c) for c in self._by_source.values())
