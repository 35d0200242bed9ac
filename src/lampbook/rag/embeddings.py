"""Embedding gateway — batched, rate-limit-friendly access to the embedding model.

``embed_batch()`` fans texts out in sub-batches of ``batch_size``: the texts of
one sub-batch are embedded concurrently, sub-batches run one after another.
Any provider failure surfaces as ``EmbeddingFailure``; partial results are
never returned.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from lampbook.config import EmbeddingCfg
from lampbook.errors import EmbeddingFailure
from lampbook.rag import llm_client


class EmbeddingGateway:
    """Turn text into fixed-length vectors via the configured embedding model.

    Args:
        config: Embedding configuration (model, batch_size, timeout).
    """

    def __init__(self, config: EmbeddingCfg | None = None) -> None:
        self._config = config or EmbeddingCfg()
        if self._config.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

    @property
    def model(self) -> str:
        return self._config.model

    async def embed_one(self, text: str) -> list[float]:
        """Embed a single text (e.g. a user query)."""
        try:
            return await self._call_provider(text)
        except Exception as exc:
            logger.warning("Embedding call failed: {}", exc)
            raise EmbeddingFailure(batch=False) from exc

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, returning one vector per text in input order."""
        size = self._config.batch_size
        vectors: list[list[float]] = []
        for offset in range(0, len(texts), size):
            batch = texts[offset : offset + size]
            results = await asyncio.gather(
                *(self._call_provider(t) for t in batch), return_exceptions=True
            )
            for i, result in enumerate(results):
                if isinstance(result, BaseException):
                    logger.warning(
                        "Embedding batch failed at item {}: {}", offset + i, result
                    )
                    raise EmbeddingFailure(batch=True, index=offset + i) from result
            vectors.extend(results)  # type: ignore[arg-type]
        return vectors

    async def _call_provider(self, text: str) -> list[float]:
        return await llm_client.aembed(
            self._config.model, text, timeout=self._config.timeout
        )
