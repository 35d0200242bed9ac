"""Tests for EmbeddingGateway batching and failure reporting."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lampbook.config import EmbeddingCfg
from lampbook.errors import EmbeddingFailure
from lampbook.rag.embeddings import EmbeddingGateway


class _TrackingGateway(EmbeddingGateway):
    """Records the peak number of concurrent provider calls."""

    def __init__(self, batch_size: int) -> None:
        super().__init__(EmbeddingCfg(model="fake/embed", batch_size=batch_size))
        self.in_flight = 0
        self.peak = 0

    async def _call_provider(self, text: str) -> list[float]:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        return [float(len(text))]


def test_batch_size_must_be_positive():
    with pytest.raises(ValueError):
        EmbeddingGateway(EmbeddingCfg(batch_size=0))


def test_model_property():
    assert EmbeddingGateway(EmbeddingCfg(model="gemini/x")).model == "gemini/x"


@pytest.mark.asyncio
async def test_embed_one_calls_litellm():
    response = MagicMock()
    response.data = [{"embedding": [1.0, 0.0]}]
    with patch(
        "lampbook.rag.llm_client.litellm.aembedding", new=AsyncMock(return_value=response)
    ) as mock:
        vector = await EmbeddingGateway(EmbeddingCfg(model="gemini/x", timeout=7)).embed_one("sky")
    assert vector == [1.0, 0.0]
    assert mock.call_args.kwargs["model"] == "gemini/x"
    assert mock.call_args.kwargs["timeout"] == 7


@pytest.mark.asyncio
async def test_embed_one_failure_wrapped():
    with patch(
        "lampbook.rag.llm_client.litellm.aembedding",
        new=AsyncMock(side_effect=RuntimeError("boom")),
    ):
        with pytest.raises(EmbeddingFailure) as info:
            await EmbeddingGateway().embed_one("sky")
    assert info.value.batch is False
    assert info.value.index is None


@pytest.mark.asyncio
async def test_embed_batch_preserves_order(gateway):
    texts = ["sky", "grass green", "water boils", "blue sky blue"]
    vectors = await gateway.embed_batch(texts)
    assert len(vectors) == 4
    assert vectors[3] == await gateway.embed_one("blue sky blue")


@pytest.mark.asyncio
async def test_embed_batch_empty(gateway):
    assert await gateway.embed_batch([]) == []
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_embed_batch_concurrency_bounded_by_batch_size():
    gateway = _TrackingGateway(batch_size=3)
    vectors = await gateway.embed_batch(["a", "bb", "ccc", "dddd", "eeeee", "ffffff", "g"])
    assert vectors == [[1.0], [2.0], [3.0], [4.0], [5.0], [6.0], [1.0]]
    assert gateway.peak == 3


@pytest.mark.asyncio
async def test_embed_batch_failure_reports_index(gateway_factory):
    gateway = gateway_factory(batch_size=2, fail_on="FAIL")
    with pytest.raises(EmbeddingFailure) as info:
        await gateway.embed_batch(["sky", "grass", "water", "FAIL here", "blue"])
    assert info.value.batch is True
    assert info.value.index == 3
    # the sub-batch after the failing one never started
    assert "blue" not in gateway.calls
