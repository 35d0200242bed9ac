"""Shared pytest fixtures: deterministic, provider-free collaborators."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator

import pytest

from lampbook.config import EmbeddingCfg, LampbookConfig
from lampbook.errors import ExtractionFailure
from lampbook.ingest.base import ExtractedDocument, detect_kind
from lampbook.ingest.summarizer import Analysis
from lampbook.models import SourceKind
from lampbook.rag.embeddings import EmbeddingGateway
from lampbook.rag.session import ChatCapability

VOCABULARY = ("sky", "blue", "grass", "green", "water", "boils", "color", "photosynthesis")


def keyword_vector(text: str) -> list[float]:
    """Bag-of-words vector over VOCABULARY, plus a constant bias dimension."""
    words = text.lower()
    return [float(words.count(term)) for term in VOCABULARY] + [0.1]


class FakeGateway(EmbeddingGateway):
    """Keyword-count embeddings; optionally fails on texts containing *fail_on*."""

    def __init__(self, batch_size: int = 10, fail_on: str | None = None) -> None:
        super().__init__(EmbeddingCfg(model="fake/embed", batch_size=batch_size))
        self.fail_on = fail_on
        self.calls: list[str] = []

    async def _call_provider(self, text: str) -> list[float]:
        self.calls.append(text)
        await asyncio.sleep(0)
        if self.fail_on is not None and self.fail_on in text:
            raise RuntimeError("provider unavailable")
        return keyword_vector(text)


class FakeChat(ChatCapability):
    """Streams scripted increments; ``gate`` pauses the stream after the first one."""

    def __init__(self, increments: list[str] | None = None, fail: bool = False) -> None:
        self.increments = increments if increments is not None else ["The sky ", "is blue [1]."]
        self.fail = fail
        self.gate: asyncio.Event | None = None
        self.first_sent = asyncio.Event()
        self.sessions = []
        self.prompts: list[str] = []
        self.answer = "Summary of everything [1]."

    def start_conversation(self, system_instruction, citation_sources=()):
        session = super().start_conversation(system_instruction, citation_sources)
        self.sessions.append(session)
        return session

    async def _stream(self, messages: list[dict]) -> AsyncGenerator[str, None]:
        if self.fail:
            raise RuntimeError("model unavailable")
        text = ""
        for i, increment in enumerate(self.increments):
            text += increment
            yield text
            if i == 0:
                self.first_sent.set()
                if self.gate is not None:
                    await self.gate.wait()

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise RuntimeError("model unavailable")
        return self.answer


class FakeAnalyzer:
    def __init__(self) -> None:
        self.texts: list[str] = []

    async def analyze(self, full_text: str) -> Analysis:
        self.texts.append(full_text)
        return Analysis(summary="A short summary.", key_points=["Point one."])


def make_extractor(documents: dict[str, str]):
    """Extractor over an in-memory {location: text} map; unknown locations fail."""

    def _extract(location: str) -> ExtractedDocument:
        if location not in documents:
            raise ExtractionFailure(f"Could not read '{location}'")
        return ExtractedDocument(
            text=documents[location],
            name=location.rsplit("/", 1)[-1],
            kind=detect_kind(location) or SourceKind.TEXT,
        )

    return _extract


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def config() -> LampbookConfig:
    return LampbookConfig()


@pytest.fixture
def gateway_factory():
    return FakeGateway


@pytest.fixture
def extractor_factory():
    return make_extractor


@pytest.fixture(autouse=True)
def _isolated_global_config(tmp_path, monkeypatch):
    """Keep the developer's ~/.lampbook/config.yaml out of every test."""
    monkeypatch.setattr("lampbook.config._GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml")
    monkeypatch.delenv("LAMPBOOK_CHAT_MODEL", raising=False)
    monkeypatch.delenv("LAMPBOOK_EMBEDDING_MODEL", raising=False)
