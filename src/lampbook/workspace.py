"""Workspace — the stateful coordinator of sources, retrieval and conversation.

Source lifecycle:
  ingesting → ready   text extracted, analysis posted, chunks indexed (or not)
  ingesting → error   extraction failed; ``full_text`` holds "Error: <reason>"

Conversation lifecycle:
  none → active → active (new session)
  A session's grounding context is fixed when it is created. A new session is
  started when there is none, or when the current one has no turns yet;
  otherwise turns append to it so follow-up questions resolve. Adding,
  deleting or (un)excluding a source drops the session.

Per turn:
  (a) require at least one ready, included source
  (b) embed the message  (c) retrieve top-K from the active sources
  (d) format the grounding context  (e) (re)create the session if needed
  (f) stream the reply into one in-progress message
  (g) freeze it and attach the session's citation sources

If any active source is not indexed (embedding failed during ingest) or
retrieval is disabled, the turn is grounded on the full text of the active
sources instead of retrieved excerpts.

Only one turn streams at a time. ``stop_generating()`` cancels cooperatively:
the reply keeps whatever text had arrived.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Callable, Sequence
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

from lampbook.config import LampbookConfig
from lampbook.errors import (
    CapacityExceeded,
    EmbeddingFailure,
    ExtractionFailure,
    NoActiveSourcesError,
    TurnInProgressError,
)
from lampbook.ingest.base import ExtractedDocument, detect_kind, extract
from lampbook.ingest.chunker import SentenceChunker
from lampbook.ingest.summarizer import DocumentAnalyzer
from lampbook.models import ChatMessage, Chunk, Role, Source, SourceKind, SourceStatus, new_id
from lampbook.rag.assembler import citation_order, format_context, format_full_context
from lampbook.rag.embeddings import EmbeddingGateway
from lampbook.rag.prompts import (
    SynthesisFormat,
    full_context_instruction,
    rag_instruction,
    synthesis_prompt,
)
from lampbook.rag.retriever import search
from lampbook.rag.session import CancellationToken, ChatCapability, ConversationSession, LiteLLMChat
from lampbook.rag.store import VectorStore

TURN_ERROR_TEXT = "Sorry, I encountered an error while processing your request."
_UNKNOWN_ERROR = "An unknown error occurred."


class GroundingMode(str, Enum):
    RETRIEVAL = "retrieval"
    FULL_CONTEXT = "full_context"


@dataclass
class Grounding:
    """The grounding computed for the most recent turn."""

    mode: GroundingMode
    context: str
    sources: list[Source] = field(default_factory=list)
    chunks: list[Chunk] = field(default_factory=list)


class Workspace:
    """Sources plus one conversation about them.

    Collaborators are injectable so tests (or other front ends) can swap the
    provider-backed defaults.

    Args:
        config: Loaded configuration; defaults apply when omitted.
        gateway: Embedding gateway for chunks and queries.
        store: Vector store (built around *gateway* when omitted).
        chat: Chat capability that starts sessions and streams turns.
        analyzer: Produces the per-source summary message.
        extractor: ``location -> ExtractedDocument``; runs in a worker thread.
    """

    def __init__(
        self,
        config: LampbookConfig | None = None,
        *,
        gateway: EmbeddingGateway | None = None,
        store: VectorStore | None = None,
        chat: ChatCapability | None = None,
        analyzer: DocumentAnalyzer | None = None,
        extractor: Callable[[str], ExtractedDocument] = extract,
    ) -> None:
        self._config = config or LampbookConfig()
        self._gateway = gateway or EmbeddingGateway(self._config.embedding)
        if store is None:
            ch = self._config.chunking
            chunker = SentenceChunker(ch.chunk_size, ch.overlap, ch.boundary_window)
            store = VectorStore(self._gateway, chunker)
        self._store = store
        self._chat = chat or LiteLLMChat(self._config.chat)
        self._analyzer = analyzer or DocumentAnalyzer(self._config.analysis)
        self._extract = extractor

        self._sources: list[Source] = []
        self._messages: list[ChatMessage] = []
        self._selected_id: str | None = None
        self._session: ConversationSession | None = None
        self._token: CancellationToken | None = None
        self._turn_lock = asyncio.Lock()
        self._ingesting = 0
        self._is_synthesizing = False
        self.last_grounding: Grounding | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def sources(self) -> tuple[Source, ...]:
        return tuple(self._sources)

    @property
    def chat_messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def selected_source(self) -> Source | None:
        return self.get_source(self._selected_id) if self._selected_id else None

    @property
    def is_streaming(self) -> bool:
        return self._token is not None

    @property
    def is_synthesizing(self) -> bool:
        return self._is_synthesizing

    @property
    def is_loading(self) -> bool:
        return self._ingesting > 0 or self.is_streaming or self._is_synthesizing

    @property
    def store(self) -> VectorStore:
        return self._store

    @property
    def session(self) -> ConversationSession | None:
        return self._session

    def get_source(self, source_id: str) -> Source | None:
        return next((s for s in self._sources if s.id == source_id), None)

    def active_sources(self) -> list[Source]:
        """Ready, non-excluded sources in workspace order."""
        return [s for s in self._sources if s.is_active]

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    async def add_sources(self, paths: Sequence[str | Path]) -> list[Source]:
        """Ingest files concurrently. One failure never aborts its siblings.

        Raises:
            CapacityExceeded: Before any work, if the limit would be exceeded.
        """
        locations = [str(p) for p in paths]
        if not locations:
            return []
        self._check_capacity(len(locations))

        added = [
            Source(
                id=new_id("src"),
                name=Path(loc).name,
                kind=detect_kind(loc) or SourceKind.TEXT,
            )
            for loc in locations
        ]
        await self._ingest_all(added, locations)
        return added

    async def add_source_from_url(self, url: str) -> Source | None:
        """Ingest one web page. Returns None for a blank URL."""
        url = url.strip()
        if not url:
            return None
        self._check_capacity(1)
        source = Source(id=new_id("src"), name=url, kind=SourceKind.URL)
        await self._ingest_all([source], [url])
        return source

    async def delete_source(self, source_id: str) -> bool:
        """Forget a source and its chunks. Returns False if it was unknown."""
        source = self.get_source(source_id)
        if source is None:
            return False
        self._sources.remove(source)
        if self._selected_id == source_id:
            self._selected_id = None
        self._invalidate_session("source deleted")
        await self._store.remove(source_id)
        return True

    def toggle_exclusion(self, source_id: str) -> bool:
        """Flip a source's excluded flag and return the new value.

        Chunks stay in the store, so re-including needs no re-embedding.
        """
        source = self.get_source(source_id)
        if source is None:
            raise KeyError(source_id)
        source.excluded = not source.excluded
        self._invalidate_session("source exclusion toggled")
        return source.excluded

    def select_source(self, source_id: str | None) -> Source | None:
        self._selected_id = source_id if source_id and self.get_source(source_id) else None
        return self.selected_source

    def _check_capacity(self, incoming: int) -> None:
        limit = self._config.workspace.max_sources
        if len(self._sources) + incoming > limit:
            raise CapacityExceeded(limit)

    async def _ingest_all(self, sources: list[Source], locations: list[str]) -> None:
        self._sources.extend(sources)
        self._invalidate_session("sources added")
        self._ingesting += 1
        try:
            await asyncio.gather(
                *(self._ingest(s, loc) for s, loc in zip(sources, locations))
            )
        finally:
            self._ingesting -= 1

    async def _ingest(self, source: Source, location: str) -> None:
        logger.info("Ingesting {} as {}", location, source.id)
        try:
            document = await asyncio.to_thread(self._extract, location)
        except ExtractionFailure as exc:
            self._fail_source(source, str(exc))
            return
        except Exception as exc:
            logger.opt(exception=exc).error("Unexpected failure extracting {}", location)
            self._fail_source(source, _UNKNOWN_ERROR)
            return

        if self.get_source(source.id) is not source:
            logger.debug("Source {} was removed during extraction", source.id)
            return

        source.name = document.name
        source.full_text = document.text
        analysis, indexed = await asyncio.gather(
            self._analyzer.analyze(document.text), self._index(source)
        )

        if self.get_source(source.id) is not source:
            logger.debug("Source {} was removed during ingestion", source.id)
            await self._store.remove(source.id)
            return

        source.indexed = indexed
        source.status = SourceStatus.READY
        self._messages.append(
            ChatMessage(
                role=Role.MODEL,
                text=analysis.render(source.name),
                id=f"msg_analysis_{source.id}",
            )
        )
        self._invalidate_session("source ready")
        logger.info("Source {} ready (indexed={})", source.id, indexed)

    async def _index(self, source: Source) -> bool:
        if not self._config.retrieval.enabled:
            return False
        try:
            stored = await self._store.upsert(source.id, source.name, source.full_text)
        except EmbeddingFailure as exc:
            logger.warning("Indexing {} failed, using full-context mode: {}", source.id, exc)
            return False
        return stored > 0

    def _fail_source(self, source: Source, reason: str) -> None:
        logger.warning("Ingestion of {} failed: {}", source.id, reason)
        source.status = SourceStatus.ERROR
        source.full_text = f"Error: {reason}"

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    async def send_message(self, text: str) -> ChatMessage | None:
        """Run one grounded, streamed turn and return the model's message.

        Returns None for blank input. Provider failures do not raise: the
        returned message carries the fixed error text instead.

        Raises:
            NoActiveSourcesError: No ready, included source exists.
            TurnInProgressError: Another turn is still streaming.
        """
        if not text.strip():
            return None
        if self._turn_lock.locked() or self._is_synthesizing:
            raise TurnInProgressError()
        active = self.active_sources()
        if not active:
            raise NoActiveSourcesError()

        async with self._turn_lock:
            return await self._run_turn(text, active)

    async def _run_turn(self, text: str, active: list[Source]) -> ChatMessage:
        self._messages.append(ChatMessage(role=Role.USER, text=text))
        reply = ChatMessage(role=Role.MODEL, is_streaming=True)
        self._messages.append(reply)
        token = self._token = CancellationToken()

        try:
            session = await self._prepare_session(text, active)
            async with aclosing(self._chat.stream_turn(session, text, token)) as stream:
                async for partial in stream:
                    reply.text = partial
            if token.cancelled:
                logger.info("Turn cancelled after {} characters", len(reply.text))
            reply.cited_sources = [dataclasses.replace(s) for s in session.citation_sources]
        except Exception as exc:
            logger.opt(exception=exc).error("Turn failed")
            reply.text = TURN_ERROR_TEXT
            reply.is_error = True
            reply.cited_sources = []
        finally:
            reply.is_streaming = False
            self._token = None
        return reply

    async def _prepare_session(self, text: str, active: list[Source]) -> ConversationSession:
        grounding = await self._ground(text, active)
        self.last_grounding = grounding
        if self._session is None or not self._session.has_turns:
            if grounding.mode is GroundingMode.RETRIEVAL:
                instruction = rag_instruction(grounding.context)
            else:
                instruction = full_context_instruction(grounding.context)
            self._session = self._chat.start_conversation(instruction, grounding.sources)
        return self._session

    async def _ground(self, text: str, active: list[Source]) -> Grounding:
        if not self._config.retrieval.enabled or not all(s.indexed for s in active):
            return Grounding(
                mode=GroundingMode.FULL_CONTEXT,
                context=format_full_context(active),
                sources=list(active),
            )

        query_vector = await self._gateway.embed_one(text)
        results = search(
            query_vector,
            self._store,
            top_k=self._config.retrieval.top_k,
            source_ids=[s.id for s in active],
        )
        chunks = [r.chunk for r in results]
        by_id = {s.id: s for s in active}
        return Grounding(
            mode=GroundingMode.RETRIEVAL,
            context=format_context(chunks),
            sources=[by_id[sid] for sid in citation_order(chunks)],
            chunks=chunks,
        )

    def stop_generating(self) -> bool:
        """Cancel the in-flight turn. Returns False (a no-op) if none is running."""
        if self._token is None:
            return False
        self._token.cancel()
        return True

    async def synthesize(self, fmt: SynthesisFormat | str) -> ChatMessage:
        """Generate a summary, outline or flashcards over all active sources.

        Raises:
            ValueError: Unknown format.
            NoActiveSourcesError: No ready, included source exists.
            TurnInProgressError: A turn or synthesis is already running.
        """
        fmt = SynthesisFormat(fmt)
        if self._turn_lock.locked() or self._is_synthesizing:
            raise TurnInProgressError()
        active = self.active_sources()
        if not active:
            raise NoActiveSourcesError()

        self._is_synthesizing = True
        self._messages.append(
            ChatMessage(
                role=Role.USER,
                text=f"Please generate {fmt.value} based on the provided documents.",
            )
        )
        try:
            answer = await self._chat.complete(
                synthesis_prompt(format_full_context(active), fmt)
            )
            message = ChatMessage(
                role=Role.MODEL,
                text=answer,
                cited_sources=[dataclasses.replace(s) for s in active],
            )
        except Exception as exc:
            logger.opt(exception=exc).error("Synthesis of {} failed", fmt.value)
            message = ChatMessage(
                role=Role.MODEL,
                text=f"Sorry, I encountered an error while generating the {fmt.value}.",
                is_error=True,
            )
        finally:
            self._is_synthesizing = False
        self._messages.append(message)
        return message

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def clear_chat(self) -> None:
        """Drop all messages and the live session; sources are kept."""
        self.stop_generating()
        self._messages.clear()
        self._session = None
        self.last_grounding = None

    async def clear_workspace(self) -> None:
        """Drop sources, messages, session and every stored chunk."""
        self.clear_chat()
        self._sources.clear()
        self._selected_id = None
        await self._store.clear()

    def _invalidate_session(self, reason: str) -> None:
        if self._session is not None:
            logger.debug("Dropping session {}: {}", self._session.id, reason)
        self._session = None
