"""Domain models shared across the Lampbook core."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum


class SourceKind(str, Enum):
    TEXT = "text"
    PDF = "pdf"
    URL = "url"


class SourceStatus(str, Enum):
    INGESTING = "ingesting"
    READY = "ready"
    ERROR = "error"


class Role(str, Enum):
    USER = "user"
    MODEL = "model"


def new_id(prefix: str) -> str:
    """Return a unique id such as ``src_3f2a9c...``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass
class Source:
    """A user-added document or web page.

    ``full_text`` holds the extracted text once ready, or ``"Error: <reason>"``
    once ingestion has failed. ``indexed`` is True only when the source's
    chunks were stored in the vector store.
    """

    id: str
    name: str
    kind: SourceKind
    full_text: str = ""
    status: SourceStatus = SourceStatus.INGESTING
    excluded: bool = False
    indexed: bool = False

    @property
    def is_ready(self) -> bool:
        return self.status is SourceStatus.READY

    @property
    def is_active(self) -> bool:
        """Ready and not excluded: eligible to ground a turn."""
        return self.is_ready and not self.excluded


def chunk_id(source_id: str, index: int) -> str:
    return f"{source_id}_chunk_{index}"


@dataclass
class Chunk:
    source_id: str
    source_name: str
    index: int
    text: str
    embedding: list[float] | None = None

    @property
    def id(self) -> str:
        return chunk_id(self.source_id, self.index)


@dataclass
class ChatMessage:
    """One chat message.

    ``cited_sources`` is the ordered source list that citation marker ``[n]``
    resolves against (``cited_sources[n - 1]``), captured when the message
    was produced.
    """

    role: Role
    text: str = ""
    cited_sources: list[Source] = field(default_factory=list)
    is_streaming: bool = False
    is_error: bool = False
    id: str = field(default_factory=lambda: new_id("msg"))
