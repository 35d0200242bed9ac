"""Extractor interface and dispatch for Lampbook source types.

Source dispatch by extension / URL scheme:
  https:// / http://                          → WebExtractor
  .pdf                                        → PdfExtractor
  .txt .md .markdown .rst .text .csv .log     → PlainTextExtractor
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from lampbook.errors import ExtractionFailure
from lampbook.models import SourceKind

PDF_EXTS = {".pdf"}
TEXT_EXTS = {".txt", ".md", ".markdown", ".rst", ".text", ".csv", ".log"}


@dataclass
class ExtractedDocument:
    """Plain text plus the display name shown for the source."""

    text: str
    name: str
    kind: SourceKind


class BaseExtractor(ABC):
    """Abstract base for all extractors.

    Subclasses implement ``extract()``; it must raise ``ExtractionFailure``
    with a user-presentable message on any problem.
    """

    kind: SourceKind

    @abstractmethod
    def extract(self, location: str) -> ExtractedDocument:
        """Read *location* (a file path or URL) and return its text."""

    @staticmethod
    def _require_text(text: str, name: str) -> str:
        if not text.strip():
            raise ExtractionFailure(f"No text could be extracted from '{name}'.")
        return text


def is_url(location: str) -> bool:
    return location.startswith(("https://", "http://"))


def detect_kind(location: str) -> SourceKind | None:
    """Return the SourceKind for *location*, or None if unsupported."""
    if is_url(location):
        return SourceKind.URL
    ext = Path(location).suffix.lower()
    if ext in PDF_EXTS:
        return SourceKind.PDF
    if ext in TEXT_EXTS:
        return SourceKind.TEXT
    return None


def get_extractor(location: str) -> BaseExtractor:
    """Return the extractor for *location*.

    Raises:
        ExtractionFailure: If the file type is not supported.
    """
    # Extractor modules import this one.
    from lampbook.ingest.pdf import PdfExtractor
    from lampbook.ingest.plaintext import PlainTextExtractor
    from lampbook.ingest.web import WebExtractor

    kind = detect_kind(location)
    if kind is SourceKind.URL:
        return WebExtractor()
    if kind is SourceKind.PDF:
        return PdfExtractor()
    if kind is SourceKind.TEXT:
        return PlainTextExtractor()
    ext = Path(location).suffix.lstrip(".") or "(none)"
    raise ExtractionFailure(f"Unsupported file type: {ext}")


def extract(location: str) -> ExtractedDocument:
    """Extract plain text and a display name from a file path or URL."""
    return get_extractor(location).extract(location)
