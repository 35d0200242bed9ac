"""Plain text extractor."""

from __future__ import annotations

from pathlib import Path

from lampbook.errors import ExtractionFailure
from lampbook.ingest.base import BaseExtractor, ExtractedDocument
from lampbook.models import SourceKind


class PlainTextExtractor(BaseExtractor):
    """Read a text file as UTF-8; undecodable bytes are replaced, not fatal."""

    kind = SourceKind.TEXT

    def extract(self, location: str) -> ExtractedDocument:
        path = Path(location)
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise ExtractionFailure(f"Could not read '{path.name}': {exc.strerror}") from exc
        return ExtractedDocument(
            text=self._require_text(text, path.name), name=path.name, kind=self.kind
        )
