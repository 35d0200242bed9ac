"""PDF extractor — page-based extraction via pypdf."""

from __future__ import annotations

from pathlib import Path

import pypdf
from pypdf.errors import PdfReadError

from lampbook.errors import ExtractionFailure
from lampbook.ingest.base import BaseExtractor, ExtractedDocument
from lampbook.models import SourceKind


class PdfExtractor(BaseExtractor):
    """Extract the text of a PDF document.

    Strategy:
    - Extract text page-by-page via ``pypdf.PdfReader``.
    - Join page texts with a blank line.
    - Pages that yield no text (scanned images, etc.) are silently skipped;
      a PDF with no text at all is an ``ExtractionFailure``.
    """

    kind = SourceKind.PDF

    def extract(self, location: str) -> ExtractedDocument:
        path = Path(location)
        try:
            text = self._extract_text(path)
        except (OSError, PdfReadError) as exc:
            raise ExtractionFailure(f"Could not parse PDF '{path.name}': {exc}") from exc
        return ExtractedDocument(
            text=self._require_text(text, path.name), name=path.name, kind=self.kind
        )

    @staticmethod
    def _extract_text(path: Path) -> str:
        reader = pypdf.PdfReader(path)
        parts: list[str] = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            stripped = page_text.strip()
            if stripped:
                parts.append(stripped)
        return "\n\n".join(parts)
