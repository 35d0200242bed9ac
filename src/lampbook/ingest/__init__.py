"""Lampbook ingest pipeline — extractors, chunker, document analyzer."""

from lampbook.ingest.base import BaseExtractor, ExtractedDocument, detect_kind, extract
from lampbook.ingest.chunker import SentenceChunker, normalize_whitespace
from lampbook.ingest.summarizer import Analysis, DocumentAnalyzer

__all__ = [
    "Analysis",
    "BaseExtractor",
    "DocumentAnalyzer",
    "ExtractedDocument",
    "SentenceChunker",
    "detect_kind",
    "extract",
    "normalize_whitespace",
]
