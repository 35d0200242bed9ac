"""Lampbook error taxonomy.

Every failure the core raises derives from ``LampbookError`` so callers can
catch the whole family at the workspace boundary:

  ExtractionFailure     bad / unsupported input while reading a source
  EmbeddingFailure      embedding provider call failed (single or batch)
  DimensionMismatch     vectors of different lengths compared (internal bug)
  GenerationFailure     chat / completion provider call failed
  CapacityExceeded      source limit reached before ingestion began
  NoActiveSourcesError  a turn was requested with nothing to ground it on
  TurnInProgressError   a second turn was started while one is streaming
  ConfigError           invalid config file (defined in lampbook.config)

An empty retrieval result is *not* an error and has no class here.
"""

from __future__ import annotations


class LampbookError(Exception):
    """Base class for all Lampbook errors."""


class ExtractionFailure(LampbookError):
    """Raised when text cannot be extracted from a file or URL.

    The message is user-presentable: it names the problem (unsupported type,
    fetch failure, parse failure) without a stack trace.
    """


class EmbeddingFailure(LampbookError):
    """Raised when the embedding provider fails.

    Attributes:
        batch: True if the failure happened inside ``embed_batch()``.
        index: Position of the failing text within the batch (None for single calls).
    """

    def __init__(self, batch: bool, index: int | None = None) -> None:
        self.batch = batch
        self.index = index
        if batch:
            where = f" (item {index})" if index is not None else ""
            super().__init__(f"Failed to generate embeddings{where}.")
        else:
            super().__init__("Failed to generate embedding.")


class DimensionMismatch(LampbookError):
    """Raised when two vectors of different lengths are compared."""

    def __init__(self, left: int, right: int) -> None:
        self.left = left
        self.right = right
        super().__init__(f"Vectors must have the same length ({left} != {right}).")


class GenerationFailure(LampbookError):
    """Raised when the chat or completion provider fails or times out."""


class CapacityExceeded(LampbookError):
    """Raised when adding sources would exceed the workspace limit."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"You can only have a maximum of {limit} sources.")


class NoActiveSourcesError(LampbookError):
    """Raised when a turn is requested but no ready, included source exists."""

    def __init__(self) -> None:
        super().__init__("Add a source (or re-include one) before asking a question.")


class TurnInProgressError(LampbookError):
    """Raised when a turn is started while another is still streaming."""

    def __init__(self) -> None:
        super().__init__("A reply is still being generated. Stop it or wait for it to finish.")
