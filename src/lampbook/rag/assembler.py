"""Context assembler: turn retrieved chunks into a numbered grounding block.

Citation numbering:
  [1] is the first distinct source encountered in retrieval order, [2] the
  second, and so on. Chunks of one source share one block and keep their
  retrieval order inside it. ``citation_order()`` exposes the same numbering
  so a UI can resolve ``[n]`` markers back to sources.

Block layout:
  Source [n] <name>:
  <chunk text>

  <chunk text>

  ---
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from lampbook.models import ChatMessage, Chunk, Source

_CITATION_RE = re.compile(r"\[(\d+)\]")


def citation_order(chunks: Sequence[Chunk]) -> list[str]:
    """Return distinct source ids in first-encounter order (citation [1] first)."""
    seen: dict[str, None] = {}
    for chunk in chunks:
        seen.setdefault(chunk.source_id, None)
    return list(seen)


def format_context(chunks: Sequence[Chunk]) -> str:
    """Render *chunks* as citation-numbered source blocks."""
    groups: dict[str, list[Chunk]] = {}
    for chunk in chunks:
        groups.setdefault(chunk.source_id, []).append(chunk)

    parts: list[str] = []
    for number, group in enumerate(groups.values(), start=1):
        parts.append(f"Source [{number}] {group[0].source_name}:\n")
        for chunk in group:
            parts.append(f"{chunk.text}\n\n")
        parts.append("---\n\n")
    return "".join(parts)


def format_full_context(sources: Sequence[Source]) -> str:
    """Render whole sources, numbered in list order (full-context mode)."""
    return "\n\n---\n\n".join(
        f"Source [{number}] {source.name}:\n{source.full_text}"
        for number, source in enumerate(sources, start=1)
    )


def cited_numbers(text: str) -> list[int]:
    """Return the distinct citation numbers in *text*, in order of appearance."""
    seen: dict[int, None] = {}
    for match in _CITATION_RE.finditer(text):
        seen.setdefault(int(match.group(1)), None)
    return list(seen)


def resolve_citation(message: ChatMessage, number: int) -> Source | None:
    """Map citation marker ``[number]`` in *message* to its Source, if any."""
    if 1 <= number <= len(message.cited_sources):
        return message.cited_sources[number - 1]
    return None
