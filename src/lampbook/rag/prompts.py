"""Prompt templates for grounded chat and note synthesis."""

from __future__ import annotations

from enum import Enum

_CITATION_RULES = (
    "Your answers should synthesize information from multiple sources if needed. "
    "After each statement or paragraph, you MUST cite the source document it came "
    "from using its corresponding number, like [1]. If the information comes from "
    "multiple sources, cite them all, like [1][2]. Do not use any information "
    "outside of the provided sources."
)

_RAG_INSTRUCTION = """\
You are a helpful research assistant. Based ONLY on the provided relevant excerpts \
from sources, answer the user's questions. {rules}

RELEVANT EXCERPTS:
---
{context}
---"""

_FULL_CONTEXT_INSTRUCTION = """\
You are a helpful research assistant. Based ONLY on the provided sources, answer \
the user's questions. {rules}

SOURCES:
---
{context}
---"""

_SYNTHESIS_PROMPT = """\
You are a helpful study assistant. {instruction} After each piece of information, \
cite the source document(s) using its corresponding number, like [1]. If the \
information comes from multiple sources, cite them all, like [1][2].

SOURCES:
---
{context}
---
"""


class SynthesisFormat(str, Enum):
    SUMMARY = "summary"
    OUTLINE = "outline"
    FLASHCARDS = "flashcards"


_SYNTHESIS_INSTRUCTIONS: dict[SynthesisFormat, str] = {
    SynthesisFormat.SUMMARY: (
        "Generate a comprehensive summary of all the provided documents combined. "
        "Synthesize the key information into a coherent overview."
    ),
    SynthesisFormat.OUTLINE: (
        "Create a structured outline of the key topics, sub-topics, and important "
        "points from across all the provided documents. Use nested bullet points "
        "for hierarchy."
    ),
    SynthesisFormat.FLASHCARDS: (
        "Create a set of flashcards from the provided documents. Each flashcard "
        'should have a "front" (a question or term) and a "back" (the answer or '
        "definition). Format each flashcard clearly."
    ),
}


def rag_instruction(context: str) -> str:
    """System instruction grounding a session on retrieved excerpts."""
    return _RAG_INSTRUCTION.format(rules=_CITATION_RULES, context=context)


def full_context_instruction(context: str) -> str:
    """System instruction grounding a session on whole source texts."""
    return _FULL_CONTEXT_INSTRUCTION.format(rules=_CITATION_RULES, context=context)


def synthesis_prompt(context: str, fmt: SynthesisFormat) -> str:
    return _SYNTHESIS_PROMPT.format(instruction=_SYNTHESIS_INSTRUCTIONS[fmt], context=context)
