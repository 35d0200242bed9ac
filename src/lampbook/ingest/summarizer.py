"""Document analyzer — one summary + key points per newly ingested source.

Called once per source after its text has been extracted. The result is shown
to the user as a model chat message; it never grounds answers itself.
Analysis failure is non-fatal: a fixed fallback summary is returned.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from loguru import logger

from lampbook.config import AnalysisCfg
from lampbook.rag.llm_client import acomplete

_ANALYSIS_PROMPT = """\
Analyze the following document and provide a concise one-paragraph summary and \
a list of up to 5 key points. Respond with a JSON object with keys "summary" \
(string) and "keyPoints" (array of strings). The document content is between \
the triple dashes.
---
{document_text}
---
"""

_NO_SUMMARY = "No summary could be generated."
_FAILED_SUMMARY = "Could not generate summary due to an error."
_MAX_KEY_POINTS = 5


@dataclass
class Analysis:
    summary: str
    key_points: list[str] = field(default_factory=list)

    def render(self, source_name: str) -> str:
        """Markdown chat text announcing this analysis for *source_name*."""
        text = f"Analysis for **{source_name}**:\n\n**Summary:**\n{self.summary}"
        points = [p.strip() for p in self.key_points if p and p.strip()]
        if points:
            bullets = "\n".join(f"• {p}" for p in points)
            text += f"\n\n**Key Points:**\n{bullets}"
        return text


class DocumentAnalyzer:
    """Generate a summary and key points for a source document.

    Args:
        config: Analysis configuration (model, max_chars of input sent).
    """

    def __init__(self, config: AnalysisCfg | None = None) -> None:
        self._config = config or AnalysisCfg()

    async def analyze(self, full_text: str) -> Analysis:
        prompt = _ANALYSIS_PROMPT.format(document_text=full_text[: self._config.max_chars])
        try:
            raw = await acomplete(
                model=self._config.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=1024,
                temperature=0.0,
                response_format={"type": "json_object"},
            )
        except Exception as exc:
            logger.warning("Source analysis failed: {}", exc)
            return Analysis(summary=_FAILED_SUMMARY)
        return parse_analysis(raw)


def parse_analysis(raw: str) -> Analysis:
    """Parse the model's JSON answer. Returns the failure fallback on bad JSON."""
    try:
        start = raw.index("{")
        end = raw.rindex("}") + 1
        data = json.loads(raw[start:end])
    except (ValueError, json.JSONDecodeError):
        return Analysis(summary=_FAILED_SUMMARY)
    if not isinstance(data, dict):
        return Analysis(summary=_FAILED_SUMMARY)

    summary = str(data.get("summary") or "").strip() or _NO_SUMMARY
    raw_points = data.get("keyPoints") or data.get("key_points") or []
    points = [str(p) for p in raw_points] if isinstance(raw_points, list) else []
    return Analysis(summary=summary, key_points=points[:_MAX_KEY_POINTS])
