"""Shared CLI plumbing: config loading, workspace construction, ingestion report."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown

from lampbook.cli.errors import err_capacity, err_config, err_no_api_key, err_source_failed
from lampbook.config import ConfigError, LampbookConfig, load_config
from lampbook.errors import CapacityExceeded
from lampbook.models import Source, SourceStatus
from lampbook.rag.llm_client import provider_of, validate_api_key
from lampbook.workspace import Workspace

console = Console()


def load_cli_config(no_rag: bool = False, top_k: int | None = None) -> LampbookConfig:
    """Load config and apply CLI flag overrides (highest priority layer)."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    if no_rag:
        cfg.retrieval.enabled = False
    if top_k is not None:
        cfg.retrieval.top_k = max(1, top_k)
    return cfg


def check_api_keys(cfg: LampbookConfig) -> None:
    """Exit with an actionable message if a provider key is missing."""
    models = [cfg.chat.model, cfg.analysis.model]
    if cfg.retrieval.enabled:
        models.append(cfg.embedding.model)
    for model in models:
        try:
            validate_api_key(model)
        except EnvironmentError as exc:
            console.print(err_no_api_key(provider_of(model)))
            raise typer.Exit(1) from exc


def build_workspace(cfg: LampbookConfig) -> Workspace:
    return Workspace(cfg)


async def ingest(ws: Workspace, paths: list[str], urls: list[str]) -> list[Source]:
    """Add files and URLs, printing per-source results and analyses."""
    added: list[Source] = []
    try:
        with console.status("Processing sources…"):
            if paths:
                added.extend(await ws.add_sources([Path(p) for p in paths]))
            for url in urls:
                source = await ws.add_source_from_url(url)
                if source is not None:
                    added.append(source)
    except CapacityExceeded as exc:
        console.print(err_capacity(exc.limit))

    for source in added:
        if source.status is SourceStatus.ERROR:
            reason = source.full_text.removeprefix("Error: ")
            console.print(err_source_failed(source.name, reason))
        else:
            mode = "indexed" if source.indexed else "full text"
            console.print(f"[green]✓[/] {source.name}  [dim]({source.kind.value}, {mode})[/]")

    analysis_ids = {f"msg_analysis_{s.id}" for s in added}
    for message in ws.chat_messages:
        if message.id in analysis_ids:
            console.print(Markdown(message.text))
            console.print()
    return added
