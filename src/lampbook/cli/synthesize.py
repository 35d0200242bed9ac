"""lampbook synthesize — one-shot summary, outline or flashcards over sources.

Usage:
  lampbook synthesize outline --source lecture1.pdf --source lecture2.pdf
  lampbook synthesize flashcards --url https://example.com/guide --output cards.md
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown

from lampbook.cli.common import build_workspace, check_api_keys, console, ingest, load_cli_config
from lampbook.cli.errors import err_no_active_sources, err_no_sources, err_unknown_format
from lampbook.errors import NoActiveSourcesError
from lampbook.models import ChatMessage
from lampbook.rag.prompts import SynthesisFormat
from lampbook.workspace import Workspace


def synthesize_cmd(
    fmt: Annotated[
        str,
        typer.Argument(metavar="FORMAT", help="summary | outline | flashcards"),
    ],
    source: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Document path (repeatable)."),
    ] = None,
    url: Annotated[
        list[str] | None,
        typer.Option("--url", "-u", help="Web page URL (repeatable)."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Also write the result to this Markdown file."),
    ] = None,
) -> None:
    """Generate notes across all given sources, with citations."""
    try:
        synthesis = SynthesisFormat(fmt.lower())
    except ValueError:
        console.print(err_unknown_format(fmt))
        raise typer.Exit(1)

    paths = source or []
    urls = url or []
    if not paths and not urls:
        console.print(err_no_sources())
        raise typer.Exit(1)

    cfg = load_cli_config(no_rag=True)
    check_api_keys(cfg)
    message = asyncio.run(_synthesize(build_workspace(cfg), paths, urls, synthesis))
    if message is None:
        raise typer.Exit(1)

    console.print(Markdown(message.text))
    if output is not None and not message.is_error:
        output.write_text(message.text + "\n", encoding="utf-8")
        console.print(f"\n[green]✓[/] Written to {output}")
    if message.is_error:
        raise typer.Exit(1)


async def _synthesize(
    ws: Workspace, paths: list[str], urls: list[str], fmt: SynthesisFormat
) -> ChatMessage | None:
    await ingest(ws, paths, urls)
    try:
        with console.status(f"Generating {fmt.value}…"):
            return await ws.synthesize(fmt)
    except NoActiveSourcesError:
        console.print(err_no_active_sources())
        return None
