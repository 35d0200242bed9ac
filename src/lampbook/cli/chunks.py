"""lampbook chunks — preview how a document would be split for retrieval.

Runs extraction + chunking only; no provider calls, no API key needed.
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from lampbook.cli.common import console, load_cli_config
from lampbook.cli.errors import err_source_failed
from lampbook.errors import ExtractionFailure
from lampbook.ingest.base import extract
from lampbook.ingest.chunker import SentenceChunker

_PREVIEW_CHARS = 80


def chunks_cmd(
    location: Annotated[str, typer.Argument(help="Document path or URL.")],
    chunk_size: Annotated[
        int | None, typer.Option("--chunk-size", help="Target chunk length in characters.")
    ] = None,
    overlap: Annotated[
        int | None, typer.Option("--overlap", help="Characters shared by consecutive chunks.")
    ] = None,
) -> None:
    """Show the chunks a source would be split into."""
    cfg = load_cli_config().chunking
    size = chunk_size if chunk_size is not None else cfg.chunk_size
    shared = overlap if overlap is not None else cfg.overlap

    try:
        chunker = SentenceChunker(size, shared, cfg.boundary_window)
    except ValueError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1) from exc

    try:
        document = extract(location)
    except ExtractionFailure as exc:
        console.print(err_source_failed(location, str(exc)))
        raise typer.Exit(1) from exc

    chunks = chunker.split(document.text)
    table = Table(title=f"{document.name} — {len(chunks)} chunk(s)", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Chars", justify="right")
    table.add_column("Start")
    for i, text in enumerate(chunks):
        preview = text[:_PREVIEW_CHARS] + ("…" if len(text) > _PREVIEW_CHARS else "")
        table.add_row(str(i), str(len(text)), preview)
    console.print(table)
