"""lampbook chat — interactive, source-grounded conversation.

Usage:
  lampbook chat --source notes.pdf --source paper.txt
  lampbook chat --url https://example.com/article --no-rag

In-chat commands:
  /sources          list sources with their numbers
  /exclude N        toggle exclusion of source N (alias: /include N)
  /delete N         remove source N
  /synth FORMAT     summary | outline | flashcards
  /clear            clear the conversation (sources are kept)
  /help             show this list
  /quit             leave

Ctrl-C while a reply is streaming stops generation; the partial reply is kept.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Annotated

import typer
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from lampbook.cli.common import build_workspace, check_api_keys, console, ingest, load_cli_config
from lampbook.cli.errors import (
    err_bad_index,
    err_no_active_sources,
    err_no_sources,
    err_unknown_format,
)
from lampbook.errors import NoActiveSourcesError, TurnInProgressError
from lampbook.models import ChatMessage, Source
from lampbook.rag.assembler import cited_numbers, resolve_citation
from lampbook.rag.prompts import SynthesisFormat
from lampbook.workspace import Workspace

_HELP = (
    "[dim]/sources  /exclude N  /delete N  /synth summary|outline|flashcards  "
    "/clear  /help  /quit[/]"
)


def chat_cmd(
    source: Annotated[
        list[str] | None,
        typer.Option("--source", "-s", help="Document path (.txt, .md, .pdf; repeatable)."),
    ] = None,
    url: Annotated[
        list[str] | None,
        typer.Option("--url", "-u", help="Web page URL (repeatable)."),
    ] = None,
    no_rag: Annotated[
        bool,
        typer.Option("--no-rag", help="Ground answers on full source text instead of retrieval."),
    ] = False,
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", help="Number of excerpts retrieved per question."),
    ] = None,
) -> None:
    """Chat with an assistant that answers only from your sources."""
    paths = source or []
    urls = url or []
    if not paths and not urls:
        console.print(err_no_sources())
        raise typer.Exit(1)

    cfg = load_cli_config(no_rag=no_rag, top_k=top_k)
    check_api_keys(cfg)
    asyncio.run(_chat(build_workspace(cfg), paths, urls))


async def _chat(ws: Workspace, paths: list[str], urls: list[str]) -> None:
    await ingest(ws, paths, urls)
    console.print(_HELP)

    while True:
        try:
            line = console.input("[bold cyan]you>[/] ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print()
            return
        if not line:
            continue
        if line.startswith("/"):
            if not await _command(ws, line):
                return
            continue
        await _turn(ws, line)


async def _command(ws: Workspace, line: str) -> bool:
    """Run an in-chat command. Returns False when the user wants to leave."""
    name, _, arg = line.partition(" ")
    arg = arg.strip()

    if name in ("/quit", "/exit"):
        return False
    if name == "/help":
        console.print(_HELP)
    elif name == "/sources":
        _print_sources(ws)
    elif name == "/clear":
        ws.clear_chat()
        console.print("[dim]Chat cleared.[/]")
    elif name in ("/exclude", "/include"):
        source = _source_at(ws, arg)
        if source is not None:
            excluded = ws.toggle_exclusion(source.id)
            state = "excluded" if excluded else "included"
            console.print(f"[dim]{escape(source.name)} {state}.[/]")
    elif name == "/delete":
        source = _source_at(ws, arg)
        if source is not None:
            await ws.delete_source(source.id)
            console.print(f"[dim]Removed {escape(source.name)}.[/]")
    elif name == "/synth":
        await _synthesize(ws, arg or SynthesisFormat.SUMMARY.value)
    else:
        console.print(f"[yellow]Unknown command[/] {name}. {_HELP}")
    return True


async def _turn(ws: Workspace, text: str) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, ws.stop_generating)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    reply: ChatMessage | None = None
    try:
        task = asyncio.create_task(ws.send_message(text))
        with Live(console=console, refresh_per_second=12) as live:
            while not task.done():
                last = ws.chat_messages[-1] if ws.chat_messages else None
                if last is not None and last.is_streaming:
                    live.update(Markdown(last.text or "…"))
                await asyncio.wait({task}, timeout=0.08)
            try:
                reply = task.result()
            except NoActiveSourcesError:
                live.update("")
                console.print(err_no_active_sources())
                return
            except TurnInProgressError as exc:
                live.update("")
                console.print(f"[yellow]{exc}[/]")
                return
            if reply is not None:
                live.update(Markdown(reply.text))
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    if reply is not None:
        _print_citations(reply)


async def _synthesize(ws: Workspace, value: str) -> None:
    try:
        fmt = SynthesisFormat(value.lower())
    except ValueError:
        console.print(err_unknown_format(value))
        return
    try:
        with console.status(f"Generating {fmt.value}…"):
            message = await ws.synthesize(fmt)
    except NoActiveSourcesError:
        console.print(err_no_active_sources())
        return
    console.print(Markdown(message.text))
    _print_citations(message)


def _print_citations(message: ChatMessage) -> None:
    lines = []
    for number in cited_numbers(message.text):
        source = resolve_citation(message, number)
        if source is not None:
            lines.append(escape(f"  [{number}] {source.name}"))
    if lines:
        console.print("[dim]Sources:\n" + "\n".join(lines) + "[/]", highlight=False)


def _print_sources(ws: Workspace) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Chunks", justify="right")
    chunk_counts: dict[str, int] = {}
    for chunk in ws.store.chunks():
        chunk_counts[chunk.source_id] = chunk_counts.get(chunk.source_id, 0) + 1
    for number, source in enumerate(ws.sources, start=1):
        status = source.status.value + (" (excluded)" if source.excluded else "")
        table.add_row(
            str(number),
            source.name,
            source.kind.value,
            status,
            str(chunk_counts.get(source.id, 0)),
        )
    console.print(table)


def _source_at(ws: Workspace, arg: str) -> Source | None:
    sources = ws.sources
    if arg.isdigit() and 1 <= int(arg) <= len(sources):
        return sources[int(arg) - 1]
    console.print(err_bad_index(arg, len(sources)))
    return None
