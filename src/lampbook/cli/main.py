"""Lampbook CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from lampbook.cli.chat import chat_cmd
from lampbook.cli.chunks import chunks_cmd
from lampbook.cli.init import init_cmd
from lampbook.cli.synthesize import synthesize_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("lampbook")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"lampbook {_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="lampbook",
    help=(
        "Lampbook — chat with your documents, answered only from them.\n\n"
        "  lampbook chat        Interactive, cited Q&A over files and web pages.\n"
        "  lampbook synthesize  Summary, outline or flashcards across sources."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Lampbook — chat with your documents."""


app.command("init")(init_cmd)
app.command("chat")(chat_cmd)
app.command("synthesize")(synthesize_cmd)
app.command("chunks")(chunks_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed Lampbook version."""
    typer.echo(f"lampbook {_version()}")


if __name__ == "__main__":
    app()
