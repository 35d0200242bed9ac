"""Lampbook rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from lampbook.cli.errors import err_no_api_key
    console.print(err_no_api_key("gemini"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from lampbook.rag.prompts import SynthesisFormat


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*."""
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "cohere": "COHERE_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_no_sources() -> str:
    """Nothing to ingest."""
    return (
        "[red]Error:[/] No sources given.\n"
        "  Use --source PATH (repeatable) and/or --url URL."
    )


def err_no_active_sources() -> str:
    """Every source failed, is still ingesting, or is excluded."""
    return (
        "[yellow]No usable sources.[/] Every source failed or is excluded.\n"
        "  Type  /sources  to inspect them, or  /include N  to re-include one."
    )


def err_capacity(limit: int) -> str:
    """Source limit reached."""
    return (
        f"[red]Error:[/] You can only have a maximum of {limit} sources.\n"
        "  Remove a source first, or raise workspace.max_sources in lampbook.yaml."
    )


def err_source_failed(name: str, reason: str) -> str:
    """A source could not be ingested."""
    return f"[red]✗[/] {name}: {reason}"


def err_unknown_format(value: str) -> str:
    """Unknown synthesis format."""
    choices = ", ".join(f.value for f in SynthesisFormat)
    return (
        f"[red]Error:[/] Unknown format '{value}'.\n"
        f"  Choose one of: {choices}"
    )


def err_config(message: str) -> str:
    """Invalid configuration file."""
    return f"[red]Config error:[/] {message}"


def err_bad_index(value: str, count: int) -> str:
    """A /command referenced a source number that does not exist."""
    return (
        f"[yellow]No source number '{value}'.[/] Valid numbers: 1–{count}.\n"
        "  Type  /sources  to list them."
    )
