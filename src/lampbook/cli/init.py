"""lampbook init — create the global config file with model defaults."""

from __future__ import annotations

from lampbook.cli.common import console
from lampbook.config import ensure_global_config


def init_cmd() -> None:
    """Write ~/.lampbook/config.yaml if it does not exist yet."""
    cfg_path = ensure_global_config()
    console.print(f"[green]✓[/] {cfg_path} (global config)")
    console.print("\nAPI keys stay in the environment, e.g.:")
    console.print("  export GEMINI_API_KEY=...")
