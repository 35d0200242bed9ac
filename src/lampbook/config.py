"""Lampbook configuration loader.

Layers, later ones winning:
  defaults → ~/.lampbook/config.yaml → ./lampbook.yaml → LAMPBOOK_* env vars
CLI flags are applied on top by the caller.

The global file holds model defaults only; API-key-like keys in it are a
ConfigError. Keys belong in the environment (GEMINI_API_KEY, OPENAI_API_KEY, ...).
YAML is read with yaml.safe_load() only.
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from lampbook.errors import LampbookError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".lampbook"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "lampbook.yaml"

# Key names that look like credentials; rejected in the global config.
# Does NOT match legitimate keys like max_tokens or top_k.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(LampbookError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ChatCfg:
    """Conversational model configuration (lampbook.yaml: chat:)."""

    model: str = "gemini/gemini-2.5-flash"
    temperature: float = 0.2
    timeout: float = 60.0


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (lampbook.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string (provider/model format).
        batch_size: Texts embedded concurrently per sub-batch; sub-batches
            run one after another to stay under provider rate limits.
        timeout: Per-request timeout in seconds.
    """

    model: str = "gemini/text-embedding-004"
    batch_size: int = 10
    timeout: float = 30.0


@dataclass
class ChunkingCfg:
    """Chunker sizes in characters (lampbook.yaml: chunking:)."""

    chunk_size: int = 1000
    overlap: int = 200
    boundary_window: int = 100


@dataclass
class RetrievalCfg:
    """Retrieval configuration (lampbook.yaml: retrieval:).

    ``enabled: false`` grounds every turn on the full text of all active
    sources instead of retrieved excerpts.
    """

    enabled: bool = True
    top_k: int = 5


@dataclass
class AnalysisCfg:
    """Per-source analysis configuration (lampbook.yaml: analysis:)."""

    model: str = "gemini/gemini-2.5-flash"
    max_chars: int = 30_000


@dataclass
class WorkspaceCfg:
    """Workspace limits (lampbook.yaml: workspace:)."""

    max_sources: int = 20


@dataclass
class LampbookConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    chat: ChatCfg = field(default_factory=ChatCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    analysis: AnalysisCfg = field(default_factory=AnalysisCfg)
    workspace: WorkspaceCfg = field(default_factory=WorkspaceCfg)



_SECTION_TYPES: dict[str, type] = {
    "chat": ChatCfg,
    "embedding": EmbeddingCfg,
    "chunking": ChunkingCfg,
    "retrieval": RetrievalCfg,
    "analysis": AnalysisCfg,
    "workspace": WorkspaceCfg,
}

_DEFAULT_GLOBAL_YAML = """\
# Lampbook global configuration: model defaults shared by every project.
# Provider API keys are read from the environment, never from this file:
#   export GEMINI_API_KEY=...
#   export OPENAI_API_KEY=...

chat:
  model: gemini/gemini-2.5-flash

embedding:
  model: gemini/text-embedding-004
"""


# ---------------------------------------------------------------------------
# Reading layers
# ---------------------------------------------------------------------------


def _forbidden_keys(data: Any, prefix: str = "") -> list[str]:
    """Dotted paths of every credential-looking key in *data*."""
    found: list[str] = []
    if isinstance(data, dict):
        for key, value in data.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            if _API_KEY_RE.search(str(key)):
                found.append(path)
            found.extend(_forbidden_keys(value, path))
    return found


def _read_layer(path: Path, *, is_global: bool) -> dict[str, Any]:
    """Parse one YAML layer. A missing or empty file is an empty layer."""
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"'{path}' must be a mapping of sections, not {type(data).__name__}.")

    if is_global and (forbidden := _forbidden_keys(data)):
        raise ConfigError(
            f"Global config '{path}' contains a forbidden key '{forbidden[0]}'.\n"
            "  Provider keys are only read from the environment: delete the entry\n"
            "  and export the variable instead (e.g. export GEMINI_API_KEY=...)."
        )

    for key in sorted(data.keys() - _SECTION_TYPES.keys()):
        warnings.warn(
            f"Ignoring unknown config section '{key}' in '{path}'.",
            UserWarning,
            stacklevel=3,
        )
    return data


def _merge(layers: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Combine layers key by key within each section; later layers win."""
    merged: dict[str, dict[str, Any]] = {}
    for layer in layers:
        for section, values in layer.items():
            if section not in _SECTION_TYPES or values is None:
                continue
            if not isinstance(values, dict):
                raise ConfigError(f"Config section '{section}' must be a mapping.")
            merged.setdefault(section, {}).update(values)
    return merged


# ---------------------------------------------------------------------------
# Building + validation
# ---------------------------------------------------------------------------


def _coerce(value: Any, kind: type) -> Any:
    if kind is bool:
        if not isinstance(value, bool):
            raise ValueError("expected true or false")
        return value
    return kind(value)


def _build_section(name: str, values: dict[str, Any]) -> Any:
    """Instantiate the dataclass for section *name*, typed after its defaults."""
    cls = _SECTION_TYPES[name]
    defaults = cls()
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in values:
            continue
        try:
            kwargs[f.name] = _coerce(values[f.name], type(getattr(defaults, f.name)))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{name}.{f.name}: invalid value {values[f.name]!r} ({exc})") from exc
    return cls(**kwargs)


def _validate(cfg: LampbookConfig) -> None:
    """Reject values the pipeline cannot run with."""
    ch = cfg.chunking
    if ch.chunk_size < 1:
        raise ConfigError(f"chunking.chunk_size must be >= 1, got {ch.chunk_size}")
    if not 0 <= ch.overlap < ch.chunk_size:
        raise ConfigError(
            f"chunking.overlap must be in [0, chunk_size), got {ch.overlap} "
            f"with chunk_size {ch.chunk_size}"
        )
    if cfg.embedding.batch_size < 1:
        raise ConfigError(f"embedding.batch_size must be >= 1, got {cfg.embedding.batch_size}")
    if cfg.retrieval.top_k < 1:
        raise ConfigError(f"retrieval.top_k must be >= 1, got {cfg.retrieval.top_k}")
    if cfg.workspace.max_sources < 1:
        raise ConfigError(
            f"workspace.max_sources must be >= 1, got {cfg.workspace.max_sources}"
        )


def _apply_env_overrides(cfg: LampbookConfig) -> None:
    if model := os.environ.get("LAMPBOOK_CHAT_MODEL"):
        cfg.chat.model = model
    if model := os.environ.get("LAMPBOOK_EMBEDDING_MODEL"):
        cfg.embedding.model = model


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> LampbookConfig:
    """Return the merged configuration for *project_dir* (default: CWD).

    Args:
        project_dir: Directory holding ``lampbook.yaml``.
        global_config_path: Alternative global config file (tests use this).

    Raises:
        ConfigError: Credential-like keys in the global file, a section that
            is not a mapping, or an out-of-range value
            (e.g. ``chunking.overlap >= chunk_size``).
    """
    if global_config_path is None:
        global_config_path = _GLOBAL_CONFIG_PATH
    if project_dir is None:
        project_dir = Path.cwd()

    merged = _merge(
        [
            _read_layer(global_config_path, is_global=True),
            _read_layer(project_dir / _PROJECT_CONFIG_NAME, is_global=False),
        ]
    )
    cfg = LampbookConfig(
        **{name: _build_section(name, merged.get(name, {})) for name in _SECTION_TYPES}
    )
    _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def ensure_global_config(global_config_path: Path | None = None) -> Path:
    """Write the commented default global config unless one already exists.

    The directory is created owner-only (0700) and the file 0600.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    if not target.exists():
        target.write_text(_DEFAULT_GLOBAL_YAML, encoding="utf-8")
        target.chmod(0o600)
    return target
