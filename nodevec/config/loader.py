from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Dict

from ..errors import ConfigurationError


DEFAULT_CONFIG_PATH = Path("config.toml")
CONFIG_ENV = "NODEVEC_CONFIG"


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Explicit ``path`` wins, then ``$NODEVEC_CONFIG``, then ./config.toml."""
    if path is not None:
        return Path(path)
    env_path = os.getenv(CONFIG_ENV)
    return Path(env_path) if env_path else DEFAULT_CONFIG_PATH


def load_raw_config(path: str | Path | None = None) -> Dict[str, Any]:
    """
    Load the ``[nodevec]`` table of the config file.

    Returns an empty dict when the file is missing so callers can fall back to
    environment variables. A file that exists but does not parse is a
    configuration error rather than a silent fallback.
    """
    target = resolve_config_path(path)
    if not target.is_file():
        return {}

    try:
        with target.open("rb") as handle:
            raw = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid config file {target}: {exc}") from exc

    section = raw.get("nodevec", {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[nodevec] in {target} must be a table")
    return section


def table(raw: Dict[str, Any] | None, name: str) -> Dict[str, Any]:
    """Return the ``[nodevec.<name>]`` sub-table, or an empty dict."""
    value = (raw or {}).get(name, {})
    return value if isinstance(value, dict) else {}


__all__ = ["load_raw_config", "resolve_config_path", "table", "DEFAULT_CONFIG_PATH", "CONFIG_ENV"]
