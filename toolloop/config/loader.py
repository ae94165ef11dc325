"""Configuration loader for toolloop."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Optional

from toolloop.config.models import RuntimeConfig

SECTIONS = ("primary", "worker", "retry", "compression", "loop", "agent")


def _apply_override(config_dict: dict[str, Any], key: str, value: Any) -> None:
    """Set a dotted key like ``compression.threshold``."""
    parts = key.split(".")
    current = config_dict
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def load_config_from_file(path: Path) -> RuntimeConfig:
    """Load configuration from a TOML file.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    return load_config(path)


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> RuntimeConfig:
    """Load configuration with optional overrides.

    The TOML file has one table per section (``[primary]``, ``[worker]``,
    ``[compression]``, ...) plus top-level keys such as ``data_dir``.

    Args:
        config_path: Optional path to a TOML config file.
        overrides: Optional mapping of dotted keys to values.

    Returns:
        RuntimeConfig instance.
    """
    config_dict: dict[str, Any] = {}

    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            raw_config = tomllib.load(f)

        for key, value in raw_config.items():
            if key in SECTIONS and not isinstance(value, dict):
                raise ValueError(f"[{key}] must be a table in {config_path}")
            config_dict[key] = value

    if overrides:
        for key, value in overrides.items():
            _apply_override(config_dict, key, value)

    return RuntimeConfig(**config_dict)


def find_config_file() -> Optional[Path]:
    """Find the configuration file in standard locations.

    Searches in order:
    1. ./toolloop.toml
    2. ~/.config/toolloop/config.toml

    Returns:
        Path to the config file if found, None otherwise.
    """
    search_paths = [
        Path.cwd() / "toolloop.toml",
        Path.home() / ".config" / "toolloop" / "config.toml",
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None
