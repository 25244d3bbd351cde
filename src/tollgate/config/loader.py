"""Configuration loading for tollgate.

Sources, lowest priority first::

    model defaults
    ~/.config/tollgate/config.toml   ($XDG_CONFIG_HOME honoured)
    ./tollgate.toml
    $TOLLGATE_CONFIG
    explicit path (``--config``)
    programmatic overrides

Tables merge key by key, so a project file only lists what it changes.
The payment recipient falls back to the environment variable named by
``payments.recipient_env`` when no file sets it.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from tollgate.core.errors import ConfigError

from .schema import TollgateConfig

CONFIG_ENV = "TOLLGATE_CONFIG"
PROJECT_FILE = "tollgate.toml"


def user_config_path() -> Path:
    root = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(root) / "tollgate" / "config.toml"


def _require_file(path: Path, problem: str) -> Path:
    if not path.is_file():
        msg = f"{problem}: {path}"
        raise ConfigError(msg)
    return path


def config_sources(path: str | Path | None = None) -> list[Path]:
    """Config files to read, lowest priority first.

    Raises:
        ConfigError: If ``$TOLLGATE_CONFIG`` or ``path`` names a missing file.
    """
    candidates = (user_config_path(), Path.cwd() / PROJECT_FILE)
    sources = [p for p in candidates if p.is_file()]

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        problem = f"{CONFIG_ENV} points to non-existent file"
        sources.append(_require_file(Path(env_path), problem))
    if path is not None:
        sources.append(_require_file(Path(path), "Config file not found"))
    return sources


def _parse(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``; nested tables merge per key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> TollgateConfig:
    """Read, merge and validate configuration.

    Raises:
        ConfigError: On a missing or unreadable file, invalid TOML, or a
            value the schema rejects.
    """
    layers = [_parse(source) for source in config_sources(path)]
    if overrides:
        layers.append(overrides)

    merged: dict[str, Any] = {}
    for layer in layers:
        merged = _deep_merge(merged, layer)

    try:
        config = TollgateConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed: {_describe(e)}"
        raise ConfigError(msg) from e

    payments = config.payments
    if payments.recipient is None and payments.recipient_env:
        payments.recipient = os.environ.get(payments.recipient_env)
    return config
