"""Configuration loading for the agent.

One TOML file is read: the ``--config`` path when given, otherwise
``./pocket.toml`` if it exists. Anything the file leaves out keeps its
Pydantic default, and programmatic overrides are merged on top.

The model API key is resolved from ``model.api_key_env`` (default
``ANTHROPIC_API_KEY``) when not set in the file. A ``.env`` file in the
working directory is read first, without overriding variables that are
already set.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from pocket.core.errors import ConfigError

from .schema import PocketConfig

PROJECT_CONFIG = "pocket.toml"


def _config_file(path: str | Path | None) -> Path | None:
    """Pick the file to read, or None to run on defaults."""
    if path is not None:
        p = Path(path)
        if not p.is_file():
            msg = f"Config file not found: {path}"
            raise ConfigError(msg)
        return p
    project = Path.cwd() / PROJECT_CONFIG
    return project if project.is_file() else None


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override wins on conflicts."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    *,
    dotenv: bool = True,
) -> PocketConfig:
    """Load and validate configuration.

    Args:
        path: Config file to read instead of ``./pocket.toml``.
        overrides: Settings merged over the file's contents.
        dotenv: Read ``./.env`` into the environment before resolving keys.

    Raises:
        ConfigError: On invalid TOML, a missing file, or validation failure.
    """
    if dotenv:
        load_dotenv(Path.cwd() / ".env", override=False)

    config_file = _config_file(path)
    data = _read_toml(config_file) if config_file is not None else {}
    if overrides:
        data = _deep_merge(data, overrides)

    try:
        config = PocketConfig.model_validate(data)
    except Exception as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    model = config.model
    if model.api_key is None and model.api_key_env:
        model.api_key = os.environ.get(model.api_key_env) or None
    return config


def require_api_key(config: PocketConfig) -> str:
    """Return the model API key or fail fast.

    Raises:
        ConfigError: If no key is configured or present in the environment.
    """
    key = config.model.api_key
    if not key:
        env = config.model.api_key_env or "api_key"
        msg = f"{env} is not set"
        raise ConfigError(msg)
    return key
