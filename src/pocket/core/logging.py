"""Operator log setup.

Console output goes through :class:`rich.logging.RichHandler` so levels
are colourised; an optional file handler mirrors everything to disk.
"""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pocket.config.schema import LoggingConfig

_PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_STRUCTURED_FORMAT = (
    "ts=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)r"
)

# Chatty third-party loggers kept at WARNING unless the user asks for DEBUG.
_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "mcp")


def configure_logging(config: LoggingConfig) -> None:
    """Apply logging configuration to the root logger."""
    level = config.level.upper()
    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "rich.logging.RichHandler",
            "level": level,
            "show_path": False,
            "rich_tracebacks": False,
            "markup": False,
        },
    }
    formatters: dict[str, dict[str, Any]] = {
        "console": {"format": "%(message)s", "datefmt": "[%X]"},
        "file": {
            "format": _STRUCTURED_FORMAT if config.structured else _PLAIN_FORMAT,
        },
    }
    handlers["console"]["formatter"] = "console"

    if config.file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": config.file,
            "formatter": "file",
            "level": level,
            "encoding": "utf-8",
        }

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": handlers,
            "root": {"handlers": list(handlers), "level": level},
        }
    )

    if level != "DEBUG":
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
