"""Core errors and shared utilities."""

from pocket.core.errors import (
    ConfigError,
    ModelAuthError,
    ModelNotFoundError,
    ModelOverloadedError,
    ModelRateLimitError,
    ModelRequestError,
    ModelTimeoutError,
    PocketError,
    ToolArgumentError,
    ToolConnectionError,
    ToolError,
    ToolExecutionError,
    ToolTimeoutError,
    UnknownToolError,
)

__all__ = [
    "ConfigError",
    "ModelAuthError",
    "ModelNotFoundError",
    "ModelOverloadedError",
    "ModelRateLimitError",
    "ModelRequestError",
    "ModelTimeoutError",
    "PocketError",
    "ToolArgumentError",
    "ToolConnectionError",
    "ToolError",
    "ToolExecutionError",
    "ToolTimeoutError",
    "UnknownToolError",
]
