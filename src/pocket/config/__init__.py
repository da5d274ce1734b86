"""Configuration loading and validation."""

from pocket.config.loader import load_config, require_api_key
from pocket.config.schema import (
    GatewayConfig,
    LoggingConfig,
    LoopConfig,
    ModelConfig,
    PocketConfig,
    PromptConfig,
    ServerConfig,
    ToolsConfig,
)

__all__ = [
    "GatewayConfig",
    "LoggingConfig",
    "LoopConfig",
    "ModelConfig",
    "PocketConfig",
    "PromptConfig",
    "ServerConfig",
    "ToolsConfig",
    "load_config",
    "require_api_key",
]
