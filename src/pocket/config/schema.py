"""Pydantic models for pocket configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ModelConfig(BaseModel):
    """Configuration for the LLM provider."""

    provider: str = "anthropic"
    api_key: str | None = None
    api_key_env: str | None = "ANTHROPIC_API_KEY"
    model_id: str = "claude-sonnet-4-5-20250929"
    # Cheaper model for the first iteration only; None = always model_id.
    first_turn_model_id: str | None = None
    max_tokens: int = 1000
    temperature: float = 0.7
    timeout: float = 60.0


class LoopConfig(BaseModel):
    """Reasoning loop settings."""

    max_iterations: int = Field(default=5, ge=1)
    stream: bool = False


class ServerConfig(BaseModel):
    """A single MCP tool server.

    ``endpoint`` is a ``.py``/``.js`` script path or, when ``command`` is
    set, the label used in logs.
    """

    name: str | None = None
    endpoint: str
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    enabled: bool = True


def _default_enrichment() -> dict[str, str]:
    return {
        "check-token-balance": "publicKey",
        "check-balance": "owner",
        "prepare-swap": "source",
    }


class ToolsConfig(BaseModel):
    """Tool invocation settings."""

    call_timeout: float = 30.0
    discovery_timeout: float = 30.0
    validate_arguments: bool = True
    # tool name -> argument key pre-filled from the session's known address
    enrichment: dict[str, str] = Field(default_factory=_default_enrichment)


class PromptConfig(BaseModel):
    """System prompt content."""

    product_name: str = "Send Pocket"
    company_name: str = "SEND S1"
    functionalities: list[str] = Field(
        default_factory=lambda: [
            "getting wallet information",
            "getting ticker (SOL/SPL) information",
            "performing token swaps",
            "performing token transfers",
            "placing limit order for user",
        ]
    )
    system_prompt: str | None = None


class GatewayConfig(BaseModel):
    """WebSocket gateway settings."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class PocketConfig(BaseModel):
    """Top-level configuration for pocket."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    servers: list[ServerConfig] = Field(default_factory=list)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    prompt: PromptConfig = Field(default_factory=PromptConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
