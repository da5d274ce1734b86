"""Exception hierarchy for pocket.

Every module imports from here. The hierarchy is:

    PocketError
    ├── ModelRequestError(provider_id)
    │   ├── ModelAuthError
    │   ├── ModelRateLimitError(retry_after)
    │   ├── ModelTimeoutError
    │   ├── ModelOverloadedError
    │   └── ModelNotFoundError
    ├── ToolError
    │   ├── ToolConnectionError(endpoint)
    │   ├── UnknownToolError(tool_name)
    │   └── ToolExecutionError(tool_name)
    │       ├── ToolTimeoutError
    │       └── ToolArgumentError
    └── ConfigError

Model request errors abort the query. Tool errors are folded into the
conversation as failed tool results so the model can react to them.
"""

from __future__ import annotations


class PocketError(Exception):
    """Base exception for all pocket errors."""


# ─── Model Request Errors ─────────────────────────────────────


class ModelRequestError(PocketError):
    """Base for errors raised by the LLM provider."""

    def __init__(self, provider_id: str, message: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"[{provider_id}] {message}")


class ModelAuthError(ModelRequestError):
    """Invalid or missing API key."""


class ModelRateLimitError(ModelRequestError):
    """Rate limit exceeded. Includes retry_after if available."""

    def __init__(self, provider_id: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(provider_id, msg)


class ModelTimeoutError(ModelRequestError):
    """Model request timed out."""


class ModelOverloadedError(ModelRequestError):
    """Provider is overloaded or returned a server error."""


class ModelNotFoundError(ModelRequestError):
    """Requested model not available from this provider."""


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(PocketError):
    """Base for tool server and tool invocation errors."""


class ToolConnectionError(ToolError):
    """A tool server could not be reached or failed catalog discovery."""

    def __init__(self, endpoint: str, message: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Cannot connect to tool server {endpoint}: {message}")


class UnknownToolError(ToolError):
    """No registered tool server advertises the requested tool."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ToolExecutionError(ToolError):
    """The tool server failed while executing a call."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' failed: {message}")


class ToolTimeoutError(ToolExecutionError):
    """A tool call exceeded its timeout."""

    def __init__(self, tool_name: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(tool_name, f"timed out after {timeout:g}s")


class ToolArgumentError(ToolExecutionError):
    """Arguments do not match the tool's declared input schema."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(PocketError):
    """Invalid configuration."""
