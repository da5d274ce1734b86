"""pocket - conversational agent orchestrator for MCP tool servers."""

__version__ = "0.3.0"
