"""Main CLI application.

Click commands for the pocket agent: chat, tools, serve.
"""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

import click

from pocket import __version__
from pocket.config.loader import load_config, require_api_key
from pocket.core.errors import ConfigError, ModelRequestError, PocketError, ToolError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from pocket.agent.loop import LoopEvent, ReasoningLoop
    from pocket.cli.display import ChatDisplay
    from pocket.config.schema import PocketConfig, ServerConfig
    from pocket.providers.base import ModelProvider
    from pocket.session.context import ContextStore
    from pocket.session.manager import SessionManager
    from pocket.tools.registry import ProviderRegistry, RegistrationFailure

CLI_SESSION_ID = "cli"


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> PocketConfig:
    """Load config with user-friendly error handling."""
    try:
        config = load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy

    from pocket.core.logging import configure_logging

    configure_logging(config.logging)
    return config


async def _setup_registry(
    config: PocketConfig,
    servers: Sequence[str] = (),
) -> tuple[ProviderRegistry, list[RegistrationFailure]]:
    """Connect to the given server scripts, or the configured ones."""
    from pocket.tools.registry import ProviderRegistry

    sources: list[str | ServerConfig]
    if servers:
        sources = list(servers)
    else:
        sources = [s for s in config.servers if s.enabled]

    registry = ProviderRegistry(discovery_timeout=config.tools.discovery_timeout)
    failures = await registry.register_all(sources)
    return registry, failures


def _setup_provider(config: PocketConfig) -> ModelProvider:
    """Instantiate the model provider from config."""
    if config.model.provider != "anthropic":
        msg = f"Unsupported model provider: {config.model.provider}"
        raise ConfigError(msg)

    from pocket.providers.anthropic import AnthropicProvider

    return AnthropicProvider(api_key=require_api_key(config))


def _build_loop(
    config: PocketConfig,
    provider: ModelProvider,
    registry: ProviderRegistry,
) -> ReasoningLoop:
    """Wire the reasoning loop from config."""
    from pocket.agent.loop import ReasoningLoop
    from pocket.prompts import build_system_prompt
    from pocket.tools.invoker import ToolInvoker

    invoker = ToolInvoker(
        registry,
        timeout=config.tools.call_timeout,
        validate=config.tools.validate_arguments,
    )
    return ReasoningLoop(
        provider,
        registry,
        invoker,
        model_id=config.model.model_id,
        system_prompt=build_system_prompt(config.prompt),
        first_turn_model_id=config.model.first_turn_model_id,
        max_iterations=config.loop.max_iterations,
        max_tokens=config.model.max_tokens,
        temperature=config.model.temperature,
        timeout=config.model.timeout,
        stream=config.loop.stream,
    )


def _context_factory(config: PocketConfig) -> Callable[[], ContextStore]:
    """Fresh per-session context stores using the configured enrichment."""
    from pocket.session.context import ContextStore

    enrichment = dict(config.tools.enrichment)
    return lambda: ContextStore(enrichment=enrichment)


# ── CLI group ────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pocket")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """pocket - Conversational wallet agent.

    Chat with a model that can call tools on MCP servers.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── chat ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("servers", nargs=-1)
@click.option(
    "--stream/--no-stream",
    default=None,
    help="Stream answers as they arrive (overrides config).",
)
@click.option(
    "--max-iterations",
    type=click.IntRange(min=1),
    default=None,
    help="Max model requests per query (overrides config).",
)
@click.pass_context
def chat(
    ctx: click.Context,
    servers: tuple[str, ...],
    stream: bool | None,
    max_iterations: int | None,
) -> None:
    """Start an interactive chat.

    SERVERS are tool server scripts (.py or .js). Without any, the
    servers listed in the config file are used.
    """
    config = _load_config(ctx.obj["config_path"])
    if stream is not None:
        config.loop.stream = stream
    if max_iterations is not None:
        config.loop.max_iterations = max_iterations

    try:
        require_api_key(config)
    except ConfigError as e:
        _error(str(e))

    if not servers and not any(s.enabled for s in config.servers):
        _error("No tool servers given. Usage: pocket chat SERVER_SCRIPT...")

    try:
        asyncio.run(_chat_async(config, servers))
    except PocketError as e:
        _error(str(e))


async def _chat_async(config: PocketConfig, servers: Sequence[str]) -> None:
    """Async implementation for the chat command."""
    from pocket.cli.display import ChatDisplay
    from pocket.session.manager import SessionManager

    display = ChatDisplay()
    registry, failures = await _setup_registry(config, servers)
    try:
        display.show_failures(failures)
        if not len(registry):
            msg = "No tool servers could be connected"
            raise ToolError(msg)

        provider = _setup_provider(config)
        loop = _build_loop(config, provider, registry)
        manager = SessionManager(_context_factory(config))
        display.banner(registry.tool_names(), loop.stream)
        await _chat_loop(display, manager, loop, registry)
    finally:
        await registry.close()


async def _read_query() -> str | None:
    """Prompt for the next line. None on end of input."""
    try:
        line: str = await asyncio.to_thread(
            click.prompt, "\nQuery", default="", show_default=False
        )
    except click.exceptions.Abort:
        return None
    return line.strip()


async def _chat_loop(
    display: ChatDisplay,
    manager: SessionManager,
    loop: ReasoningLoop,
    registry: ProviderRegistry,
) -> None:
    """Read queries until quit, handling the ``!`` commands."""
    session = manager.get_or_create(CLI_SESSION_ID)

    while True:
        message = await _read_query()
        if message is None:
            break
        command = message.lower()
        if not message:
            continue
        if command in ("quit", "exit"):
            break
        if command == "!clear":
            manager.clear(CLI_SESSION_ID)
            display.show_info("Conversation history cleared.")
            continue
        if command == "!history":
            display.show_history(manager.exchanges(CLI_SESSION_ID))
            continue
        if command == "!wallet":
            display.show_wallet(session.context.address)
            continue
        if command == "!wallet clear":
            session.context.forget()
            display.show_info("Wallet address forgotten.")
            continue
        if command == "!stream":
            loop.stream = not loop.stream
            display.show_info(f"Streaming {'on' if loop.stream else 'off'}.")
            continue
        if command == "!tools":
            display.show_tools(registry.all_tools())
            continue

        display.show_preview(manager.exchanges(CLI_SESSION_ID))
        await _answer(display, manager, loop, message)


async def _answer(
    display: ChatDisplay,
    manager: SessionManager,
    loop: ReasoningLoop,
    message: str,
) -> None:
    """Run one query and render its progress and answer."""
    from pocket.agent.loop import EventKind, final_text

    async def on_event(event: LoopEvent) -> None:
        if event.kind == EventKind.TEXT_DELTA:
            display.text_delta(event.text)
        elif event.kind == EventKind.TOOL_CALLED:
            display.tool_called(event)
        elif event.kind == EventKind.TOOL_RESULT:
            display.tool_result(event)
        elif event.kind == EventKind.TOOL_ERROR:
            display.tool_error(event)

    streamed = loop.stream
    display.start()
    try:
        if streamed:
            result = await manager.query(CLI_SESSION_ID, message, loop, on_event)
        else:
            with display.thinking():
                result = await manager.query(CLI_SESSION_ID, message, loop, on_event)
    except ModelRequestError as e:
        display.show_error(str(e))
        return
    display.show_answer(final_text(result), result, streamed)


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.argument("servers", nargs=-1)
@click.pass_context
def tools(ctx: click.Context, servers: tuple[str, ...]) -> None:
    """Connect to tool servers and list their tools."""
    config = _load_config(ctx.obj["config_path"])
    try:
        asyncio.run(_tools_async(config, servers))
    except PocketError as e:
        _error(str(e))


async def _tools_async(config: PocketConfig, servers: Sequence[str]) -> None:
    """Async implementation for the tools command."""
    from pocket.cli.display import ChatDisplay

    display = ChatDisplay()
    registry, failures = await _setup_registry(config, servers)
    try:
        display.show_failures(failures)
        display.show_tools(registry.all_tools())
    finally:
        await registry.close()


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Host to bind to (overrides config).")
@click.option(
    "--port", type=int, default=None, help="Port to bind to (overrides config)."
)
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the websocket gateway."""
    import uvicorn

    from pocket.api.app import create_app

    config = _load_config(ctx.obj["config_path"])
    try:
        require_api_key(config)
    except ConfigError as e:
        _error(str(e))

    effective_host = host or config.gateway.host
    effective_port = port or config.gateway.port
    click.echo(f"Gateway: ws://{effective_host}:{effective_port}/ws")

    app = create_app(config)
    uvicorn.run(app, host=effective_host, port=effective_port)
