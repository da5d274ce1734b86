"""Rich display for the interactive chat.

Renders the session banner, tool activity, answers and history with
styled panels. Used by the ``chat`` command; the ``tools`` command
uses it for the catalog table.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.status import Status

    from pocket.agent.loop import LoopEvent, LoopResult
    from pocket.session.manager import Exchange
    from pocket.tools.base import ToolDescriptor
    from pocket.tools.registry import RegistrationFailure

_TRUNCATE_LEN = 500


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class ChatDisplay:
    """Rich display for chat sessions.

    Accepts an optional :class:`~rich.console.Console` for dependency
    injection in tests.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._start_time: float = 0.0
        self._streaming = False

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self) -> None:
        """Record the start time for elapsed calculations."""
        self._start_time = time.monotonic()
        self._streaming = False

    @property
    def elapsed(self) -> float:
        """Seconds elapsed since :meth:`start` was called."""
        if self._start_time == 0.0:
            return 0.0
        return time.monotonic() - self._start_time

    def banner(self, tool_names: Sequence[str], stream: bool) -> None:
        """Print the welcome panel listing available tools."""
        body = Text()
        body.append("Connected tools: ", style="bold")
        body.append(", ".join(tool_names) or "(none)")
        body.append("\n")
        body.append("Streaming: ", style="bold")
        body.append("on" if stream else "off")
        body.append("\n\n")
        body.append(
            "Commands: quit | exit | !clear | !history | !wallet | "
            "!wallet clear | !stream | !tools",
            style="dim",
        )
        self._console.print(
            Panel(body, title="[bold cyan]Pocket[/bold cyan]", border_style="cyan")
        )

    def thinking(self) -> Status:
        """Spinner shown while waiting on a non-streamed answer."""
        label = "[bold cyan]Thinking...[/bold cyan]"
        return self._console.status(label, spinner="dots")

    # ── Loop events ───────────────────────────────────────────

    def text_delta(self, text: str) -> None:
        """Print a streamed text fragment without a newline."""
        self._streaming = True
        self._console.print(text, end="", markup=False, highlight=False)

    def tool_called(self, event: LoopEvent) -> None:
        self._end_stream()
        args = json.dumps(event.arguments, default=str)
        self._console.print(
            f"[bold yellow]→ {event.tool_name}[/bold yellow] "
            f"[dim]{escape(_truncate(args, 200))}[/dim]"
        )

    def tool_result(self, event: LoopEvent) -> None:
        self._console.print(
            f"[green]✓ {event.tool_name}[/green] "
            f"[dim]{escape(_truncate(event.text, 200))}[/dim]"
        )

    def tool_error(self, event: LoopEvent) -> None:
        self._console.print(f"[red]✗ {event.tool_name}[/red] {escape(event.text)}")

    def _end_stream(self) -> None:
        if self._streaming:
            self._console.print()
            self._streaming = False

    # ── Results ───────────────────────────────────────────────

    def show_answer(self, text: str, result: LoopResult, streamed: bool) -> None:
        """Display the final answer, limit notice and response time."""
        self._end_stream()
        if not streamed or not result.text:
            self._console.print(
                Panel(
                    escape(text),
                    title="[bold green]Assistant[/bold green]",
                    border_style="green",
                )
            )
        if result.limit_reached:
            self._console.print(
                f"[bold yellow]Notice:[/bold yellow] stopped after "
                f"{result.iterations} iterations without a final answer."
            )
        parts = [
            f"{result.iterations} iteration(s)",
            f"{len(result.tool_results)} tool call(s)",
            f"{result.usage.total_tokens} tokens",
            f"{self.elapsed:.2f}s",
        ]
        self._console.print(" | ".join(parts), style="dim")

    def show_error(self, message: str) -> None:
        self._end_stream()
        self._console.print(f"[bold red]Error:[/bold red] {escape(message)}")

    def show_info(self, message: str) -> None:
        self._console.print(f"[cyan]{message}[/cyan]")

    # ── Session ───────────────────────────────────────────────

    def show_preview(self, exchanges: Sequence[Exchange]) -> None:
        """Show the last two exchanges before the next query runs."""
        if not exchanges:
            return
        recent = list(exchanges)[-2:]
        first = len(exchanges) - len(recent) + 1
        lines = Text()
        for n, ex in enumerate(recent, first):
            if n > first:
                lines.append("\n")
            answer = ex.response.split("\n", 1)[0]
            lines.append(f"[{n}] You: ", style="bold")
            lines.append(_truncate(ex.query, 60))
            lines.append(f"\n[{n}] Pocket: ", style="bold")
            lines.append(_truncate(answer, 60))
        self._console.print(
            Panel(lines, title="Context from previous messages", border_style="dim")
        )

    def show_history(self, exchanges: Sequence[Exchange]) -> None:
        if not exchanges:
            self._console.print("No conversation history.", style="dim")
            return
        for i, ex in enumerate(exchanges, 1):
            self._console.print(f"[bold]{i}. You:[/bold] {escape(ex.query)}")
            answer = escape(_truncate(ex.response))
            self._console.print(f"   [bold]Pocket:[/bold] {answer}")

    def show_wallet(self, address: str | None) -> None:
        if address is None:
            self._console.print("No wallet address known yet.", style="dim")
        else:
            self._console.print(f"[bold]Wallet:[/bold] {address}")

    # ── Catalog ───────────────────────────────────────────────

    def show_tools(self, tools: Sequence[ToolDescriptor]) -> None:
        """Table of the aggregated tool catalog."""
        if not tools:
            self._console.print("No tools available.", style="dim")
            return
        table = Table(title="Tools")
        table.add_column("Name", style="bold")
        table.add_column("Description")
        table.add_column("Arguments", style="dim")
        for tool in tools:
            props = tool.input_schema.get("properties", {})
            required = set(tool.input_schema.get("required", []))
            args = ", ".join(
                f"{name}*" if name in required else name for name in props
            )
            table.add_row(tool.name, _truncate(tool.description, 120), args)
        self._console.print(table)

    def show_failures(self, failures: Sequence[RegistrationFailure]) -> None:
        for failure in failures:
            self._console.print(
                f"[bold yellow]Warning:[/bold yellow] {escape(str(failure.error))}"
            )
