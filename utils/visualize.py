"""
Rich terminal visualization for dialog events
"""

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text
from rich.tree import Tree

from sandboxed_dialog.messages import DialogEvent


def format_json(data: Any, max_length: int = 500) -> str:
    """Format data as JSON string, truncating if too long."""
    json_str = json.dumps(data, indent=2, ensure_ascii=False, default=str)
    if len(json_str) > max_length:
        json_str = json_str[:max_length] + "\n  ... (truncated)"
    return json_str


def _truncate(text: str, limit: int = 1000) -> str:
    if len(text) > limit:
        return text[:limit] + "\n... (truncated)"
    return text


def _format_log(log: Any) -> str:
    """Render a ConsoleLog (or anything log-like) as one line"""
    level = getattr(log, "level", None)
    args = getattr(log, "args", None)
    if level is None or args is None:
        return str(log)
    return f"[{level}] " + " ".join(str(arg) for arg in args)


class EventRenderer:
    """
    Prints dialog events as they arrive.

    Chunks are written inline so streamed replies appear token by token; tool
    calls and results are shown as panels.

    Usage:
        renderer = EventRenderer()
        dialog = Dialog(provider, tools, on_change=renderer)
    """

    def __init__(
        self,
        console: Console | None = None,
        show_thoughts: bool = False,
        show_logs: bool = True
    ):
        self.console = console or Console()
        self.show_thoughts = show_thoughts
        self.show_logs = show_logs
        self._streamed = False

    def __call__(self, event: DialogEvent) -> None:
        handler = getattr(self, f"_on_{event.type}", None)
        if handler:
            handler(event)

    def _on_ai_chunk(self, event) -> None:
        self._streamed = True
        self.console.print(event.chunk, end="", markup=False, highlight=False)

    def _on_thought_chunk(self, event) -> None:
        if self.show_thoughts:
            self.console.print(Text(event.chunk, style="dim italic"), end="")

    def _on_thought(self, event) -> None:
        if self.show_thoughts:
            self.console.print(Panel(Text(event.content, style="dim italic"), title="thought", border_style="dim"))

    def _on_ai_response(self, event) -> None:
        if self._streamed:
            self.console.print()
            self._streamed = False
        elif event.content:
            self.console.print(Panel(Text(event.content), title="[bold cyan]Assistant[/bold cyan]", border_style="cyan", expand=False))

    def _on_tool_call(self, event) -> None:
        tree = Tree(f"[yellow]Tool Call:[/yellow] [bold yellow]{event.name}[/bold yellow]/{event.command}")
        tree.add(f"[dim white]ID:[/dim white] {event.id}")
        lexer = "python" if event.name in ("python", "docker") else "bash"
        tree.add(Syntax(_truncate(event.content), lexer, theme="monokai", line_numbers=False))
        self.console.print(Panel(tree, border_style="yellow", expand=False))

    def _on_tool_log(self, event) -> None:
        if self.show_logs:
            self.console.print(Text(f"  {_format_log(event.log)}", style="dim"))

    def _on_tool_result(self, event) -> None:
        status = "[red]Error[/red]" if event.error is not None else "[green]Success[/green]"
        tree = Tree(f"[yellow]Tool Result:[/yellow] {status}")
        tree.add(f"[dim white]ID:[/dim white] {event.id}")
        if event.error is not None:
            tree.add(Text(_truncate(event.error), style="red"))
        else:
            tree.add(Syntax(format_json(event.result), "json", theme="monokai", line_numbers=False))
        self.console.print(Panel(tree, border_style="yellow", expand=False))

    def _on_error(self, event) -> None:
        self.console.print(Text.assemble(("Error: ", "bold red"), event.error))

    def _on_done(self, event) -> None:
        self.console.print("[dim]✅ Done.[/dim]")


def visualize_events(events: list[DialogEvent], console: Console | None = None) -> None:
    """Summarize a recorded event list as a tree"""
    if console is None:
        console = Console()

    tree = Tree(f"[bold cyan]Dialog[/bold cyan] ({len(events)} events)")
    for event in events:
        if event.type in ("ai_chunk", "thought_chunk"):
            continue
        node = tree.add(f"[yellow]{event.type}[/yellow]")
        if event.type == "ai_response":
            node.add(Text(_truncate(event.content), style="white"))
        elif event.type == "tool_call":
            node.add(f"{event.id} → {event.name}/{event.command}")
        elif event.type == "tool_result":
            node.add(Text(_truncate(event.error if event.error is not None else format_json(event.result))))
        elif event.type == "error":
            node.add(Text(event.error, style="red"))

    console.print(Panel(tree, title="[bold]Dialog Events[/bold]", border_style="cyan", expand=False))
