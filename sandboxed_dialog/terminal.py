#!/usr/bin/env python3
"""
Terminal front-end

Runs a Dialog in the terminal and renders its events with rich.

Usage:
    # Interactive session with the python tool
    sandboxed-dialog

    # One request, then exit
    sandboxed-dialog -e "What is the 20th Fibonacci number?"

    # Enable the shell and Docker tools as well
    sandboxed-dialog --tools python,terminal,docker

    # Verbose logging
    sandboxed-dialog -v

Requirements:
    ANTHROPIC_API_KEY set, or AWS credentials configured (for Bedrock)
"""

import argparse
import asyncio
import logging
import os
from typing import Sequence

from rich.console import Console

from utils.visualize import EventRenderer

from .dialog import Dialog, DialogConfig, DialogMethod
from .modules import ModuleLoader
from .providers import AnthropicProvider, ModelProvider, ProviderConfig
from .sandbox import SandboxConfig, SandboxExecutor
from .tool import Tool
from .tools import DockerExecTool, PythonExecTool, TerminalTool

logger = logging.getLogger(__name__)

AVAILABLE_TOOLS = ("python", "terminal", "docker")
EXIT_COMMANDS = (".exit", "quit")

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant running in a terminal. "
    "Use the provided tools when a task needs computation or system access."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sandboxed-dialog",
        description="Chat with Claude using sandboxed tools"
    )
    parser.add_argument("-e", "--execute", metavar="MESSAGE", help="Send one message and exit")
    parser.add_argument(
        "--method",
        choices=[m.value for m in DialogMethod],
        default=DialogMethod.STREAM.value,
        help="Receive replies as a stream or as one response"
    )
    parser.add_argument("--system", default=DEFAULT_SYSTEM_PROMPT, help="System prompt")
    parser.add_argument(
        "--tools",
        default="python",
        help=f"Comma separated tools to enable ({','.join(AVAILABLE_TOOLS)}), empty for none"
    )
    parser.add_argument(
        "--terminal-timeout",
        type=float,
        default=30.0,
        help="Terminal tool timeout in seconds (0 disables it)"
    )
    parser.add_argument(
        "--allow-install",
        action="store_true",
        help="Let use() pip-install missing modules"
    )
    parser.add_argument("--show-thoughts", action="store_true", help="Print model thoughts")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    return parser


def build_tools(names: str, terminal_timeout: float = 30.0, allow_install: bool = False) -> list[Tool]:
    """Instantiate tools from a comma separated list of names"""
    tools: list[Tool] = []
    for name in (n.strip() for n in names.split(",")):
        if not name:
            continue
        if name == "python":
            executor = SandboxExecutor(
                config=SandboxConfig(allow_install=allow_install),
                module_loader=ModuleLoader(allow_install=allow_install)
            )
            tools.append(PythonExecTool(executor))
        elif name == "terminal":
            tools.append(TerminalTool(timeout=terminal_timeout))
        elif name == "docker":
            tools.append(DockerExecTool())
        else:
            raise ValueError(
                f"Unknown tool '{name}', expected one of: {', '.join(AVAILABLE_TOOLS)}"
            )
    return tools


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    for noisy in ("urllib3", "httpx", "httpcore", "anthropic", "docker", "botocore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


async def run(
    args: argparse.Namespace,
    provider: ModelProvider | None = None,
    console: Console | None = None
) -> int:
    """Run one request (--execute) or an interactive session"""
    console = console or Console()

    if provider is None:
        provider = AnthropicProvider(
            api_key=os.environ.get("ANTHROPIC_API_KEY"),
            config=ProviderConfig.from_env()
        )

    tools = build_tools(args.tools, args.terminal_timeout, args.allow_install)
    renderer = EventRenderer(console=console, show_thoughts=args.show_thoughts)
    errors: list[str] = []

    dialog = Dialog(
        provider=provider,
        tools=tools,
        system_prompt=args.system,
        on_change=renderer,
        on_error=errors.append,
        config=DialogConfig(method=args.method)
    )

    if args.execute:
        await dialog.ask(args.execute)
        return 1 if errors else 0

    console.rule("[bold cyan]Sandboxed Dialog[/bold cyan]")
    console.print(f"Tools: {[t.name for t in tools] or 'none'}")
    console.print("Type '.exit' to quit, '.clear' to forget the conversation\n")

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            console.print("\nGoodbye!")
            break

        if user_input.lower() in EXIT_COMMANDS:
            console.print("Goodbye!")
            break
        if user_input.lower() == ".clear":
            dialog.clear()
            console.print("History cleared.\n")
            continue
        if not user_input:
            continue

        await dialog.ask(user_input)
        console.print()

    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        return asyncio.run(run(args))
    except ValueError as e:
        logger.debug("Invalid arguments", exc_info=True)
        Console(stderr=True).print(f"[bold red]Error:[/bold red] {e}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
