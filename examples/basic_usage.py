#!/usr/bin/env python3
"""
Sandboxed Dialog basic example

Shows the sandbox executor on its own, a custom tool, and a full dialog where
Claude calls tools.

Usage:
    # Sandbox only (no API access needed)
    python basic_usage.py --sandbox-only

    # Full dialog
    python basic_usage.py

Requirements:
    pip install -e .
    ANTHROPIC_API_KEY set, or AWS credentials configured (for Bedrock)
"""

import argparse
import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sandboxed_dialog import (
    AnthropicProvider,
    Dialog,
    PythonExecTool,
    ProviderConfig,
    SandboxExecutor,
    Tool,
    ToolResult,
    UnknownCommandError,
)
from utils.visualize import EventRenderer

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('anthropic').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


# ============================================================
# Mock data (replace with a real backend)
# ============================================================

MOCK_SALES_DATA = {
    "East": [
        {"month": "2024-01", "revenue": 37000},
        {"month": "2024-02", "revenue": 18000},
    ],
    "West": [
        {"month": "2024-01", "revenue": 55000},
        {"month": "2024-02", "revenue": 12000},
    ],
    "Central": [
        {"month": "2024-01", "revenue": 83000},
        {"month": "2024-02", "revenue": 52000},
    ],
}


class SalesTool(Tool):
    """Looks up monthly revenue for a region"""

    def __init__(self):
        super().__init__(
            name="sales",
            context_preprompt=(
                "**sales** - Monthly revenue by region.\n"
                "Command: `lookup`; content is a region name "
                f"({', '.join(MOCK_SALES_DATA)})."
            )
        )

    async def execute(self, command, content, tooler):
        if command != "lookup":
            raise UnknownCommandError(self.name, command)
        region = content.strip()
        if region not in MOCK_SALES_DATA:
            return ToolResult(error=f"Unknown region: {region}")
        tooler.log(f"Loaded {len(MOCK_SALES_DATA[region])} rows for {region}")
        return ToolResult(result=MOCK_SALES_DATA[region])


# ============================================================
# Demos
# ============================================================

async def sandbox_demo():
    """Run snippets directly in the sandbox"""
    executor = SandboxExecutor(initial_context={"sales": MOCK_SALES_DATA})

    snippets = [
        "1 + 1",
        "x = 10\ny = 20\nx + y",
        "console.log('regions:', list(sales))\nlen(sales)",
        "results['total'] = sum(r['revenue'] for rows in sales.values() for r in rows)\nresults['total']",
        "await sleep(0.1)\n42",
    ]
    for code in snippets:
        execution = await executor.execute(code)
        print(f">>> {code!r}")
        for log in execution.logs:
            print(f"    [{log.level}] {' '.join(map(str, log.args))}")
        print(f"    = {execution.result!r} ({execution.execution_time_ms:.1f} ms)")


async def dialog_demo():
    """Let Claude use the python and sales tools"""
    provider = AnthropicProvider(
        api_key=os.environ.get("ANTHROPIC_API_KEY"),
        config=ProviderConfig.from_env()
    )
    dialog = Dialog(
        provider=provider,
        tools=[PythonExecTool(), SalesTool()],
        system_prompt="You are a sales analyst. Use tools to look up and compute numbers.",
        on_change=EventRenderer(show_thoughts=True)
    )

    await dialog.ask("Which region had the highest total revenue across both months?")


def main():
    parser = argparse.ArgumentParser(description="Sandboxed Dialog basic example")
    parser.add_argument("--sandbox-only", action="store_true", help="Run only the sandbox demo")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    asyncio.run(sandbox_demo())
    if not args.sandbox_only:
        asyncio.run(dialog_demo())


if __name__ == "__main__":
    main()
