"""
Tool call dispatcher

Finds call syntax in model output, resolves tools by name, runs each call id
at most once and reports the call lifecycle through callbacks.
"""

import dataclasses
import logging
from typing import Any, Callable, Iterable

from .call_parser import scan_tool_calls
from .tool import FoundToolCall, Tool, ToolResult

logger = logging.getLogger(__name__)


class Tooler:
    """
    Dispatcher for registered tools

    Tools are keyed by name; when two tools share a name the one registered
    last wins. Call ids are remembered for the lifetime of the instance, so
    call() can be fed a growing transcript without re-running anything.

    Usage:
        tooler = Tooler(
            tools=[PythonExecTool()],
            on_handled=lambda result: print(result.result)
        )
        await tooler.call(model_response)
    """

    def __init__(
        self,
        tools: Iterable[Tool],
        on_handle: Callable[[FoundToolCall], None] | None = None,
        on_handled: Callable[[ToolResult], None] | None = None,
        on_log: Callable[[str, Any], None] | None = None
    ):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                logger.info(f"Tool '{tool.name}' registered twice, keeping the last one")
            self._tools[tool.name] = tool

        self.on_handle = on_handle
        self.on_handled = on_handled
        self.on_log = on_log

        self._history: set[str] = set()
        self._current_call_id: str | None = None

    @property
    def tools(self) -> dict[str, Tool]:
        return dict(self._tools)

    @property
    def history(self) -> frozenset[str]:
        """Ids that have already been dispatched"""
        return frozenset(self._history)

    def get_full_context_preprompt(self) -> str:
        """Self-descriptions of all tools, for the system prompt"""
        return "".join(f"{tool.context_preprompt}\n\n" for tool in self._tools.values())

    def find_tool_calls(self, response: str) -> list[FoundToolCall]:
        """Locate calls to registered tools; no side effects"""
        found = []
        for raw in scan_tool_calls(response):
            tool = self._tools.get(raw.tool_name)
            if tool is None:
                logger.info(f"Ignoring call {raw.id} to unknown tool '{raw.tool_name}'")
                continue
            found.append(FoundToolCall(
                id=raw.id,
                tool=tool,
                command=raw.command,
                content=raw.content,
                full_match=raw.full_match
            ))
        return found

    def find_new_tool_calls(self, response: str) -> list[FoundToolCall]:
        """Like find_tool_calls, minus ids that were already dispatched"""
        return [c for c in self.find_tool_calls(response) if c.id not in self._history]

    def log(self, entry: Any) -> None:
        """Forward a log line from the running tool"""
        if self.on_log:
            self.on_log(self._current_call_id or "unknown", entry)

    async def call(self, response: str) -> None:
        """Execute every not yet seen call found in response, in order"""
        for found in self.find_tool_calls(response):
            if found.id in self._history:
                logger.debug(f"Skipping already executed call {found.id}")
                continue

            self._history.add(found.id)
            logger.info(f"Dispatching call {found.id} to {found.tool.name}/{found.command}")

            if self.on_handle:
                self.on_handle(found)

            self._current_call_id = found.id
            try:
                result = await found.tool.execute(found.command, found.content, self)
                result = dataclasses.replace(result, id=found.id)
            except Exception as e:
                logger.info(f"Call {found.id} failed: {e}")
                result = ToolResult(id=found.id, result=None, error=str(e))
            finally:
                self._current_call_id = None

            if self.on_handled:
                self.on_handled(result)
