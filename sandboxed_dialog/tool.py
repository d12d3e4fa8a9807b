"""
Tool abstraction - pluggable actions a model can invoke through call syntax
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .tooler import Tooler


@dataclass
class ToolResult:
    """Outcome of one tool call; a set error invalidates result"""
    id: str = ""
    result: Any = None
    error: str | None = None


@dataclass
class FoundToolCall:
    """A call located in model output and resolved to a registered tool"""
    id: str
    tool: "Tool"
    command: str
    content: str
    full_match: str


class Tool(ABC):
    """
    Base class for tools

    ``name`` is matched literally against the tool segment of the call syntax.
    ``context_preprompt`` is injected into the system prompt and should show
    the model the exact invocation format.
    """

    def __init__(self, name: str, context_preprompt: str):
        self.name = name
        self.context_preprompt = context_preprompt

    @abstractmethod
    async def execute(self, command: str, content: str, tooler: "Tooler") -> ToolResult:
        """Run one call. The tooler is passed so logs can be forwarded."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
