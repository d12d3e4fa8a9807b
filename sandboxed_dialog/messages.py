"""
Conversation messages and dialog lifecycle events.

Events are plain dataclasses tagged by a literal ``type`` field, so a sink can
dispatch with ``match event.type`` or ``isinstance`` checks.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Mapping

from .exceptions import MessageValidationError


class Role(str, Enum):
    """Message author"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """A single conversation message"""
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}

    @classmethod
    def coerce(cls, value: "str | Message | Mapping[str, Any]") -> "Message":
        """
        Normalize user input into a Message.

        Strings become user messages. Messages and mappings must carry a known
        string role and string content.
        """
        if isinstance(value, str):
            return cls(role=Role.USER.value, content=value)

        if isinstance(value, Message):
            role, content = value.role, value.content
        elif isinstance(value, Mapping):
            role, content = value.get("role"), value.get("content")
        else:
            role = content = None

        if isinstance(role, Role):
            role = role.value
        if not isinstance(role, str) or not isinstance(content, str):
            raise MessageValidationError(
                'Invalid message format passed to ask(). Must be a string or an '
                'object with "role" and "content" properties.',
                value
            )
        if role not in {r.value for r in Role}:
            raise MessageValidationError(f"Unknown message role: {role!r}", value)

        return cls(role=role, content=content)


# ============================================================
# Dialog events
# ============================================================

@dataclass
class AskEvent:
    message: Message
    type: Literal["ask"] = field(default="ask", init=False)


@dataclass
class AIRequestEvent:
    messages: list[Message]
    type: Literal["ai_request"] = field(default="ai_request", init=False)


@dataclass
class AIChunkEvent:
    chunk: str
    type: Literal["ai_chunk"] = field(default="ai_chunk", init=False)


@dataclass
class ThoughtChunkEvent:
    chunk: str
    type: Literal["thought_chunk"] = field(default="thought_chunk", init=False)


@dataclass
class AIResponseEvent:
    content: str
    type: Literal["ai_response"] = field(default="ai_response", init=False)


@dataclass
class ThoughtEvent:
    content: str
    type: Literal["thought"] = field(default="thought", init=False)


@dataclass
class ToolCallEvent:
    id: str
    name: str
    command: str
    content: str
    type: Literal["tool_call"] = field(default="tool_call", init=False)


@dataclass
class ToolLogEvent:
    id: str
    log: Any
    type: Literal["tool_log"] = field(default="tool_log", init=False)


@dataclass
class ToolResultEvent:
    id: str
    result: Any = None
    error: str | None = None
    type: Literal["tool_result"] = field(default="tool_result", init=False)


@dataclass
class DoneEvent:
    type: Literal["done"] = field(default="done", init=False)


@dataclass
class ErrorEvent:
    error: str
    type: Literal["error"] = field(default="error", init=False)


DialogEvent = (
    AskEvent
    | AIRequestEvent
    | AIChunkEvent
    | ThoughtChunkEvent
    | AIResponseEvent
    | ThoughtEvent
    | ToolCallEvent
    | ToolLogEvent
    | ToolResultEvent
    | DoneEvent
    | ErrorEvent
)
