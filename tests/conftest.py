import pytest

from sandboxed_dialog.messages import Message, Role
from sandboxed_dialog.providers import ModelProvider
from sandboxed_dialog.sandbox import ResultStore, SandboxExecutor
from sandboxed_dialog.tool import Tool, ToolResult


class ScriptedProvider(ModelProvider):
    """Replays canned replies; streams them in small fragments"""

    def __init__(self, replies=None, chunk_size=3, error=None):
        self.replies = list(replies or [])
        self.chunk_size = chunk_size
        self.error = error
        self.requests: list[list[Message]] = []

    def _next(self, messages) -> str:
        self.requests.append(list(messages))
        if self.error is not None:
            error, self.error = self.error, None
            raise error
        return self.replies.pop(0) if self.replies else "Done."

    async def query(self, messages):
        return Message(role=Role.ASSISTANT.value, content=self._next(messages))

    async def stream(self, messages):
        reply = self._next(messages)
        for i in range(0, len(reply), self.chunk_size):
            yield reply[i:i + self.chunk_size]


class RecordingTool(Tool):
    """Echoes its input and remembers every call"""

    def __init__(self, name="echo", error=None):
        super().__init__(name=name, context_preprompt=f"**{name}** - echoes content")
        self.error = error
        self.calls = []

    async def execute(self, command, content, tooler):
        self.calls.append((command, content))
        tooler.log(f"running {command}")
        if self.error is not None:
            raise self.error
        return ToolResult(result={"command": command, "content": content})


@pytest.fixture
def events():
    return []


@pytest.fixture
def results():
    return ResultStore()


@pytest.fixture
def executor(results):
    return SandboxExecutor(results=results)


def event_types(events, skip=("ask", "ai_request", "ai_chunk", "thought_chunk", "tool_log")):
    return [e.type for e in events if e.type not in skip]
