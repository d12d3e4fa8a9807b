"""Python execution tool backed by the in-process SandboxExecutor"""

import logging
from typing import TYPE_CHECKING

from ..exceptions import SandboxError, UnknownCommandError
from ..sandbox import SandboxExecutor
from ..tool import Tool, ToolResult

if TYPE_CHECKING:
    from ..tooler import Tooler

logger = logging.getLogger(__name__)

CONTEXT_PREPROMPT = """
📦 **Python Execution Environment (python)**

You can execute Python code in a sandbox.

**Execution Format:**
> 😈<uuid>/python/exec
```python
# your python code here
# The value of the last expression is returned.
```

**Available in the sandbox:**
- `await` works at the top level; `return` ends the snippet with a value
- `print()` and `console.log/info/warn/error/debug()` output is captured
- `results` is a dict-like store that survives between executions;
  variables you assign do not
- `await use("package")` or `await use("package==1.2.3")` loads a module on demand
- pre-imported: asyncio, json, math, re, time, datetime, random, urlparse

**Example:**
> 😈calc-123/python/exec
```python
2 + 2
```
"""


class PythonExecTool(Tool):
    """Runs the ``exec`` command's content in a SandboxExecutor"""

    def __init__(self, executor: SandboxExecutor | None = None, name: str = "python"):
        super().__init__(name=name, context_preprompt=CONTEXT_PREPROMPT)
        self.executor = executor or SandboxExecutor()

    async def execute(self, command: str, content: str, tooler: "Tooler") -> ToolResult:
        if command != "exec":
            raise UnknownCommandError(self.name, command)

        try:
            exec_result = await self.executor.execute(content)
        except SandboxError as e:
            for entry in getattr(e, "logs", []):
                tooler.log(entry)
            logger.info(f"Python snippet failed: {e}")
            return ToolResult(result=None, error=str(e))

        for entry in exec_result.logs:
            tooler.log(entry)

        return ToolResult(result=exec_result.result)
