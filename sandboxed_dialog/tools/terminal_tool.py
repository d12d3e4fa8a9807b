"""Shell command tool"""

import asyncio
import logging
import os
import signal
from typing import TYPE_CHECKING

from ..exceptions import UnknownCommandError
from ..sandbox import ConsoleLog
from ..tool import Tool, ToolResult

if TYPE_CHECKING:
    from ..tooler import Tooler

logger = logging.getLogger(__name__)

CONTEXT_PREPROMPT = """📦 **Terminal Execution Environment (terminal)**

Execute shell commands in a terminal. Output (stdout and stderr) is returned.

**Execution Format:**
> 😈<uuid>/terminal/exec
```bash
ls -la
```"""


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it spawned"""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except (AttributeError, ProcessLookupError, PermissionError):
        try:
            process.kill()
        except ProcessLookupError:
            pass


class TerminalTool(Tool):
    """
    Runs shell commands in a subprocess

    Args:
        timeout: Seconds before the process is killed; 0 means no limit
        shell: Shell executable, defaults to $SHELL or /bin/sh
        cwd: Working directory for commands
    """

    def __init__(
        self,
        timeout: float = 30.0,
        shell: str | None = None,
        cwd: str | None = None,
        name: str = "terminal"
    ):
        super().__init__(name=name, context_preprompt=CONTEXT_PREPROMPT)
        self.timeout = timeout
        self.shell = shell or os.environ.get("SHELL") or "/bin/sh"
        self.cwd = cwd
        logger.debug(f"TerminalTool initialized with timeout: {timeout}s")

    async def _run(self, content: str) -> tuple[int, str]:
        process = await asyncio.create_subprocess_shell(
            content,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            stdin=asyncio.subprocess.DEVNULL,
            cwd=self.cwd,
            executable=self.shell,
            start_new_session=True,
        )
        try:
            stdout, _ = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout or None
            )
        except asyncio.TimeoutError:
            _kill_process_group(process)
            await process.wait()
            raise TimeoutError(f"Command timed out after {self.timeout} seconds")
        except asyncio.CancelledError:
            _kill_process_group(process)
            raise

        return process.returncode, stdout.decode("utf-8", errors="replace")

    async def execute(self, command: str, content: str, tooler: "Tooler") -> ToolResult:
        if command.strip() != "exec":
            raise UnknownCommandError(self.name, command)

        logger.debug(f"Executing terminal command with timeout {self.timeout}: {content}")

        try:
            return_code, output = await self._run(content)
        except (TimeoutError, OSError) as e:
            logger.info(f"Terminal command failed: {e}")
            return ToolResult(result=f"Command failed: {e}", error=str(e))

        for line in output.splitlines():
            tooler.log(ConsoleLog(level="log", args=[line]))

        if return_code != 0:
            message = f"Command exited with code {return_code}"
            if output.strip():
                message += f": {output.strip()}"
            logger.info(message)
            return ToolResult(result=f"Command failed: {message}", error=message)

        logger.debug(f"Terminal command successful, output length: {len(output)}")
        return ToolResult(result=output)
