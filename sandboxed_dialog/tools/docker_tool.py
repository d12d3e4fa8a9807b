"""
Docker execution tool - run Python code in a throwaway container

Each call gets a fresh container with no network, a read-only root
filesystem, dropped capabilities and memory/CPU limits. The container is
killed when the timeout expires and removed in every case.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..exceptions import ToolExecutionError, UnknownCommandError
from ..sandbox import ConsoleLog
from ..tool import Tool, ToolResult

if TYPE_CHECKING:
    from ..tooler import Tooler

logger = logging.getLogger(__name__)

CONTEXT_PREPROMPT = """📦 **Isolated Python Container (docker)**

Run a standalone Python script in a fresh container without network access.
Nothing persists between calls. Use print() to produce output.

**Execution Format:**
> 😈<uuid>/docker/exec
```python
print(sum(range(10)))
```"""


@dataclass
class DockerToolConfig:
    """Container configuration"""
    image: str = "python:3.11-slim"
    memory_limit: str = "256m"
    cpu_quota: int = 50000  # 50% of one CPU
    cpu_period: int = 100000
    timeout_seconds: float = 60.0  # 0 disables the timeout
    network_disabled: bool = True
    read_only: bool = True
    working_dir: str = "/tmp"


class DockerExecTool(Tool):
    """Executes Python code with ``python -c`` inside a Docker container"""

    def __init__(
        self,
        config: DockerToolConfig | None = None,
        docker_client: Any = None,
        name: str = "docker"
    ):
        super().__init__(name=name, context_preprompt=CONTEXT_PREPROMPT)
        self.config = config or DockerToolConfig()
        self._docker_client = docker_client

    @property
    def docker_client(self):
        """Lazily connect to the Docker daemon"""
        if self._docker_client is None:
            try:
                import docker
            except ImportError:
                raise ToolExecutionError(
                    self.name, "Docker SDK not installed. Run: pip install docker"
                )
            try:
                self._docker_client = docker.from_env()
            except Exception as e:
                raise ToolExecutionError(self.name, f"Failed to connect to Docker: {e}", e)
        return self._docker_client

    def _create_container(self, code: str):
        container_config = {
            "image": self.config.image,
            "command": ["python", "-c", code],
            "network_disabled": self.config.network_disabled,
            "mem_limit": self.config.memory_limit,
            "cpu_period": self.config.cpu_period,
            "cpu_quota": self.config.cpu_quota,
            "read_only": self.config.read_only,
            "working_dir": self.config.working_dir,
            "security_opt": ["no-new-privileges"],
            "cap_drop": ["ALL"],
        }
        client = self.docker_client
        try:
            logger.info(f"Creating container with image: {self.config.image}")
            container = client.containers.create(**container_config)
            container.start()
        except Exception as e:
            raise ToolExecutionError(self.name, f"Failed to start container: {e}", e)
        logger.debug(f"Container started: {container.id[:12]}")
        return container

    def _remove_container(self, container) -> None:
        try:
            container.remove(force=True)
        except Exception as e:
            logger.warning(f"Failed to cleanup container: {e}")

    async def execute(self, command: str, content: str, tooler: "Tooler") -> ToolResult:
        if command != "exec":
            raise UnknownCommandError(self.name, command)

        try:
            container = await asyncio.to_thread(self._create_container, content)
        except ToolExecutionError as e:
            logger.info(str(e))
            return ToolResult(result=None, error=str(e))

        try:
            try:
                status = await asyncio.wait_for(
                    asyncio.to_thread(container.wait),
                    timeout=self.config.timeout_seconds or None
                )
            except asyncio.TimeoutError:
                message = f"Execution timed out after {self.config.timeout_seconds} seconds"
                logger.info(f"Container {container.id[:12]}: {message}")
                await asyncio.to_thread(container.kill)
                return ToolResult(result=f"Command failed: {message}", error=message)

            raw_logs = await asyncio.to_thread(container.logs, stdout=True, stderr=True)
        finally:
            await asyncio.to_thread(self._remove_container, container)

        output = raw_logs.decode("utf-8", errors="replace")
        for line in output.splitlines():
            tooler.log(ConsoleLog(level="log", args=[line]))

        exit_code = status.get("StatusCode", -1) if isinstance(status, dict) else status
        if exit_code != 0:
            message = f"Container exited with code {exit_code}"
            if output.strip():
                message += f": {output.strip()}"
            return ToolResult(result=f"Command failed: {message}", error=message)

        return ToolResult(result=output)
