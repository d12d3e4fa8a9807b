from .docker_tool import DockerExecTool, DockerToolConfig
from .python_tool import PythonExecTool
from .terminal_tool import TerminalTool

__all__ = [
    "DockerExecTool",
    "DockerToolConfig",
    "PythonExecTool",
    "TerminalTool",
]
