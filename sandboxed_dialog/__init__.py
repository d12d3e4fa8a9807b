# Sandboxed Dialog
# Conversational orchestration between a user and a language model, where the
# model triggers tools with an inline call syntax and sees their results.

from .dialog import Dialog, DialogConfig, DialogMethod
from .tooler import Tooler
from .tool import Tool, ToolResult, FoundToolCall
from .sandbox import (
    SandboxExecutor,
    SandboxConfig,
    ExecutionResult,
    ConsoleLog,
    ResultStore,
    GLOBAL_RESULTS
)
from .messages import Message, Role, DialogEvent
from .providers import ModelProvider, AnthropicProvider, ProviderConfig
from .tools import PythonExecTool, TerminalTool, DockerExecTool, DockerToolConfig
from .exceptions import (
    SandboxedDialogError,
    MessageValidationError,
    ProviderError,
    SandboxError,
    CodeExecutionError,
    ExecutionTimeoutError,
    ModuleLoadError,
    ToolExecutionError,
    UnknownCommandError
)

__all__ = [
    # Dialog
    "Dialog",
    "DialogConfig",
    "DialogMethod",
    "Message",
    "Role",
    "DialogEvent",
    # Tool dispatch
    "Tooler",
    "Tool",
    "ToolResult",
    "FoundToolCall",
    "PythonExecTool",
    "TerminalTool",
    "DockerExecTool",
    "DockerToolConfig",
    # Sandbox
    "SandboxExecutor",
    "SandboxConfig",
    "ExecutionResult",
    "ConsoleLog",
    "ResultStore",
    "GLOBAL_RESULTS",
    # Providers
    "ModelProvider",
    "AnthropicProvider",
    "ProviderConfig",
    # Exceptions
    "SandboxedDialogError",
    "MessageValidationError",
    "ProviderError",
    "SandboxError",
    "CodeExecutionError",
    "ExecutionTimeoutError",
    "ModuleLoadError",
    "ToolExecutionError",
    "UnknownCommandError"
]
