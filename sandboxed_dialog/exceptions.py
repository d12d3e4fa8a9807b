"""Custom exception classes"""


class SandboxedDialogError(Exception):
    """Base class for all package errors"""
    pass


class MessageValidationError(SandboxedDialogError, ValueError):
    """Malformed message passed to Dialog.ask()"""
    def __init__(self, message: str, value: object = None):
        self.value = value
        super().__init__(message)


class ProviderError(SandboxedDialogError):
    """Model provider request failed"""
    def __init__(self, message: str, original_error: Exception | None = None):
        self.original_error = original_error
        super().__init__(message)


class SandboxError(SandboxedDialogError):
    """Base class for sandbox related errors"""
    pass


class CodeExecutionError(SandboxError):
    """Sandboxed code failed to compile or run"""
    def __init__(self, message: str, original_error: BaseException | None = None, logs: list | None = None):
        self.original_error = original_error
        self.logs = logs or []
        super().__init__(f"Execution error: {message}")


class ExecutionTimeoutError(CodeExecutionError):
    """Sandboxed code ran past its time budget"""
    def __init__(self, timeout_seconds: float, logs: list | None = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Script execution timed out after {timeout_seconds} seconds",
            logs=logs
        )


class ModuleLoadError(SandboxError):
    """use() could not resolve a module"""
    def __init__(self, spec: str, message: str):
        self.spec = spec
        super().__init__(f"Cannot load module '{spec}': {message}")


class ToolExecutionError(SandboxedDialogError):
    """Tool execution failed"""
    def __init__(self, tool_name: str, message: str, original_error: Exception | None = None):
        self.tool_name = tool_name
        self.original_error = original_error
        super().__init__(f"Tool '{tool_name}' execution failed: {message}")


class UnknownCommandError(ToolExecutionError):
    """Tool was asked to run a command it does not support"""
    def __init__(self, tool_name: str, command: str):
        self.command = command
        super().__init__(tool_name, f"unknown command '{command}'")
