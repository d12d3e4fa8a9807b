"""
Sandbox Executor - run Python snippets in an isolated namespace

Each snippet is compiled into the body of an ``async def`` and awaited, which
gives three properties:
- the value of a trailing expression (or an explicit ``return``) is the result
- ``await`` works at the top level of the snippet
- names the snippet assigns are locals of that function, so they never leak
  into later executions

The base namespace is built once; every execution runs in a fresh copy of it
with the per-call bindings (the console proxy, ``print`` and any
``extra_bindings``) added, so concurrent executions never see each other's
names and ``global`` statements cannot leak either. Cross-call state is only
possible through the persistent context (update_context) or the named
result store (``results``).

Warning:
- Isolation is namespace-level inside the host process, not a security
  boundary. Use DockerExecTool for untrusted code that needs OS isolation.
- The timeout bounds code that awaits; a synchronous busy loop cannot be
  pre-empted in-process.
"""

import ast
import asyncio
import builtins
import datetime
import json
import logging
import math
import random
import re
import time as time_module
import urllib.parse
from collections import deque
from collections.abc import MutableMapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator

from .exceptions import CodeExecutionError, ExecutionTimeoutError
from .modules import ModuleLoader

logger = logging.getLogger(__name__)
console_logger = logging.getLogger(f"{__name__}.console")

# Builtins visible to sandboxed code
SAFE_BUILTINS = (
    "abs", "all", "any", "ascii", "bin", "bool", "bytearray", "bytes",
    "callable", "chr", "complex", "dict", "dir", "divmod", "enumerate",
    "filter", "float", "format", "frozenset", "getattr", "hasattr", "hash",
    "hex", "id", "int", "isinstance", "issubclass", "iter", "aiter", "anext",
    "len", "list", "map", "max", "min", "next", "object", "oct", "open", "ord",
    "pow", "print", "property", "range", "repr", "reversed", "round", "set",
    "setattr", "slice", "sorted", "staticmethod", "classmethod", "str", "sum",
    "super", "tuple", "type", "vars", "zip", "__build_class__", "__import__",
    # Exceptions
    "BaseException", "Exception", "ArithmeticError", "AssertionError",
    "AttributeError", "ImportError", "IndexError", "KeyError", "LookupError",
    "ModuleNotFoundError", "NameError", "NotImplementedError", "OSError",
    "RuntimeError", "StopAsyncIteration", "StopIteration", "TimeoutError",
    "SystemExit", "KeyboardInterrupt",
    "TypeError", "ValueError", "ZeroDivisionError",
    "NotImplemented", "Ellipsis",
)

# Modules pre-bound in the sandbox namespace
SANDBOX_MODULES = {
    "asyncio": asyncio,
    "datetime": datetime,
    "json": json,
    "math": math,
    "random": random,
    "re": re,
    "time": time_module,
    "urlparse": urllib.parse,
}

_ENTRYPOINT = "__sandbox_main__"
_FILENAME = "<sandbox>"
_MISSING = object()

_LOG_LEVELS = {
    "log": logging.INFO,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class SandboxConfig:
    """Sandbox executor configuration"""
    timeout_seconds: float = 30.0  # 0 disables the timeout
    memory_limit: int = 1000  # Console entries kept across executions
    allow_install: bool = False  # Let use() pip-install missing modules
    install_dir: str | None = None
    echo_console: bool = True  # Forward sandbox console output to logging


@dataclass
class ConsoleLog:
    """One captured console call"""
    level: str
    args: list[Any]
    timestamp: float = field(default_factory=time_module.time)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ExecutionResult:
    """Code execution result"""
    result: Any
    logs: list[ConsoleLog]
    execution_time_ms: float = 0


class ResultStore(MutableMapping):
    """
    Named result store shared across executions.

    Holds live objects (clients, handles, intermediate data) that snippets want
    to keep between otherwise isolated runs. Entries are never expired; they
    go away only through ``del``, delete() or clear(). Keys are chosen by the
    snippets, so callers should namespace them (call ids work well).
    """

    def __init__(self):
        self._items: dict[str, Any] = {}

    def __getitem__(self, key: str) -> Any:
        return self._items[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._items[key] = value

    def __delitem__(self, key: str) -> None:
        del self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def delete(self, key: str) -> bool:
        """Remove key if present; returns whether it existed"""
        return self._items.pop(key, _MISSING) is not _MISSING

    def __repr__(self) -> str:
        return f"ResultStore({sorted(self._items)})"


# Process-wide default store
GLOBAL_RESULTS = ResultStore()


class ConsoleProxy:
    """
    Per-execution console: records every call and hands it to a sink.

    Exposed to snippets as ``console`` (log/warn/error/info/debug) and as the
    ``print`` builtin, which records at level "log".
    """

    def __init__(self, sink: Callable[[ConsoleLog], None]):
        self.logs: list[ConsoleLog] = []
        self._sink = sink

    def _write(self, level: str, args: tuple) -> None:
        entry = ConsoleLog(level=level, args=list(args))
        self.logs.append(entry)
        self._sink(entry)

    def log(self, *args: Any) -> None:
        self._write("log", args)

    def info(self, *args: Any) -> None:
        self._write("info", args)

    def debug(self, *args: Any) -> None:
        self._write("debug", args)

    def warn(self, *args: Any) -> None:
        self._write("warn", args)

    def error(self, *args: Any) -> None:
        self._write("error", args)

    def print(self, *args: Any, sep: str = " ", end: str = "\n", file: Any = None, flush: bool = False) -> None:
        self._write("log", args)


def compile_snippet(code: str, filename: str = _FILENAME):
    """
    Compile code into a module that defines the async entrypoint.

    A trailing expression statement becomes the function's return value.
    """
    tree = ast.parse(code, filename, "exec")
    body = tree.body
    if body and isinstance(body[-1], ast.Expr):
        last = body[-1]
        body[-1] = ast.copy_location(ast.Return(value=last.value), last)

    wrapper = ast.parse(f"async def {_ENTRYPOINT}():\n    pass\n", filename, "exec")
    wrapper.body[0].body = body or [ast.Pass()]
    ast.fix_missing_locations(wrapper)
    return compile(wrapper, filename, "exec")


class SandboxExecutor:
    """
    In-process Python sandbox

    Usage:
        executor = SandboxExecutor()

        result = await executor.execute("1 + 1")
        print(result.result)  # 2

        # Call-scoped bindings
        result = await executor.execute("a * b", {"a": 6, "b": 7})

        # State across calls goes through the result store
        await executor.execute("results['session'] = {'count': 1}")
        await executor.execute("results['session']['count']")
    """

    def __init__(
        self,
        initial_context: dict[str, Any] | None = None,
        config: SandboxConfig | None = None,
        results: ResultStore | None = None,
        module_loader: ModuleLoader | None = None
    ):
        self.config = config or SandboxConfig()
        self.results = GLOBAL_RESULTS if results is None else results
        self.module_loader = module_loader or ModuleLoader(
            allow_install=self.config.allow_install,
            install_dir=Path(self.config.install_dir) if self.config.install_dir else None
        )
        self._initial_context: dict[str, Any] = dict(initial_context or {})
        self._console_memory: deque[ConsoleLog] = deque(maxlen=self.config.memory_limit)
        self._namespace = self._build_namespace()

    # ==================== Namespace ====================

    def _build_namespace(self) -> dict[str, Any]:
        safe_builtins = {
            name: getattr(builtins, name)
            for name in SAFE_BUILTINS
            if hasattr(builtins, name)
        }
        namespace: dict[str, Any] = {
            "__name__": "__sandbox__",
            "__builtins__": safe_builtins,
        }
        namespace.update(SANDBOX_MODULES)
        namespace.update(
            sleep=asyncio.sleep,
            results=self.results,
            use=self.module_loader,
        )
        namespace.update(self._initial_context)
        return namespace

    def get_context(self) -> dict[str, Any]:
        """Copy of the persistent bindings"""
        return dict(self._initial_context)

    def update_context(self, patch: dict[str, Any]) -> None:
        """Add or replace persistent bindings; effective from the next execute()"""
        self._initial_context.update(patch)
        self._namespace = self._build_namespace()

    def clear_context(self) -> None:
        """Drop all persistent bindings. The result store is left alone."""
        self._initial_context = {}
        self._namespace = self._build_namespace()

    def _call_globals(self, bindings: dict[str, Any]) -> dict[str, Any]:
        """Fresh globals for one execution; nothing written there outlives the call"""
        call_globals = dict(self._namespace)
        call_globals["__builtins__"] = dict(self._namespace["__builtins__"])
        call_globals.update(bindings)
        return call_globals

    # ==================== Console ====================

    def _record(self, entry: ConsoleLog) -> None:
        self._console_memory.append(entry)
        if self.config.echo_console:
            console_logger.log(
                _LOG_LEVELS.get(entry.level, logging.INFO),
                " ".join(str(arg) for arg in entry.args)
            )

    @property
    def console_memory(self) -> list[ConsoleLog]:
        """Most recent console entries across all executions"""
        return list(self._console_memory)

    def clear_console_memory(self) -> None:
        self._console_memory.clear()

    # ==================== Execution ====================

    async def execute(
        self,
        code: str,
        extra_bindings: dict[str, Any] | None = None
    ) -> ExecutionResult:
        """
        Execute a Python snippet

        Args:
            code: Python source; a trailing expression is returned
            extra_bindings: Names visible to this call only

        Returns:
            ExecutionResult with the value and the captured console entries

        Raises:
            CodeExecutionError: compile or runtime failure
            ExecutionTimeoutError: the snippet ran past timeout_seconds
        """
        start_time = time_module.time()
        console = ConsoleProxy(self._record)

        try:
            code_obj = compile_snippet(code)
        except SyntaxError as e:
            raise CodeExecutionError(f"{type(e).__name__}: {e}", e, console.logs) from e

        bindings = {"console": console, "print": console.print}
        bindings.update(extra_bindings or {})

        call_globals = self._call_globals(bindings)
        exec(code_obj, call_globals)
        result = await self._run_with_timeout(call_globals[_ENTRYPOINT](), console)

        execution_time = (time_module.time() - start_time) * 1000
        logger.debug(f"Snippet finished in {execution_time:.1f}ms with {len(console.logs)} log entries")
        return ExecutionResult(result=result, logs=console.logs, execution_time_ms=execution_time)

    async def _guard(self, coro, console: ConsoleProxy) -> Any:
        # SystemExit and KeyboardInterrupt must not reach the event loop
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except BaseException as e:
            logger.debug(f"Snippet raised {type(e).__name__}: {e}")
            raise CodeExecutionError(f"{type(e).__name__}: {e}", e, console.logs) from e

    async def _run_with_timeout(self, coro, console: ConsoleProxy) -> Any:
        task = asyncio.ensure_future(self._guard(coro, console))
        timeout = self.config.timeout_seconds or None
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
        finally:
            if not task.done():
                task.cancel()

        if task not in done:
            # Give the cancelled snippet a moment to unwind its finally blocks
            await asyncio.wait({task}, timeout=1.0)
            logger.info(f"Snippet timed out after {self.config.timeout_seconds}s")
            raise ExecutionTimeoutError(self.config.timeout_seconds, console.logs)

        if task.cancelled():
            raise CodeExecutionError("CancelledError: snippet cancelled itself", logs=console.logs)
        return task.result()
