import asyncio
import json
import time

import pytest

from sandboxed_dialog.exceptions import CodeExecutionError, ExecutionTimeoutError
from sandboxed_dialog.sandbox import ResultStore, SandboxConfig, SandboxExecutor


async def test_trailing_expression_is_the_result(executor):
    result = await executor.execute("1 + 1")
    assert result.result == 2
    assert result.logs == []
    assert result.execution_time_ms >= 0


async def test_multiline_snippet(executor):
    assert (await executor.execute("x = 10\ny = 20\nx + y")).result == 30


async def test_top_level_await(executor):
    assert (await executor.execute("await sleep(0.01)\nreturn 42")).result == 42


async def test_no_trailing_expression_returns_none(executor):
    assert (await executor.execute("x = 1")).result is None
    assert (await executor.execute("")).result is None


async def test_functions_and_classes(executor):
    code = (
        "class Point:\n"
        "    def __init__(self, x):\n"
        "        self.x = x\n"
        "def double(p):\n"
        "    return Point(p.x * 2)\n"
        "double(Point(21)).x"
    )
    assert (await executor.execute(code)).result == 42


async def test_variables_do_not_leak_between_calls(executor):
    await executor.execute("secret = 5")
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("secret")
    assert "NameError" in str(exc_info.value)


async def test_results_store_persists(executor, results):
    await executor.execute("results['counter'] = {'n': 1}")
    await executor.execute("results['counter']['n'] += 1")
    assert (await executor.execute("results['counter']['n']")).result == 2
    assert results["counter"] == {"n": 2}


async def test_results_store_shared_between_executors(results):
    first = SandboxExecutor(results=results)
    second = SandboxExecutor(results=results)
    await first.execute("results['shared'] = 'value'")
    assert (await second.execute("results['shared']")).result == "value"


def test_result_store_delete():
    store = ResultStore()
    store["a"] = 1
    assert store.delete("a") is True
    assert store.delete("a") is False
    assert len(store) == 0


async def test_extra_bindings_are_call_scoped(executor):
    assert (await executor.execute("a * b", {"a": 6, "b": 7})).result == 42
    with pytest.raises(CodeExecutionError):
        await executor.execute("a")


async def test_extra_bindings_reverted_after_error(executor):
    with pytest.raises(CodeExecutionError):
        await executor.execute("raise ValueError('bad')", {"temp": 1})
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("temp")
    assert "NameError" in str(exc_info.value)


async def test_extra_binding_shadows_and_restores_context():
    executor = SandboxExecutor(initial_context={"value": "persistent"}, results=ResultStore())
    assert (await executor.execute("value", {"value": "scoped"})).result == "scoped"
    assert (await executor.execute("value")).result == "persistent"


async def test_runtime_error_message(executor):
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("1 / 0")
    assert str(exc_info.value) == "Execution error: ZeroDivisionError: division by zero"
    assert isinstance(exc_info.value.original_error, ZeroDivisionError)


async def test_syntax_error(executor):
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("def broken(:")
    assert "SyntaxError" in str(exc_info.value)


async def test_console_capture(executor):
    result = await executor.execute("print('hello', 1)\nconsole.warn('careful')\nconsole.error('bad')")
    assert [(log.level, log.args) for log in result.logs] == [
        ("log", ["hello", 1]),
        ("warn", ["careful"]),
        ("error", ["bad"]),
    ]
    assert result.logs[0].to_dict()["level"] == "log"


async def test_logs_survive_failures(executor):
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("console.log('before')\nraise RuntimeError('x')")
    assert [log.args for log in exc_info.value.logs] == [["before"]]


async def test_console_memory_is_rolling():
    executor = SandboxExecutor(config=SandboxConfig(memory_limit=3), results=ResultStore())
    await executor.execute("for i in range(5):\n    console.log(i)")
    assert [log.args for log in executor.console_memory] == [[2], [3], [4]]

    executor.clear_console_memory()
    assert executor.console_memory == []


async def test_timeout():
    executor = SandboxExecutor(config=SandboxConfig(timeout_seconds=0.2), results=ResultStore())
    start = time.monotonic()
    with pytest.raises(ExecutionTimeoutError) as exc_info:
        await executor.execute("console.log('started')\nawait sleep(10)")
    assert time.monotonic() - start < 5
    assert "timed out after 0.2 seconds" in str(exc_info.value)
    assert [log.args for log in exc_info.value.logs] == [["started"]]

    # The executor stays usable
    assert (await executor.execute("1")).result == 1


async def test_update_and_clear_context(executor):
    executor.update_context({"greeting": "hi"})
    assert (await executor.execute("greeting + '!'")).result == "hi!"
    assert executor.get_context() == {"greeting": "hi"}

    executor.clear_context()
    assert executor.get_context() == {}
    with pytest.raises(CodeExecutionError):
        await executor.execute("greeting")


async def test_preloaded_modules(executor):
    code = "json.dumps({'pi': round(math.pi, 2)})"
    assert json.loads((await executor.execute(code)).result) == {"pi": 3.14}


async def test_import_statement(executor):
    assert (await executor.execute("import statistics\nstatistics.mean([1, 2, 3])")).result == 2


async def test_use_loads_installed_module(executor):
    assert (await executor.execute("(await use('json')).dumps([1])")).result == "[1]"


async def test_use_missing_module_without_install(executor):
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("await use('surely-not-installed-pkg-xyz')")
    assert "ModuleLoadError" in str(exc_info.value)
    assert "installation is disabled" in str(exc_info.value)


async def test_use_install_does_not_block_timeout(tmp_path, monkeypatch, results):
    from sandboxed_dialog import modules
    from sandboxed_dialog.modules import ModuleLoader

    killed = []

    class SlowPip:
        returncode = None

        async def communicate(self):
            await asyncio.sleep(30)

        def kill(self):
            killed.append(True)

    async def fake_exec(*args, **kwargs):
        return SlowPip()

    monkeypatch.setattr(modules.asyncio, "create_subprocess_exec", fake_exec)
    executor = SandboxExecutor(
        config=SandboxConfig(timeout_seconds=0.2),
        results=results,
        module_loader=ModuleLoader(allow_install=True, install_dir=tmp_path),
    )

    start = time.monotonic()
    with pytest.raises(ExecutionTimeoutError):
        await executor.execute("await use('slow-sd-pkg==1.0')")
    assert time.monotonic() - start < 5
    assert killed == [True]
    assert not (tmp_path / "slow-sd-pkg-1.0").exists()


# ==================== Concurrency ====================

async def test_overlapping_executions_keep_their_own_bindings(executor):
    first = executor.execute("await sleep(0.05)\nprint('from-first')\n'first'")
    second = executor.execute(
        "await sleep(0.2)\nprint('from-second')\nsecret_second",
        {"secret_second": 1},
    )
    first_result, second_result = await asyncio.gather(first, second)

    assert first_result.result == "first"
    assert [log.args for log in first_result.logs] == [["from-first"]]
    assert second_result.result == 1
    assert [log.args for log in second_result.logs] == [["from-second"]]


async def test_bindings_invisible_to_concurrent_call(executor):
    holder = asyncio.ensure_future(executor.execute("await sleep(0.2)\nsecret", {"secret": "mine"}))
    await asyncio.sleep(0.05)

    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("secret")
    assert "NameError" in str(exc_info.value)
    assert (await holder).result == "mine"


async def test_global_statement_does_not_leak(executor):
    await executor.execute("global leaked\nleaked = 1")
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("leaked")
    assert "NameError" in str(exc_info.value)


async def test_builtins_changes_do_not_leak(executor):
    await executor.execute("__builtins__['len'] = lambda value: -1")
    assert (await executor.execute("len([1, 2])")).result == 2


# ==================== BaseException ====================

@pytest.mark.parametrize("code, name", [
    ("raise BaseException('boom')", "BaseException"),
    ("raise SystemExit(3)", "SystemExit"),
    ("import sys\nsys.exit('bye')", "SystemExit"),
    ("raise KeyboardInterrupt()", "KeyboardInterrupt"),
])
async def test_base_exceptions_are_wrapped(executor, code, name):
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute(code)
    assert str(exc_info.value).startswith(f"Execution error: {name}")

    # The executor stays usable
    assert (await executor.execute("1 + 1")).result == 2


async def test_snippet_cancelling_itself(executor):
    with pytest.raises(CodeExecutionError) as exc_info:
        await executor.execute("raise asyncio.CancelledError()")
    assert "CancelledError" in str(exc_info.value)
