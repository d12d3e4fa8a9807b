import asyncio
import sys

import pytest

from sandboxed_dialog import modules
from sandboxed_dialog.exceptions import ModuleLoadError
from sandboxed_dialog.modules import ModuleLoader, parse_module_spec


@pytest.mark.parametrize("spec, expected", [
    ("numpy", ("numpy", None, "numpy")),
    ("pyyaml==6.0.1", ("pyyaml", "6.0.1", "pyyaml")),
    ("python-dateutil@2.9.0", ("python-dateutil", "2.9.0", "python_dateutil")),
    ("requests[socks]==2.31.0", ("requests", "2.31.0", "requests")),
])
def test_parse_module_spec(spec, expected):
    parsed = parse_module_spec(spec)
    assert (parsed.distribution, parsed.version, parsed.import_name) == expected


def test_parse_module_spec_import_name_override():
    parsed = parse_module_spec("pyyaml==6.0.1", "yaml")
    assert parsed.import_name == "yaml"
    assert parsed.requirement == "pyyaml==6.0.1"


def test_parse_module_spec_rejects_garbage():
    with pytest.raises(ModuleLoadError):
        parse_module_spec("not a spec!")


async def test_loads_installed_module():
    import json
    assert await ModuleLoader()("json") is json


async def test_version_mismatch_without_install():
    with pytest.raises(ModuleLoadError) as exc_info:
        await ModuleLoader().load("surely-not-installed-pkg-xyz==1.0")
    assert "installation is disabled" in str(exc_info.value)


class FakePip:
    """Stand-in for the pip subprocess"""

    def __init__(self, returncode=0, stderr=b"", delay=0.0):
        self.returncode = returncode
        self.stderr = stderr
        self.delay = delay
        self.killed = False

    async def communicate(self):
        await asyncio.sleep(self.delay)
        return b"", self.stderr

    def kill(self):
        self.killed = True

    async def wait(self):
        return self.returncode


@pytest.fixture
def isolated_imports(monkeypatch):
    monkeypatch.setattr(sys, "path", list(sys.path))
    yield
    sys.modules.pop("fake_sd_pkg", None)


async def test_install_into_private_directory(tmp_path, monkeypatch, isolated_imports):
    commands = []

    async def fake_exec(*command, **kwargs):
        commands.append(command)
        target = tmp_path / "fake-sd-pkg-1.0"
        assert command[command.index("--target") + 1] == str(target)
        target.mkdir(parents=True)
        (target / "fake_sd_pkg.py").write_text("VALUE = 7\n")
        return FakePip()

    monkeypatch.setattr(modules.asyncio, "create_subprocess_exec", fake_exec)
    loader = ModuleLoader(allow_install=True, install_dir=tmp_path)

    module = await loader.load("fake-sd-pkg==1.0")
    assert module.VALUE == 7
    assert commands[0][-1] == "fake-sd-pkg==1.0"

    # Cached per requirement
    assert await loader.load("fake-sd-pkg==1.0") is module
    assert len(commands) == 1


async def test_pip_failure(tmp_path, monkeypatch):
    async def fake_exec(*command, **kwargs):
        (tmp_path / "fake-sd-missing-9.9").mkdir(parents=True)
        return FakePip(returncode=1, stderr=b"no matching distribution\n")

    monkeypatch.setattr(modules.asyncio, "create_subprocess_exec", fake_exec)
    loader = ModuleLoader(allow_install=True, install_dir=tmp_path)

    with pytest.raises(ModuleLoadError) as exc_info:
        await loader.load("fake-sd-missing==9.9")
    assert "pip failed: no matching distribution" in str(exc_info.value)
    # A failed install leaves nothing behind to be reused
    assert not (tmp_path / "fake-sd-missing-9.9").exists()


async def test_pip_timeout_kills_process(tmp_path, monkeypatch):
    process = FakePip(delay=5)

    async def fake_exec(*command, **kwargs):
        return process

    monkeypatch.setattr(modules.asyncio, "create_subprocess_exec", fake_exec)
    loader = ModuleLoader(allow_install=True, install_dir=tmp_path, pip_timeout_seconds=0.1)

    with pytest.raises(ModuleLoadError) as exc_info:
        await loader.load("fake-sd-slow==1.0")
    assert "pip install timed out" in str(exc_info.value)
    assert process.killed


async def test_install_does_not_block_event_loop(tmp_path, monkeypatch):
    process = FakePip(delay=0.3)

    async def fake_exec(*command, **kwargs):
        return process

    monkeypatch.setattr(modules.asyncio, "create_subprocess_exec", fake_exec)
    loader = ModuleLoader(allow_install=True, install_dir=tmp_path)
    ticks = []

    async def ticker():
        for _ in range(3):
            await asyncio.sleep(0.05)
            ticks.append(True)

    install = asyncio.ensure_future(loader.load("fake-sd-none==1.0"))
    await ticker()
    assert len(ticks) == 3
    assert not install.done()
    with pytest.raises(ModuleLoadError):
        await install
