"""
On-demand module loading for sandboxed code (the ``use`` binding).

    np = await use("numpy")
    yaml = await use("pyyaml==6.0.1", "yaml")

Installed modules are imported directly. Missing ones, or ones whose installed
version differs from the requested one, are installed with pip into a private
per-version directory when installation is allowed; otherwise ModuleLoadError
explains what is missing.
"""

import asyncio
import importlib
import importlib.metadata
import logging
import re
import shutil
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

from .exceptions import ModuleLoadError

logger = logging.getLogger(__name__)

_SPEC_PATTERN = re.compile(
    r"^(?P<name>[A-Za-z0-9][A-Za-z0-9._\-]*)(?:\[[^\]]*\])?(?:(?:==|@)(?P<version>[^\s@=]+))?$"
)


@dataclass(frozen=True)
class ModuleSpec:
    """Parsed argument of use()"""
    distribution: str
    version: str | None
    import_name: str

    @property
    def requirement(self) -> str:
        return f"{self.distribution}=={self.version}" if self.version else self.distribution


def parse_module_spec(spec: str, import_name: str | None = None) -> ModuleSpec:
    """Parse "name", "name==1.0" or "name@1.0"; extras are accepted and ignored"""
    match = _SPEC_PATTERN.match(spec.strip())
    if not match:
        raise ModuleLoadError(spec, "expected 'name', 'name==version' or 'name@version'")
    name = match.group("name")
    return ModuleSpec(
        distribution=name,
        version=match.group("version"),
        import_name=import_name or name.replace("-", "_"),
    )


def _installed_version(distribution: str) -> str | None:
    try:
        return importlib.metadata.version(distribution)
    except importlib.metadata.PackageNotFoundError:
        return None


class ModuleLoader:
    """
    Resolves use() requests, caching loaded modules by requirement

    Calling the loader returns a coroutine, so sandboxed code awaits it and a
    pip install never blocks the event loop.
    """

    def __init__(
        self,
        allow_install: bool = False,
        install_dir: str | Path | None = None,
        pip_timeout_seconds: float = 300.0
    ):
        self.allow_install = allow_install
        self.install_dir = Path(install_dir) if install_dir else (
            Path(tempfile.gettempdir()) / "sandboxed_dialog_modules"
        )
        self.pip_timeout_seconds = pip_timeout_seconds
        self._loaded: dict[ModuleSpec, ModuleType] = {}
        self._install_locks: dict[Path, asyncio.Lock] = {}

    async def __call__(self, spec: str, import_name: str | None = None) -> ModuleType:
        return await self.load(spec, import_name)

    async def load(self, spec: str, import_name: str | None = None) -> ModuleType:
        parsed = parse_module_spec(spec, import_name)
        if parsed in self._loaded:
            return self._loaded[parsed]

        installed = _installed_version(parsed.distribution)
        if parsed.version is None or installed == parsed.version:
            try:
                module = importlib.import_module(parsed.import_name)
            except ImportError as e:
                if not self.allow_install:
                    raise ModuleLoadError(spec, f"{e} (installation is disabled)") from e
                module = await self._install_and_import(parsed, spec)
        elif not self.allow_install:
            raise ModuleLoadError(
                spec,
                f"installed version is {installed or 'none'} and installation is disabled"
            )
        else:
            module = await self._install_and_import(parsed, spec)

        self._loaded[parsed] = module
        return module

    async def _pip_install(self, requirement: str, target: Path, spec: str) -> None:
        logger.info(f"Installing {requirement} into {target}")
        process = await asyncio.create_subprocess_exec(
            sys.executable, "-m", "pip", "install",
            "--quiet", "--disable-pip-version-check",
            "--target", str(target),
            requirement,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.pip_timeout_seconds or None
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ModuleLoadError(spec, "pip install timed out")
        except asyncio.CancelledError:
            process.kill()
            raise

        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise ModuleLoadError(spec, f"pip failed: {message}")

    async def _install_and_import(self, parsed: ModuleSpec, spec: str) -> ModuleType:
        target = self.install_dir / f"{parsed.distribution}-{parsed.version or 'latest'}"

        lock = self._install_locks.setdefault(target, asyncio.Lock())
        async with lock:
            if not target.exists():
                try:
                    await self._pip_install(parsed.requirement, target, spec)
                except BaseException:
                    # A half-written target would be mistaken for a finished install
                    shutil.rmtree(target, ignore_errors=True)
                    raise

        loaded = sys.modules.get(parsed.import_name)
        if loaded is not None and not str(getattr(loaded, "__file__", "")).startswith(str(target)):
            raise ModuleLoadError(
                spec,
                f"another copy of '{parsed.import_name}' is already imported in this process"
            )

        if str(target) not in sys.path:
            sys.path.insert(0, str(target))
        importlib.invalidate_caches()
        try:
            return importlib.import_module(parsed.import_name)
        except ImportError as e:
            raise ModuleLoadError(spec, str(e)) from e
