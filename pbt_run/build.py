from __future__ import annotations

import importlib
import importlib.machinery
import importlib.util
import logging
import py_compile
import sys
from pathlib import Path
from types import FunctionType, ModuleType
from typing import Callable

from .errors import BuildError
from .file_tree import list_python_files
from .workspace import Workspace

logger = logging.getLogger("pbt_run.build")

COMPILED_SUFFIX = ".pyc"


class BuildEnvironment:
    """
    Scoped import environment for compiling and loading property modules.

    Everything it adds to ``sys.path`` and ``sys.modules`` while active is
    removed again on exit, so consecutive runs in one process do not see
    each other's property modules.
    """

    def __init__(self, workspace: Workspace) -> None:
        self.workspace = workspace
        self.modules: dict[str, ModuleType] = {}
        self._saved_path: list[str] | None = None
        self._saved_modules: set[str] = set()
        self._added_paths: list[str] = []

    def __enter__(self) -> "BuildEnvironment":
        self._saved_path = list(sys.path)
        self._saved_modules = set(sys.modules)
        for app in self.workspace.project_apps:
            self.add_path(app.src_dir)
        return self

    def __exit__(self, *exc_info: object) -> None:
        for name in set(sys.modules) - self._saved_modules:
            if name in self.modules or self._imported_from_project(sys.modules[name]):
                del sys.modules[name]
        for path in self._added_paths:
            sys.path_importer_cache.pop(path, None)
        if self._saved_path is not None:
            sys.path[:] = self._saved_path
        self.modules.clear()
        self._added_paths.clear()
        importlib.invalidate_caches()

    def _imported_from_project(self, module: ModuleType) -> bool:
        origin = getattr(module, "__file__", None)
        if not origin or "site-packages" in origin:
            return False
        return any(Path(origin).is_relative_to(entry) for entry in self._added_paths)

    def add_path(self, path: Path) -> None:
        entry = str(path)
        if entry not in sys.path:
            sys.path.insert(0, entry)
            self._added_paths.append(entry)

    def compile_dir(self, src_dir: Path, out_dir: Path) -> list[Path]:
        logger.debug("Compiling files in %s to %s", src_dir, out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        compiled: list[Path] = []
        for source in list_python_files(src_dir):
            target = out_dir / (source.stem + COMPILED_SUFFIX)
            try:
                py_compile.compile(str(source), cfile=str(target), doraise=True)
            except py_compile.PyCompileError as exc:
                raise BuildError(f"Could not compile {source}:\n{exc.msg}") from exc
            compiled.append(target)
        self.add_path(out_dir)
        importlib.invalidate_caches()
        return compiled

    def load(self, name: str, out_dir: Path) -> ModuleType:
        """Load the compiled artifact of module ``name`` from ``out_dir``."""
        path = out_dir / (name + COMPILED_SUFFIX)
        loader = importlib.machinery.SourcelessFileLoader(name, str(path))
        spec = importlib.util.spec_from_file_location(name, str(path), loader=loader)
        if spec is None:
            raise BuildError(f"No compiled module {name!r} in {out_dir}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            loader.exec_module(module)
        except Exception as exc:
            del sys.modules[name]
            raise BuildError(f"Could not load module {name!r}: {exc!r}") from exc
        self.modules[name] = module
        return module

    def lookup(self, module: str, prop: str) -> Callable[[], object]:
        fn = getattr(self.modules[module], prop)
        if not isinstance(fn, FunctionType):
            raise TypeError(f"{module}:{prop} is not a function")
        return fn
