from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Iterable

from .build import BuildEnvironment
from .errors import ModuleNotFound, PbtRunError, PropertyNotFound
from .file_tree import PROP_PREFIX, list_python_files, module_name, prop_suite
from .models import AnyName, Exactly, Filter, TestObligation
from .workspace import Application, Workspace

logger = logging.getLogger("pbt_run.finder")


@dataclass
class Discovery:
    obligations: list[TestObligation] = field(default_factory=list)
    error: PbtRunError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _is_nullary(fn: object) -> bool:
    try:
        params = inspect.signature(fn).parameters.values()  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False
    return all(
        p.default is not p.empty or p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
        for p in params
    )


def exported_functions(module: ModuleType) -> Iterable[str]:
    """
    Names of the zero-argument functions a module exports, in definition order.

    A module with ``__all__`` exports exactly those names; otherwise every
    public function defined in the module itself is exported.
    """
    public = getattr(module, "__all__", None)
    for name, obj in vars(module).items():
        if not inspect.isfunction(obj) or obj.__module__ != module.__name__:
            continue
        if public is not None:
            if name not in public:
                continue
        elif name.startswith("_"):
            continue
        if _is_nullary(obj):
            yield name


def properties(props: Filter, module: ModuleType) -> list[TestObligation]:
    match props:
        case AnyName():
            names = [n for n in exported_functions(module) if n.startswith(PROP_PREFIX)]
        case Exactly():
            names = [n for n in exported_functions(module) if n in props]
    return [TestObligation(module.__name__, name) for name in names]


def compile_dirs(env: BuildEnvironment, directory: str, dirs: list[tuple[Application, Path]]) -> None:
    for app, src in dirs:
        logger.debug("Compiling %s for property testing", app.name)
        env.compile_dir(src, app.out_dir / directory)
    logger.debug("Apps compiled")


def find_properties(
    workspace: Workspace,
    env: BuildEnvironment,
    directory: str,
    modules: Filter,
    props: Filter,
) -> list[TestObligation]:
    """Compile and load every eligible module in ``directory`` and list its properties."""
    logger.debug("Dir: %s", directory)
    logger.debug("Mods: %r", modules)
    logger.debug("Props: %r", props)

    dirs = [
        (app, app.dir / directory)
        for app in workspace.project_apps
        if any(prop_suite(modules, f) for f in list_python_files(app.dir / directory))
    ]
    compile_dirs(env, directory, dirs)

    found: list[TestObligation] = []
    for app, src in dirs:
        for path in list_python_files(src):
            if prop_suite(modules, path):
                module = env.load(module_name(path), app.out_dir / directory)
                found.extend(properties(props, module))
    return found


def discover(
    workspace: Workspace,
    env: BuildEnvironment,
    directory: str,
    modules: Filter,
    props: Filter,
) -> Discovery:
    """
    Locate properties for a fresh run and check every explicitly requested
    property and module resolved to at least one obligation.
    """
    found = find_properties(workspace, env, directory, modules, props)
    logger.debug("Found: %r", found)
    mods_found = {o.module for o in found}
    props_found = {o.prop for o in found}

    if isinstance(props, Exactly):
        attempted = list(modules.names) if isinstance(modules, Exactly) else []
        for prop in props.names:
            if prop not in props_found:
                return Discovery(found, PropertyNotFound(prop, attempted))
    if isinstance(modules, Exactly):
        for mod in modules.names:
            if mod not in mods_found:
                return Discovery(found, ModuleNotFound(mod, props))
    return Discovery(found)
