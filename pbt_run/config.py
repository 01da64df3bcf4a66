from __future__ import annotations

import json
import logging
import tomllib
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping

from .errors import ConfigError
from .models import ANY, Filter

logger = logging.getLogger("pbt_run.config")

DEFAULT_DIR = "test"


@dataclass(frozen=True)
class RunOptions:
    """Options consumed by the coordinator and the property locator."""

    dir: str = DEFAULT_DIR
    module: Filter = ANY
    properties: Filter = ANY
    cover: bool = False
    retry: bool = False
    regressions: bool = False
    store: bool = False
    sys_config: tuple[str, ...] = ()


@dataclass(frozen=True)
class EngineOptions:
    """Options forwarded to the property-testing engine untouched by the coordinator."""

    numtests: int | None = None
    verbose: bool | None = None
    long_result: bool = False
    start_size: int = 1
    max_size: int = 42
    max_shrinks: int | None = None
    noshrink: bool = False
    constraint_tries: int = 50
    spec_timeout: int | None = None  # milliseconds
    any_to_integer: bool = False
    on_output: Callable[[str, list[Any]], Any] | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


def load_project_config(root: Path) -> dict[str, Any]:
    """Return the ``[tool.pbt_run]`` table of ``<root>/pyproject.toml``, or ``{}``."""
    path = root / "pyproject.toml"
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Could not parse {path}: {exc}") from exc
    table = data.get("tool", {}).get("pbt_run", {})
    if not isinstance(table, dict):
        raise ConfigError(f"[tool.pbt_run] in {path} must be a table")
    return dict(table)


# ---- sys_config: per-application settings installed for the duration of a run ----

_APP_ENV: dict[str, dict[str, Any]] = {}


def read_sys_config(path: Path) -> dict[str, dict[str, Any]]:
    try:
        if path.suffix == ".json":
            data = json.loads(path.read_text(encoding="utf-8"))
        else:
            with path.open("rb") as f:
                data = tomllib.load(f)
    except OSError as exc:
        raise ConfigError(f"Could not read sys_config {path}: {exc.strerror}") from exc
    except (ValueError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Could not parse sys_config {path}: {exc}") from exc

    if not isinstance(data, dict) or not all(isinstance(v, dict) for v in data.values()):
        raise ConfigError(f"sys_config {path} must map application names to tables")
    return data


def load_sys_configs(root: Path, paths: tuple[str, ...]) -> dict[str, dict[str, Any]]:
    merged: dict[str, dict[str, Any]] = {}
    for name in paths:
        path = Path(name)
        if not path.is_absolute():
            path = root / path
        logger.debug("Loading sys_config %s", path)
        for app, values in read_sys_config(path).items():
            merged.setdefault(app, {}).update(values)
    return merged


@contextmanager
def app_env(configs: Mapping[str, Mapping[str, Any]]) -> Iterator[None]:
    previous = {app: dict(values) for app, values in _APP_ENV.items()}
    for app, values in configs.items():
        _APP_ENV.setdefault(app, {}).update(values)
    try:
        yield
    finally:
        _APP_ENV.clear()
        _APP_ENV.update(previous)


def get_env(app: str, key: str, default: Any = None) -> Any:
    """Read a value installed from a sys_config file, for use inside properties."""
    return _APP_ENV.get(app, {}).get(key, default)
