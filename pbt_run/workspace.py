from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import load_project_config

IGNORE_DIRS = (".git", "__pycache__", ".venv", "env", ".mypy_cache")


@dataclass
class Application:
    name: str
    dir: Path      # application root
    out_dir: Path  # build output for this application
    is_checkout: bool = False

    @property
    def src_dir(self) -> Path:
        src = self.dir / "src"
        return src if src.is_dir() else self.dir


@dataclass
class Workspace:
    root: Path
    build_dir: Path
    apps: list[Application] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)

    @property
    def project_apps(self) -> list[Application]:
        return [app for app in self.apps if not app.is_checkout]

    @classmethod
    def from_project(cls, root: Path) -> "Workspace":
        root = root.resolve()
        build_dir = root / "_build" / "test"

        def _app(path: Path, is_checkout: bool = False) -> Application:
            return Application(
                name=path.name,
                dir=path,
                out_dir=build_dir / "lib" / path.name,
                is_checkout=is_checkout,
            )

        apps_dir = root / "apps"
        if apps_dir.is_dir():
            apps = [_app(p) for p in _subdirs(apps_dir)]
        else:
            apps = [_app(root)]

        checkouts = root / "_checkouts"
        if checkouts.is_dir():
            apps.extend(_app(p, is_checkout=True) for p in _subdirs(checkouts))

        return cls(root=root, build_dir=build_dir, apps=apps, config=load_project_config(root))


def _subdirs(path: Path) -> list[Path]:
    return sorted(
        (p for p in path.iterdir() if p.is_dir() and p.name not in IGNORE_DIRS),
        key=lambda p: p.name,
    )
