from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any

import pytest

from pbt_run.workspace import Workspace


def get_example_root() -> Path:
    return Path(__file__).parent / "example_project"


class ScriptedEngine:
    """
    Stand-in engine that fails the properties it is told to fail.

    Properties are identified by the ``prop_*`` function that built them,
    which is the first part of the predicate's qualified name.
    """

    def __init__(
        self,
        failing: dict[str, Any] | None = None,
        raising: tuple[str, ...] = (),
    ) -> None:
        self.failing = dict(failing or {})
        self.raising = set(raising)
        self.calls: list[tuple[str, str, Any]] = []
        self._counterexample: Any = None

    @staticmethod
    def name_of(prop: Any) -> str:
        return prop.predicate.__qualname__.split(".")[0]

    def quickcheck(self, prop: Any, options: Any) -> Any:
        name = self.name_of(prop)
        self.calls.append(("quickcheck", name, None))
        self._counterexample = None
        if name in self.raising:
            raise RuntimeError(f"engine crashed on {name}")
        if name in self.failing:
            self._counterexample = self.failing[name]
            return False
        return True

    def check(self, prop: Any, counterexample: Any, options: Any) -> Any:
        name = self.name_of(prop)
        self.calls.append(("check", name, counterexample))
        if name in self.raising:
            raise RuntimeError(f"engine crashed on {name}")
        return name not in self.failing

    def counterexample(self) -> Any:
        return self._counterexample


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "example_project"
    shutil.copytree(get_example_root(), root)
    return root


@pytest.fixture
def workspace(project: Path) -> Workspace:
    return Workspace.from_project(project)
