from __future__ import annotations

from typing import Sequence

from .models import AnyName, Failure, Filter
from .reporting import format_failures


class PbtRunError(Exception):
    """Base class for every error a run can terminate with."""

    def format(self) -> str:
        return str(self)


class ModuleNotFound(PbtRunError):
    def __init__(self, name: str, properties: Filter) -> None:
        super().__init__(name, properties)
        self.name = name
        self.properties = properties

    def format(self) -> str:
        if isinstance(self.properties, AnyName):
            return f"Module {self.name!r} does not exist or exports no properties"
        return f"Module {self.name!r} does not exist"


class PropertyNotFound(PbtRunError):
    def __init__(self, name: str, modules: Sequence[str]) -> None:
        super().__init__(name, list(modules))
        self.name = name
        self.modules = list(modules)

    def format(self) -> str:
        if not self.modules:
            return f"Property {self.name!r} does not belong to any module"
        return f"Property {self.name!r} does not belong to any module in {self.modules!r}"


class RunFailed(PbtRunError):
    def __init__(self, failures: Sequence[Failure]) -> None:
        super().__init__(list(failures))
        self.failures = list(failures)

    def format(self) -> str:
        return "Failed test cases:" + "".join(
            f"\n  {line}" for line in format_failures(self.failures)
        )


class BuildError(PbtRunError):
    """A property directory could not be compiled or a compiled module failed to load."""


class ConfigError(PbtRunError):
    """Project configuration or a sys_config file could not be read."""


class MalformedRecordFile(PbtRunError):
    def __init__(self, path: object, lineno: int, line: str) -> None:
        super().__init__(path, lineno, line)
        self.path = path
        self.lineno = lineno
        self.line = line

    def format(self) -> str:
        return f"{self.path}:{self.lineno}: not a (module, property, input) record: {self.line!r}"


def format_error(error: BaseException) -> str:
    """Render a terminal error as the final user-visible message."""
    if isinstance(error, PbtRunError):
        return error.format()
    return repr(error)
