from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class AnyName:
    """Filter that accepts every name (subject to the ``prop_`` convention)."""

    def __repr__(self) -> str:
        return "any"


@dataclass(frozen=True)
class Exactly:
    """Filter that accepts only the listed names, in the order given."""

    names: tuple[str, ...]

    def __contains__(self, name: object) -> bool:
        return name in self.names


ANY = AnyName()

Filter = Union[AnyName, Exactly]


def exactly(names: list[str] | tuple[str, ...]) -> Exactly:
    return Exactly(tuple(names))


@dataclass(frozen=True)
class TestObligation:
    module: str
    prop: str

    # keep pytest from collecting this as a test class
    __test__ = False

    @property
    def pair(self) -> tuple[str, str]:
        return (self.module, self.prop)


@dataclass(frozen=True)
class CounterexampleRecord:
    module: str
    prop: str
    value: Any  # engine-defined; None only while collecting failures in memory

    def as_tuple(self) -> tuple[str, str, Any]:
        return (self.module, self.prop, self.value)

    @property
    def pair(self) -> tuple[str, str]:
        return (self.module, self.prop)


@dataclass(frozen=True)
class Failure:
    """
    One obligation that did not pass.

    ``result`` is whatever the engine returned (or the fault it raised),
    ``counterexample`` is the failing input held for it, if any.
    """

    module: str
    prop: str
    result: Any
    counterexample: Any = None

    def as_record(self) -> CounterexampleRecord:
        return CounterexampleRecord(self.module, self.prop, self.counterexample)


@dataclass(frozen=True)
class EngineFault:
    """Result recorded for a check that raised instead of returning."""

    error: BaseException

    def __repr__(self) -> str:
        return f"{{'EXIT', {self.error!r}}}"
