from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .models import Failure


@dataclass(frozen=True)
class Summary:
    total: int
    failed: int
    noun: str = "properties"

    @property
    def passed(self) -> int:
        return self.total - self.failed

    def line(self) -> str:
        if not self.failed:
            return f"{self.passed}/{self.total} {self.noun} passed"
        return f"{self.passed}/{self.total} {self.noun} passed, {self.failed} failed"


@dataclass(frozen=True)
class RetrySummary(Summary):
    """Summary for replayed counterexamples; some requested records may not resolve."""

    requested: int = 0

    def line(self) -> str:
        line = f"{self.passed}/{self.total} {self.noun} passed out of {self.requested} requested"
        if self.failed:
            line += f", {self.failed} failed"
        return line


def format_failure(failure: Failure) -> str:
    return f"{failure.module}:{failure.prop}() -> {failure.result!r}"


def format_failures(failures: Iterable[Failure]) -> list[str]:
    return [format_failure(f) for f in failures]
