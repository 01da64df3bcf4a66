from __future__ import annotations

import ast
import logging
from pathlib import Path
from typing import Any, Iterable

from .errors import MalformedRecordFile
from .models import CounterexampleRecord
from .workspace import Workspace

logger = logging.getLogger("pbt_run.store")

COUNTEREXAMPLE_FILE = "pbt_run-counterexamples.consult"
REGRESSION_FILE = "pbt-regressions.consult"


def counterexample_path(workspace: Workspace) -> Path:
    return workspace.build_dir / COUNTEREXAMPLE_FILE


def regression_path(workspace: Workspace, directory: str) -> Path:
    return workspace.root / directory / REGRESSION_FILE


def format_record(record: CounterexampleRecord) -> str:
    return repr(record.as_tuple())


def parse_record(line: str) -> CounterexampleRecord | None:
    try:
        value = ast.literal_eval(line)
    except (ValueError, SyntaxError, MemoryError, RecursionError):
        return None
    if (
        isinstance(value, tuple)
        and len(value) == 3
        and isinstance(value[0], str)
        and isinstance(value[1], str)
    ):
        return CounterexampleRecord(value[0], value[1], value[2])
    return None


def _is_literal(value: Any) -> bool:
    try:
        return ast.literal_eval(repr(value)) == value
    except (ValueError, SyntaxError, MemoryError, RecursionError):
        return False


def persistable(records: Iterable[CounterexampleRecord]) -> list[CounterexampleRecord]:
    """Drop records without an input, or whose input cannot be written back as a literal."""
    kept: list[CounterexampleRecord] = []
    for record in records:
        if record.value is None:
            continue
        if not _is_literal(record.value):
            logger.warning(
                "Dropping counterexample for %s:%s(), %r is not a literal value",
                record.module,
                record.prop,
                record.value,
            )
            continue
        kept.append(record)
    return kept


def consult(path: Path) -> list[CounterexampleRecord]:
    """
    Read every record in a counterexample or regression file, in file order.

    Raises ``OSError`` when the file cannot be read and ``MalformedRecordFile``
    when a line is not UTF-8 text or not a record.
    """
    records: list[CounterexampleRecord] = []
    for lineno, raw in enumerate(path.read_bytes().splitlines(), start=1):
        try:
            line = raw.decode("utf-8").strip()
        except UnicodeDecodeError:
            raise MalformedRecordFile(path, lineno, raw.decode("utf-8", "backslashreplace")) from None
        if not line or line.startswith("#"):
            continue
        record = parse_record(line)
        if record is None:
            raise MalformedRecordFile(path, lineno, line)
        records.append(record)
    return records


def try_consult(path: Path) -> list[CounterexampleRecord] | None:
    """Like ``consult`` but returns ``None`` when the file is missing or unreadable."""
    try:
        return consult(path)
    except OSError as exc:
        logger.debug("Could not read %s: %s", path, exc.strerror)
    except MalformedRecordFile as exc:
        logger.debug("Could not read %s", exc.format())
    return None


def save_counterexamples(path: Path, records: Iterable[CounterexampleRecord]) -> int:
    """Overwrite ``path`` with the given records; returns how many were written."""
    kept = persistable(records)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Writing counterexamples to %s", path)
    with path.open("w", encoding="utf-8") as f:
        for record in kept:
            f.write(format_record(record) + "\n")
    return len(kept)


def append_regressions(path: Path, records: Iterable[CounterexampleRecord]) -> int:
    """
    Append records not already present in the regression file at ``path``.

    A record is a duplicate when its written line is identical to that of an
    existing entry, so ``0.0`` and ``-0.0`` or ``1`` and ``True`` stay
    distinct. Returns the number of records appended.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    prior = consult(path) if path.exists() else []
    seen = {format_record(r) for r in prior}

    new: list[CounterexampleRecord] = []
    for record in persistable(records):
        line = format_record(record)
        if line in seen:
            continue
        seen.add(line)
        new.append(record)

    if not new:
        return 0

    existing = path.read_bytes() if path.exists() else b""
    unterminated = bool(existing) and not existing.endswith(b"\n")
    logger.debug("Storing counterexamples to %s", path)
    with path.open("a", encoding="utf-8") as f:
        if unterminated:
            f.write("\n")
        for record in new:
            f.write(format_record(record) + "\n")
    return len(new)
