from __future__ import annotations

from pathlib import Path

from .models import AnyName, Exactly, Filter

PROP_PREFIX = "prop_"
SOURCE_SUFFIX = ".py"


def list_python_files(directory: Path) -> list[Path]:
    """
    List the ``.py`` files directly inside ``directory``, sorted by name.

    Property directories are flat; sub-directories are not searched.
    Returns an empty list when the directory does not exist.
    """
    try:
        children = sorted(directory.iterdir(), key=lambda p: p.name)
    except (FileNotFoundError, NotADirectoryError):
        return []
    return [p for p in children if p.is_file() and p.suffix == SOURCE_SUFFIX]


def module_name(path: Path) -> str:
    return path.stem


def prop_suite(modules: Filter, path: Path) -> bool:
    """Whether the file at ``path`` is a property module under the given filter."""
    if path.suffix != SOURCE_SUFFIX:
        return False
    name = module_name(path)
    match modules:
        case AnyName():
            return name.startswith(PROP_PREFIX)
        case Exactly(names):
            return name in names
    return False
