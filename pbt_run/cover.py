from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

import coverage

from .workspace import Workspace

logger = logging.getLogger("pbt_run.cover")

COVERDATA_FILE = "pbt_run.coverdata"


@contextmanager
def maybe_cover(workspace: Workspace, enabled: bool) -> Iterator[coverage.Coverage | None]:
    """Record coverage of the project's applications while the block runs."""
    if not enabled:
        yield None
        return

    data_file = workspace.build_dir / "cover" / COVERDATA_FILE
    data_file.parent.mkdir(parents=True, exist_ok=True)
    cov = coverage.Coverage(
        data_file=str(data_file),
        source=[str(app.dir) for app in workspace.project_apps],
    )
    cov.start()
    try:
        yield cov
    finally:
        cov.stop()
        logger.info("Writing cover data to %s", data_file)
        cov.save()
