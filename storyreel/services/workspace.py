"""
Temp Workspace
One scratch directory per render job, removed on every exit path.
"""

import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from ..utils.logger import get_logger

logger = get_logger()


def workspace_path(root: Union[str, Path], job_id: str) -> Path:
    safe_id = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in job_id)
    return Path(root) / f"job_{safe_id}"


def remove_workspace(path: Path):
    shutil.rmtree(path, ignore_errors=True)
    if path.exists():
        logger.warning(f"Workspace could not be fully removed: {path}")


@contextmanager
def job_workspace(root: Union[str, Path], job_id: str) -> Iterator[Path]:
    """
    Yield a fresh directory for ``job_id``.

    Leftovers from an earlier crashed attempt are cleared first; the directory
    is removed recursively whether the block returns or raises.
    """
    path = workspace_path(root, job_id)
    if path.exists():
        logger.info(f"Clearing stale workspace: {path}")
        remove_workspace(path)
    path.mkdir(parents=True, exist_ok=True)

    try:
        yield path
    finally:
        remove_workspace(path)
        logger.debug(f"Workspace removed: {path}")
