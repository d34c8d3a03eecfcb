"""Staging manager: scratch directories and atomic commit.

Every materialization writes into a private temporary directory and only
becomes visible at its destination through a single os.replace(). A failed
rename leaves the staging directory in place for inspection; every other
failure removes it.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from stagearc.core.errors import ArchiveError, CleanupError, Stage
from stagearc.core.logging import get_logger

from .types import StagingHandle

log = get_logger(__name__)

DEFAULT_PREFIX = "stagearc-"
STAGED_STEM = "staged"


def begin_staging(
    format_suffix: str,
    *,
    temp_root: Path | str | None = None,
    prefix: str = DEFAULT_PREFIX,
) -> StagingHandle:
    """Create a unique staging directory and name the staged file inside it.

    The staged file itself is not created; the caller opens it once it has a
    sink to write through.
    """
    suffix = format_suffix.lstrip(".")
    if "/" in suffix or os.sep in suffix:
        raise ValueError(f"Invalid staging suffix: {format_suffix!r}")

    try:
        if temp_root is not None:
            Path(temp_root).mkdir(parents=True, exist_ok=True)
        temp_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=temp_root))
    except OSError as e:
        raise ArchiveError(
            Stage.STAGING,
            "Failed to create staging directory",
            path=temp_root,
            cause=e,
        ) from e

    name = f"{STAGED_STEM}.{suffix}" if suffix else STAGED_STEM
    handle = StagingHandle(temp_dir=temp_dir, staged_path=temp_dir / name)
    log.debug(f"staging begin temp_dir={str(temp_dir)!r} staged={name!r}")
    return handle


def commit(handle: StagingHandle, destination: Path | str) -> Path:
    """Publish the staged file at destination, then drop the staging directory.

    The rename never falls back to copying: a destination on another
    filesystem makes the commit fail with the staging directory kept.
    """
    dst = Path(destination)
    try:
        os.replace(handle.staged_path, dst)
    except OSError as e:
        log.warning(
            f"commit rename failed; staging dir kept temp_dir={str(handle.temp_dir)!r} "
            f"destination={str(dst)!r}"
        )
        raise ArchiveError(
            Stage.FINALIZE,
            "Failed to move staged file to destination",
            path=dst,
            cause=e,
        ) from e

    log.verbose(f"committed destination={str(dst)!r}")

    try:
        shutil.rmtree(handle.temp_dir)
    except OSError as e:
        raise CleanupError(
            "Destination written but staging directory was not removed",
            path=handle.temp_dir,
            cause=e,
        ) from e
    return dst


def discard(handle: StagingHandle) -> None:
    """Remove the staging directory and everything in it."""
    if not handle.temp_dir.exists():
        return
    try:
        shutil.rmtree(handle.temp_dir)
    except OSError as e:
        raise ArchiveError(
            Stage.FINALIZE,
            "Failed to discard staging directory",
            path=handle.temp_dir,
            cause=e,
        ) from e
    log.debug(f"staging discarded temp_dir={str(handle.temp_dir)!r}")


def _discard_after_failure(handle: StagingHandle) -> None:
    # The first failure is what the caller needs to see.
    with contextlib.suppress(ArchiveError):
        discard(handle)
        return
    log.warning(f"staging dir left behind after failure temp_dir={str(handle.temp_dir)!r}")


@contextmanager
def staged(
    format_suffix: str,
    *,
    temp_root: Path | str | None = None,
    prefix: str = DEFAULT_PREFIX,
) -> Iterator[StagingHandle]:
    """Scoped staging: the directory is released on every exit path.

    Exception: a FINALIZE error raised by commit() inside the block is passed
    through untouched, since commit() already decided what stays on disk.
    """
    handle = begin_staging(format_suffix, temp_root=temp_root, prefix=prefix)
    try:
        yield handle
    except BaseException as e:
        if isinstance(e, ArchiveError) and e.stage is Stage.FINALIZE:
            raise
        _discard_after_failure(handle)
        raise

    # No-op when commit() already removed the directory.
    discard(handle)
