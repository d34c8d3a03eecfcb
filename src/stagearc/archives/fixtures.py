"""Directory staging utility.

Copies a set of input files into one directory, flattened to their base
names, for collaborators that need an on-disk working copy of the inputs.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path

from stagearc.core.errors import ArchiveError, Stage
from stagearc.core.logging import get_logger

log = get_logger(__name__)


def prepare_directory_with_files(
    files: Iterable[Path | str], target_directory: Path | str
) -> list[Path]:
    """Create target_directory (with parents) and copy each file into it.

    Inputs without a usable base name (e.g. '/') are skipped. Later inputs
    with the same base name overwrite earlier copies.

    Returns:
        Paths of the copies, in input order.
    """
    target = Path(target_directory)
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ArchiveError(
            Stage.STAGING, "Failed to create the target directory", path=target, cause=e
        ) from e

    copied: list[Path] = []
    for file_path in files:
        src = Path(file_path)
        if src.name in ("", ".", ".."):
            log.debug(f"prepare_directory skip path={str(src)!r} reason=no_name")
            continue
        dst = target / src.name
        try:
            shutil.copy2(src, dst)
        except OSError as e:
            raise ArchiveError(
                Stage.SOURCE, "Failed to copy file to the target directory", path=src, cause=e
            ) from e
        copied.append(dst)

    log.verbose(f"prepare_directory target={str(target)!r} files_count={len(copied)}")
    return copied
