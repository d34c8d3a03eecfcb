"""Output format detection from a destination path.

Detection is only performed when explicitly requested by the caller.
"""

from __future__ import annotations

from pathlib import Path

from .types import ArchiveFormat, DetectedFormat

# Longest suffixes first: ".tar.gz" must win over ".gz".
_SUFFIX_MAP: list[tuple[str, ArchiveFormat]] = [
    (".tar.gz", ArchiveFormat.TAR_GZ),
    (".tgz", ArchiveFormat.TAR_GZ),
    (".tar.bz2", ArchiveFormat.TAR_BZ2),
    (".tbz2", ArchiveFormat.TAR_BZ2),
    (".tbz", ArchiveFormat.TAR_BZ2),
    (".tar.xz", ArchiveFormat.TAR_XZ),
    (".txz", ArchiveFormat.TAR_XZ),
    (".tar", ArchiveFormat.TAR),
    (".zip", ArchiveFormat.ZIP),
    (".gz", ArchiveFormat.GZIP),
    (".deflate", ArchiveFormat.DEFLATE),
    (".zlib", ArchiveFormat.ZLIB),
    (".zz", ArchiveFormat.ZLIB),
    (".bz2", ArchiveFormat.BZIP2),
    (".xz", ArchiveFormat.XZ),
]

_KNOWN_SUFFIXES = frozenset(suffix for suffix, _fmt in _SUFFIX_MAP)


def detect_from_suffix(path: Path | str) -> DetectedFormat | None:
    name = Path(path).name.lower()
    if name in _KNOWN_SUFFIXES:
        # A bare suffix (hidden file such as ".tar.gz") names no output.
        return None
    for suffix, fmt in _SUFFIX_MAP:
        if name.endswith(suffix):
            return DetectedFormat(format=fmt, source="suffix", reason=f"Matched suffix: {suffix}")
    return None


def staging_suffix(fmt: ArchiveFormat, destination: Path | str) -> str:
    """Suffix for the staged file of a materialization.

    Raw deflate and zlib outputs have no single canonical extension, so the
    destination's own final extension is reused when it has one.
    """
    if fmt in (ArchiveFormat.DEFLATE, ArchiveFormat.ZLIB):
        ext = Path(destination).suffix.lstrip(".")
        if ext:
            return ext
    return fmt.value
