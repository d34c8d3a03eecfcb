"""Archive materialization types.

All public strings and paths must be ASCII-safe in logs and traces.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any


class Container(StrEnum):
    TAR = "tar"
    ZIP = "zip"


class Codec(StrEnum):
    GZIP = "gzip"
    DEFLATE = "deflate"
    ZLIB = "zlib"
    BZIP2 = "bzip2"
    XZ = "xz"


class ArchiveFormat(StrEnum):
    """Output kinds. The value doubles as the staged file suffix."""

    TAR = "tar"
    TAR_GZ = "tar.gz"
    TAR_BZ2 = "tar.bz2"
    TAR_XZ = "tar.xz"
    ZIP = "zip"
    GZIP = "gz"
    DEFLATE = "deflate"
    ZLIB = "zlib"
    BZIP2 = "bz2"
    XZ = "xz"

    @property
    def container(self) -> Container | None:
        return _LAYOUT[self][0]

    @property
    def codec(self) -> Codec | None:
        return _LAYOUT[self][1]

    @property
    def single_file(self) -> bool:
        """True for bare codec outputs, which take exactly one input."""
        return self.container is None


_LAYOUT: dict[ArchiveFormat, tuple[Container | None, Codec | None]] = {
    ArchiveFormat.TAR: (Container.TAR, None),
    ArchiveFormat.TAR_GZ: (Container.TAR, Codec.GZIP),
    ArchiveFormat.TAR_BZ2: (Container.TAR, Codec.BZIP2),
    ArchiveFormat.TAR_XZ: (Container.TAR, Codec.XZ),
    ArchiveFormat.ZIP: (Container.ZIP, None),
    ArchiveFormat.GZIP: (None, Codec.GZIP),
    ArchiveFormat.DEFLATE: (None, Codec.DEFLATE),
    ArchiveFormat.ZLIB: (None, Codec.ZLIB),
    ArchiveFormat.BZIP2: (None, Codec.BZIP2),
    ArchiveFormat.XZ: (None, Codec.XZ),
}


class OpPhase(StrEnum):
    PLANNED = "planned"
    STAGED = "staged"
    COMMITTED = "committed"
    OK = "ok"


@dataclass(frozen=True)
class DetectedFormat:
    format: ArchiveFormat
    source: str  # 'suffix'
    reason: str


@dataclass(frozen=True)
class StagingHandle:
    """Scratch location owned by one materialization call.

    staged_path always lives directly inside temp_dir, so removing temp_dir
    reclaims everything the call wrote.
    """

    temp_dir: Path
    staged_path: Path

    def __post_init__(self) -> None:
        if self.staged_path.parent != self.temp_dir:
            raise ValueError("staged_path must reside directly inside temp_dir")


@dataclass(frozen=True)
class OpEvent:
    op: str
    phase: OpPhase
    details: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MaterializeResult:
    format: ArchiveFormat
    destination: Path
    files_packed: int
    input_bytes: int
    output_bytes: int
    trace: list[OpEvent]
