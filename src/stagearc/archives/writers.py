"""Archive writers (tar, zip) over a finishable sink.

Entries are named after the final component of each input path; the source
directory layout is not preserved. Duplicate names are written as separate
entries, as both container formats allow.
"""

from __future__ import annotations

import contextlib
import os
import stat
import tarfile
import time
import zipfile
import zlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, cast

from stagearc.core.errors import ArchiveError, Stage
from stagearc.core.logging import get_logger

from .codecs import Sink, finish_stream
from .types import Container

log = get_logger(__name__)

# Fixed permission bits stored on every zip entry.
ZIP_ENTRY_MODE = 0o755
_ZIP_SYSTEM_UNIX = 3
_ZIP_MIN_DATE = (1980, 1, 1, 0, 0, 0)
_ZIP_MAX_DATE = (2107, 12, 31, 23, 59, 58)

_WRITE_ERRORS = (OSError, zlib.error, zipfile.LargeZipFile)


def entry_name(path: Path | str) -> str:
    """Return the archive entry name for an input path (its final component)."""
    name = Path(path).name
    if name in ("", ".", ".."):
        raise ArchiveError(Stage.NAMING, "Cannot derive an entry name from input path", path=path)
    return name


def open_source(path: Path | str) -> BinaryIO:
    try:
        return open(path, "rb")
    except OSError as e:
        raise ArchiveError(Stage.SOURCE, "Failed to open input", path=path, cause=e) from e


class ArchiveBuilder(ABC):
    """Appends one entry per input file, then finishes itself and its sink."""

    container: Container

    def __init__(self, sink: Sink) -> None:
        self._sink = sink
        self.entries: list[str] = []
        self.input_bytes = 0
        self.finished = False

    @abstractmethod
    def append(self, path: Path | str) -> str:
        """Append the file at path; returns the entry name used."""

    @abstractmethod
    def _close_container(self) -> None: ...

    def finish(self) -> None:
        """Write the container trailer, then finish the sink below."""
        if self.finished:
            raise ValueError(f"{self.container.value} builder already finished")
        try:
            self._close_container()
        except _WRITE_ERRORS as e:
            raise ArchiveError(
                Stage.ENCODE, f"Failed to finalize {self.container.value} archive", cause=e
            ) from e
        self.finished = True
        finish_stream(self._sink)

    def abort(self) -> None:
        """Release the container after a failed append; its output is discarded."""
        if self.finished:
            return
        self.finished = True
        with contextlib.suppress(*_WRITE_ERRORS, ValueError):
            self._close_container()

    def _check_open(self) -> None:
        if self.finished:
            raise ValueError(f"append to a finished {self.container.value} builder")

    def _record(self, name: str, size: int) -> None:
        self.entries.append(name)
        self.input_bytes += size
        log.debug(f"{self.container.value} entry name={name!r} bytes={size}")


class _SourceReader:
    """Read side of an input handed to tarfile; read failures are SOURCE errors."""

    def __init__(self, raw: BinaryIO, path: Path | str) -> None:
        self._raw = raw
        self._path = path

    def read(self, size: int = -1) -> bytes:
        try:
            return self._raw.read(size)
        except OSError as e:
            raise ArchiveError(Stage.SOURCE, "Failed to read input", path=self._path, cause=e) from e


class TarBuilder(ArchiveBuilder):
    """Tar writer; mode and mtime of each entry come from the source file."""

    container = Container.TAR

    def __init__(self, sink: Sink) -> None:
        super().__init__(sink)
        self._tar = tarfile.open(fileobj=cast(BinaryIO, sink), mode="w", format=tarfile.PAX_FORMAT)

    def append(self, path: Path | str) -> str:
        self._check_open()
        name = entry_name(path)
        with open_source(path) as f:
            try:
                info = self._tar.gettarinfo(arcname=name, fileobj=f)
            except OSError as e:
                raise ArchiveError(Stage.SOURCE, "Failed to stat input", path=path, cause=e) from e
            try:
                self._tar.addfile(info, cast(BinaryIO, _SourceReader(f, path)))
            except _WRITE_ERRORS as e:
                raise ArchiveError(
                    Stage.ENCODE, f"Failed to append tar entry {name!r}", path=path, cause=e
                ) from e
        self._record(name, info.size)
        return name

    def _close_container(self) -> None:
        self._tar.close()


def _zip_date_time(mtime: float) -> tuple[int, int, int, int, int, int]:
    date_time = time.localtime(mtime)[:6]
    return max(_ZIP_MIN_DATE, min(_ZIP_MAX_DATE, date_time))


def _zipinfo_for(name: str, size: int, mtime: float) -> zipfile.ZipInfo:
    zi = zipfile.ZipInfo(filename=name, date_time=_zip_date_time(mtime))
    zi.compress_type = zipfile.ZIP_DEFLATED
    zi.create_system = _ZIP_SYSTEM_UNIX
    zi.external_attr = (stat.S_IFREG | ZIP_ENTRY_MODE) << 16
    zi.file_size = size
    return zi


class ZipBuilder(ArchiveBuilder):
    """Zip writer; every entry is Deflated with unix mode 0755.

    Each file is read fully into memory before its entry is started.
    """

    container = Container.ZIP

    def __init__(self, sink: Sink) -> None:
        super().__init__(sink)
        self._zip = zipfile.ZipFile(cast(BinaryIO, sink), mode="w", compression=zipfile.ZIP_DEFLATED)

    def append(self, path: Path | str) -> str:
        self._check_open()
        name = entry_name(path)
        with open_source(path) as f:
            try:
                mtime = os.fstat(f.fileno()).st_mtime
                buffer = f.read()
            except OSError as e:
                raise ArchiveError(Stage.SOURCE, "Failed to read input", path=path, cause=e) from e

        info = _zipinfo_for(name, len(buffer), mtime)
        try:
            # A failure to start the entry propagates before any content is written.
            with self._zip.open(info, mode="w") as entry:
                entry.write(buffer)
        except _WRITE_ERRORS as e:
            raise ArchiveError(
                Stage.ENCODE, f"Failed to write zip entry {name!r}", path=path, cause=e
            ) from e
        self._record(name, len(buffer))
        return name

    def _close_container(self) -> None:
        self._zip.close()


_BUILDERS: dict[Container, type[ArchiveBuilder]] = {
    Container.TAR: TarBuilder,
    Container.ZIP: ZipBuilder,
}


def create_builder(container: Container, sink: Sink) -> ArchiveBuilder:
    try:
        return _BUILDERS[container](sink)
    except _WRITE_ERRORS as e:
        raise ArchiveError(
            Stage.ENCODE, f"Failed to start {container.value} archive", cause=e
        ) from e
