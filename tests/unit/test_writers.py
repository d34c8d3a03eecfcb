"""Unit tests for the tar / zip archive writers."""

from __future__ import annotations

import errno
import io
import os
import stat
import tarfile
import zipfile
from pathlib import Path

import pytest
from stagearc.archives import writers
from stagearc.archives.codecs import FileSink
from stagearc.archives.service import ArchiveService
from stagearc.archives.types import Container
from stagearc.archives.writers import (
    ZIP_ENTRY_MODE,
    TarBuilder,
    ZipBuilder,
    create_builder,
    entry_name,
)
from stagearc.core.config import ConfigResolver
from stagearc.core.errors import ArchiveError, Stage


def test_entry_name_uses_final_component() -> None:
    assert entry_name("/a/b/file1.txt") == "file1.txt"
    assert entry_name(Path("rel/dir/x.bin")) == "x.bin"


@pytest.mark.parametrize("bad", ["/", ".", "..", "/a/.."])
def test_entry_name_rejects_nameless_paths(bad: str) -> None:
    with pytest.raises(ArchiveError) as ei:
        entry_name(bad)
    assert ei.value.stage is Stage.NAMING


def test_create_builder_dispatch(tmp_path: Path) -> None:
    with open(tmp_path / "a.tar", "wb") as raw:
        assert isinstance(create_builder(Container.TAR, FileSink(raw)), TarBuilder)
    with open(tmp_path / "a.zip", "wb") as raw:
        assert isinstance(create_builder(Container.ZIP, FileSink(raw)), ZipBuilder)


def test_tar_builder_flattens_and_keeps_duplicates(tmp_path: Path) -> None:
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    first = tmp_path / "a" / "same.txt"
    second = tmp_path / "b" / "same.txt"
    first.write_bytes(b"first")
    second.write_bytes(b"second")
    out = tmp_path / "out.tar"

    with open(out, "wb") as raw:
        builder = TarBuilder(FileSink(raw))
        builder.append(first)
        builder.append(second)
        builder.finish()

    assert builder.entries == ["same.txt", "same.txt"]
    assert builder.input_bytes == len(b"first") + len(b"second")
    with tarfile.open(out) as tf:
        members = tf.getmembers()
        assert [m.name for m in members] == ["same.txt", "same.txt"]
        assert tf.extractfile(members[0]).read() == b"first"  # type: ignore[union-attr]
        assert tf.extractfile(members[1]).read() == b"second"  # type: ignore[union-attr]


def test_tar_builder_keeps_source_mode(tmp_path: Path) -> None:
    src = tmp_path / "script.sh"
    src.write_bytes(b"#!/bin/sh\n")
    src.chmod(0o640)
    out = tmp_path / "out.tar"

    with open(out, "wb") as raw:
        builder = TarBuilder(FileSink(raw))
        builder.append(src)
        builder.finish()

    with tarfile.open(out) as tf:
        assert tf.getmember("script.sh").mode & 0o777 == 0o640


def test_zip_entries_are_deflated_with_fixed_mode(tmp_path: Path) -> None:
    src = tmp_path / "data.txt"
    src.write_bytes(b"zip me " * 100)
    src.chmod(0o600)
    out = tmp_path / "out.zip"

    with open(out, "wb") as raw:
        builder = ZipBuilder(FileSink(raw))
        builder.append(src)
        builder.finish()

    with zipfile.ZipFile(out) as zf:
        info = zf.getinfo("data.txt")
        assert info.compress_type == zipfile.ZIP_DEFLATED
        assert (info.external_attr >> 16) & 0o777 == ZIP_ENTRY_MODE
        assert stat.S_ISREG(info.external_attr >> 16)
        assert zf.read("data.txt") == b"zip me " * 100


def test_zip_empty_file(tmp_path: Path) -> None:
    src = tmp_path / "empty.bin"
    src.write_bytes(b"")
    out = tmp_path / "out.zip"

    with open(out, "wb") as raw:
        builder = ZipBuilder(FileSink(raw))
        builder.append(src)
        builder.finish()

    with zipfile.ZipFile(out) as zf:
        assert zf.read("empty.bin") == b""


def test_missing_input_is_source_error(tmp_path: Path) -> None:
    with open(tmp_path / "out.tar", "wb") as raw:
        builder = TarBuilder(FileSink(raw))
        with pytest.raises(ArchiveError) as ei:
            builder.append(tmp_path / "missing.txt")
        builder.abort()

    assert ei.value.stage is Stage.SOURCE
    assert ei.value.path == tmp_path / "missing.txt"


def test_root_path_is_naming_error(tmp_path: Path) -> None:
    with open(tmp_path / "out.zip", "wb") as raw:
        builder = ZipBuilder(FileSink(raw))
        with pytest.raises(ArchiveError) as ei:
            builder.append("/")
        builder.abort()
        assert builder.finished is True

    assert ei.value.stage is Stage.NAMING


def test_append_after_finish_raises(tmp_path: Path) -> None:
    src = tmp_path / "x.txt"
    src.write_bytes(b"x")

    with open(tmp_path / "out.tar", "wb") as raw:
        builder = TarBuilder(FileSink(raw))
        builder.finish()
        with pytest.raises(ValueError):
            builder.append(src)
        with pytest.raises(ValueError):
            builder.finish()


def test_finish_finishes_the_sink(tmp_path: Path) -> None:
    with open(tmp_path / "out.zip", "wb") as raw:
        sink = FileSink(raw)
        builder = ZipBuilder(sink)
        builder.finish()
        assert sink.finished is True

    with zipfile.ZipFile(tmp_path / "out.zip") as zf:
        assert zf.namelist() == []


def test_tar_over_memory_is_readable() -> None:
    class _BufSink:
        def __init__(self) -> None:
            self.buf = io.BytesIO()

        def write(self, data: bytes) -> int:
            return self.buf.write(data)

        def tell(self) -> int:
            return self.buf.tell()

        def flush(self) -> None:
            pass

        def finish(self) -> None:
            pass

    sink = _BufSink()
    builder = TarBuilder(sink)
    builder.finish()
    sink.buf.seek(0)
    with tarfile.open(fileobj=sink.buf) as tf:
        assert tf.getmembers() == []


class _UnreadableFile(io.FileIO):
    def read(self, size: int = -1) -> bytes:
        raise OSError(errno.EIO, "Input/output error")


@pytest.mark.parametrize("fmt_name", ["tar", "tar.gz", "zip"])
def test_input_read_failure_is_source_error_for_every_container(
    fmt_name: str,
    sample_files: list[Path],
    config_resolver: ConfigResolver,
    staging_root: Path,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(writers, "open_source", lambda path: _UnreadableFile(path, "r"))
    dst = tmp_path / f"out.{fmt_name}"

    with pytest.raises(ArchiveError) as ei:
        ArchiveService(config_resolver).materialize(sample_files, dst, autodetect=True)

    assert ei.value.stage is Stage.SOURCE
    assert ei.value.path == sample_files[0]
    assert isinstance(ei.value.__cause__, OSError)
    assert not dst.exists()
    assert os.listdir(staging_root) == []


def test_zip_entry_start_failure_propagates(
    sample_files: list[Path],
    config_resolver: ConfigResolver,
    staging_root: Path,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _refuse(self: zipfile.ZipFile, name: object, mode: str = "r", **kwargs: object) -> None:
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(zipfile.ZipFile, "open", _refuse)
    dst = tmp_path / "out.zip"

    with pytest.raises(ArchiveError) as ei:
        ArchiveService(config_resolver).create_zip_archive(sample_files, dst)

    assert ei.value.stage is Stage.ENCODE
    assert isinstance(ei.value.__cause__, OSError)
    assert not dst.exists()
    assert os.listdir(staging_root) == []
