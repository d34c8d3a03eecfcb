"""Codec adapter: finishable byte sinks.

A sink accepts writes and must be finished exactly once. FileSink finishes
the staged file on disk; CodecStream compresses into another sink and, when
finished, flushes its trailer and finishes the sink below it. Archive writers
accept either, which gives tar, tar+gzip, tar+bzip2 and tar+xz one code path.
"""

from __future__ import annotations

import bz2
import lzma
import os
import zlib
from collections.abc import Callable
from pathlib import Path
from typing import Any, BinaryIO, Protocol, runtime_checkable

from stagearc.core.errors import ArchiveError, Stage

from .types import Codec

MAX_LEVEL = 9
CHUNK_SIZE = 1024 * 1024

_CODEC_ERRORS = (OSError, zlib.error, lzma.LZMAError)


@runtime_checkable
class Sink(Protocol):
    def write(self, data: bytes) -> int: ...

    def flush(self) -> None: ...

    def finish(self) -> None: ...


class _Compressor(Protocol):
    def compress(self, data: bytes, /) -> bytes: ...

    def flush(self) -> bytes: ...


class FileSink:
    """Sink over the opened staged file.

    Unknown attributes (tell, seek, name, ...) are delegated to the raw file
    so seeking writers such as zipfile can use it directly.
    """

    def __init__(self, raw: BinaryIO) -> None:
        self._raw = raw
        self.finished = False

    def write(self, data: bytes) -> int:
        if self.finished:
            raise ValueError("write to a finished FileSink")
        n = self._raw.write(data)
        return len(data) if n is None else int(n)

    def flush(self) -> None:
        self._raw.flush()

    def finish(self) -> None:
        """Flush and fsync so the commit publishes durable bytes."""
        if self.finished:
            raise ValueError("FileSink already finished")
        self._raw.flush()
        os.fsync(self._raw.fileno())
        self.finished = True

    def __getattr__(self, name: str) -> Any:
        return getattr(self._raw, name)


_FACTORIES: dict[Codec, Callable[[], _Compressor]] = {
    # wbits 16+15: gzip wrapper (RFC 1952)
    Codec.GZIP: lambda: zlib.compressobj(MAX_LEVEL, zlib.DEFLATED, 16 + zlib.MAX_WBITS),
    # negative wbits: raw deflate, no header (RFC 1951)
    Codec.DEFLATE: lambda: zlib.compressobj(MAX_LEVEL, zlib.DEFLATED, -zlib.MAX_WBITS),
    Codec.ZLIB: lambda: zlib.compressobj(MAX_LEVEL, zlib.DEFLATED, zlib.MAX_WBITS),
    Codec.BZIP2: lambda: bz2.BZ2Compressor(MAX_LEVEL),
    Codec.XZ: lambda: lzma.LZMACompressor(format=lzma.FORMAT_XZ, preset=MAX_LEVEL),
}


class CodecStream:
    """Compressing sink at maximum effort over another sink."""

    def __init__(self, codec: Codec, sink: Sink) -> None:
        self.codec = codec
        self._sink = sink
        self._compressor = _FACTORIES[codec]()
        self._consumed = 0
        self.finished = False

    def write(self, data: bytes) -> int:
        if self.finished:
            raise ValueError(f"write to a finished {self.codec.value} stream")
        out = self._compressor.compress(data)
        if out:
            self._sink.write(out)
        n = len(data)
        self._consumed += n
        return n

    def tell(self) -> int:
        """Uncompressed bytes consumed so far (tarfile asks at open)."""
        return self._consumed

    def flush(self) -> None:
        # Only the layer below is flushed; a codec-level flush would cut the
        # stream into blocks.
        self._sink.flush()

    def finish(self) -> None:
        """Write the codec trailer, then finish the sink below."""
        if self.finished:
            raise ValueError(f"{self.codec.value} stream already finished")
        tail = self._compressor.flush()
        if tail:
            self._sink.write(tail)
        self.finished = True
        self._sink.finish()


def open_codec(codec: Codec, sink: Sink) -> CodecStream:
    return CodecStream(codec, sink)


def write_all(
    stream: Sink,
    source: BinaryIO,
    *,
    source_path: Path | str | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """Copy source start-to-end into stream. Returns bytes copied.

    Read failures are SOURCE errors, write failures ENCODE errors.
    """
    total = 0
    while True:
        try:
            chunk = source.read(chunk_size)
        except OSError as e:
            raise ArchiveError(Stage.SOURCE, "Failed to read input", path=source_path, cause=e) from e
        if not chunk:
            return total
        try:
            stream.write(chunk)
        except _CODEC_ERRORS as e:
            raise ArchiveError(Stage.ENCODE, "Compression failed", path=source_path, cause=e) from e
        total += len(chunk)


def finish_stream(stream: Sink, *, path: Path | str | None = None) -> None:
    """Finish a sink, mapping I/O and codec failures to ENCODE errors."""
    try:
        stream.finish()
    except _CODEC_ERRORS as e:
        raise ArchiveError(Stage.ENCODE, "Failed to finish output stream", path=path, cause=e) from e
