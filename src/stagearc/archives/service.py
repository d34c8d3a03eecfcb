"""Archive materialization service.

Every output kind runs the same pipeline:

    staged file -> [archive writer] -> [codec] -> FileSink
    writer.finish() -> codec.finish() -> fsync -> commit (os.replace)

Nothing is visible at the destination until the commit's rename.
"""

from __future__ import annotations

import time
import traceback
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from stagearc.core.config import ConfigResolver
from stagearc.core.diagnostics import build_envelope, install_jsonl_sink, is_diagnostics_enabled
from stagearc.core.errors import ArchiveError, Stage
from stagearc.core.events import get_event_bus
from stagearc.core.logging import apply_logging_policy, get_logger

from .codecs import FileSink, Sink, finish_stream, open_codec, write_all
from .detect import detect_from_suffix, staging_suffix
from .staging import DEFAULT_PREFIX, commit, staged
from .types import ArchiveFormat, MaterializeResult, OpEvent, OpPhase
from .writers import create_builder, open_source

log = get_logger(__name__)

PathLike = Path | str


def _short_traceback(*, max_lines: int = 20) -> str:
    tb_lines = traceback.format_exc().strip().splitlines()
    return "\n".join(tb_lines[-max_lines:])


def _safe_publish(event: str, payload: dict[str, Any]) -> None:
    try:
        get_event_bus().publish(event, payload)
    except Exception:
        # Diagnostics must never break a materialization.
        return


@contextmanager
def _observe_operation(*, operation: str, base: dict[str, Any]) -> Iterator[dict[str, Any]]:
    start = time.perf_counter()
    _safe_publish(
        "operation.start",
        build_envelope(
            event="operation.start", component="archives", operation=operation, data=dict(base)
        ),
    )

    summary: dict[str, Any] = {}
    try:
        yield summary
    except Exception as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        stage = e.stage.value if isinstance(e, ArchiveError) else "unexpected"
        end_data = dict(base)
        end_data.update(
            {
                "status": "failed",
                "stage": stage,
                "duration_ms": duration_ms,
                "error_type": type(e).__name__,
                "error_message": str(e),
                "traceback": _short_traceback(),
            }
        )
        _safe_publish(
            "operation.end",
            build_envelope(
                event="operation.end", component="archives", operation=operation, data=end_data
            ),
        )
        log.warning(
            f"{operation} status=failed stage={stage} duration_ms={duration_ms} "
            f"format={base.get('format')!r} destination={base.get('destination')!r}"
        )
        raise
    else:
        duration_ms = int((time.perf_counter() - start) * 1000)
        end_data = dict(base)
        end_data.update(summary)
        end_data.update({"status": "succeeded", "duration_ms": duration_ms})
        _safe_publish(
            "operation.end",
            build_envelope(
                event="operation.end", component="archives", operation=operation, data=end_data
            ),
        )
        parts = [
            "status=succeeded",
            f"duration_ms={duration_ms}",
            f"format={base.get('format')!r}",
            f"destination={base.get('destination')!r}",
        ]
        for k in ("files_count", "input_bytes", "output_bytes"):
            if k in end_data:
                parts.append(f"{k}={end_data[k]!r}")
        log.info(f"{operation} " + " ".join(parts))


class ArchiveService:
    """Archive materialization capability.

    Settings come from the resolver (staging.*, archives.debug.*); the
    default resolver uses built-in defaults only.
    """

    def __init__(self, resolver: ConfigResolver | None = None) -> None:
        self._resolver = resolver or ConfigResolver.builtin()

    @classmethod
    def from_resolver(cls, resolver: ConfigResolver) -> ArchiveService:
        """Build a service and apply the resolver's process-wide settings.

        Applies the logging policy and installs the diagnostics JSONL sink when
        diagnostics.enabled is set.
        """
        apply_logging_policy(resolver.resolve_logging_policy())
        if is_diagnostics_enabled(resolver):
            install_jsonl_sink(resolver=resolver)
        return cls(resolver)

    def materialize(
        self,
        files: Sequence[PathLike],
        destination: PathLike,
        *,
        fmt: ArchiveFormat | None = None,
        autodetect: bool = False,
        debug_trace: bool | None = None,
    ) -> MaterializeResult:
        """Write files as fmt to a staging area, then publish at destination.

        Raises:
            ArchiveError: tagged with the failing Stage. The destination is
                either untouched or holds the complete new output.
            ValueError: fmt missing (and not detectable) or misuse.
        """
        dst = Path(destination)
        if fmt is None:
            if not autodetect:
                raise ValueError("fmt is required unless autodetect=True")
            detected = detect_from_suffix(dst)
            if detected is None:
                raise ValueError(f"Unable to detect output format from {dst.name!r}; specify fmt")
            fmt = detected.format

        _debug_trace = debug_trace
        if _debug_trace is None:
            _debug_trace = self._resolver.resolve_bool("archives.debug.include_trace", False)

        inputs = [Path(p) for p in files]
        base: dict[str, Any] = {
            "format": fmt.value,
            "destination": str(dst),
            "inputs_count": len(inputs),
        }
        trace: list[OpEvent] = [OpEvent(op="materialize", phase=OpPhase.PLANNED, details=dict(base))]

        with _observe_operation(operation="archives.materialize", base=base) as summary:
            self._check_inputs(fmt, inputs, dst)
            input_bytes, output_bytes = self._run(fmt, inputs, dst, trace)
            summary["files_count"] = len(inputs)
            summary["input_bytes"] = input_bytes
            summary["output_bytes"] = output_bytes

        trace.append(
            OpEvent(
                op="materialize",
                phase=OpPhase.OK,
                details={"files": len(inputs), "bytes": output_bytes},
            )
        )
        return MaterializeResult(
            format=fmt,
            destination=dst,
            files_packed=len(inputs),
            input_bytes=input_bytes,
            output_bytes=output_bytes,
            trace=trace if _debug_trace else [],
        )

    def _check_inputs(self, fmt: ArchiveFormat, inputs: list[Path], dst: Path) -> None:
        if not inputs:
            raise ArchiveError(Stage.SOURCE, "No input files given", path=dst)
        if fmt.single_file and len(inputs) != 1:
            raise ArchiveError(
                Stage.SOURCE,
                f"{fmt.value} output takes exactly one input file, got {len(inputs)}",
                path=dst,
            )

    def _run(
        self, fmt: ArchiveFormat, inputs: list[Path], dst: Path, trace: list[OpEvent]
    ) -> tuple[int, int]:
        temp_root = self._resolver.resolve_path("staging.temp_root")
        if temp_root is None:
            # Beside the destination, so the commit rename stays on one filesystem.
            temp_root = dst.parent
        prefix = str(self._resolver.resolve_or("staging.prefix", DEFAULT_PREFIX))

        with staged(staging_suffix(fmt, dst), temp_root=temp_root, prefix=prefix) as handle:
            try:
                raw = open(handle.staged_path, "wb")
            except OSError as e:
                raise ArchiveError(
                    Stage.STAGING, "Failed to create staged file", path=handle.staged_path, cause=e
                ) from e
            with raw:
                input_bytes = self._encode(fmt, inputs, FileSink(raw))

            output_bytes = handle.staged_path.stat().st_size
            trace.append(
                OpEvent(
                    op="materialize",
                    phase=OpPhase.STAGED,
                    details={"staged_path": str(handle.staged_path), "bytes": output_bytes},
                )
            )
            commit(handle, dst)

        trace.append(OpEvent(op="materialize", phase=OpPhase.COMMITTED, details={"path": str(dst)}))
        return input_bytes, output_bytes

    def _encode(self, fmt: ArchiveFormat, inputs: list[Path], file_sink: FileSink) -> int:
        sink: Sink = file_sink
        if fmt.codec is not None:
            sink = open_codec(fmt.codec, file_sink)

        if fmt.container is None:
            src_path = inputs[0]
            with open_source(src_path) as src:
                copied = write_all(sink, src, source_path=src_path)
            finish_stream(sink, path=src_path)
            return copied

        builder = create_builder(fmt.container, sink)
        try:
            for path in inputs:
                builder.append(path)
            builder.finish()
        except Exception:
            builder.abort()
            raise
        return builder.input_bytes

    # Per-format entry points.

    def create_tar_archive(self, files: Sequence[PathLike], output_path: PathLike) -> MaterializeResult:
        return self.materialize(files, output_path, fmt=ArchiveFormat.TAR)

    def create_tar_gz_archive(
        self, files: Sequence[PathLike], output_path: PathLike
    ) -> MaterializeResult:
        return self.materialize(files, output_path, fmt=ArchiveFormat.TAR_GZ)

    def create_tar_bz2_archive(
        self, files: Sequence[PathLike], output_path: PathLike
    ) -> MaterializeResult:
        return self.materialize(files, output_path, fmt=ArchiveFormat.TAR_BZ2)

    def create_tar_xz_archive(
        self, files: Sequence[PathLike], output_path: PathLike
    ) -> MaterializeResult:
        return self.materialize(files, output_path, fmt=ArchiveFormat.TAR_XZ)

    def create_zip_archive(self, files: Sequence[PathLike], output_path: PathLike) -> MaterializeResult:
        return self.materialize(files, output_path, fmt=ArchiveFormat.ZIP)

    def create_gzip_file(self, input_path: PathLike, output_path: PathLike) -> MaterializeResult:
        return self.materialize([input_path], output_path, fmt=ArchiveFormat.GZIP)

    def encode_file_deflate(self, input_path: PathLike, output_path: PathLike) -> MaterializeResult:
        return self.materialize([input_path], output_path, fmt=ArchiveFormat.DEFLATE)

    def encode_file_zlib(self, input_path: PathLike, output_path: PathLike) -> MaterializeResult:
        return self.materialize([input_path], output_path, fmt=ArchiveFormat.ZLIB)

    def create_bzip2_file(self, input_path: PathLike, output_path: PathLike) -> MaterializeResult:
        return self.materialize([input_path], output_path, fmt=ArchiveFormat.BZIP2)

    def create_xz_file(self, input_path: PathLike, output_path: PathLike) -> MaterializeResult:
        return self.materialize([input_path], output_path, fmt=ArchiveFormat.XZ)


_DEFAULT_SERVICE = ArchiveService()


def create_tar_archive(files: Sequence[PathLike], output_path: PathLike) -> MaterializeResult:
    """Plain tar archive, one entry per input file."""
    return _DEFAULT_SERVICE.create_tar_archive(files, output_path)


def create_tar_gz_archive(files: Sequence[PathLike], output_path: PathLike) -> MaterializeResult:
    return _DEFAULT_SERVICE.create_tar_gz_archive(files, output_path)


def create_tar_bz2_archive(files: Sequence[PathLike], output_path: PathLike) -> MaterializeResult:
    return _DEFAULT_SERVICE.create_tar_bz2_archive(files, output_path)


def create_tar_xz_archive(files: Sequence[PathLike], output_path: PathLike) -> MaterializeResult:
    return _DEFAULT_SERVICE.create_tar_xz_archive(files, output_path)


def create_zip_archive(files: Sequence[PathLike], output_path: PathLike) -> MaterializeResult:
    """Zip archive; entries are Deflated with unix mode 0755."""
    return _DEFAULT_SERVICE.create_zip_archive(files, output_path)


def create_gzip_file(input_path: PathLike, output_path: PathLike) -> MaterializeResult:
    return _DEFAULT_SERVICE.create_gzip_file(input_path, output_path)


def encode_file_deflate(input_path: PathLike, output_path: PathLike) -> MaterializeResult:
    """Raw deflate stream (no zlib or gzip wrapper)."""
    return _DEFAULT_SERVICE.encode_file_deflate(input_path, output_path)


def encode_file_zlib(input_path: PathLike, output_path: PathLike) -> MaterializeResult:
    return _DEFAULT_SERVICE.encode_file_zlib(input_path, output_path)


def create_bzip2_file(input_path: PathLike, output_path: PathLike) -> MaterializeResult:
    return _DEFAULT_SERVICE.create_bzip2_file(input_path, output_path)


def create_xz_file(input_path: PathLike, output_path: PathLike) -> MaterializeResult:
    return _DEFAULT_SERVICE.create_xz_file(input_path, output_path)
