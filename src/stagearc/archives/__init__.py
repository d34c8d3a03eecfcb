"""Archive materialization: tar, zip and single-file codecs, staged and committed atomically."""

from .fixtures import prepare_directory_with_files
from .service import (
    ArchiveService,
    create_bzip2_file,
    create_gzip_file,
    create_tar_archive,
    create_tar_bz2_archive,
    create_tar_gz_archive,
    create_tar_xz_archive,
    create_xz_file,
    create_zip_archive,
    encode_file_deflate,
    encode_file_zlib,
)
from .types import ArchiveFormat, DetectedFormat, MaterializeResult, OpEvent, OpPhase

__all__ = [
    "ArchiveFormat",
    "ArchiveService",
    "DetectedFormat",
    "MaterializeResult",
    "OpEvent",
    "OpPhase",
    "create_bzip2_file",
    "create_gzip_file",
    "create_tar_archive",
    "create_tar_bz2_archive",
    "create_tar_gz_archive",
    "create_tar_xz_archive",
    "create_xz_file",
    "create_zip_archive",
    "encode_file_deflate",
    "encode_file_zlib",
    "prepare_directory_with_files",
]
