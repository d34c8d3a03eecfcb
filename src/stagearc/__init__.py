"""stagearc: write archives and compressed files without ever exposing a partial output."""

from stagearc.archives import (
    ArchiveFormat,
    ArchiveService,
    MaterializeResult,
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
    prepare_directory_with_files,
)
from stagearc.core import ArchiveError, CleanupError, ConfigResolver, Stage

__version__ = "0.1.0"

__all__ = [
    "ArchiveError",
    "ArchiveFormat",
    "ArchiveService",
    "CleanupError",
    "ConfigResolver",
    "MaterializeResult",
    "Stage",
    "__version__",
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
