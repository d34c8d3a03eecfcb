"""Unit tests for output format detection."""

from pathlib import Path

import pytest

from stagearc.archives.detect import detect_from_suffix, staging_suffix
from stagearc.archives.types import ArchiveFormat, Codec, Container


class TestDetectFromSuffix:
    """Tests for detect_from_suffix."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("out.tar.gz", ArchiveFormat.TAR_GZ),
            ("out.tgz", ArchiveFormat.TAR_GZ),
            ("out.tar.bz2", ArchiveFormat.TAR_BZ2),
            ("out.tbz", ArchiveFormat.TAR_BZ2),
            ("out.tar.xz", ArchiveFormat.TAR_XZ),
            ("out.TXZ", ArchiveFormat.TAR_XZ),
            ("out.tar", ArchiveFormat.TAR),
            ("out.zip", ArchiveFormat.ZIP),
            ("out.gz", ArchiveFormat.GZIP),
            ("out.deflate", ArchiveFormat.DEFLATE),
            ("out.zz", ArchiveFormat.ZLIB),
            ("out.bz2", ArchiveFormat.BZIP2),
            ("out.xz", ArchiveFormat.XZ),
        ],
    )
    def test_known_suffixes(self, name, expected):
        detected = detect_from_suffix(Path("/some/dir") / name)

        assert detected is not None
        assert detected.format is expected
        assert detected.source == "suffix"

    def test_unknown_suffix(self):
        assert detect_from_suffix("notes.txt") is None

    def test_bare_suffix_is_not_a_match(self):
        """A name that is only the suffix has no stem."""
        assert detect_from_suffix(".zip") is None
        assert detect_from_suffix("/x/.xz") is None
        assert detect_from_suffix("/x/.tar.gz") is None
        assert detect_from_suffix(".TGZ") is None


class TestStagingSuffix:
    """Tests for staging_suffix."""

    def test_canonical_suffix(self):
        assert staging_suffix(ArchiveFormat.TAR_BZ2, "out.whatever") == "tar.bz2"

    def test_deflate_and_zlib_follow_destination(self):
        assert staging_suffix(ArchiveFormat.DEFLATE, "/x/out.raw") == "raw"
        assert staging_suffix(ArchiveFormat.ZLIB, "/x/out.zz") == "zz"

    def test_deflate_without_extension(self):
        assert staging_suffix(ArchiveFormat.DEFLATE, "/x/out") == "deflate"


def test_format_layout() -> None:
    assert ArchiveFormat.TAR_XZ.container is Container.TAR
    assert ArchiveFormat.TAR_XZ.codec is Codec.XZ
    assert ArchiveFormat.ZIP.codec is None
    assert ArchiveFormat.ZLIB.container is None
    assert ArchiveFormat.ZLIB.single_file is True
    assert ArchiveFormat.TAR.single_file is False
