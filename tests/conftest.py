"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path (for 'stagearc.*' imports without an install)
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))


@pytest.fixture(autouse=True)
def _isolate_process_globals():
    """Reset the process-wide buses, verbosity and diagnostics sink around each test."""
    from stagearc.core.diagnostics import uninstall_jsonl_sink
    from stagearc.core.events import get_event_bus
    from stagearc.core.log_bus import get_log_bus
    from stagearc.core.logging import VerbosityLevel, set_colors, set_log_sink, set_verbosity

    def _reset() -> None:
        uninstall_jsonl_sink()
        set_log_sink(None)
        get_event_bus().clear()
        get_log_bus().clear()
        set_verbosity(VerbosityLevel.NORMAL)
        set_colors(False)

    _reset()
    yield
    _reset()


@pytest.fixture
def sample_files(tmp_path):
    """Create two small input files.

    Returns:
        [file1.txt, file2.txt], both containing "This is example content."
    """
    src = tmp_path / "src"
    src.mkdir()
    files = []
    for name in ("file1.txt", "file2.txt"):
        p = src / name
        p.write_text("This is example content.")
        files.append(p)
    return files


@pytest.fixture
def staging_root(tmp_path):
    """Dedicated staging root, on the same filesystem as the outputs."""
    root = tmp_path / "staging"
    root.mkdir()
    return root


@pytest.fixture
def config_resolver(staging_root):
    """ConfigResolver with built-in defaults and a private staging root.

    Returns:
        ConfigResolver instance
    """
    from stagearc.core import ConfigResolver

    return ConfigResolver.builtin(cli_args={"staging": {"temp_root": str(staging_root)}})
