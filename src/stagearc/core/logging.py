"""Centralized logging for stagearc.

Four verbosity levels are supported:
- QUIET (0): warnings + errors
- NORMAL (1): info + warnings + errors
- VERBOSE (2): per-step detail (staging, commit)
- DEBUG (3): everything, including temp paths

Usage:
    from stagearc.core.logging import get_logger, set_verbosity

    logger = get_logger(__name__)
    set_verbosity(2)

    logger.verbose("Committed staged file")
    logger.warning("Staging directory left behind")

Every emitted line is also published on the LogBus, so callers can capture
output without scraping stdout.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from enum import IntEnum

from stagearc.core.config import LoggingPolicy
from stagearc.core.log_bus import LogRecord, get_log_bus


class VerbosityLevel(IntEnum):
    """Verbosity levels for stagearc."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


_VERBOSITY: VerbosityLevel = VerbosityLevel.NORMAL
_USE_COLORS: bool = True

_LOG_SINK: Callable[[str], None] | None = None
_SINK_ADAPTER: Callable[[LogRecord], None] | None = None

_LEVELS: dict[str, VerbosityLevel] = {
    "DEBUG": VerbosityLevel.DEBUG,
    "VERBOSE": VerbosityLevel.VERBOSE,
    "INFO": VerbosityLevel.NORMAL,
    "WARNING": VerbosityLevel.QUIET,
    "ERROR": VerbosityLevel.QUIET,
}


def set_verbosity(level: int | VerbosityLevel) -> None:
    """Set global verbosity level.

    Args:
        level: Verbosity level (0-3 or VerbosityLevel enum)
    """
    global _VERBOSITY
    _VERBOSITY = VerbosityLevel(level)


def get_verbosity() -> VerbosityLevel:
    """Return the current global verbosity level."""
    return _VERBOSITY


def apply_logging_policy(policy: LoggingPolicy) -> None:
    """Apply a resolved LoggingPolicy (see ConfigResolver.resolve_logging_policy)."""
    if policy.emit_debug:
        set_verbosity(VerbosityLevel.DEBUG)
    elif policy.emit_verbose:
        set_verbosity(VerbosityLevel.VERBOSE)
    elif policy.emit_info:
        set_verbosity(VerbosityLevel.NORMAL)
    else:
        set_verbosity(VerbosityLevel.QUIET)
    set_colors(policy.color)


def set_colors(enabled: bool) -> None:
    """Enable or disable ANSI colors on console output."""
    global _USE_COLORS
    _USE_COLORS = enabled


def set_log_sink(sink: Callable[[str], None] | None) -> None:
    """Route every plain log line to a callback.

    Adapter over the LogBus; passing None removes the previous sink.
    """
    global _LOG_SINK
    global _SINK_ADAPTER

    if _SINK_ADAPTER is not None:
        get_log_bus().unsubscribe_all(_SINK_ADAPTER)
        _SINK_ADAPTER = None

    _LOG_SINK = sink
    if sink is None:
        return

    def _adapter(rec: LogRecord) -> None:
        sink(rec.plain)

    _SINK_ADAPTER = _adapter
    get_log_bus().subscribe_all(_adapter)


def get_log_sink() -> Callable[[str], None] | None:
    """Return the callback installed with set_log_sink, if any."""
    return _LOG_SINK


class StagearcLogger:
    """Logger with verbosity support."""

    COLORS = {
        "DEBUG": "\033[36m",
        "VERBOSE": "\033[34m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "RESET": "\033[0m",
    }

    def __init__(self, name: str):
        self.name = name

    def is_enabled_for(self, level_name: str) -> bool:
        return _LEVELS[level_name] <= _VERBOSITY

    def _format_message(self, level_name: str, message: str) -> str:
        if _USE_COLORS and sys.stdout.isatty():
            color = self.COLORS.get(level_name, "")
            return f"{color}[{level_name.lower()}]{self.COLORS['RESET']} {message}"
        return f"[{level_name.lower()}] {message}"

    def _log(self, level_name: str, message: str) -> None:
        if level_name != "ERROR" and not self.is_enabled_for(level_name):
            return

        plain = f"[{level_name.lower()}] {message}"
        get_log_bus().publish(LogRecord(level_name=level_name, plain=plain, logger_name=self.name))

        stream = sys.stderr if level_name in ("WARNING", "ERROR") else sys.stdout
        print(self._format_message(level_name, message), file=stream)

    def debug(self, message: str) -> None:
        self._log("DEBUG", message)

    def verbose(self, message: str) -> None:
        self._log("VERBOSE", message)

    def info(self, message: str) -> None:
        self._log("INFO", message)

    def warning(self, message: str) -> None:
        self._log("WARNING", message)

    def error(self, message: str) -> None:
        """Log error message (always shown, regardless of verbosity)."""
        self._log("ERROR", message)


_LOGGERS: dict[str, StagearcLogger] = {}


def get_logger(name: str = "stagearc") -> StagearcLogger:
    """Get (cached) logger instance for a module.

    Args:
        name: Logger name (usually __name__)
    """
    if name not in _LOGGERS:
        _LOGGERS[name] = StagearcLogger(name)
    return _LOGGERS[name]
