"""stagearc core: errors, logging, configuration and operation events."""

from stagearc.core.config import ConfigResolver, ConfigSource, LoggingPolicy
from stagearc.core.errors import ArchiveError, CleanupError, ConfigError, Stage, StagearcError
from stagearc.core.events import EventBus, get_event_bus
from stagearc.core.logging import VerbosityLevel, get_logger, set_verbosity

__all__ = [
    "ArchiveError",
    "CleanupError",
    "ConfigError",
    "ConfigResolver",
    "ConfigSource",
    "EventBus",
    "LoggingPolicy",
    "Stage",
    "StagearcError",
    "VerbosityLevel",
    "get_event_bus",
    "get_logger",
    "set_verbosity",
]
