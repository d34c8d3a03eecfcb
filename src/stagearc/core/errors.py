"""Error handling with friendly messages."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path


class StagearcError(Exception):
    """Base exception for all stagearc errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ConfigError(StagearcError):
    """Configuration error."""

    pass


class Stage(StrEnum):
    """Pipeline stage an ArchiveError originated from."""

    STAGING = "staging"  # temp dir / staged file could not be created
    SOURCE = "source"  # an input file could not be opened or read
    ENCODE = "encode"  # codec or archive writer failed mid-stream
    FINALIZE = "finalize"  # rename or temp dir cleanup failed
    NAMING = "naming"  # entry name not derivable from input path


_SUGGESTIONS: dict[Stage, str] = {
    Stage.STAGING: "Check free space and permissions of the temporary directory",
    Stage.SOURCE: "Check that every input file exists and is readable",
    Stage.ENCODE: "Check free space of the temporary directory",
    Stage.FINALIZE: "Keep the staging directory on the destination's filesystem",
    Stage.NAMING: "Pass paths to regular files, not root or '..' paths",
}


class ArchiveError(StagearcError):
    """Archive materialization error, tagged with the failing stage.

    Attributes:
        stage: Stage that failed.
        path: Path involved in the failure (input, staged file or destination).
        committed: True only when the destination was already published
            before the failure (cleanup of the staging area failed).
        cause: Underlying exception, if any (also chained as __cause__).
    """

    def __init__(
        self,
        stage: Stage,
        message: str,
        *,
        path: Path | str | None = None,
        cause: BaseException | None = None,
        committed: bool = False,
        suggestion: str | None = None,
    ) -> None:
        self.stage = stage
        self.path = None if path is None else Path(path)
        self.cause = cause
        self.committed = committed
        detail = f"[{stage.value}] {message}"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail, suggestion or _SUGGESTIONS.get(stage))


class CleanupError(ArchiveError):
    """Destination committed, but the staging directory was not reclaimed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(
            Stage.FINALIZE,
            message,
            path=path,
            cause=cause,
            committed=True,
            suggestion="The output is valid; remove the leftover staging directory manually",
        )
