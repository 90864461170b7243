"""
Exception hierarchy for the project build pipeline.

Every error surfaced to the caller carries enough context (stage name,
song filename) to locate the failure without re-running the build with
verbose diagnostics.
"""

from __future__ import annotations

from typing import Optional


class BuildError(Exception):
    """Base class for all build failures.

    Attributes:
        stage: Pipeline stage in which the error occurred (e.g. "render").
        song: Identifier of the song involved, usually its filename.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        song: Optional[str] = None,
    ):
        self.message = message
        self.stage = stage
        self.song = song
        super().__init__(self._format())

    def _format(self) -> str:
        prefix = ""
        if self.stage:
            prefix += f"[{self.stage}] "
        if self.song:
            prefix += f"{self.song}: "
        return prefix + self.message


class ProjectNotFoundError(BuildError):
    """Raised when the requested project does not exist in the catalog."""


class ConfigError(BuildError):
    """Raised for malformed project or file configuration."""


class ClassificationError(BuildError):
    """Raised for an invalid or ambiguous folder pattern table."""


class RenderError(BuildError):
    """Raised when rendering a single song fails.

    Attributes:
        song_index: 1-based position of the song (0 for the table of contents).
        stdout: Captured renderer stdout, if any.
        stderr: Captured renderer stderr, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = "render",
        song: Optional[str] = None,
        song_index: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.song_index = song_index
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message, stage=stage, song=song)

    def _format(self) -> str:
        text = super()._format()
        if self.song_index is not None:
            text = f"song #{self.song_index:02d} " + text
        return text


class MergeError(BuildError):
    """Raised when merging the PDFs of a category fails."""


class BuildCancelled(BuildError):
    """Raised inside a render job that observed the cancellation signal."""


__all__ = [
    "BuildError",
    "ProjectNotFoundError",
    "ConfigError",
    "ClassificationError",
    "RenderError",
    "MergeError",
    "BuildCancelled",
]
