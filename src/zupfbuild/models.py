"""
Data model for songbook projects.

Projects, songs and their membership edges are owned by the catalog and are
read-only to the build pipeline. ``BuildRequest`` and ``RenderJob`` are
ephemeral values that only live for the duration of a build.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

DIFFICULTIES = ("easy", "medium", "hard", "expert")
MIN_PRIORITY = 1
MAX_PRIORITY = 4


@dataclass(frozen=True)
class Song:
    """A musical score in the library.

    Attributes:
        id: Catalog identity.
        title: Display title, also the sort key for song numbering.
        filename: Name of the ABC notation file in the source directory.
        genre: Optional genre.
        copyright: Optional copyright holder.
        tocinfo: Optional extra text for the table of contents (e.g. composer).
    """

    id: int
    title: str
    filename: str
    genre: str = ""
    copyright: str = ""
    tocinfo: str = ""


@dataclass(frozen=True)
class Project:
    """A songbook project.

    Attributes:
        id: Catalog identity.
        title: Display title.
        short_name: Filesystem-safe name used as path segment and as prefix
            of the merged output files.
        config: JSON-like configuration, may contain ``folderPatterns``.
    """

    id: int
    title: str
    short_name: str
    config: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProjectSong:
    """Membership of a song in a project."""

    project: Project
    song: Song
    priority: int = MIN_PRIORITY
    difficulty: str = "medium"
    comment: str = ""

    def __post_init__(self) -> None:
        if not MIN_PRIORITY <= self.priority <= MAX_PRIORITY:
            raise ValueError(
                f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, "
                f"got {self.priority}"
            )
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(
                f"difficulty must be one of {', '.join(DIFFICULTIES)}, "
                f"got {self.difficulty!r}"
            )


@dataclass(frozen=True)
class BuildRequest:
    """Parameters of a single build run.

    Attributes:
        project_id: Project to build.
        output_dir: Root of the generated output tree.
        abc_file_dir: Directory containing the ABC source files.
        priority_threshold: Inclusive upper bound on song priority.
        sample_id: Injected into the rendered configuration for sample runs.
    """

    project_id: int
    output_dir: Path
    abc_file_dir: Path
    priority_threshold: int = MIN_PRIORITY
    sample_id: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.output_dir, str):
            object.__setattr__(self, "output_dir", Path(self.output_dir))
        if isinstance(self.abc_file_dir, str):
            object.__setattr__(self, "abc_file_dir", Path(self.abc_file_dir))
        if not MIN_PRIORITY <= self.priority_threshold <= MAX_PRIORITY:
            raise ValueError(
                f"priority_threshold must be between {MIN_PRIORITY} and "
                f"{MAX_PRIORITY}, got {self.priority_threshold}"
            )


@dataclass
class RenderJob:
    """One song to render during a build.

    ``song_index`` is assigned before any concurrent work starts and is
    never changed afterwards. ``config`` is filled in by the renderer once
    the configuration has been resolved.
    """

    song: Song
    song_index: int
    config: Optional[Dict[str, Any]] = None

    @property
    def prefix(self) -> str:
        """Two-digit output numbering prefix."""
        return f"{self.song_index:02d}"
