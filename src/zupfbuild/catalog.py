"""
Read access to the song catalog.

The build pipeline only needs two queries: a project by id, and the songs
of a project up to a priority threshold. ``InMemoryCatalog`` answers them
from plain data and can be loaded from a JSON export of the catalog::

    {
      "projects": [{"id": 1, "title": "...", "short_name": "MBT", "config": {}}],
      "songs": [{"id": 7, "title": "...", "filename": "song.abc", "copyright": "..."}],
      "project_songs": [{"project_id": 1, "song_id": 7, "priority": 1}]
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Protocol, Union

from zupfbuild.errors import ConfigError, ProjectNotFoundError
from zupfbuild.models import Project, ProjectSong, Song


class Catalog(Protocol):
    """Read-only catalog contract used by the build pipeline."""

    def get_project(self, project_id: int) -> Project:
        ...

    def get_project_songs(self, project_id: int, priority_threshold: int) -> List[ProjectSong]:
        ...


class InMemoryCatalog:
    """Catalog held in memory."""

    def __init__(
        self,
        projects: Iterable[Project] = (),
        project_songs: Iterable[ProjectSong] = (),
    ):
        self.projects: Dict[int, Project] = {p.id: p for p in projects}
        self.project_songs: List[ProjectSong] = list(project_songs)

    def get_project(self, project_id: int) -> Project:
        try:
            return self.projects[project_id]
        except KeyError:
            raise ProjectNotFoundError(
                f"project with ID {project_id} not found", stage="catalog"
            ) from None

    def get_project_songs(self, project_id: int, priority_threshold: int) -> List[ProjectSong]:
        """Songs of a project with ``priority <= priority_threshold``, by priority."""
        self.get_project(project_id)
        selected = [
            ps for ps in self.project_songs
            if ps.project.id == project_id and ps.priority <= priority_threshold
        ]
        return sorted(selected, key=lambda ps: ps.priority)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryCatalog":
        """Build a catalog from its JSON representation."""
        try:
            projects = {
                p["id"]: Project(
                    id=p["id"],
                    title=p["title"],
                    short_name=p["short_name"],
                    config=p.get("config") or {},
                )
                for p in data.get("projects", [])
            }
            songs = {
                s["id"]: Song(
                    id=s["id"],
                    title=s["title"],
                    filename=s["filename"],
                    genre=s.get("genre") or "",
                    copyright=s.get("copyright") or "",
                    tocinfo=s.get("tocinfo") or "",
                )
                for s in data.get("songs", [])
            }
            project_songs = [
                ProjectSong(
                    project=projects[ps["project_id"]],
                    song=songs[ps["song_id"]],
                    priority=ps.get("priority", 1),
                    difficulty=ps.get("difficulty", "medium"),
                    comment=ps.get("comment") or "",
                )
                for ps in data.get("project_songs", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"invalid catalog data: {e!r}", stage="catalog") from e

        return cls(projects.values(), project_songs)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "InMemoryCatalog":
        """Load a catalog from a JSON file."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"catalog {path} is not valid JSON: {e}", stage="catalog") from e
        return cls.from_dict(data)
