"""
Tests for the in-memory catalog.
"""

import json

import pytest

from zupfbuild.catalog import InMemoryCatalog
from zupfbuild.errors import ConfigError, ProjectNotFoundError
from zupfbuild.models import ProjectSong

CATALOG_DATA = {
    "projects": [
        {"id": 1, "title": "Musikbuch Test", "short_name": "MBT", "config": {"a": 1}},
        {"id": 2, "title": "Leer", "short_name": "LEER"},
    ],
    "songs": [
        {"id": 10, "title": "Zebra", "filename": "zebra.abc", "copyright": "Verlag X"},
        {"id": 11, "title": "Alpha", "filename": "alpha.abc", "tocinfo": "trad."},
        {"id": 12, "title": "Later", "filename": "later.abc"},
    ],
    "project_songs": [
        {"project_id": 1, "song_id": 10, "priority": 2},
        {"project_id": 1, "song_id": 11, "priority": 1, "difficulty": "easy"},
        {"project_id": 1, "song_id": 12, "priority": 4},
    ],
}


class TestInMemoryCatalog:
    """Tests for catalog queries."""

    def test_get_project(self):
        catalog = InMemoryCatalog.from_dict(CATALOG_DATA)
        project = catalog.get_project(1)
        assert project.short_name == "MBT"
        assert project.config == {"a": 1}
        assert catalog.get_project(2).config == {}

    def test_unknown_project(self):
        catalog = InMemoryCatalog.from_dict(CATALOG_DATA)
        with pytest.raises(ProjectNotFoundError, match="project with ID 9 not found"):
            catalog.get_project(9)
        with pytest.raises(ProjectNotFoundError):
            catalog.get_project_songs(9, 4)

    def test_priority_threshold_and_order(self):
        """Songs are filtered by threshold and ordered by priority."""
        catalog = InMemoryCatalog.from_dict(CATALOG_DATA)

        assert [ps.song.filename for ps in catalog.get_project_songs(1, 1)] == ["alpha.abc"]
        assert [ps.song.filename for ps in catalog.get_project_songs(1, 2)] == [
            "alpha.abc",
            "zebra.abc",
        ]
        assert len(catalog.get_project_songs(1, 4)) == 3
        assert catalog.get_project_songs(2, 4) == []

    def test_song_fields(self):
        catalog = InMemoryCatalog.from_dict(CATALOG_DATA)
        songs = {ps.song.filename: ps for ps in catalog.get_project_songs(1, 4)}
        assert songs["zebra.abc"].song.copyright == "Verlag X"
        assert songs["alpha.abc"].song.tocinfo == "trad."
        assert songs["alpha.abc"].difficulty == "easy"

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(json.dumps(CATALOG_DATA))
        assert InMemoryCatalog.load(path).get_project(1).title == "Musikbuch Test"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="not valid JSON"):
            InMemoryCatalog.load(path)

    @pytest.mark.parametrize(
        "data",
        [
            {"projects": [{"id": 1, "title": "x"}]},
            {"projects": [], "songs": [], "project_songs": [{"project_id": 1, "song_id": 1}]},
            {
                "projects": [{"id": 1, "title": "x", "short_name": "X"}],
                "songs": [{"id": 1, "title": "s", "filename": "s.abc"}],
                "project_songs": [{"project_id": 1, "song_id": 1, "priority": 7}],
            },
        ],
    )
    def test_invalid_data(self, data):
        with pytest.raises(ConfigError, match="invalid catalog data"):
            InMemoryCatalog.from_dict(data)


class TestProjectSongValidation:

    def test_invalid_difficulty(self):
        catalog = InMemoryCatalog.from_dict(CATALOG_DATA)
        ps = catalog.get_project_songs(1, 1)[0]
        with pytest.raises(ValueError, match="difficulty"):
            ProjectSong(ps.project, ps.song, difficulty="impossible")
