"""Pytest configuration and shared fixtures.

We add the ``src`` directory to sys.path so the tests run against the
working tree without requiring the package to be installed.

The fixtures provide a fake renderer that behaves like the Zupfnoter CLI:
for ``song.abc`` it writes ``song_-A_a3.pdf``, ``song_-B_a3.pdf`` and
``song.abc.err.log`` into the output directory.
"""

from __future__ import annotations

import json
import sys
import textwrap
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest
from pypdf import PdfWriter

_SRC = Path(__file__).resolve().parents[1] / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from zupfbuild.catalog import InMemoryCatalog  # noqa: E402
from zupfbuild.models import Project, ProjectSong, Song  # noqa: E402
from zupfbuild.subprocess_utils import (  # noqa: E402
    CommandCancelled,
    CommandError,
    CommandResult,
)

DEFAULT_SUFFIXES = ("_-A_a3.pdf", "_-B_a3.pdf")


def make_pdf(path: Path, pages: int = 1) -> Path:
    """Write a small valid PDF with ``pages`` blank pages."""
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=72, height=72)
    with open(path, "wb") as f:
        writer.write(f)
    return path


def abc_source(title: str, config: Optional[dict] = None) -> str:
    """A minimal ABC tune, optionally with an embedded config block."""
    text = f"X:1\nT:{title}\nM:4/4\nL:1/4\nK:C\nCDEF|\n"
    if config is not None:
        text += "\n%%%%zupfnoter.config\n\n" + json.dumps(config) + "\n"
    return text


class FakeRenderer:
    """In-process stand-in for the Zupfnoter renderer.

    Attributes:
        calls: Source filenames in call order.
        configs: Parsed configuration per source filename (None without one).
        config_paths: Configuration file passed per source filename.
        max_concurrent: Highest number of overlapping render calls.
    """

    def __init__(
        self,
        suffixes: Sequence[str] = DEFAULT_SUFFIXES,
        fail_for: Sequence[str] = (),
        delays: Optional[Dict[str, float]] = None,
        write_log: bool = True,
    ):
        self.suffixes = tuple(suffixes)
        self.fail_for = set(fail_for)
        self.delays = delays or {}
        self.write_log = write_log
        self.calls: List[str] = []
        self.configs: Dict[str, Optional[dict]] = {}
        self.config_paths: Dict[str, Optional[Path]] = {}
        self.completed: List[str] = []
        self.max_concurrent = 0
        self._running = 0
        self._lock = threading.Lock()

    def render(self, source, output_dir, config_path=None, cancel_event=None):
        name = Path(source).name
        with self._lock:
            self.calls.append(name)
            self._running += 1
            self.max_concurrent = max(self.max_concurrent, self._running)
            self.config_paths[name] = Path(config_path) if config_path else None
            self.configs[name] = (
                json.loads(Path(config_path).read_text()) if config_path else None
            )
        try:
            delay = self.delays.get(name, 0.0)
            if delay and cancel_event is not None:
                if cancel_event.wait(delay):
                    raise CommandCancelled(f"zupfnoter killed: build cancelled ({name})")
            elif delay:
                time.sleep(delay)

            if name in self.fail_for:
                raise CommandError(
                    f"zupfnoter failed with exit code 1 for {name}",
                    ["node", "zupfnoter-cli.js", str(source)],
                    returncode=1,
                    stdout="processing " + name,
                    stderr="syntax error in " + name,
                )

            stem = name[: -len(".abc")] if name.endswith(".abc") else name
            for suffix in self.suffixes:
                make_pdf(Path(output_dir) / f"{stem}{suffix}")
            if self.write_log:
                (Path(output_dir) / f"{name}.err.log").write_text("ok\n")
            with self._lock:
                self.completed.append(name)
            return CommandResult(cmd=["fake", name], returncode=0, stdout="done", stderr="")
        finally:
            with self._lock:
                self._running -= 1


FAKE_ZUPFNOTER_SCRIPT = textwrap.dedent(
    '''
    """Command line stand-in for the Zupfnoter CLI used in tests."""
    import sys
    from pathlib import Path

    from pypdf import PdfWriter

    source = Path(sys.argv[1])
    out_dir = Path(sys.argv[2])
    config = Path(sys.argv[3]).read_text() if len(sys.argv) > 3 else ""

    text = source.read_text()
    if "%%fail" in text:
        print("rendering " + source.name)
        print("cannot render " + source.name, file=sys.stderr)
        sys.exit(3)

    stem = source.name[:-4] if source.name.endswith(".abc") else source.name
    for suffix in ("_-A_a3.pdf", "_-B_a3.pdf"):
        writer = PdfWriter()
        writer.add_blank_page(width=72, height=72)
        with open(out_dir / (stem + suffix), "wb") as f:
            writer.write(f)
    (out_dir / (source.name + ".err.log")).write_text("config: " + config)
    print("rendered " + source.name)
    '''
)


@pytest.fixture
def fake_zupfnoter_script(tmp_path: Path) -> Path:
    """A Python script accepting the Zupfnoter CLI arguments."""
    script = tmp_path / "fake_zupfnoter.py"
    script.write_text(FAKE_ZUPFNOTER_SCRIPT)
    return script


@pytest.fixture
def project() -> Project:
    return Project(
        id=1,
        title="Musikbuch Test",
        short_name="MBT",
        config={"produce": ["#{PREFIX}-#{the_index}"], "sample": "#{sampleId}"},
    )


@pytest.fixture
def abc_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "songs"
    directory.mkdir()
    return directory


def make_catalog(
    project: Project,
    abc_dir: Path,
    songs: Sequence[tuple],
) -> InMemoryCatalog:
    """Create ABC files and a catalog.

    Args:
        songs: ``(title, filename, priority, copyright, tocinfo)`` tuples.
    """
    project_songs = []
    for i, (title, filename, priority, copyright, tocinfo) in enumerate(songs, start=1):
        (abc_dir / filename).write_text(abc_source(title))
        song = Song(
            id=i,
            title=title,
            filename=filename,
            copyright=copyright,
            tocinfo=tocinfo,
        )
        project_songs.append(ProjectSong(project=project, song=song, priority=priority))
    return InMemoryCatalog([project], project_songs)
