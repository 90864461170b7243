"""
Table of contents for a songbook.

The table of contents is a generated ABC document rendered through the same
path as the songs, as song number ``00``. Its header comes from the first
readable template of:

1. ``{project_root}/{short_name}/tpl/999_inhaltsverzeichnis_template.abc``
2. the shared default template configured for the build
3. the built-in template below
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from zupfbuild.batch import JobResult
from zupfbuild.config import BuildConfig
from zupfbuild.errors import RenderError
from zupfbuild.models import Project, RenderJob
from zupfbuild.song_renderer import SongRenderer

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

TOC_FILENAME = "00_inhaltsverzeichnis.abc"
TOC_PLACEHOLDER = "W:{{TOC}}"
TOC_INDEX = 0

BUILTIN_TEMPLATE = """X:1
T:Inhaltsverzeichnis
M:4/4
L:1/4
K:C
W:{{TOC}}
"""


def toc_lines(jobs: Sequence[RenderJob]) -> str:
    """One ``W:`` line per song, in song index order."""
    lines = []
    for job in sorted(jobs, key=lambda j: j.song_index):
        tocinfo = f" - {job.song.tocinfo}" if job.song.tocinfo else ""
        lines.append(f"W:{job.prefix} {job.song.title}{tocinfo}\n")
    return "".join(lines)


def load_template(cfg: BuildConfig, project: Project) -> str:
    """Read the first available template of the fallback chain."""
    candidates = [cfg.project_toc_template(project.short_name)]
    if cfg.default_toc_template is not None:
        candidates.append(cfg.default_toc_template)

    for path in candidates:
        try:
            template = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read TOC template %s: %s", path, e)
            continue
        logger.info("Using TOC template %s", path)
        return template

    logger.warning("Using built-in TOC template")
    return BUILTIN_TEMPLATE


def build_toc_document(template: str, jobs: Sequence[RenderJob]) -> str:
    """Insert the song lines into the template."""
    return template.replace(TOC_PLACEHOLDER, toc_lines(jobs), 1)


def create_toc(
    cfg: BuildConfig,
    project: Project,
    jobs: Sequence[RenderJob],
    song_renderer: SongRenderer,
) -> JobResult:
    """Write, render and distribute the table of contents.

    Returns:
        The render result of the table of contents.
    """
    document = build_toc_document(load_template(cfg, project), jobs)
    toc_path: Path = cfg.abc_dir / TOC_FILENAME
    try:
        toc_path.write_text(document, encoding="utf-8")
    except OSError as e:
        raise RenderError(
            f"failed to write table of contents: {e}",
            stage="toc",
            song=TOC_FILENAME,
            song_index=TOC_INDEX,
        ) from e

    return song_renderer.render_source(toc_path, TOC_INDEX, title="Inhaltsverzeichnis")


__all__ = [
    "TOC_FILENAME",
    "BUILTIN_TEMPLATE",
    "toc_lines",
    "load_template",
    "build_toc_document",
    "create_toc",
]
