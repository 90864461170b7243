"""
Project build orchestration.

Drives a build through its stages:

    PREPARING -> RENDERING -> AGGREGATING -> MERGING -> DONE

with FAILED reachable from every stage. Songs are rendered concurrently on a
bounded pool; everything else runs on the calling thread. Any error aborts
the build: an incomplete songbook is not a usable deliverable, and the
output directory of a failed build must be treated as invalid.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from zupfbuild.batch import BatchResult, JobResult, RenderPool
from zupfbuild.catalog import Catalog
from zupfbuild.classifier import FolderClassifier, is_path_component
from zupfbuild.config import BuildConfig
from zupfbuild.copyright import copy_reference_pdfs
from zupfbuild.errors import BuildError, ConfigError
from zupfbuild.merge import PdfMerger, PypdfMerger, merge_categories
from zupfbuild.models import BuildRequest, ProjectSong, RenderJob
from zupfbuild.renderer import Renderer
from zupfbuild.song_renderer import SongRenderer, stem_of
from zupfbuild.toc import TOC_FILENAME, create_toc

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

ProgressCallback = Callable[[int, str], None]


class BuildState(Enum):
    """Stages of a build."""
    PENDING = "pending"
    PREPARING = "preparing"
    RENDERING = "rendering"
    AGGREGATING = "aggregating"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BuildResult:
    """Outcome of a successful build.

    Attributes:
        project_id: The built project.
        short_name: Project short name.
        song_count: Number of songs included in the build.
        render: Render batch summary (None for an empty project).
        toc: Render result of the table of contents.
        references: Files copied per copyright holder.
        merged: Merged bundle per category.
        warnings: Non-fatal problems collected during the build.
        step_timings: Duration of each stage in seconds.
    """
    project_id: int
    short_name: str = ""
    song_count: int = 0
    render: Optional[BatchResult] = None
    toc: Optional[JobResult] = None
    references: Dict[str, int] = field(default_factory=dict)
    merged: Dict[str, Path] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    step_timings: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "project_id": self.project_id,
            "short_name": self.short_name,
            "song_count": self.song_count,
            "render": self.render.to_dict() if self.render else None,
            "toc": self.toc.to_dict() if self.toc else None,
            "references": dict(self.references),
            "merged": {k: str(v) for k, v in self.merged.items()},
            "warnings": list(self.warnings),
            "step_timings": dict(self.step_timings),
        }

    def save(self, path: Union[str, Path]) -> None:
        """Save the build result to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Saved build result to %s", path)


class _BuildStep:
    """Lightweight context manager to log stage start/completion with duration."""

    def __init__(self, log: logging.Logger, name: str, timings_dict: Dict[str, float]):
        self.log = log
        self.name = name
        self.start_time = 0.0
        self.timings_dict = timings_dict

    def __enter__(self) -> "_BuildStep":
        self.start_time = time.time()
        self.log.info(self.name)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        duration = time.time() - self.start_time
        self.timings_dict[self.name.lower().replace(" ", "_")] = round(duration, 3)

        if exc_type is None:
            self.log.info("%s completed in %.2fs", self.name, duration)
        else:
            self.log.error("%s failed after %.2fs: %s", self.name, duration, exc_val)
        return False


class _Progress:
    """Forwards progress to the optional callback, never going backwards."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self.callback = callback
        self.percent = 0

    def __call__(self, percent: int, message: str) -> None:
        self.percent = max(self.percent, min(100, percent))
        if self.callback is not None:
            self.callback(self.percent, message)


def assign_song_indices(project_songs: Sequence[ProjectSong]) -> List[RenderJob]:
    """Create render jobs numbered 1..N in case-insensitive title order."""
    ordered = sorted(
        project_songs,
        key=lambda ps: (ps.song.title.lower(), ps.song.filename),
    )
    return [RenderJob(song=ps.song, song_index=i) for i, ps in enumerate(ordered, start=1)]


def prepare_output(cfg: BuildConfig, classifier: FolderClassifier) -> None:
    """Reset the generated directories of the output tree.

    Removes the results of earlier builds and creates the directory layout,
    including one print folder per category.

    Raises:
        BuildError: If a directory cannot be removed or created.
    """
    for directory in cfg.generated_dirs:
        if not directory.exists():
            continue
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise BuildError(f"failed to remove directory {directory}: {e}", stage="prepare") from e

    try:
        cfg.create_directories(classifier.categories)
    except OSError as e:
        raise BuildError(f"failed to create output directories: {e}", stage="prepare") from e


class BuildOrchestrator:
    """Builds songbook projects.

    Example:
        >>> orchestrator = BuildOrchestrator(catalog, ZupfnoterRenderer())
        >>> result = orchestrator.execute(
        ...     BuildRequest(project_id=1, output_dir="MBT", abc_file_dir="abc"),
        ...     progress_callback=lambda pct, msg: print(pct, msg),
        ... )
    """

    def __init__(
        self,
        catalog: Catalog,
        renderer: Renderer,
        merger: Optional[PdfMerger] = None,
        project_root: Union[str, Path] = ".",
        default_toc_template: Optional[Union[str, Path]] = None,
        max_workers: int = 5,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            catalog: Source of projects and songs.
            renderer: External notation renderer.
            merger: PDF merge facility; defaults to pypdf.
            project_root: Directory holding the per-project template folders.
            default_toc_template: Shared table of contents template.
            max_workers: Maximum number of songs rendered concurrently.
            logger: Optional logger for build messages.
        """
        self.catalog = catalog
        self.renderer = renderer
        self.merger = merger or PypdfMerger()
        self.project_root = Path(project_root)
        self.default_toc_template = (
            Path(default_toc_template) if default_toc_template is not None else None
        )
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)
        self._state = BuildState.PENDING

    @property
    def state(self) -> BuildState:
        """Current stage of the last or running build."""
        return self._state

    def execute(
        self,
        request: BuildRequest,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BuildResult:
        """Run a complete build.

        Args:
            request: What to build and where.
            progress_callback: Optional ``(percent, message)`` callback.

        Returns:
            BuildResult describing the generated output.

        Raises:
            BuildError: On the first failure of any stage.
        """
        self._state = BuildState.PREPARING
        try:
            return self._execute(request, _Progress(progress_callback))
        except BuildError:
            self._state = BuildState.FAILED
            raise
        except Exception as e:
            failed_in = self._state
            self._state = BuildState.FAILED
            raise BuildError(f"unexpected error: {e}", stage=failed_in.value) from e

    def _execute(self, request: BuildRequest, progress: _Progress) -> BuildResult:
        result = BuildResult(project_id=request.project_id)

        project = self.catalog.get_project(request.project_id)
        project_songs = self.catalog.get_project_songs(
            request.project_id, request.priority_threshold
        )
        result.short_name = project.short_name
        result.song_count = len(project_songs)

        if not project_songs:
            self.logger.info(
                "Project '%s' (ID: %d) contains no songs up to priority %d; nothing to build",
                project.title,
                project.id,
                request.priority_threshold,
            )
            self._state = BuildState.DONE
            progress(100, "No songs to build")
            return result

        self.logger.info(
            "Building project '%s' (ID: %d) with %d songs into %s",
            project.title,
            project.id,
            len(project_songs),
            request.output_dir,
        )

        cfg = BuildConfig(
            output_dir=request.output_dir,
            abc_file_dir=request.abc_file_dir,
            project_root=self.project_root,
            default_toc_template=self.default_toc_template,
            max_workers=self.max_workers,
        )

        with _BuildStep(self.logger, "Prepare directories", result.step_timings):
            progress(15, "Preparing directories")
            if not is_path_component(project.short_name):
                raise ConfigError(
                    f"project short name {project.short_name!r} is not a valid path component",
                    stage="prepare",
                )
            classifier = FolderClassifier.from_project_config(project.config)
            prepare_output(cfg, classifier)

        self._state = BuildState.RENDERING
        jobs = assign_song_indices(project_songs)
        stems = [stem_of(job.song.filename) for job in jobs] + [stem_of(TOC_FILENAME)]
        song_renderer = SongRenderer(
            cfg,
            project,
            self.renderer,
            classifier,
            sample_id=request.sample_id,
            sibling_stems=stems,
        )

        def on_complete(job_result: JobResult, completed: int, total: int) -> None:
            progress(
                25 + completed * 45 // total,
                f"Built song {completed}/{total}: {job_result.title}",
            )

        with _BuildStep(self.logger, "Render songs", result.step_timings):
            progress(25, f"Building {len(jobs)} songs")
            pool = RenderPool(max_workers=cfg.max_workers, logger=self.logger)
            result.render = pool.run(jobs, song_renderer.render, on_complete=on_complete)
        result.warnings.extend(result.render.warnings)

        self._state = BuildState.AGGREGATING
        with _BuildStep(self.logger, "Create table of contents", result.step_timings):
            progress(75, "Creating table of contents")
            result.toc = create_toc(cfg, project, jobs, song_renderer)
        result.warnings.extend(result.toc.warnings)

        with _BuildStep(self.logger, "Copy copyright references", result.step_timings):
            progress(80, "Processing copyright information")
            result.references = copy_reference_pdfs(cfg, [job.song for job in jobs], stems)

        self._state = BuildState.MERGING
        with _BuildStep(self.logger, "Merge PDF files", result.step_timings):
            progress(85, "Merging PDF files")
            result.merged = merge_categories(
                cfg, project.short_name, classifier.categories, self.merger
            )

        self._state = BuildState.DONE
        progress(100, "Build completed")
        self.logger.info(
            "Build of project '%s' completed: %d songs, %d bundles, %d warnings",
            project.title,
            len(jobs),
            len(result.merged),
            len(result.warnings),
        )
        return result


def execute_build(
    request: BuildRequest,
    catalog: Catalog,
    renderer: Renderer,
    progress_callback: Optional[ProgressCallback] = None,
    **options: Any,
) -> BuildResult:
    """Build a project in one call.

    ``options`` are passed to :class:`BuildOrchestrator`.
    """
    orchestrator = BuildOrchestrator(catalog, renderer, **options)
    return orchestrator.execute(request, progress_callback)


__all__ = [
    "BuildState",
    "BuildResult",
    "BuildOrchestrator",
    "ProgressCallback",
    "assign_song_indices",
    "prepare_output",
    "execute_build",
]
