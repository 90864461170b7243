"""
Rendering of a single song.

For each song the renderer reads the ABC source, resolves its configuration,
runs the external renderer, and relocates the outputs:

- every PDF produced for the song is copied, prefixed with the two-digit
  song index, into the category folder chosen by the classifier,
- the ABC source is copied into ``abc/``,
- the renderer's ``{filename}.err.log`` is moved into ``log/``.
"""

from __future__ import annotations

import glob
import json
import logging
import os
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from zupfbuild.batch import JobResult
from zupfbuild.classifier import FolderClassifier
from zupfbuild.config import BuildConfig
from zupfbuild.config_resolver import resolve_config
from zupfbuild.errors import BuildCancelled, ClassificationError, ConfigError, RenderError
from zupfbuild.models import Project, RenderJob
from zupfbuild.renderer import Renderer
from zupfbuild.resilience import resource_cleanup
from zupfbuild.subprocess_utils import CommandCancelled, CommandError

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

LOG_SUFFIX = ".err.log"


def stem_of(filename: str) -> str:
    """Filename without its ``.abc`` extension."""
    return filename[: -len(".abc")] if filename.endswith(".abc") else filename


def _claims(name: str, stem: str) -> bool:
    return name.startswith(stem) and not name[len(stem):len(stem) + 1].isalnum()


def find_rendered_pdfs(
    pdf_dir: Path,
    stem: str,
    sibling_stems: Iterable[str] = (),
) -> List[Path]:
    """PDFs in ``pdf_dir`` produced for the source with base name ``stem``.

    The character following the stem must not be alphanumeric, so the outputs
    of ``song2.abc`` are not attributed to ``song.abc``. A file also claimed by
    a longer stem in ``sibling_stems`` belongs to that source: with
    ``amazing_grace`` as sibling, ``amazing_grace_-A_a3.pdf`` is not an output
    of ``amazing``.
    """
    longer = [s for s in sibling_stems if len(s) > len(stem) and s.startswith(stem)]
    found = []
    for path in sorted(pdf_dir.glob(glob.escape(stem) + "*.pdf")):
        if not _claims(path.name, stem):
            continue
        if any(_claims(path.name, s) for s in longer):
            continue
        found.append(path)
    return found


class SongRenderer:
    """Renders songs of one project into the output tree.

    Args:
        cfg: Build configuration (directories, timeout).
        project: The project being built.
        renderer: External renderer capability.
        classifier: Folder classifier for the project.
        sample_id: Sample id injected into every song configuration.
        sibling_stems: Base names of all sources rendered into the same
            output tree, used to attribute raw PDFs to the right source.
    """

    def __init__(
        self,
        cfg: BuildConfig,
        project: Project,
        renderer: Renderer,
        classifier: FolderClassifier,
        sample_id: str = "",
        sibling_stems: Iterable[str] = (),
    ):
        self.cfg = cfg
        self.project = project
        self.renderer = renderer
        self.classifier = classifier
        self.sample_id = sample_id
        self.sibling_stems = frozenset(sibling_stems)

    def render(
        self,
        job: RenderJob,
        cancel_event: Optional[threading.Event] = None,
    ) -> JobResult:
        """Render one song of the project.

        Raises:
            RenderError: If the source cannot be read, the renderer fails or
                the outputs cannot be relocated.
            ConfigError: If the project or file configuration is malformed.
            BuildCancelled: If the build was cancelled while rendering.
        """
        song = job.song
        source_path = self.cfg.abc_file_dir / song.filename
        logger.info("Building song %s", song.title)

        try:
            source = source_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RenderError(
                f"failed to read ABC file {source_path}: {exc}",
                stage="read",
                song=song.filename,
                song_index=job.song_index,
            ) from exc

        try:
            job.config = resolve_config(
                self.project.config,
                job.song_index,
                self.project.short_name,
                self.sample_id,
                source,
            )
        except ConfigError as exc:
            raise ConfigError(exc.message, stage="config", song=song.filename) from exc

        return self.render_source(
            source_path,
            job.song_index,
            title=song.title,
            config=job.config,
            cancel_event=cancel_event,
        )

    def render_source(
        self,
        source_path: Path,
        song_index: int,
        title: str = "",
        config: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> JobResult:
        """Render an ABC file and relocate its outputs.

        This is the shared path for project songs and the generated table of
        contents. Without ``config`` the renderer runs with its defaults.
        """
        start_time = time.time()
        filename = source_path.name

        if config is None:
            self._invoke(source_path, None, filename, song_index, cancel_event)
        else:
            fd, name = tempfile.mkstemp(prefix="zupfnoter-", suffix=".json")
            config_path = Path(name)
            with resource_cleanup([config_path], cleanup_on_error=True, cleanup_on_success=True):
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(config, f)
                self._invoke(source_path, config_path, filename, song_index, cancel_event)

        distributed, warnings = self.distribute(filename, song_index)
        self._archive_source(source_path, song_index)
        self._relocate_log(filename, song_index)

        return JobResult(
            song_index=song_index,
            filename=filename,
            title=title,
            distributed=distributed,
            warnings=warnings,
            processing_time_s=time.time() - start_time,
        )

    def _invoke(
        self,
        source_path: Path,
        config_path: Optional[Path],
        filename: str,
        song_index: int,
        cancel_event: Optional[threading.Event],
    ) -> None:
        try:
            result = self.renderer.render(
                source_path,
                self.cfg.pdf_dir,
                config_path,
                cancel_event=cancel_event,
            )
        except CommandCancelled as exc:
            raise BuildCancelled(str(exc), stage="render", song=filename) from exc
        except CommandError as exc:
            logger.error(
                "zupfnoter failed for %s\n--- stdout ---\n%s\n--- stderr ---\n%s",
                filename,
                exc.stdout.strip(),
                exc.stderr.strip(),
            )
            raise RenderError(
                str(exc),
                song=filename,
                song_index=song_index,
                stdout=exc.stdout,
                stderr=exc.stderr,
            ) from exc

        if result.output:
            logger.debug("zupfnoter output for %s:\n%s", filename, result.output)

    def distribute(self, filename: str, song_index: int) -> Tuple[List[Path], List[str]]:
        """Copy the rendered PDFs of ``filename`` into their category folders.

        Returns:
            The copied print files and the warnings for unclassified files.
        """
        distributed: List[Path] = []
        warnings: List[str] = []

        for pdf_file in find_rendered_pdfs(
            self.cfg.pdf_dir, stem_of(filename), self.sibling_stems
        ):
            try:
                category = self.classifier.classify(pdf_file.name)
            except ClassificationError as exc:
                raise ClassificationError(exc.message, stage="classify", song=filename) from exc

            if category is None:
                message = f"no target folder found for {pdf_file.name}"
                logger.warning("%s (song %s)", message, filename)
                warnings.append(message)
                continue

            target_dir = self.cfg.category_dir(category)
            target_file = target_dir / f"{song_index:02d}_{pdf_file.name}"
            try:
                target_dir.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(pdf_file, target_file)
            except OSError as exc:
                raise RenderError(
                    f"failed to copy {pdf_file} to {target_file}: {exc}",
                    stage="distribute",
                    song=filename,
                    song_index=song_index,
                ) from exc
            logger.debug("Copied %s to %s", pdf_file.name, target_file)
            distributed.append(target_file)

        return distributed, warnings

    def _archive_source(self, source_path: Path, song_index: int) -> None:
        target = self.cfg.abc_dir / source_path.name
        if target.exists() and target.samefile(source_path):
            return
        try:
            shutil.copyfile(source_path, target)
        except OSError as exc:
            raise RenderError(
                f"failed to copy ABC file to {target}: {exc}",
                stage="distribute",
                song=source_path.name,
                song_index=song_index,
            ) from exc

    def _relocate_log(self, filename: str, song_index: int) -> None:
        log_name = filename + LOG_SUFFIX
        source = self.cfg.pdf_dir / log_name
        try:
            os.replace(source, self.cfg.log_dir / log_name)
        except OSError as exc:
            raise RenderError(
                f"failed to move renderer log {source}: {exc}",
                stage="distribute",
                song=filename,
                song_index=song_index,
            ) from exc
