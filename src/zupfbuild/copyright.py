"""
Reference copies per copyright holder.

For license bookkeeping, every rendered PDF of a song with a copyright
holder is copied into ``referenz/{holder}/``.
"""

from __future__ import annotations

import logging
import shutil
from typing import Dict, Iterable, List, Optional, Sequence

from zupfbuild.config import BuildConfig
from zupfbuild.errors import BuildError
from zupfbuild.models import Song
from zupfbuild.song_renderer import find_rendered_pdfs, stem_of

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def holder_dirname(holder: str) -> str:
    """Directory name for a copyright holder."""
    return holder.replace("/", "-").replace("\\", "-")


def group_by_copyright(songs: Sequence[Song]) -> Dict[str, List[Song]]:
    """Group songs by copyright holder, skipping songs without one."""
    groups: Dict[str, List[Song]] = {}
    for song in songs:
        if song.copyright:
            groups.setdefault(song.copyright, []).append(song)
    return groups


def copy_reference_pdfs(
    cfg: BuildConfig,
    songs: Sequence[Song],
    sibling_stems: Optional[Iterable[str]] = None,
) -> Dict[str, int]:
    """Copy the rendered PDFs of each holder's songs into its directory.

    Raw PDFs are attributed to songs as in :func:`find_rendered_pdfs`;
    ``sibling_stems`` defaults to the base names of ``songs``.

    Returns:
        Number of files copied per holder.

    Raises:
        BuildError: If a directory cannot be created or a file cannot be copied.
    """
    if sibling_stems is None:
        sibling_stems = [stem_of(s.filename) for s in songs]
    stems = frozenset(sibling_stems)
    groups = group_by_copyright(songs)
    logger.info("Copyright holders: %s", ", ".join(groups) or "none")

    copied: Dict[str, int] = {}
    for holder, holder_songs in groups.items():
        dest_dir = cfg.reference_dir / holder_dirname(holder)
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BuildError(
                f"failed to create directory {dest_dir}: {e}", stage="copyright"
            ) from e

        count = 0
        for song in holder_songs:
            for pdf_file in find_rendered_pdfs(cfg.pdf_dir, stem_of(song.filename), stems):
                dest = dest_dir / pdf_file.name
                try:
                    shutil.copyfile(pdf_file, dest)
                except OSError as e:
                    raise BuildError(
                        f"failed to copy {pdf_file} to {dest}: {e}",
                        stage="copyright",
                        song=song.filename,
                    ) from e
                count += 1
        copied[holder] = count
        logger.debug("Copied %d files for %s", count, holder)

    return copied
