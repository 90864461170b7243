"""
Merging of the per-category print files into one bundle each.

The merge facility is injected as a ``PdfMerger``; the default
implementation concatenates pages with pypdf.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Protocol, Sequence

from pypdf import PdfWriter

from zupfbuild.config import BuildConfig
from zupfbuild.errors import MergeError

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class PdfMerger(Protocol):
    """Concatenates ``sources`` into one PDF at ``dest``."""

    def merge(self, sources: Sequence[Path], dest: Path) -> None:
        ...


class PypdfMerger:
    """PdfMerger backed by :class:`pypdf.PdfWriter`."""

    def merge(self, sources: Sequence[Path], dest: Path) -> None:
        writer = PdfWriter()
        try:
            for source in sources:
                writer.append(str(source))
            with open(dest, "wb") as f:
                writer.write(f)
        finally:
            writer.close()


def collect_pdfs(directory: Path) -> List[Path]:
    """All PDFs below ``directory`` in lexical path order."""
    return sorted(
        p for p in directory.rglob("*")
        if p.is_file() and p.suffix.lower() == ".pdf"
    )


def merge_categories(
    cfg: BuildConfig,
    short_name: str,
    categories: Sequence[str],
    merger: PdfMerger,
) -> Dict[str, Path]:
    """Merge the print files of every category.

    Missing or empty category folders are skipped with a warning. The first
    failing merge aborts; later categories are not merged.

    Returns:
        Mapping of category to merged bundle path.

    Raises:
        MergeError: If the merge facility fails for a category.
    """
    merged: Dict[str, Path] = {}
    for category in categories:
        source_dir = cfg.category_dir(category)
        dest = cfg.merged_pdf_path(short_name, category)

        if not source_dir.is_dir():
            logger.warning("Directory %s does not exist, skipping merge", source_dir)
            continue

        files = collect_pdfs(source_dir)
        if not files:
            logger.warning("No PDF files found to merge in %s", source_dir)
            continue

        logger.info("Merging %d PDFs of %s into %s", len(files), category, dest)
        try:
            merger.merge(files, dest)
        except Exception as e:
            raise MergeError(
                f"failed to merge PDFs of folder {category} into {dest.name}: {e}",
                stage="merge",
            ) from e
        merged[category] = dest

    return merged
