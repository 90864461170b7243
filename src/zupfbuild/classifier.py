"""
Folder classification of rendered PDFs.

A rendered filename is mapped to an output category (a sub folder of the
print files) by matching it against an ordered table of shell-style glob
patterns. Projects may override the built-in table with a ``folderPatterns``
mapping in their configuration.
"""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Mapping, Optional, Tuple

from zupfbuild.errors import ClassificationError

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

FOLDER_PATTERNS_KEY = "folderPatterns"

DEFAULT_FOLDER_PATTERNS: Dict[str, str] = {
    "*_-A*_a3.pdf": "klein",
    "*_-M*_a3.pdf": "klein",
    "*_-O*_a3.pdf": "klein",
    "*_-B*_a3.pdf": "gross",
    "*_-X*_a3.pdf": "gross",
}


def is_path_component(name: str) -> bool:
    """Whether ``name`` can be used as a single directory name."""
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


class FolderClassifier:
    """Maps output filenames to categories.

    The first matching pattern wins. Because an override table may come from
    an unordered source, a filename matched by patterns of *different*
    categories is treated as a configuration error.

    Example:
        >>> classifier = FolderClassifier()
        >>> classifier.classify("song_-A4_a3.pdf")
        'klein'
    """

    def __init__(self, patterns: Optional[Mapping[str, str]] = None):
        table = DEFAULT_FOLDER_PATTERNS if patterns is None else patterns
        self.patterns: List[Tuple[str, str]] = list(table.items())
        self.validate()

    @classmethod
    def from_project_config(cls, config: Mapping[str, Any]) -> "FolderClassifier":
        """Use the project's ``folderPatterns`` override, else the defaults."""
        override = config.get(FOLDER_PATTERNS_KEY)
        if override is None:
            return cls()
        if not isinstance(override, Mapping):
            raise ClassificationError(
                f"{FOLDER_PATTERNS_KEY} must be a mapping of pattern to folder, "
                f"got {type(override).__name__}",
                stage="classify",
            )
        return cls(override)

    def validate(self) -> None:
        """Check the table for unusable patterns or category names.

        Whether two glob patterns overlap cannot be decided from the patterns
        alone, so patterns of different categories matching the same file are
        only detected by :meth:`classify`, once that file has been rendered.
        """
        if not self.patterns:
            raise ClassificationError("folder pattern table is empty", stage="classify")
        for pattern, category in self.patterns:
            if not isinstance(pattern, str) or not pattern:
                raise ClassificationError(
                    f"invalid folder pattern {pattern!r}", stage="classify"
                )
            if not isinstance(category, str) or not is_path_component(category):
                raise ClassificationError(
                    f"invalid folder {category!r} for pattern {pattern!r}",
                    stage="classify",
                )

    @property
    def categories(self) -> List[str]:
        """Distinct categories in table order."""
        seen: List[str] = []
        for _, category in self.patterns:
            if category not in seen:
                seen.append(category)
        return seen

    def classify(self, filename: str) -> Optional[str]:
        """Return the category of ``filename`` or None if nothing matches.

        Raises:
            ClassificationError: If patterns of different categories match.
        """
        matches = [(p, c) for p, c in self.patterns if fnmatchcase(filename, p)]
        if not matches:
            return None

        category = matches[0][1]
        conflicting = [m for m in matches if m[1] != category]
        if conflicting:
            described = ", ".join(f"{p!r} -> {c}" for p, c in matches)
            raise ClassificationError(
                f"ambiguous folder patterns for {filename}: {described}",
                stage="classify",
            )
        return category
