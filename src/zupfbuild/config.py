"""
Configuration for the zupfbuild project build pipeline.

Provides a frozen dataclass for build configuration with deterministic
output directory paths.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple

PDF_DIR = "pdf"
ABC_DIR = "abc"
LOG_DIR = "log"
PRINT_DIR = "druckdateien"
REFERENCE_DIR = "referenz"

TOC_TEMPLATE_NAME = "999_inhaltsverzeichnis_template.abc"


@dataclass(frozen=True)
class BuildConfig:
    """
    Configuration for a project build.

    This is a frozen dataclass to ensure configuration immutability
    while render workers are running.

    Attributes:
        output_dir: Root directory of the generated output tree.
        abc_file_dir: Directory containing the ABC notation sources.
        project_root: Directory holding per-project folders; the table of
            contents template is looked up in
            ``{project_root}/{short_name}/tpl/``.
        default_toc_template: Optional shared table of contents template used
            when the project has none.
        max_workers: Maximum number of songs rendered concurrently.
    """

    output_dir: Path
    abc_file_dir: Path
    project_root: Path = Path(".")
    default_toc_template: Optional[Path] = None
    max_workers: int = 5

    def __post_init__(self) -> None:
        """Convert string paths to Path objects and validate values."""
        # Since frozen=True, we use object.__setattr__ for initialization
        for name in ("output_dir", "abc_file_dir", "project_root", "default_toc_template"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, Path(value))

        if self.max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {self.max_workers}")

    @property
    def pdf_dir(self) -> Path:
        """Directory receiving the raw renderer output."""
        return self.output_dir / PDF_DIR

    @property
    def abc_dir(self) -> Path:
        """Directory for copies of the ABC sources."""
        return self.output_dir / ABC_DIR

    @property
    def log_dir(self) -> Path:
        """Directory for renderer log files."""
        return self.output_dir / LOG_DIR

    @property
    def print_dir(self) -> Path:
        """Root of the classified, numbered print files."""
        return self.output_dir / PRINT_DIR

    @property
    def reference_dir(self) -> Path:
        """Root of the per copyright holder reference copies."""
        return self.output_dir / REFERENCE_DIR

    def category_dir(self, category: str) -> Path:
        """Directory for the print files of one category."""
        return self.print_dir / category

    def merged_pdf_path(self, short_name: str, category: str) -> Path:
        """Path of the merged bundle for one category."""
        return self.print_dir / f"{short_name}_{category}.pdf"

    def project_toc_template(self, short_name: str) -> Path:
        """Project specific table of contents template."""
        return self.project_root / short_name / "tpl" / TOC_TEMPLATE_NAME

    @property
    def generated_dirs(self) -> Tuple[Path, ...]:
        """Directories owned by the build; removed before every run."""
        return (
            self.pdf_dir,
            self.abc_dir,
            self.log_dir,
            self.print_dir,
            self.reference_dir,
        )

    def create_directories(self, categories: Iterable[str] = ()) -> None:
        """Create all output directories, including one per category."""
        for dir_path in [
            self.output_dir,
            self.pdf_dir,
            self.abc_dir,
            self.log_dir,
            self.print_dir,
            *(self.category_dir(c) for c in categories),
        ]:
            dir_path.mkdir(parents=True, exist_ok=True)
