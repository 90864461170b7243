"""
zupfbuild - Songbook Project Build Pipeline

Builds songbook projects from ABC notation files into print-ready PDFs.

This package provides tools for:
- Resolving per-song render configuration from project and file settings
- Rendering songs concurrently through the Zupfnoter CLI
- Classifying rendered PDFs into print folders
- Generating a table of contents
- Collecting reference copies per copyright holder
- Merging print folders into one bundle per folder
"""

__version__ = "0.1.0"

from zupfbuild.batch import BatchResult, JobResult, RenderPool
from zupfbuild.catalog import Catalog, InMemoryCatalog
from zupfbuild.classifier import DEFAULT_FOLDER_PATTERNS, FolderClassifier
from zupfbuild.config import BuildConfig
from zupfbuild.config_resolver import resolve_config
from zupfbuild.errors import (
    BuildCancelled,
    BuildError,
    ClassificationError,
    ConfigError,
    MergeError,
    ProjectNotFoundError,
    RenderError,
)
from zupfbuild.merge import PdfMerger, PypdfMerger
from zupfbuild.models import BuildRequest, Project, ProjectSong, RenderJob, Song
from zupfbuild.orchestrator import (
    BuildOrchestrator,
    BuildResult,
    BuildState,
    execute_build,
)
from zupfbuild.renderer import Renderer, ZupfnoterRenderer
from zupfbuild.resilience import print_health_report, run_all_health_checks

__all__ = [
    "BuildOrchestrator",
    "BuildResult",
    "BuildState",
    "execute_build",
    "BuildRequest",
    "BuildConfig",
    "Project",
    "ProjectSong",
    "Song",
    "RenderJob",
    "Catalog",
    "InMemoryCatalog",
    "Renderer",
    "ZupfnoterRenderer",
    "PdfMerger",
    "PypdfMerger",
    "FolderClassifier",
    "DEFAULT_FOLDER_PATTERNS",
    "resolve_config",
    "RenderPool",
    "BatchResult",
    "JobResult",
    # Errors
    "BuildError",
    "BuildCancelled",
    "ClassificationError",
    "ConfigError",
    "MergeError",
    "ProjectNotFoundError",
    "RenderError",
    # Health checks
    "run_all_health_checks",
    "print_health_report",
]
