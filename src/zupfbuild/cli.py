"""
Command-line interface for the zupfbuild songbook build pipeline.
"""

import argparse
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from zupfbuild import __version__
from zupfbuild.catalog import InMemoryCatalog
from zupfbuild.errors import BuildError
from zupfbuild.models import BuildRequest
from zupfbuild.orchestrator import execute_build
from zupfbuild.renderer import ZupfnoterRenderer
from zupfbuild.resilience import print_health_report

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zupfbuild",
        description="Build songbook projects from ABC notation into print-ready PDFs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Build project 1 with all songs of priority 1
  zupfbuild build 1 --catalog catalog.json --abc-file-dir songs/

  # Include songs up to priority 3 and tag the configuration as a sample run
  zupfbuild build 1 --catalog catalog.json --abc-file-dir songs/ -p 3 --sample-id S1

  # Check that node and the Zupfnoter CLI are available
  zupfbuild health --renderer-script zupfnoter-cli.min.js
        """,
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"zupfbuild {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build a project")
    build.add_argument("project_id", type=int, help="ID of the project to build")
    build.add_argument(
        "--catalog",
        type=Path,
        required=True,
        help="JSON export of the song catalog",
    )
    build.add_argument(
        "--abc-file-dir",
        "-a",
        type=Path,
        default=None,
        help="Directory with the ABC files (default: abc_file_dir of the project config)",
    )
    build.add_argument(
        "--output-dir",
        "-o",
        type=Path,
        default=None,
        help="Output directory (default: the project's short name)",
    )
    build.add_argument(
        "--priority-threshold",
        "-p",
        type=int,
        default=1,
        help="Maximum priority of songs to include (default: 1)",
    )
    build.add_argument(
        "--sample-id",
        default="",
        help="Sample id substituted for #{sampleId} in the project config",
    )
    build.add_argument(
        "--max-workers",
        type=int,
        default=5,
        help="Maximum number of songs rendered concurrently (default: 5)",
    )
    build.add_argument(
        "--render-timeout",
        type=float,
        default=None,
        help="Optional timeout (seconds) for rendering one song",
    )
    build.add_argument(
        "--renderer-script",
        type=Path,
        default=None,
        help="Path to the Zupfnoter CLI script (default: $ZUPFNOTER_PATH)",
    )
    build.add_argument(
        "--node",
        default=None,
        help="node executable (default: $ZUPFNOTER_NODE or node)",
    )
    build.add_argument(
        "--template-root",
        type=Path,
        default=Path("."),
        help="Directory containing {short_name}/tpl/ template folders (default: .)",
    )
    build.add_argument(
        "--default-toc-template",
        type=Path,
        default=None,
        help="Table of contents template used when the project has none",
    )
    build.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not show a progress bar",
    )
    build.add_argument(
        "--save-result",
        type=Path,
        default=None,
        help="Write the build result as JSON to this file",
    )

    health = subparsers.add_parser("health", help="Check the rendering toolchain")
    health.add_argument(
        "--renderer-script",
        type=Path,
        default=None,
        help="Path to the Zupfnoter CLI script (default: $ZUPFNOTER_PATH)",
    )
    health.add_argument(
        "--node",
        default=None,
        help="node executable (default: $ZUPFNOTER_NODE or node)",
    )
    return parser


def _run_build(args: argparse.Namespace) -> int:
    try:
        catalog = InMemoryCatalog.load(args.catalog)
        project = catalog.get_project(args.project_id)
    except (OSError, BuildError) as e:
        logger.error("Cannot load project %d: %s", args.project_id, e)
        return 1

    abc_file_dir = args.abc_file_dir
    if abc_file_dir is None:
        configured = project.config.get("abc_file_dir")
        if not isinstance(configured, str) or not configured:
            logger.error("--abc-file-dir is required; project has no abc_file_dir configured")
            return 1
        abc_file_dir = Path(configured)

    try:
        request = BuildRequest(
            project_id=args.project_id,
            output_dir=args.output_dir or Path(project.short_name),
            abc_file_dir=abc_file_dir,
            priority_threshold=args.priority_threshold,
            sample_id=args.sample_id,
        )
        renderer = ZupfnoterRenderer(
            args.renderer_script, node=args.node, timeout_s=args.render_timeout
        )
    except (ValueError, FileNotFoundError) as e:
        logger.error("%s", e)
        return 1

    logger.info("zupfbuild - Project Build")
    logger.info("Project: %s (%s)", project.title, project.short_name)
    logger.info("ABC files: %s", request.abc_file_dir)
    logger.info("Output: %s", request.output_dir)

    progress_bar = None if args.no_progress else tqdm(total=100, desc="Building", unit="%")

    def report(percent: int, message: str) -> None:
        if progress_bar is None:
            logger.info("[%3d%%] %s", percent, message)
            return
        progress_bar.update(percent - progress_bar.n)
        progress_bar.set_postfix_str(message)

    try:
        result = execute_build(
            request,
            catalog,
            renderer,
            progress_callback=report,
            project_root=args.template_root,
            default_toc_template=args.default_toc_template,
            max_workers=args.max_workers,
        )
    except BuildError as e:
        logger.error("Build failed: %s", e)
        return 1
    finally:
        if progress_bar is not None:
            progress_bar.close()

    for warning in result.warnings:
        logger.warning("%s", warning)
    for category, path in result.merged.items():
        logger.info("Merged %s: %s", category, path)
    if args.save_result:
        result.save(args.save_result)

    logger.info("Build completed successfully; results saved to: %s", request.output_dir)
    return 0


def main(argv=None):
    """Main entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "health":
        return 0 if print_health_report(args.renderer_script, node=args.node) else 1
    return _run_build(args)


if __name__ == "__main__":
    sys.exit(main())
