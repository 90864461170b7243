"""
Resilience utilities for robust build execution.

This module provides:
- Health checks for the external rendering toolchain (node, Zupfnoter CLI)
- Resource cleanup for transient files

Example:
    >>> from zupfbuild.resilience import resource_cleanup, run_all_health_checks
    >>>
    >>> with resource_cleanup([config_file], cleanup_on_success=True):
    ...     renderer.render(source, pdf_dir, config_file)
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from zupfbuild.renderer import NODE_ENV, resolve_renderer_script

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass
class HealthCheck:
    """Health check results for a dependency.

    Attributes:
        name: Name of the dependency.
        available: Whether the dependency is available.
        version: Optional version string.
        details: Additional details or error message.
        check_time: Time when check was performed.
    """
    name: str
    available: bool
    version: Optional[str] = None
    details: str = ""
    check_time: float = field(default_factory=time.time)


def check_node_health(node: Optional[str] = None) -> HealthCheck:
    """Check if node is available and get version info."""
    name = "node"
    executable = node or os.environ.get(NODE_ENV, "node")

    if shutil.which(executable) is None:
        return HealthCheck(
            name=name,
            available=False,
            details=f"{executable} command not found on PATH",
        )

    try:
        result = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except subprocess.TimeoutExpired:
        return HealthCheck(
            name=name,
            available=False,
            details=f"{executable} --version timed out",
        )
    except OSError as e:
        return HealthCheck(name=name, available=False, details=str(e))

    if result.returncode != 0:
        return HealthCheck(
            name=name,
            available=False,
            details=f"{executable} --version failed: {result.stderr.strip()}",
        )
    return HealthCheck(
        name=name,
        available=True,
        version=result.stdout.strip() or None,
        details="CLI available",
    )


def check_renderer_health(script: Optional[Union[str, Path]] = None) -> HealthCheck:
    """Check if the Zupfnoter CLI script can be located."""
    name = "zupfnoter"
    try:
        path = resolve_renderer_script(script)
    except FileNotFoundError as e:
        return HealthCheck(name=name, available=False, details=str(e))
    return HealthCheck(name=name, available=True, details=f"script at {path}")


def run_all_health_checks(
    script: Optional[Union[str, Path]] = None,
    node: Optional[str] = None,
) -> Dict[str, HealthCheck]:
    """Run all health checks and return results.

    Args:
        script: Zupfnoter CLI script; defaults to $ZUPFNOTER_PATH.
        node: node executable; defaults to $ZUPFNOTER_NODE or ``node``.

    Returns:
        Dictionary mapping dependency names to their health check results.
    """
    return {
        "node": check_node_health(node),
        "zupfnoter": check_renderer_health(script),
    }


def print_health_report(
    script: Optional[Union[str, Path]] = None,
    node: Optional[str] = None,
) -> bool:
    """Print a formatted health check report to stdout.

    Returns:
        True when every dependency is available.
    """
    print("=" * 60)
    print("zupfbuild - Dependency Health Check")
    print("=" * 60)

    results = run_all_health_checks(script, node)

    for name, check in results.items():
        status = "✓" if check.available else "✗"
        print(f"\n{status} {name.upper()}")
        print(f"  Available: {check.available}")
        if check.version:
            print(f"  Version: {check.version}")
        print(f"  Details: {check.details}")

    available_count = sum(1 for c in results.values() if c.available)
    total_count = len(results)

    print("\n" + "=" * 60)
    print(f"Summary: {available_count}/{total_count} dependencies available")
    print("=" * 60)
    return available_count == total_count


@contextmanager
def resource_cleanup(
    paths: Optional[Sequence[Union[str, Path]]] = None,
    cleanup_on_error: bool = True,
    cleanup_on_success: bool = False,
):
    """Context manager for automatic resource cleanup.

    Ensures transient files and directories are removed after an
    operation, even if errors occur.

    Args:
        paths: Paths to clean up (files or directories).
        cleanup_on_error: Whether to clean up if an exception occurs.
        cleanup_on_success: Whether to clean up on successful completion.

    Example:
        >>> with resource_cleanup([config_file], cleanup_on_success=True):
        ...     run_renderer(config_file)
        ...     # config_file removed in every case
    """
    paths_to_clean: List[Path] = []
    if paths:
        paths_to_clean = [Path(p) for p in paths]

    error_occurred = False

    try:
        yield
    except BaseException:
        error_occurred = True
        raise
    finally:
        should_cleanup = (error_occurred and cleanup_on_error) or (
            not error_occurred and cleanup_on_success
        )

        if should_cleanup:
            for path in paths_to_clean:
                try:
                    if path.exists():
                        if path.is_dir():
                            shutil.rmtree(path)
                            logger.debug("Cleaned up directory: %s", path)
                        else:
                            path.unlink()
                            logger.debug("Cleaned up file: %s", path)
                except OSError as e:
                    logger.warning("Failed to clean up %s: %s", path, e)


__all__ = [
    "HealthCheck",
    "check_node_health",
    "check_renderer_health",
    "run_all_health_checks",
    "print_health_report",
    "resource_cleanup",
]
