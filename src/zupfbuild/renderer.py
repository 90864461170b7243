"""
External notation renderer.

The build pipeline never calls a renderer through global state: a
``Renderer`` is passed into the orchestrator. ``ZupfnoterRenderer`` runs the
Zupfnoter command line (a node script) and is the production implementation;
tests inject fakes that write PDFs directly.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import List, Optional, Protocol, Union

from zupfbuild.subprocess_utils import CommandResult, run_checked

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

RENDERER_PATH_ENV = "ZUPFNOTER_PATH"
NODE_ENV = "ZUPFNOTER_NODE"


class Renderer(Protocol):
    """Contract of the external notation renderer.

    On success the renderer writes one or more PDFs named after the input's
    base name plus a ``{input filename}.err.log`` into ``output_dir``.
    """

    def render(
        self,
        source: Path,
        output_dir: Path,
        config_path: Optional[Path] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommandResult:
        ...


def resolve_renderer_script(script: Optional[Union[str, Path]] = None) -> Path:
    """Locate the Zupfnoter CLI script.

    Args:
        script: Explicit path; takes precedence over the environment.

    Returns:
        Path to the script.

    Raises:
        FileNotFoundError: If no script is configured or it does not exist.
    """
    if script is None:
        env_value = os.environ.get(RENDERER_PATH_ENV)
        if not env_value:
            raise FileNotFoundError(
                f"Zupfnoter CLI not configured; set {RENDERER_PATH_ENV} "
                "or pass the script path explicitly"
            )
        script = env_value

    path = Path(script)
    if not path.is_file():
        raise FileNotFoundError(f"Zupfnoter CLI not found at {path}")
    return path


class ZupfnoterRenderer:
    """Runs ``node <zupfnoter-cli> <source> <output_dir> [<config>]``.

    The script location is resolved once, when the renderer is created.

    Example:
        >>> renderer = ZupfnoterRenderer("tools/zupfnoter-cli.min.js")
        >>> renderer.render(Path("abc/song.abc"), Path("out/pdf"))
    """

    def __init__(
        self,
        script: Optional[Union[str, Path]] = None,
        node: Optional[str] = None,
        timeout_s: Optional[float] = None,
    ):
        self.script = resolve_renderer_script(script)
        self.node = node or os.environ.get(NODE_ENV, "node")
        self.timeout_s = timeout_s

    def command(
        self,
        source: Path,
        output_dir: Path,
        config_path: Optional[Path] = None,
    ) -> List[str]:
        """Build the command line for one invocation."""
        cmd = [self.node, str(self.script), str(source), str(output_dir)]
        if config_path is not None:
            cmd.append(str(config_path))
        return cmd

    def render(
        self,
        source: Path,
        output_dir: Path,
        config_path: Optional[Path] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommandResult:
        cmd = self.command(source, output_dir, config_path)
        logger.debug("Running zupfnoter for %s", source.name)
        return run_checked(
            cmd,
            timeout_s=self.timeout_s,
            tool_name="zupfnoter",
            cancel_event=cancel_event,
        )
