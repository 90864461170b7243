"""Utilities for running external CLI tools.

This module centralizes subprocess invocation for external tools (the
Zupfnoter renderer, node) so we can provide consistent:
- timeout handling
- cooperative cancellation from a shared ``threading.Event``
- stdout/stderr capture
- error messages that include the invoked command

These helpers intentionally keep dependencies limited to the Python stdlib.
"""

from __future__ import annotations

import shlex
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

POLL_INTERVAL_S = 0.1


@dataclass(frozen=True)
class CommandResult:
    """Captured result for a command execution."""

    cmd: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """Combined stdout and stderr for diagnostics."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


class CommandError(RuntimeError):
    """Raised when a command cannot be launched, times out or fails.

    Attributes:
        cmd: The invoked command tokens.
        returncode: Exit code, or None when the command never finished.
        stdout: Captured stdout.
        stderr: Captured stderr.
    """

    def __init__(
        self,
        message: str,
        cmd: Sequence[str],
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class CommandCancelled(RuntimeError):
    """Raised when a running command was killed because of cancellation."""


def format_cmd(cmd: Sequence[str]) -> str:
    """Format a command sequence into a shell-quoted string for logs/errors.

    Each element of the command is converted to ``str`` and passed through
    :func:`shlex.quote` so that arguments containing spaces or special shell
    characters are represented safely in log messages and error reports.

    This helper is intended only for human-readable output; the returned
    string should not be re-parsed and executed by a shell.
    """
    return " ".join(shlex.quote(str(c)) for c in cmd)


def _kill(proc: "subprocess.Popen[str]") -> tuple:
    proc.kill()
    return proc.communicate()


def run_checked(
    cmd: Sequence[str],
    *,
    timeout_s: Optional[float] = None,
    cwd: Optional[str] = None,
    env: Optional[dict] = None,
    tool_name: str = "command",
    cancel_event: Optional[threading.Event] = None,
) -> CommandResult:
    """Run a command and raise CommandError with helpful context on failure.

    While the command runs, ``cancel_event`` is polled; once it is set the
    process is killed and :class:`CommandCancelled` is raised.

    Args:
        cmd: Command tokens, e.g. ["node", "zupfnoter-cli.js", "song.abc", ...].
        timeout_s: Optional timeout in seconds.
        cwd: Optional working directory.
        env: Optional environment variables.
        tool_name: Friendly tool name used in error messages.
        cancel_event: Optional shared cancellation signal.

    Returns:
        CommandResult containing return code and captured output.

    Raises:
        CommandError: If the command cannot be started, fails or times out.
        CommandCancelled: If ``cancel_event`` was set while it was running.
    """
    cmd_list = [str(c) for c in cmd]

    if cancel_event is not None and cancel_event.is_set():
        raise CommandCancelled(f"{tool_name} not started: build cancelled")

    try:
        proc = subprocess.Popen(
            cmd_list,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            cwd=cwd,
            env=env,
        )
    except FileNotFoundError as exc:
        raise CommandError(
            f"{tool_name} command not found. Is it installed and on PATH?\n"
            f"Command: {format_cmd(cmd_list)}",
            cmd_list,
        ) from exc
    except OSError as exc:
        raise CommandError(
            f"{tool_name} could not be started: {exc}\n"
            f"Command: {format_cmd(cmd_list)}",
            cmd_list,
        ) from exc

    started = time.monotonic()
    while True:
        try:
            stdout, stderr = proc.communicate(timeout=POLL_INTERVAL_S)
            break
        except subprocess.TimeoutExpired:
            if cancel_event is not None and cancel_event.is_set():
                _kill(proc)
                raise CommandCancelled(
                    f"{tool_name} killed: build cancelled\n"
                    f"Command: {format_cmd(cmd_list)}"
                )
            if timeout_s is not None and time.monotonic() - started > timeout_s:
                stdout, stderr = _kill(proc)
                raise CommandError(
                    f"{tool_name} timed out after {timeout_s}s\n"
                    f"Command: {format_cmd(cmd_list)}",
                    cmd_list,
                    stdout=stdout or "",
                    stderr=stderr or "",
                )

    result = CommandResult(
        cmd=cmd_list,
        returncode=int(proc.returncode),
        stdout=stdout or "",
        stderr=stderr or "",
    )

    if result.returncode != 0:
        # Include both stdout and stderr; some tools report progress on stdout.
        raise CommandError(
            f"{tool_name} failed with exit code {result.returncode}\n"
            f"Command: {format_cmd(cmd_list)}\n"
            f"--- stdout ---\n{result.stdout.strip()}\n"
            f"--- stderr ---\n{result.stderr.strip()}\n",
            cmd_list,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    return result
