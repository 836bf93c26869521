"""Build tool process execution.

This module handles:
- Executing a composed build command with subprocess
- Capturing combined stdout/stderr
- Enforcing build timeouts
- Recognizing warning lines in build tool output
"""

from __future__ import annotations

import logging
import re
import shlex
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# MSBuild diagnostic formats:
#   path(line,col): warning CODE: message [project]
#   project.csproj : warning CODE: message
#   warning CODE: message
WARNING_PATTERN = re.compile(
    r"^(?:(?P<file>.+?)(?:\((?P<line>\d+)(?:,(?P<col>\d+))?\))?\s*:\s*)?"
    r"warning\s+(?P<code>[A-Za-z]+\d+)\s*:\s*(?P<message>.+)$",
    re.IGNORECASE,
)


class BuildExecutionError(Exception):
    """Raised when the build tool cannot be executed."""

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str = "execution_error",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.code = code


@dataclass
class CommandResult:
    """Result of one build tool invocation.

    Attributes:
        exit_code: Process exit code.
        output: Combined stdout and stderr.
        started_at: Invocation start time.
        finished_at: Invocation finish time.
    """

    exit_code: int
    output: str
    started_at: datetime
    finished_at: datetime

    @property
    def success(self) -> bool:
        return self.exit_code == 0


CommandRunner = Callable[[list[str], Path], CommandResult]


def parse_warnings(output: str) -> list[str]:
    """Extract warning lines from build tool output.

    MSBuild repeats every warning in its closing summary, so duplicates are
    dropped while keeping first-seen order.
    """
    warnings: list[str] = []
    seen: set[str] = set()
    for line in output.splitlines():
        stripped = line.strip()
        if not stripped or not WARNING_PATTERN.match(stripped):
            continue
        if stripped in seen:
            continue
        seen.add(stripped)
        warnings.append(stripped)
    return warnings


def run_command(
    args: list[str],
    cwd: Path,
    timeout: int | None = None,
) -> CommandResult:
    """Execute a build command and capture its combined output.

    Args:
        args: Command as a list of strings.
        cwd: Working directory.
        timeout: Timeout in seconds (None = no timeout).

    Returns:
        CommandResult; a non-zero exit code is not raised here.

    Raises:
        BuildExecutionError: If the command cannot be started or times out.
    """
    cmd_str = shlex.join(args)
    logger.debug("Executing: %s (cwd=%s)", cmd_str, cwd)
    started_at = datetime.now(timezone.utc)

    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        message = f"Build timed out after {timeout} seconds: {cmd_str}"
        logger.error(message)
        raise BuildExecutionError(message, exit_code=-1, code="build_timeout") from e
    except OSError as e:
        message = f"Failed to execute build: {e}"
        logger.error(message)
        raise BuildExecutionError(message) from e

    finished_at = datetime.now(timezone.utc)
    logger.debug(
        "Command exited with %d after %.1fs",
        result.returncode,
        (finished_at - started_at).total_seconds(),
    )
    return CommandResult(
        exit_code=result.returncode,
        output=result.stdout or "",
        started_at=started_at,
        finished_at=finished_at,
    )


def make_runner(timeout: int | None = None) -> CommandRunner:
    """Bind a timeout into a CommandRunner."""

    def runner(args: list[str], cwd: Path) -> CommandResult:
        return run_command(args, cwd, timeout=timeout)

    return runner


__all__ = [
    "BuildExecutionError",
    "CommandResult",
    "CommandRunner",
    "WARNING_PATTERN",
    "make_runner",
    "parse_warnings",
    "run_command",
]
