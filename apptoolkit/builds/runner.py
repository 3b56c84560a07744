"""Build tool runner.

This module handles:
- Composing the preparation commands (clean, fetch dependencies, codegen)
- Composing one build command per matrix target
- Executing commands with subprocess and capturing output to the run log
- Turning any non-zero exit into ExternalCommandError (fail fast)

Commands run synchronously with no timeout: a hung build blocks the run.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from apptoolkit.builds.models import BuildTarget, RunResult

if TYPE_CHECKING:
    from apptoolkit.config import Settings

logger = logging.getLogger(__name__)

CODEGEN_COMMAND = "dart run build_runner build --delete-conflicting-outputs"


class ExternalCommandError(Exception):
    """Raised when an external command fails; aborts the whole run."""

    def __init__(
        self,
        message: str,
        command: str | None = None,
        exit_code: int | None = None,
        log_path: Path | None = None,
        code: str = "command_failed",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.log_path = log_path
        self.code = code
        self.run_result: RunResult | None = None


def compose_prep_commands(settings: Settings) -> list[list[str]]:
    """Compose the commands run once before any target is built.

    Args:
        settings: Application settings.

    Returns:
        Commands as argv lists, in execution order.
    """
    commands = [shlex.split(cmd) for cmd in settings.prep_commands if cmd.strip()]
    if settings.run_codegen:
        commands.append(shlex.split(CODEGEN_COMMAND))
    return commands


def compose_build_command(target: BuildTarget, tool: str = "flutter") -> list[str]:
    """Compose the build command for one target.

    Args:
        target: Matrix target.
        tool: Build tool executable.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [tool, "build", target.build_type.value]

    if target.flavor is not None:
        cmd.extend(["--flavor", target.flavor.name, "-t", target.flavor.entry_point])

    cmd.extend(target.build_type.extra_flags)
    return cmd


def run_command(
    cmd: list[str],
    cwd: Path,
    log_path: Path | None = None,
) -> None:
    """Execute an external command, failing fast on error.

    When log_path is given, stdout and stderr are appended to it together
    with a header and a trailer; otherwise output goes to the terminal.

    Args:
        cmd: Command as argv list.
        cwd: Working directory.
        log_path: Optional log file to append output to.

    Raises:
        ExternalCommandError: If the command cannot start or exits non-zero.
    """
    cmd_str = shlex.join(cmd)
    logger.info("Executing: %s", cmd_str)

    started_at = datetime.now(timezone.utc)

    try:
        if log_path is None:
            result = subprocess.run(cmd, cwd=cwd, check=False)
        else:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with log_path.open("a") as log_file:
                log_file.write(f"# Command: {cmd_str}\n")
                log_file.write(f"# Started: {started_at.isoformat()}\n")
                log_file.write(f"# CWD: {cwd}\n")
                log_file.write("# " + "=" * 70 + "\n\n")
                log_file.flush()

                result = subprocess.run(
                    cmd,
                    cwd=cwd,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    check=False,
                )
    except OSError as e:
        message = f"Failed to execute {cmd_str}: {e}"
        logger.error(message)
        raise ExternalCommandError(
            message,
            command=cmd_str,
            log_path=log_path,
            code="execution_error",
        ) from e

    exit_code = result.returncode
    finished_at = datetime.now(timezone.utc)

    if log_path is not None:
        with log_path.open("a") as log_file:
            log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
            log_file.write(f"# Exit code: {exit_code}\n")
            duration = (finished_at - started_at).total_seconds()
            log_file.write(f"# Duration: {duration:.1f}s\n\n")

    if exit_code != 0:
        message = f"Command failed with exit code {exit_code}: {cmd_str}"
        logger.error(message)
        raise ExternalCommandError(
            message,
            command=cmd_str,
            exit_code=exit_code,
            log_path=log_path,
        )


def read_log_tail(log_path: Path, lines: int = 40) -> str:
    """Return the last lines of a run log (empty if it does not exist)."""
    if not log_path.exists():
        return ""
    content = log_path.read_text(errors="replace").splitlines()
    return "\n".join(content[-lines:])


__all__ = [
    "CODEGEN_COMMAND",
    "ExternalCommandError",
    "compose_build_command",
    "compose_prep_commands",
    "read_log_tail",
    "run_command",
]
