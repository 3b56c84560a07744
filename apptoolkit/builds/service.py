"""Build matrix service module.

This module orchestrates one release run:
- BuildRun.start(): capture the run timestamp and output root once
- run_matrix(): prepare the project once, then build and relocate every
  (flavor, build type) target in order

The build tool's output directories are not emptied between targets, and
everything found there is copied. A later flavor's target directory can
therefore also contain files an earlier flavor left behind, for example
app-dev-release.apk next to app-prod-release.apk in [prod-apk]. Select
artifacts by flavor name when publishing.

Runs are fail fast: the first failing external command aborts the loop and
propagates. Targets already relocated keep their directories; nothing is
created for the failing target or the ones after it. A run directory from
an interrupted or failed run should not be trusted as a complete release.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from apptoolkit.builds.artifacts import (
    generate_manifest,
    relocate_outputs,
    write_manifest,
)
from apptoolkit.builds.models import BuildMatrix, BuildTarget, RunResult, TargetResult
from apptoolkit.builds.runner import (
    ExternalCommandError,
    compose_build_command,
    compose_prep_commands,
    run_command,
)
from apptoolkit.types import TargetStatus

if TYPE_CHECKING:
    from apptoolkit.config import Settings

logger = logging.getLogger(__name__)

# Run directory name format, e.g. 2024-05-01:13:45:09
TIMESTAMP_FORMAT = "%Y-%m-%d:%H:%M:%S"

LOG_FILENAME = "build.log"
MANIFEST_FILENAME = "manifest.json"


@dataclass
class BuildRun:
    """Identity and output root of one matrix run.

    Attributes:
        timestamp: Run identifier captured once at start.
        root: builds/<timestamp> directory.
    """

    timestamp: str
    root: Path

    @classmethod
    def start(cls, builds_root: Path, now: datetime | None = None) -> BuildRun:
        """Capture the run timestamp and derive the run directory.

        Args:
            builds_root: Parent directory of all runs.
            now: Start time (defaults to the current local time).

        Returns:
            BuildRun for this invocation.
        """
        if now is None:
            now = datetime.now()
        timestamp = now.strftime(TIMESTAMP_FORMAT)
        return cls(timestamp=timestamp, root=builds_root / timestamp)

    @property
    def log_path(self) -> Path:
        return self.root / LOG_FILENAME

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILENAME

    def target_dir(self, target: BuildTarget) -> Path:
        """Return the output directory for a target: root/[<flavor>-<type>]."""
        return self.root / target.dir_name


def prepare_project(settings: Settings, run: BuildRun) -> None:
    """Run the clean/dependency commands once for the whole run.

    Raises:
        ExternalCommandError: If any preparation command fails.
    """
    commands = compose_prep_commands(settings)
    logger.info("Preparing project (%d commands)", len(commands))
    for cmd in commands:
        run_command(cmd, cwd=settings.project_dir, log_path=run.log_path)


def build_target(settings: Settings, run: BuildRun, target: BuildTarget) -> TargetResult:
    """Invoke the build tool for a target and relocate its outputs.

    Raises:
        ExternalCommandError: If the build fails or produced no outputs.
    """
    started_at = datetime.now(timezone.utc)

    cmd = compose_build_command(target, tool=settings.build_tool)
    run_command(cmd, cwd=settings.project_dir, log_path=run.log_path)

    source_dir = settings.project_dir / target.build_type.output_dir
    output_dir = run.target_dir(target)
    artifacts = relocate_outputs(source_dir, output_dir)

    return TargetResult(
        target=target,
        status=TargetStatus.SUCCEEDED,
        output_dir=output_dir,
        artifacts=artifacts,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )


def run_matrix(
    matrix: BuildMatrix,
    settings: Settings,
    run: BuildRun | None = None,
    on_target_done: Callable[[TargetResult], None] | None = None,
) -> RunResult:
    """Build every target of the matrix, sequentially.

    Args:
        matrix: Resolved build matrix.
        settings: Application settings (project dir, tool, prep commands).
        run: Run identity; started now under settings' builds dir if omitted.
        on_target_done: Called after each target is relocated.

    Returns:
        RunResult with one TargetResult per target.

    Raises:
        ExternalCommandError: On the first failing command. The partial
            result is attached as run_result.
    """
    if run is None:
        run = BuildRun.start(settings.resolved_builds_dir())
    run.root.mkdir(parents=True, exist_ok=True)

    result = RunResult(timestamp=run.timestamp, root=run.root, log_path=run.log_path)
    targets = matrix.targets()
    logger.info("Starting run %s with %d targets", run.timestamp, len(targets))

    try:
        prepare_project(settings, run)

        for target in targets:
            logger.info("Building %s", target.label)
            try:
                target_result = build_target(settings, run, target)
            except ExternalCommandError as e:
                result.targets.append(
                    TargetResult(
                        target=target,
                        status=TargetStatus.FAILED,
                        error_message=str(e),
                    )
                )
                raise

            result.targets.append(target_result)
            if on_target_done is not None:
                on_target_done(target_result)
    except ExternalCommandError as e:
        e.run_result = result
        if e.log_path is None:
            e.log_path = run.log_path
        raise

    manifest = generate_manifest(result)
    result.manifest_path = write_manifest(manifest, run.manifest_path)

    logger.info("Run %s completed: %d targets", run.timestamp, len(result.targets))
    return result


__all__ = [
    "LOG_FILENAME",
    "MANIFEST_FILENAME",
    "TIMESTAMP_FORMAT",
    "BuildRun",
    "build_target",
    "prepare_project",
    "run_matrix",
]
