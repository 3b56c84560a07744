"""Output relocation and run manifests.

This module handles:
- Copying everything the build tool produced for a target into the
  target's directory inside the run
- Computing checksums of relocated artifacts
- Generating the run manifest
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from apptoolkit.builds.models import RunResult
from apptoolkit.builds.runner import ExternalCommandError
from apptoolkit.types import ArtifactInfo

logger = logging.getLogger(__name__)

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


def relocate_outputs(source_dir: Path, dest_dir: Path) -> list[Path]:
    """Copy every entry of the build tool's output directory into dest_dir.

    Files and subdirectories are copied recursively; dest_dir is created
    if needed.

    Args:
        source_dir: The build tool's output directory for a build type.
        dest_dir: Target directory inside the run.

    Returns:
        Copied top-level paths inside dest_dir.

    Raises:
        ExternalCommandError: If the build produced no output.
    """
    if not source_dir.is_dir() or not any(source_dir.iterdir()):
        raise ExternalCommandError(
            f"No build outputs found in {source_dir}",
            code="missing_outputs",
        )

    dest_dir.mkdir(parents=True, exist_ok=True)

    copied: list[Path] = []
    for entry in sorted(source_dir.iterdir()):
        dest = dest_dir / entry.name
        if entry.is_dir():
            shutil.copytree(entry, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(entry, dest)
        copied.append(dest)

    logger.info("Copied %d entries from %s to %s", len(copied), source_dir, dest_dir)
    return copied


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def discover_artifacts(target_dir: Path, run_root: Path) -> list[ArtifactInfo]:
    """List every file under a target directory with size and checksum.

    Args:
        target_dir: A target's directory inside the run.
        run_root: Run directory, used for relative paths.

    Returns:
        ArtifactInfo per file, sorted by path.
    """
    artifacts: list[ArtifactInfo] = []
    for path in sorted(target_dir.rglob("*")):
        if not path.is_file():
            continue
        artifacts.append(
            ArtifactInfo(
                filename=path.name,
                relative_path=path.relative_to(run_root).as_posix(),
                size_bytes=path.stat().st_size,
                sha256=compute_file_hash(path),
            )
        )
    return artifacts


def generate_manifest(run: RunResult) -> dict[str, Any]:
    """Generate the manifest of a run.

    Args:
        run: Completed run result.

    Returns:
        Manifest dictionary suitable for JSON serialization.
    """
    targets: list[dict[str, Any]] = []
    total_size = 0
    for result in run.targets:
        artifacts: list[ArtifactInfo] = []
        if result.output_dir is not None and result.output_dir.is_dir():
            artifacts = discover_artifacts(result.output_dir, run.root)
        total_size += sum(a.size_bytes for a in artifacts)
        targets.append(
            {
                "flavor": result.target.flavor_name,
                "build_type": result.target.build_type.value,
                "directory": result.target.dir_name,
                "status": result.status.value,
                "artifacts": [asdict(a) for a in artifacts],
            }
        )

    return {
        "version": "1.0",
        "timestamp": run.timestamp,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "targets": targets,
        "summary": {
            "total_targets": len(targets),
            "total_size_bytes": total_size,
        },
    }


def write_manifest(manifest: dict[str, Any], output_path: Path) -> Path:
    """Write manifest to a JSON file.

    Args:
        manifest: Manifest dictionary.
        output_path: Output file path.

    Returns:
        Path to written manifest file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)

    logger.info("Wrote manifest to %s", output_path)
    return output_path


__all__ = [
    "HASH_CHUNK_SIZE",
    "compute_file_hash",
    "discover_artifacts",
    "generate_manifest",
    "relocate_outputs",
    "write_manifest",
]
