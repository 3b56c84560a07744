"""Shared type definitions for apptoolkit.

This module contains dataclasses and enums shared across subpackages
to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum


class TargetStatus(str, Enum):
    """Status of a single build target within a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class ArtifactInfo:
    """Information about a relocated build artifact."""

    filename: str
    relative_path: str
    size_bytes: int
    sha256: str


__all__ = [
    "ArtifactInfo",
    "TargetStatus",
]
