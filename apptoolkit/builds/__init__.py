"""Build matrix module.

This module handles:
- Resolving the flavor and build type matrix (defaults, file, prompts)
- Preparing the project once per run
- Running the build tool per target, failing fast
- Relocating outputs into builds/<timestamp>/[<flavor>-<type>]/
"""

from apptoolkit.builds.models import (
    BuildMatrix,
    BuildTarget,
    BuildType,
    Flavor,
    RunResult,
    TargetResult,
)

__all__ = [
    "BuildMatrix",
    "BuildTarget",
    "BuildType",
    "Flavor",
    "RunResult",
    "TargetResult",
]

# Lazy imports for submodules to avoid circular imports
# Access via apptoolkit.builds.service, apptoolkit.builds.inputs, etc.
