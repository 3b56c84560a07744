"""Models for the build matrix.

Defines the build types the runner knows about, flavors, the typed matrix
configuration assembled by the input providers, and the per-target and
per-run results.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from itertools import product
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from apptoolkit.types import TargetStatus

# Label used in place of a flavor name when the flavor dimension is skipped
NO_FLAVOR = "no-flavor"

# Flavor names end up in directory names, so keep them filesystem-safe
FLAVOR_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.\-]+$")


class BuildType(str, Enum):
    """Package type produced by the build tool."""

    APK = "apk"
    APPBUNDLE = "appbundle"
    IPA = "ipa"

    @property
    def output_dir(self) -> Path:
        """Directory (relative to the project) the build tool writes to."""
        return _OUTPUT_DIRS[self]

    @property
    def extra_flags(self) -> list[str]:
        """Additional build tool flags for this type."""
        return list(_EXTRA_FLAGS.get(self, ()))


_OUTPUT_DIRS: dict[BuildType, Path] = {
    BuildType.APK: Path("build/app/outputs/flutter-apk"),
    BuildType.APPBUNDLE: Path("build/app/outputs/bundle"),
    BuildType.IPA: Path("build/ios/ipa"),
}

_EXTRA_FLAGS: dict[BuildType, tuple[str, ...]] = {
    BuildType.APK: ("--split-per-abi",),
}


class Flavor(BaseModel):
    """A product flavor and its entry point.

    Attributes:
        name: Flavor name passed to the build tool.
        entry_point: Path of the flavor's main file, relative to the project.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1, description="Flavor name")
    entry_point: str = Field(min_length=1, description="Entry point path")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the flavor name is usable in a directory name."""
        if not FLAVOR_NAME_PATTERN.match(v):
            raise ValueError(
                f"flavor name must match {FLAVOR_NAME_PATTERN.pattern}, got '{v}'"
            )
        if v == NO_FLAVOR:
            raise ValueError(f"'{NO_FLAVOR}' is reserved")
        return v


@dataclass(frozen=True)
class BuildTarget:
    """One (flavor, build type) cell of the matrix."""

    build_type: BuildType
    flavor: Flavor | None = None

    @property
    def flavor_name(self) -> str:
        return self.flavor.name if self.flavor is not None else NO_FLAVOR

    @property
    def label(self) -> str:
        return f"{self.flavor_name}-{self.build_type.value}"

    @property
    def dir_name(self) -> str:
        """Name of the target's output directory inside a run."""
        return f"[{self.label}]"


class BuildMatrix(BaseModel):
    """Resolved build configuration, independent of where it came from.

    Attributes:
        flavors: Flavors to build (ignored when use_flavors is False).
        build_types: Build types to produce for every flavor.
        use_flavors: Whether the flavor dimension is used at all.
    """

    model_config = ConfigDict(extra="forbid")

    flavors: list[Flavor] = Field(default_factory=list)
    build_types: list[BuildType] = Field(min_length=1)
    use_flavors: bool = True

    @field_validator("build_types")
    @classmethod
    def dedupe_build_types(cls, v: list[BuildType]) -> list[BuildType]:
        """Drop repeated build types, keeping first-selection order."""
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def validate_flavors(self) -> BuildMatrix:
        """Require at least one flavor, with unique names, when flavors are used."""
        if not self.use_flavors:
            return self
        if not self.flavors:
            raise ValueError("at least one flavor is required")
        names = [f.name for f in self.flavors]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate flavor names: {', '.join(duplicates)}")
        return self

    def targets(self) -> list[BuildTarget]:
        """Expand the matrix into targets, flavor-major.

        Returns:
            One target per (flavor, build type); one per build type when
            flavors are not used.
        """
        if not self.use_flavors:
            return [BuildTarget(build_type=bt) for bt in self.build_types]
        return [
            BuildTarget(build_type=bt, flavor=flavor)
            for flavor, bt in product(self.flavors, self.build_types)
        ]


@dataclass
class TargetResult:
    """Outcome of building and relocating one target."""

    target: BuildTarget
    status: TargetStatus
    output_dir: Path | None = None
    artifacts: list[Path] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_message: str | None = None

    @property
    def success(self) -> bool:
        return self.status == TargetStatus.SUCCEEDED


@dataclass
class RunResult:
    """Outcome of a whole matrix run.

    Attributes:
        timestamp: Run identifier, captured once at start.
        root: Run output directory (builds/<timestamp>).
        log_path: Log file capturing every external command's output.
        targets: Results in execution order.
        manifest_path: Manifest written at the end of a complete run.
    """

    timestamp: str
    root: Path
    log_path: Path
    targets: list[TargetResult] = field(default_factory=list)
    manifest_path: Path | None = None

    @property
    def success(self) -> bool:
        return all(t.success for t in self.targets)


__all__ = [
    "FLAVOR_NAME_PATTERN",
    "NO_FLAVOR",
    "BuildMatrix",
    "BuildTarget",
    "BuildType",
    "Flavor",
    "RunResult",
    "TargetResult",
]
