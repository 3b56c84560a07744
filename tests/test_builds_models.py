"""Tests for builds/models.py module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from apptoolkit.builds.models import (
    NO_FLAVOR,
    BuildMatrix,
    BuildTarget,
    BuildType,
    Flavor,
    RunResult,
    TargetResult,
)
from apptoolkit.types import TargetStatus

DEV = Flavor(name="dev", entry_point="lib/main_dev.dart")
PROD = Flavor(name="prod", entry_point="lib/main_prod.dart")


class TestBuildType:
    """Tests for BuildType enum."""

    def test_output_dirs(self):
        assert BuildType.APK.output_dir == Path("build/app/outputs/flutter-apk")
        assert BuildType.APPBUNDLE.output_dir == Path("build/app/outputs/bundle")
        assert BuildType.IPA.output_dir == Path("build/ios/ipa")

    def test_extra_flags(self):
        """Only APK builds split per ABI."""
        assert BuildType.APK.extra_flags == ["--split-per-abi"]
        assert BuildType.APPBUNDLE.extra_flags == []
        assert BuildType.IPA.extra_flags == []

    def test_from_string(self):
        assert BuildType("appbundle") is BuildType.APPBUNDLE


class TestFlavor:
    """Tests for Flavor model."""

    def test_valid(self):
        assert DEV.name == "dev"
        assert DEV.entry_point == "lib/main_dev.dart"

    @pytest.mark.parametrize("name", ["", "my flavor", "a/b", "dev!"])
    def test_invalid_name(self, name):
        """Names must be usable in directory names."""
        with pytest.raises(ValidationError):
            Flavor(name=name, entry_point="lib/main.dart")

    def test_reserved_name(self):
        with pytest.raises(ValidationError):
            Flavor(name=NO_FLAVOR, entry_point="lib/main.dart")

    def test_frozen(self):
        with pytest.raises(ValidationError):
            DEV.name = "other"


class TestBuildTarget:
    """Tests for BuildTarget."""

    def test_label_with_flavor(self):
        target = BuildTarget(build_type=BuildType.APK, flavor=DEV)
        assert target.flavor_name == "dev"
        assert target.label == "dev-apk"
        assert target.dir_name == "[dev-apk]"

    def test_label_without_flavor(self):
        target = BuildTarget(build_type=BuildType.IPA)
        assert target.flavor_name == NO_FLAVOR
        assert target.dir_name == "[no-flavor-ipa]"


class TestBuildMatrix:
    """Tests for BuildMatrix model."""

    def test_targets_flavor_major(self):
        """Targets are ordered by flavor, then by build type."""
        matrix = BuildMatrix(
            flavors=[DEV, PROD],
            build_types=[BuildType.APK, BuildType.APPBUNDLE],
        )

        labels = [t.label for t in matrix.targets()]

        assert labels == ["dev-apk", "dev-appbundle", "prod-apk", "prod-appbundle"]

    def test_targets_without_flavors(self):
        """One target per build type when flavors are skipped."""
        matrix = BuildMatrix(
            flavors=[DEV],
            build_types=[BuildType.APK, BuildType.IPA],
            use_flavors=False,
        )

        targets = matrix.targets()

        assert [t.dir_name for t in targets] == ["[no-flavor-apk]", "[no-flavor-ipa]"]
        assert all(t.flavor is None for t in targets)

    def test_dedupes_build_types(self):
        matrix = BuildMatrix(
            flavors=[DEV],
            build_types=[BuildType.IPA, BuildType.APK, BuildType.IPA],
        )
        assert matrix.build_types == [BuildType.IPA, BuildType.APK]

    def test_requires_build_type(self):
        with pytest.raises(ValidationError):
            BuildMatrix(flavors=[DEV], build_types=[])

    def test_requires_flavor(self):
        with pytest.raises(ValidationError):
            BuildMatrix(flavors=[], build_types=[BuildType.APK])

    def test_no_flavor_mode_allows_empty_flavors(self):
        matrix = BuildMatrix(build_types=[BuildType.APK], use_flavors=False)
        assert len(matrix.targets()) == 1

    def test_duplicate_flavor_names(self):
        with pytest.raises(ValidationError, match="duplicate"):
            BuildMatrix(
                flavors=[DEV, Flavor(name="dev", entry_point="lib/other.dart")],
                build_types=[BuildType.APK],
            )


class TestResults:
    """Tests for TargetResult and RunResult."""

    def test_run_success(self, tmp_path):
        target = BuildTarget(build_type=BuildType.APK, flavor=DEV)
        run = RunResult(timestamp="t", root=tmp_path, log_path=tmp_path / "build.log")
        run.targets.append(TargetResult(target=target, status=TargetStatus.SUCCEEDED))
        assert run.success

        run.targets.append(TargetResult(target=target, status=TargetStatus.FAILED))
        assert not run.success
        assert not run.targets[-1].success
