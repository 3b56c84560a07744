"""Shared fixtures for apptoolkit tests."""

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from apptoolkit.builds.models import BuildType
from apptoolkit.config import Settings


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the user's environment, .env file and cache."""
    for name in list(os.environ):
        if name.startswith("APPTOOLKIT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("APPTOOLKIT_CACHE_DIR", str(tmp_path / "image_cache"))


@pytest.fixture
def project_dir(tmp_path) -> Path:
    """Create a project with two flavor entry points."""
    root = tmp_path / "project"
    (root / "lib").mkdir(parents=True)
    (root / "lib" / "main_dev.dart").write_text("void main() {}\n")
    (root / "lib" / "main_prod.dart").write_text("void main() {}\n")
    return root


@pytest.fixture
def build_settings(project_dir) -> Settings:
    """Settings pointing at the test project with a single prep command."""
    return Settings(
        project_dir=project_dir,
        prep_commands=["flutter pub get"],
        open_output=False,
    )


class FakeBuildTool:
    """Stand-in for subprocess.run that records commands.

    Build commands write a fake artifact into the build type's output
    directory. The build call numbered fail_on_build (1-based) exits 1.
    """

    def __init__(self, fail_on_build: int | None = None) -> None:
        self.fail_on_build = fail_on_build
        self.commands: list[list[str]] = []
        self.build_calls = 0

    def __call__(self, cmd, cwd=None, **kwargs):
        self.commands.append(list(cmd))
        if len(cmd) > 2 and cmd[1] == "build":
            self.build_calls += 1
            if self.build_calls == self.fail_on_build:
                return MagicMock(returncode=1)
            build_type = BuildType(cmd[2])
            out_dir = Path(cwd) / build_type.output_dir
            out_dir.mkdir(parents=True, exist_ok=True)
            (out_dir / f"app-release.{build_type.value}").write_bytes(
                f"artifact {' '.join(cmd)}".encode()
            )
        return MagicMock(returncode=0)

    @property
    def build_commands(self) -> list[list[str]]:
        return [c for c in self.commands if len(c) > 2 and c[1] == "build"]


@pytest.fixture
def fake_build_tool() -> FakeBuildTool:
    return FakeBuildTool()


@pytest.fixture
def make_build_tool():
    """Factory for FakeBuildTool with custom failure behavior."""
    return FakeBuildTool
