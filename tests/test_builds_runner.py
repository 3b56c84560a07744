"""Tests for builds/runner.py module.

Tests command composition and execution.
Uses mocked subprocess for execution tests.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from apptoolkit.builds.models import BuildTarget, BuildType, Flavor
from apptoolkit.builds.runner import (
    CODEGEN_COMMAND,
    ExternalCommandError,
    compose_build_command,
    compose_prep_commands,
    read_log_tail,
    run_command,
)
from apptoolkit.config import Settings

DEV = Flavor(name="dev", entry_point="lib/main_dev.dart")


class TestComposePrepCommands:
    """Tests for compose_prep_commands function."""

    def test_default_commands(self):
        """Should clean and fetch dependencies by default."""
        commands = compose_prep_commands(Settings())

        assert commands == [
            ["flutter", "clean"],
            ["flutter", "pub", "get"],
            ["dart", "pub", "get"],
        ]

    def test_codegen_appended(self):
        """Should run the code generator last when enabled."""
        commands = compose_prep_commands(Settings(run_codegen=True))

        assert commands[-1] == CODEGEN_COMMAND.split()
        assert "--delete-conflicting-outputs" in commands[-1]

    def test_blank_commands_skipped(self):
        commands = compose_prep_commands(Settings(prep_commands=["", "  ", "make deps"]))
        assert commands == [["make", "deps"]]

    def test_quoted_arguments(self):
        commands = compose_prep_commands(
            Settings(prep_commands=["sh -c 'echo hello world'"])
        )
        assert commands == [["sh", "-c", "echo hello world"]]


class TestComposeBuildCommand:
    """Tests for compose_build_command function."""

    def test_flavored_apk(self):
        """APK builds pass the flavor, entry point and ABI split flag."""
        cmd = compose_build_command(BuildTarget(BuildType.APK, DEV))

        assert cmd == [
            "flutter",
            "build",
            "apk",
            "--flavor",
            "dev",
            "-t",
            "lib/main_dev.dart",
            "--split-per-abi",
        ]

    def test_flavored_appbundle(self):
        cmd = compose_build_command(BuildTarget(BuildType.APPBUNDLE, DEV))

        assert cmd == [
            "flutter",
            "build",
            "appbundle",
            "--flavor",
            "dev",
            "-t",
            "lib/main_dev.dart",
        ]

    def test_no_flavor(self):
        """Without a flavor only the build type is passed."""
        assert compose_build_command(BuildTarget(BuildType.IPA)) == [
            "flutter",
            "build",
            "ipa",
        ]

    def test_custom_tool(self):
        cmd = compose_build_command(BuildTarget(BuildType.IPA), tool="/opt/flutter/bin/flutter")
        assert cmd[0] == "/opt/flutter/bin/flutter"


class TestRunCommand:
    """Tests for run_command function."""

    def test_success_writes_log(self, tmp_path):
        """Should append a header and trailer around the command output."""
        log_path = tmp_path / "run" / "build.log"

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0)
            run_command(["flutter", "pub", "get"], cwd=tmp_path, log_path=log_path)

        content = log_path.read_text()
        assert "# Command: flutter pub get" in content
        assert f"# CWD: {tmp_path}" in content
        assert "# Exit code: 0" in content
        assert "# Duration:" in content

        kwargs = mock_run.call_args.kwargs
        assert kwargs["cwd"] == tmp_path
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["check"] is False

    def test_log_is_appended(self, tmp_path):
        """Output of several commands accumulates in one log."""
        log_path = tmp_path / "build.log"

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0)
            run_command(["flutter", "clean"], cwd=tmp_path, log_path=log_path)
            run_command(["flutter", "pub", "get"], cwd=tmp_path, log_path=log_path)

        content = log_path.read_text()
        assert content.index("flutter clean") < content.index("flutter pub get")
        assert content.count("# Exit code: 0") == 2

    def test_without_log(self, tmp_path):
        """Output goes to the terminal when no log is given."""
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0)
            run_command(["flutter", "clean"], cwd=tmp_path)

        assert "stdout" not in mock_run.call_args.kwargs

    def test_non_zero_exit(self, tmp_path):
        """Should raise ExternalCommandError on non-zero exit."""
        log_path = tmp_path / "build.log"

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=2)
            with pytest.raises(ExternalCommandError) as exc_info:
                run_command(["flutter", "build", "ipa"], cwd=tmp_path, log_path=log_path)

        err = exc_info.value
        assert err.code == "command_failed"
        assert err.exit_code == 2
        assert err.command == "flutter build ipa"
        assert err.log_path == log_path
        assert "# Exit code: 2" in log_path.read_text()

    def test_missing_executable(self, tmp_path):
        """Should raise ExternalCommandError when the tool cannot start."""
        with patch("subprocess.run", side_effect=FileNotFoundError("flutter")):
            with pytest.raises(ExternalCommandError) as exc_info:
                run_command(["flutter", "clean"], cwd=tmp_path, log_path=tmp_path / "b.log")

        assert exc_info.value.code == "execution_error"
        assert exc_info.value.exit_code is None


class TestReadLogTail:
    """Tests for read_log_tail function."""

    def test_tail(self, tmp_path):
        log_path = tmp_path / "build.log"
        log_path.write_text("\n".join(f"line {i}" for i in range(100)))

        tail = read_log_tail(log_path, lines=3)

        assert tail == "line 97\nline 98\nline 99"

    def test_missing_log(self, tmp_path):
        assert read_log_tail(tmp_path / "missing.log") == ""
