"""Tests for command-line argument parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from extbuild.tasks import TASK_DESCRIPTIONS
from extbuild.utils.cli.args import (
    DefaultPaths,
    PathValidationError,
    format_task_list,
    parse_arguments,
    validate_config_file_path,
    validate_project_dir,
)


class TestParseArguments:
    """Test cases for parse_arguments."""

    def test_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)

        args = parse_arguments([])

        assert args.task == "build"
        assert args.project_dir == tmp_path.resolve()
        assert args.config_file == tmp_path.resolve() / DefaultPaths.CONFIG_FILE
        assert args.package_path is None
        assert args.verbose is False
        assert args.ci_mode is False
        assert args.log_file is None
        assert args.list_tasks is False

    def test_task_and_options(self, tmp_path: Path) -> None:
        args = parse_arguments(
            [
                "vsce-package",
                "--project-dir",
                str(tmp_path),
                "--config-file",
                "ci/extbuild.yml",
                "--packagePath",
                "dist/ext.vsix",
                "--ci-mode",
                "-v",
            ]
        )

        assert args.task == "vsce-package"
        assert args.config_file == tmp_path.resolve() / "ci" / "extbuild.yml"
        assert args.package_path == "dist/ext.vsix"
        assert args.ci_mode is True
        assert args.verbose is True

    def test_package_path_alias(self, tmp_path: Path) -> None:
        args = parse_arguments(["package", "--project-dir", str(tmp_path), "--package-path", "a.vsix"])
        assert args.package_path == "a.vsix"

    def test_unknown_task(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _ = parse_arguments(["deploy", "--project-dir", str(tmp_path)])
        assert exc_info.value.code == 2

    def test_missing_project_dir(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _ = parse_arguments(["--project-dir", str(tmp_path / "missing")])

        assert exc_info.value.code == 1
        assert "does not exist" in capsys.readouterr().err


class TestPathValidation:
    """Test cases for the path helpers."""

    def test_project_dir_must_be_directory(self, tmp_path: Path) -> None:
        file_path = tmp_path / "file.txt"
        _ = file_path.write_text("", encoding="utf-8")
        with pytest.raises(PathValidationError):
            _ = validate_project_dir(str(file_path))

    def test_absolute_config_file_kept(self, tmp_path: Path) -> None:
        config_file = tmp_path / "elsewhere" / "build.yml"
        assert validate_config_file_path(str(config_file), tmp_path) == config_file.resolve()

    def test_config_file_is_directory(self, tmp_path: Path) -> None:
        (tmp_path / "conf").mkdir()
        with pytest.raises(PathValidationError, match="not a file"):
            _ = validate_config_file_path("conf", tmp_path)


class TestTaskList:
    """Test cases for the task listing."""

    def test_every_task_listed(self) -> None:
        listing = format_task_list()
        for name in TASK_DESCRIPTIONS:
            assert f"  {name} " in listing
