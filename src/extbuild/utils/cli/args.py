"""
Command-line argument parsing for extbuild.

This module parses the task to run and the options that locate the project
and its configuration file.
"""

import argparse
import sys
from pathlib import Path
from typing import NamedTuple

from ...tasks import TASK_DESCRIPTIONS
from ..core.version import get_version


class PathValidationError(Exception):
    """Raised when a path validation fails."""

    pass


class ParsedArgs(NamedTuple):
    """Container for parsed command-line arguments."""

    task: str
    config_file: Path
    project_dir: Path
    package_path: str | None
    verbose: bool
    ci_mode: bool
    log_file: Path | None
    list_tasks: bool


class DefaultPaths:
    """Default paths for extbuild."""

    CONFIG_FILE: Path = Path("extbuild.yml")
    PROJECT_DIR: Path = Path(".")


def validate_project_dir(path_str: str) -> Path:
    """
    Validate and resolve the project directory.

    Args:
        path_str: String representation of the directory

    Returns:
        Resolved absolute path to the project

    Raises:
        PathValidationError: If the path is not an existing directory
    """
    try:
        path = Path(path_str).expanduser().resolve()
    except (OSError, ValueError) as e:
        raise PathValidationError(f"Invalid project directory: {e}") from e

    if not path.is_dir():
        raise PathValidationError(f"Project directory does not exist: {path}")
    return path


def validate_config_file_path(config_file_str: str | None, project_dir: Path) -> Path:
    """
    Validate the configuration file path.

    A relative path is taken relative to the project directory.

    Raises:
        PathValidationError: If the path exists but is a directory
    """
    if not config_file_str:
        return project_dir / DefaultPaths.CONFIG_FILE

    config_file = Path(config_file_str).expanduser()
    if not config_file.is_absolute():
        config_file = project_dir / config_file
    config_file = config_file.resolve()

    if config_file.exists() and config_file.is_dir():
        raise PathValidationError(
            f"Config file path exists but is not a file: {config_file}"
        )
    return config_file


def format_task_list() -> str:
    width = max(len(name) for name in TASK_DESCRIPTIONS)
    return "\n".join(
        f"  {name.ljust(width)}  {description}"
        for name, description in TASK_DESCRIPTIONS.items()
    )


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for extbuild.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="extbuild",
        description="Build, localize and package an editor extension",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Tasks:
{format_task_list()}

Examples:
  extbuild
    Run the full build

  extbuild package --packagePath dist/extension.vsix
    Verify dependencies, build, localize the manifest and create the archive

  extbuild --ci-mode transifex-pull
    Download translations with annotations for CI logs
""",
    )

    _ = parser.add_argument(
        "task",
        nargs="?",
        default="build",
        choices=list(TASK_DESCRIPTIONS),
        metavar="TASK",
        help="Task to run (default: %(default)s)",
    )

    _ = parser.add_argument(
        "--config-file",
        type=str,
        default=None,
        help=f"Path to the configuration file (default: <project-dir>/{DefaultPaths.CONFIG_FILE})",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "--project-dir",
        type=str,
        default=str(DefaultPaths.PROJECT_DIR),
        help="Root directory of the extension project (default: current directory)",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "--packagePath",
        "--package-path",
        dest="package_path",
        type=str,
        default=None,
        help="Where vsce-package writes the extension archive",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug messages"
    )

    _ = parser.add_argument(
        "--ci-mode",
        action="store_true",
        help="Prefix warnings and errors with CI workflow annotations",
    )

    _ = parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write a detailed, rotated log to this file",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "--list-tasks", action="store_true", help="List the available tasks and exit"
    )

    _ = parser.add_argument(
        "--version", action="version", version=f"%(prog)s {get_version()}"
    )

    return parser


def parse_arguments(args: list[str] | None = None) -> ParsedArgs:
    """
    Parse command-line arguments.

    Args:
        args: List of arguments to parse (defaults to sys.argv[1:])

    Returns:
        ParsedArgs containing the task and resolved paths

    Raises:
        SystemExit: If argument parsing fails or --help is requested
    """
    parser = create_argument_parser()
    parsed = parser.parse_args(args)

    task: str = getattr(parsed, "task", "build")
    project_dir_str: str = getattr(parsed, "project_dir", ".")
    config_file_str: str | None = getattr(parsed, "config_file", None)
    log_file_str: str | None = getattr(parsed, "log_file", None)

    try:
        project_dir = validate_project_dir(project_dir_str)
        config_file = validate_config_file_path(config_file_str, project_dir)
    except PathValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    return ParsedArgs(
        task=task,
        config_file=config_file,
        project_dir=project_dir,
        package_path=getattr(parsed, "package_path", None),
        verbose=bool(getattr(parsed, "verbose", False)),
        ci_mode=bool(getattr(parsed, "ci_mode", False)),
        log_file=Path(log_file_str).expanduser().resolve() if log_file_str else None,
        list_tasks=bool(getattr(parsed, "list_tasks", False)),
    )
