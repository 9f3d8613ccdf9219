"""
Main entry point for extbuild.

This module sets up logging, loads the project configuration, declares the
build tasks and runs the task selected on the command line, translating the
outcome into the process exit status.
"""

import asyncio
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import override

from .config.manager import ConfigManager, ProjectPaths
from .orchestration import FailurePolicy
from .tasks import BuildTasks
from .utils.cli.args import ParsedArgs, format_task_list, parse_arguments
from .utils.core.exceptions import ConfigurationError, ExtBuildError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class CIFormatter(logging.Formatter):
    """Format warnings and errors as CI workflow annotations."""

    PREFIXES: dict[int, str] = {
        logging.DEBUG: "::debug::",
        logging.WARNING: "::warning::",
        logging.ERROR: "::error::",
        logging.CRITICAL: "::error::",
    }

    @override
    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        prefix = self.PREFIXES.get(record.levelno, "")
        # Annotations are single-line
        if prefix:
            message = message.replace("\n", "%0A")
        return f"{prefix}{message}"


def setup_logging(
    verbose: bool = False, ci_mode: bool = False, log_file: Path | None = None
) -> None:
    """
    Configure console logging and an optional rotating log file.

    Args:
        verbose: Log debug messages to the console
        ci_mode: Use CI annotations instead of timestamps on the console
        log_file: Path of a detailed log file, rotated at 10MB
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
    )
    console_formatter = (
        CIFormatter("%(message)s")
        if ci_mode
        else logging.Formatter("[%(asctime)s] %(message)s", datefmt="%H:%M:%S")
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

    # Set specific log levels for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


async def run_task(args: ParsedArgs) -> int:
    """
    Load the configuration and run the selected task.

    Returns:
        Process exit status
    """
    try:
        config = ConfigManager.load_config(args.config_file)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_FAILURE

    paths = ProjectPaths(args.project_dir, config)
    tasks = BuildTasks(
        config,
        paths,
        package_path=args.package_path,
        policy=FailurePolicy.FAIL_FAST,
    )

    logger.info(f"Using {args.config_file}")
    try:
        _ = await tasks.run(args.task)
    except ExtBuildError as e:
        logger.error(f"Task '{args.task}' failed: {e}")
        if e.__cause__ is not None and not isinstance(e.__cause__, ExtBuildError):
            logger.debug("Underlying error", exc_info=e.__cause__)
        return EXIT_FAILURE

    if tasks.graph.failed:
        return EXIT_FAILURE
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """
    Run extbuild with the given command-line arguments.

    Returns:
        0 on success, 1 when a task failed, 130 when interrupted
    """
    args = parse_arguments(argv)
    if args.list_tasks:
        print(format_task_list())
        return EXIT_OK

    setup_logging(verbose=args.verbose, ci_mode=args.ci_mode, log_file=args.log_file)

    try:
        return asyncio.run(run_task(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_FAILURE


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
