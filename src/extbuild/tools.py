"""
External command-line tools: the extension packager and the linter.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from .config.schema import ToolsConfig
from .utils.core.exceptions import ToolError
from .utils.core.globs import expand_globs

logger = logging.getLogger(__name__)


class ExternalTool:
    """A command run as a child process with its output sent to the log."""

    def __init__(self, command: Sequence[str], cwd: Path, name: str | None = None) -> None:
        if not command:
            raise ValueError("Tool command must not be empty")
        self.command: tuple[str, ...] = tuple(command)
        self.cwd: Path = cwd
        self.name: str = name or command[0]

    async def run(self, *args: str) -> int:
        """
        Run the command with extra arguments.

        Returns:
            The exit code, always 0

        Raises:
            ToolError: If the process cannot be started or exits non-zero
        """
        argv = [*self.command, *args]
        logger.debug(f"Running {' '.join(argv)} in {self.cwd}")
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=self.cwd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise ToolError(f"Cannot start {self.name}: {e}") from e

        assert process.stdout is not None
        async for raw_line in process.stdout:
            line = raw_line.decode("utf-8", errors="replace").rstrip()
            if line:
                logger.info(f"[{self.name}] {line}")

        returncode = await process.wait()
        if returncode != 0:
            raise ToolError(f"{self.name} exited with code {returncode}", returncode)
        return returncode


class Packager(ExternalTool):
    """The extension packaging tool (``vsce``)."""

    def __init__(self, config: ToolsConfig, cwd: Path) -> None:
        super().__init__(config.packager, cwd, name="vsce")

    async def package(self, package_path: str | None = None) -> None:
        """Create the extension archive, optionally at package_path."""
        args = ["package"]
        if package_path:
            args += ["--packagePath", package_path]
        _ = await self.run(*args)

    async def publish(self) -> None:
        _ = await self.run("publish")


class Linter(ExternalTool):
    """The source linter. Findings are reported, not fatal, unless configured."""

    def __init__(self, config: ToolsConfig, cwd: Path) -> None:
        super().__init__(config.linter, cwd, name="lint")
        self.fails_build: bool = config.lint_fails_build

    async def lint(self, globs: Sequence[str]) -> bool:
        """
        Lint the files matching globs.

        Returns:
            True if the linter reported no findings

        Raises:
            ToolError: If the linter failed and lint_fails_build is set
        """
        files = await asyncio.to_thread(expand_globs, self.cwd, globs)
        if not files:
            logger.warning(f"No files to lint for {', '.join(globs)}")
            return True

        relative = [str(path.relative_to(self.cwd)) for path in files]
        try:
            _ = await self.run(*relative)
        except ToolError as e:
            if self.fails_build:
                raise
            logger.warning(f"Lint reported problems: {e}")
            return False
        logger.info(f"Linted {len(relative)} file(s)")
        return True
