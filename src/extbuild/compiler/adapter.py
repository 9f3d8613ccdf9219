"""
Source compiler adapter.

The adapter reads the project configuration once, builds its compiler backend
lazily on the first compile, and yields CompiledUnits one file at a time.
Compile failures are recorded instead of raised so the rest of the project
is still emitted.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import shutil
import tempfile
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Protocol, override

from ..config.schema import CompilerConfig
from ..units import CompiledUnit
from ..utils.core.exceptions import CompileError, ConfigurationError
from ..utils.core.globs import expand_globs

logger = logging.getLogger(__name__)

_JSON_COMMENT = re.compile(
    r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL
)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def _strip_json_comments(text: str) -> str:
    """Remove // and /* */ comments and trailing commas, leaving strings intact."""
    without_comments = _JSON_COMMENT.sub(lambda m: m.group(1) or "", text)
    return _TRAILING_COMMA.sub(r"\1", without_comments)


@dataclass(frozen=True)
class ProjectConfig:
    """The parts of a tsconfig-style project file the adapter needs."""

    project_dir: Path
    root_dir: str = "src"
    source_map: bool = False
    include: tuple[str, ...] = ("src/**/*.ts",)
    exclude: tuple[str, ...] = ()

    @property
    def source_root(self) -> Path:
        return self.project_dir / self.root_dir

    @classmethod
    def load(cls, path: Path) -> ProjectConfig:
        """
        Read a project configuration file.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read project configuration {path}: {e}", context=path
            ) from e

        try:
            data: object = json.loads(_strip_json_comments(raw))  # pyright: ignore[reportAny]
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid project configuration {path}: {e}", context=path
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Project configuration {path} must be a JSON object", context=path
            )

        options = data.get("compilerOptions") or {}
        if not isinstance(options, dict):
            raise ConfigurationError(
                f"compilerOptions in {path} must be an object", context=path
            )

        root_dir = PurePosixPath(str(options.get("rootDir", "src"))).as_posix()
        include = data.get("include") or [f"{root_dir}/**/*.ts"]
        exclude = data.get("exclude") or []
        return cls(
            project_dir=path.parent.resolve(),
            root_dir=root_dir,
            source_map=bool(options.get("sourceMap", False)),
            include=tuple(str(p) for p in include),
            exclude=tuple(str(p) for p in exclude),
        )


@dataclass(frozen=True)
class CompiledOutput:
    """Raw output of a backend for one source file."""

    contents: str
    source_map: str | None = None


class CompilerBackend(Protocol):
    """External compiler invoked once per source file."""

    async def compile_file(self, source: Path, output: PurePosixPath) -> CompiledOutput:
        """Compile source; output is the path relative to the output root."""
        ...


class CopyCompilerBackend:
    """Identity compiler for sources that need no transformation."""

    async def compile_file(self, source: Path, output: PurePosixPath) -> CompiledOutput:
        try:
            contents = await asyncio.to_thread(source.read_text, encoding="utf-8")
        except OSError as e:
            raise CompileError(f"Cannot read {source}: {e}", source=source) from e
        return CompiledOutput(contents=contents)


class CommandCompilerBackend:
    """
    Run an external compiler command per file.

    ``{source}`` and ``{output}`` in the command are replaced with the source
    path and a temporary output path. A ``<output>.map`` written next to the
    output is picked up as the source map.
    """

    def __init__(self, command: Sequence[str], source_map: bool = False) -> None:
        if not command:
            raise ConfigurationError("Compiler command must not be empty")
        self.command: tuple[str, ...] = tuple(command)
        self.source_map: bool = source_map

    def _read_output(self, output_path: Path) -> tuple[str, str | None]:
        contents = output_path.read_text(encoding="utf-8")
        map_path = output_path.with_name(output_path.name + ".map")
        if self.source_map and map_path.exists():
            return contents, map_path.read_text(encoding="utf-8")
        return contents, None

    async def compile_file(self, source: Path, output: PurePosixPath) -> CompiledOutput:
        tmp = await asyncio.to_thread(tempfile.mkdtemp, prefix="extbuild-")
        try:
            output_path = Path(tmp) / output
            await asyncio.to_thread(output_path.parent.mkdir, parents=True, exist_ok=True)
            argv = [
                part.replace("{source}", str(source)).replace("{output}", str(output_path))
                for part in self.command
            ]
            logger.debug(f"Running compiler: {' '.join(argv)}")
            try:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                )
            except OSError as e:
                raise CompileError(f"Cannot start compiler {argv[0]}: {e}", source=source) from e

            stdout, _ = await process.communicate()
            diagnostics = stdout.decode("utf-8", errors="replace").strip()
            if process.returncode != 0:
                raise CompileError(
                    f"{source}: compiler exited with {process.returncode}"
                    + (f"\n{diagnostics}" if diagnostics else ""),
                    source=source,
                )
            if diagnostics:
                logger.info(diagnostics)

            try:
                contents, source_map = await asyncio.to_thread(self._read_output, output_path)
            except OSError as e:
                raise CompileError(
                    f"{source}: compiler produced no output ({e})", source=source
                ) from e
            return CompiledOutput(contents=contents, source_map=source_map)
        finally:
            await asyncio.to_thread(shutil.rmtree, tmp, ignore_errors=True)


@dataclass
class CompileReport:
    """Outcome of one compile run."""

    errors: list[CompileError] = field(default_factory=list)
    unit_count: int = 0

    @property
    def errored(self) -> bool:
        return bool(self.errors)

    @override
    def __str__(self) -> str:
        return f"Compiled {self.unit_count} file(s), {len(self.errors)} error(s)"


class SourceCompiler:
    """Compile a project into a stream of CompiledUnits."""

    def __init__(
        self,
        project_config_path: Path,
        compiler_config: CompilerConfig,
        backend_factory: Callable[[ProjectConfig], CompilerBackend] | None = None,
    ) -> None:
        self.project: ProjectConfig = ProjectConfig.load(project_config_path)
        self.compiler_config: CompilerConfig = compiler_config
        self._backend_factory: Callable[[ProjectConfig], CompilerBackend] = (
            backend_factory or self._default_backend
        )
        self._backend: CompilerBackend | None = None
        self.last_report: CompileReport = CompileReport()

    def _default_backend(self, project: ProjectConfig) -> CompilerBackend:
        if self.compiler_config.command:
            return CommandCompilerBackend(
                self.compiler_config.command, source_map=project.source_map
            )
        return CopyCompilerBackend()

    @property
    def backend(self) -> CompilerBackend:
        """The compiler backend, created on first use and then reused."""
        if self._backend is None:
            self._backend = self._backend_factory(self.project)
            logger.debug(f"Created compiler backend {type(self._backend).__name__}")
        return self._backend

    def output_path(self, source: Path) -> PurePosixPath:
        """Output path of a source file relative to the output root."""
        try:
            relative = source.relative_to(self.project.source_root)
        except ValueError:
            raise CompileError(
                f"{source} is outside rootDir {self.project.source_root}", source=source
            ) from None
        return PurePosixPath(relative.as_posix()).with_suffix(
            self.compiler_config.output_extension
        )

    async def compile(self) -> AsyncIterator[CompiledUnit]:
        """
        Compile every source file, yielding each unit as soon as it is ready.

        Errors are collected in ``last_report``; the failing file is skipped.
        """
        report = CompileReport()
        self.last_report = report
        backend = self.backend

        sources = await asyncio.to_thread(
            expand_globs,
            self.project.project_dir,
            self.project.include,
            self.project.exclude,
        )
        logger.debug(f"Found {len(sources)} source file(s)")

        for source in sources:
            try:
                output = self.output_path(source)
                compiled = await backend.compile_file(source, output)
            except CompileError as e:
                report.errors.append(e)
                logger.error(str(e))
                continue

            report.unit_count += 1
            yield CompiledUnit(
                relative_path=output,
                contents=compiled.contents,
                source_map=compiled.source_map,
            )

        logger.info(str(report))
