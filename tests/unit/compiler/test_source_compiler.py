"""Tests for the source compiler adapter."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

import pytest

from extbuild.compiler import (
    CommandCompilerBackend,
    CompiledOutput,
    CompilerBackend,
    CopyCompilerBackend,
    ProjectConfig,
    SourceCompiler,
)
from extbuild.config.schema import CompilerConfig
from extbuild.units import CompiledUnit
from extbuild.utils.core.exceptions import CompileError, ConfigurationError


class UpperCaseBackend:
    """Backend that fails on sources containing 'syntax error'."""

    def __init__(self) -> None:
        self.calls: list[PurePosixPath] = []

    async def compile_file(self, source: Path, output: PurePosixPath) -> CompiledOutput:
        self.calls.append(output)
        text = source.read_text(encoding="utf-8")
        if "syntax error" in text:
            raise CompileError(f"{source}: syntax error", source=source)
        return CompiledOutput(contents=text.upper(), source_map='{"version":3}')


async def collect(compiler: SourceCompiler) -> list[CompiledUnit]:
    return [unit async for unit in compiler.compile()]


class TestProjectConfig:
    """Test cases for reading the project configuration."""

    def test_reads_commented_json(self, project_dir: Path) -> None:
        project = ProjectConfig.load(project_dir / "tsconfig.json")
        assert project.root_dir == "src"
        assert project.source_map is False
        assert project.include == ("src/**/*.ts",)
        assert project.source_root == project_dir.resolve() / "src"

    def test_explicit_include_and_exclude(self, tmp_path: Path) -> None:
        config_path = tmp_path / "tsconfig.json"
        _ = config_path.write_text(
            '{"compilerOptions": {"rootDir": "./lib", "sourceMap": true},'
            ' "include": ["lib/**/*.ts"], "exclude": ["lib/**/*.d.ts"]}',
            encoding="utf-8",
        )
        project = ProjectConfig.load(config_path)
        assert project.root_dir == "lib"
        assert project.source_map is True
        assert project.exclude == ("lib/**/*.d.ts",)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read"):
            _ = ProjectConfig.load(tmp_path / "tsconfig.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        config_path = tmp_path / "tsconfig.json"
        _ = config_path.write_text("{ not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid project configuration"):
            _ = ProjectConfig.load(config_path)

    def test_string_contents_are_not_comments(self, tmp_path: Path) -> None:
        config_path = tmp_path / "tsconfig.json"
        _ = config_path.write_text(
            '{"compilerOptions": {"rootDir": "src//generated"}}', encoding="utf-8"
        )
        assert ProjectConfig.load(config_path).root_dir == "src/generated"


class TestSourceCompiler:
    """Test cases for SourceCompiler."""

    @pytest.mark.asyncio
    async def test_copy_backend_by_default(self, project_dir: Path) -> None:
        compiler = SourceCompiler(project_dir / "tsconfig.json", CompilerConfig())
        units = await collect(compiler)

        assert isinstance(compiler.backend, CopyCompilerBackend)
        assert [str(unit.relative_path) for unit in units] == [
            "extension.js",
            "util/answer.js",
        ]
        assert units[1].contents == "export const answer = 42;\n"
        assert compiler.last_report.unit_count == 2
        assert not compiler.last_report.errored

    @pytest.mark.asyncio
    async def test_backend_created_once_and_reused(self, project_dir: Path) -> None:
        created: list[CompilerBackend] = []

        def factory(project: ProjectConfig) -> CompilerBackend:
            backend = UpperCaseBackend()
            created.append(backend)
            return backend

        compiler = SourceCompiler(
            project_dir / "tsconfig.json", CompilerConfig(), backend_factory=factory
        )
        _ = await collect(compiler)
        _ = await collect(compiler)

        assert len(created) == 1

    @pytest.mark.asyncio
    async def test_errors_recorded_and_other_units_emitted(self, project_dir: Path) -> None:
        _ = (project_dir / "src" / "broken.ts").write_text("syntax error", encoding="utf-8")
        backend = UpperCaseBackend()
        compiler = SourceCompiler(
            project_dir / "tsconfig.json", CompilerConfig(), backend_factory=lambda _: backend
        )

        units = await collect(compiler)

        assert [str(unit.relative_path) for unit in units] == [
            "extension.js",
            "util/answer.js",
        ]
        assert units[0].source_map == '{"version":3}'
        report = compiler.last_report
        assert report.errored
        assert len(report.errors) == 1
        assert report.errors[0].source == project_dir.resolve() / "src" / "broken.ts"

    @pytest.mark.asyncio
    async def test_units_arrive_incrementally(self, project_dir: Path) -> None:
        backend = UpperCaseBackend()
        compiler = SourceCompiler(
            project_dir / "tsconfig.json", CompilerConfig(), backend_factory=lambda _: backend
        )

        stream = compiler.compile()
        first = await anext(stream)

        assert str(first.relative_path) == "extension.js"
        assert backend.calls == [PurePosixPath("extension.js")]
        await stream.aclose()

    def test_output_path_outside_root_dir(self, project_dir: Path) -> None:
        compiler = SourceCompiler(project_dir / "tsconfig.json", CompilerConfig())
        with pytest.raises(CompileError, match="outside rootDir"):
            _ = compiler.output_path(project_dir / "scripts" / "tool.ts")

    def test_output_extension(self, project_dir: Path) -> None:
        compiler = SourceCompiler(
            project_dir / "tsconfig.json", CompilerConfig(output_extension=".cjs")
        )
        source = project_dir.resolve() / "src" / "util" / "answer.ts"
        assert compiler.output_path(source) == PurePosixPath("util/answer.cjs")


class TestCommandCompilerBackend:
    """Test cases for the external compiler command backend."""

    @pytest.fixture
    def source(self, tmp_path: Path) -> Path:
        path = tmp_path / "a.ts"
        _ = path.write_text("export const a = 1;\n", encoding="utf-8")
        return path

    def test_empty_command(self) -> None:
        with pytest.raises(ConfigurationError, match="must not be empty"):
            _ = CommandCompilerBackend(())

    @pytest.mark.asyncio
    async def test_output_and_map_read_back(
        self, source: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        script = 'cp "$0" "$1" && echo map > "$1.map" && echo "$1"'
        backend = CommandCompilerBackend(
            ("sh", "-c", script, "{source}", "{output}"), source_map=True
        )

        with caplog.at_level(logging.INFO, logger="extbuild.compiler.adapter"):
            result = await backend.compile_file(source, PurePosixPath("lib/a.js"))

        assert result.contents == "export const a = 1;\n"
        assert result.source_map == "map\n"
        adapter_records = [r for r in caplog.records if r.name == "extbuild.compiler.adapter"]
        output_path = Path(adapter_records[-1].getMessage())
        assert output_path.name == "a.js"
        assert not output_path.parent.parent.exists()

    @pytest.mark.asyncio
    async def test_map_ignored_without_source_maps(self, source: Path) -> None:
        script = 'cp "$0" "$1" && echo map > "$1.map"'
        backend = CommandCompilerBackend(("sh", "-c", script, "{source}", "{output}"))

        result = await backend.compile_file(source, PurePosixPath("a.js"))

        assert result.source_map is None

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, source: Path) -> None:
        backend = CommandCompilerBackend(("sh", "-c", "echo 'bad token'; exit 2"))

        with pytest.raises(CompileError, match="exited with 2") as exc_info:
            _ = await backend.compile_file(source, PurePosixPath("a.js"))
        assert "bad token" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_output(self, source: Path) -> None:
        backend = CommandCompilerBackend(("sh", "-c", "true"))

        with pytest.raises(CompileError, match="produced no output"):
            _ = await backend.compile_file(source, PurePosixPath("a.js"))
