"""
Build tasks of an extension project.

BuildTasks declares every task the command line can select on a TaskGraph
and holds the state shared between runs, most importantly the source
compiler, which is created once and reused by every build in watch mode.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from .compiler import CompilerBackend, ProjectConfig, SourceCompiler
from .config.manager import ProjectPaths
from .config.schema import ExtBuildConfig
from .integrity import verify_no_linked_modules
from .nls import LocalizationStrategy, create_localization_pipeline, create_package_language_files
from .orchestration import FailurePolicy, RunReport, SourceWatcher, TaskGraph
from .sync import TranslationSync
from .tools import Linter, Packager
from .utils.core.exceptions import CompileError
from .utils.core.globs import expand_globs
from .writer import OutputWriter, WriteReport, iter_items

logger = logging.getLogger(__name__)

PACKAGE_SEQUENCE = ("verify-no-linked-modules", "build", "add-i18n", "vsce-package")
PUBLISH_SEQUENCE = ("verify-no-linked-modules", "build", "add-i18n", "vsce-publish")

TASK_DESCRIPTIONS: dict[str, str] = {
    "build": "Full build with localization; compile errors fail the run",
    "default": "Alias for build",
    "dev-build": "Fast build without localization; compile errors are reported only",
    "watch": "Run dev-build, then again whenever a watched source changes",
    "lint": "Run the linter over the lint sources",
    "clean": "Remove build output, localized manifests and packaged archives",
    "copy-scripts": "Copy helper scripts into the output directory",
    "verify-no-linked-modules": "Fail if a dependency is a symbolic link",
    "package": "verify-no-linked-modules, build, add-i18n, vsce-package",
    "publish": "verify-no-linked-modules, build, add-i18n, vsce-publish",
    "vsce-package": "Create the extension archive",
    "vsce-publish": "Publish the extension",
    "add-i18n": "Create localized copies of package.nls.json",
    "transifex-push": "Upload extracted strings to Transifex",
    "transifex-push-test": "Write the XLF that transifex-push would upload",
    "transifex-pull": "Download translations from Transifex",
    "i18n-import": "Convert downloaded XLF files into i18n resources",
}


class BuildTasks:
    """All tasks of one project, declared on a TaskGraph."""

    def __init__(
        self,
        config: ExtBuildConfig,
        paths: ProjectPaths,
        *,
        package_path: str | None = None,
        policy: FailurePolicy = FailurePolicy.FAIL_FAST,
        backend_factory: Callable[[ProjectConfig], CompilerBackend] | None = None,
        translation_sync: TranslationSync | None = None,
        packager: Packager | None = None,
        linter: Linter | None = None,
    ) -> None:
        self.config: ExtBuildConfig = config
        self.paths: ProjectPaths = paths
        self.package_path: str | None = package_path
        self.graph: TaskGraph = TaskGraph(policy)
        self.translation_sync: TranslationSync = translation_sync or TranslationSync(
            config, paths
        )
        self.packager: Packager = packager or Packager(config.build.tools, paths.root)
        self.linter: Linter = linter or Linter(config.build.tools, paths.root)
        self.writer: OutputWriter = OutputWriter(paths.out_dir, paths.i18n_dir, paths.root)
        self.watcher: SourceWatcher | None = None
        self.last_write: WriteReport | None = None

        self._backend_factory: Callable[[ProjectConfig], CompilerBackend] | None = (
            backend_factory
        )
        self._compiler: SourceCompiler | None = None
        self._declare()

    def _declare(self) -> None:
        graph = self.graph
        _ = graph.declare_task("copy-scripts", action=self.copy_scripts)
        _ = graph.declare_task("build", ["copy-scripts"], self.build)
        _ = graph.declare_task("default", ["build"])
        _ = graph.declare_task("dev-build", ["copy-scripts"], self.dev_build)
        _ = graph.declare_task("watch", ["dev-build"], self.watch)
        _ = graph.declare_task("lint", action=self.lint)
        _ = graph.declare_task("clean", action=self.clean)
        _ = graph.declare_task("verify-no-linked-modules", action=self.verify_no_linked_modules)
        _ = graph.declare_task("add-i18n", action=self.add_i18n)
        _ = graph.declare_task("vsce-package", action=self.vsce_package)
        _ = graph.declare_task("vsce-publish", action=self.vsce_publish)
        _ = graph.declare_task("package", action=self.package)
        _ = graph.declare_task("publish", action=self.publish)
        _ = graph.declare_task("transifex-push", ["build"], self.transifex_push)
        _ = graph.declare_task("transifex-push-test", ["build"], self.transifex_push_test)
        _ = graph.declare_task("transifex-pull", action=self.transifex_pull)
        _ = graph.declare_task("i18n-import", action=self.i18n_import)

    async def run(self, name: str) -> RunReport:
        """Run a task with its prerequisites."""
        return await self.graph.run(name)

    @property
    def compiler(self) -> SourceCompiler:
        """The source compiler, created on first use and reused afterwards."""
        if self._compiler is None:
            self._compiler = SourceCompiler(
                self.paths.project_config,
                self.config.build.compiler,
                backend_factory=self._backend_factory,
            )
        return self._compiler

    async def _compile_and_write(self, strategy: LocalizationStrategy) -> WriteReport:
        compiler = self.compiler
        pipeline = create_localization_pipeline(
            strategy,
            languages=self.config.localization.languages,
            i18n_dir=self.paths.i18n_dir,
            bundle_id=self.config.extension.bundle_id,
            out_dir=self.config.build.out_dir,
        )
        report = await self.writer.write_all(pipeline(compiler.compile()))
        self.last_write = report
        logger.info(f"Wrote {report.count} file(s) to {self.paths.out_dir}")
        return report

    async def build(self) -> None:
        """
        Full build with localization.

        Output of every file that compiled is written first. Compile errors
        then fail the task.

        Raises:
            CompileError: If any source failed to compile
            BundlingError: If a localize call is malformed or a key repeats
        """
        _ = await self._compile_and_write(LocalizationStrategy.FULL_LOCALIZE)
        compile_report = self.compiler.last_report
        if compile_report.errored:
            first = compile_report.errors[0]
            raise CompileError(
                f"Build failed with {len(compile_report.errors)} compile error(s), first: {first}",
                source=first.source,
            )

    async def dev_build(self) -> None:
        """Fast build without localization. Compile errors are only reported."""
        _ = await self._compile_and_write(LocalizationStrategy.PASS_THROUGH)
        compile_report = self.compiler.last_report
        if compile_report.errored:
            logger.warning(
                f"dev-build finished with {len(compile_report.errors)} compile error(s)"
            )

    async def watch(self) -> None:
        """Serve dev-build on source changes until interrupted."""
        self.watcher = self.graph.watch(
            self.config.build.watched_sources,
            "dev-build",
            self.paths.root,
            debounce_seconds=self.config.build.watch_debounce_seconds,
        )
        await self.watcher.serve()

    async def copy_scripts(self) -> None:
        """Copy the configured scripts into the output directory, keeping their paths."""
        scripts = await asyncio.to_thread(
            expand_globs, self.paths.root, self.config.build.scripts
        )
        for script in scripts:
            target = self.paths.out_dir / script.relative_to(self.paths.root)
            await asyncio.to_thread(_copy_file, script, target)
            logger.debug(f"Copied {script} to {target}")
        if scripts:
            logger.info(f"Copied {len(scripts)} script(s)")

    async def lint(self) -> None:
        _ = await self.linter.lint(self.config.build.lint_sources)

    async def clean(self) -> None:
        """Remove the output directory, localized manifests and archives."""
        removed = await asyncio.to_thread(self._clean)
        logger.info(f"Removed {removed} item(s)")

    def _clean(self) -> int:
        removed = 0
        if self.paths.out_dir.exists():
            shutil.rmtree(self.paths.out_dir)
            removed += 1
        stem = self.paths.package_nls_file.name.removesuffix(".nls.json")
        patterns = [f"{stem}.nls.*.json", f"{self.config.extension.name}-*.vsix"]
        for pattern in patterns:
            for path in sorted(self.paths.root.glob(pattern)):
                if path.is_file():
                    path.unlink()
                    removed += 1
        return removed

    async def verify_no_linked_modules(self) -> None:
        await verify_no_linked_modules(self.paths.dependency_root)

    async def add_i18n(self) -> None:
        if not self.paths.package_nls_file.exists():
            logger.warning(f"{self.paths.package_nls_file} not found, nothing to localize")
            return
        resources = await create_package_language_files(
            self.paths.package_nls_file,
            self.config.localization.languages,
            self.paths.i18n_dir,
        )
        _ = await self.writer.write_all(iter_items(resources))

    async def vsce_package(self) -> None:
        await self.packager.package(self.package_path)

    async def vsce_publish(self) -> None:
        await self.packager.publish()

    async def package(self) -> None:
        _ = await self.graph.run_sequence(PACKAGE_SEQUENCE)

    async def publish(self) -> None:
        _ = await self.graph.run_sequence(PUBLISH_SEQUENCE)

    async def transifex_push(self) -> None:
        await self.translation_sync.push(self.paths.metadata_files())

    async def transifex_push_test(self) -> None:
        _ = await self.translation_sync.push_test(self.paths.metadata_files())

    async def transifex_pull(self) -> None:
        _ = await self.translation_sync.pull_and_import()

    async def i18n_import(self) -> None:
        _ = await self.translation_sync.import_translations()


def _copy_file(source: Path, target: Path) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    _ = shutil.copy2(source, target)
