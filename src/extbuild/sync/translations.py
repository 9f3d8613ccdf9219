"""
Translation synchronization.

Push exports the strings of the last build as XLF and uploads them. Pull
downloads one translated XLF per language into the sibling localization
directory. Import turns downloaded XLF files into ``.i18n.json`` resources
that the next build picks up.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from ..config.manager import ProjectPaths
from ..config.schema import ExtBuildConfig, LanguageTarget, TransifexConfig
from ..nls.metadata import MetadataBundle
from ..nls.package_nls import read_package_nls
from ..nls.stages import METADATA_FILE, METADATA_HEADER_FILE
from ..units import ResourceFile
from ..utils.core.exceptions import SyncError
from ..writer import OutputWriter, iter_items
from .client import TransifexClient
from .xliff import ExchangeUnit, exchange_unit_from_metadata, resource_bundles_from_exchange_unit

logger = logging.getLogger(__name__)

ClientFactory = Callable[[TransifexConfig], TransifexClient]


@dataclass
class PullReport:
    """Outcome of pulling every requested language."""

    succeeded: dict[str, Path] = field(default_factory=dict)
    failed: dict[str, BaseException] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_for_failures(self) -> None:
        """
        Raises:
            SyncError: Aggregating every failed language
        """
        if self.failed:
            languages = ", ".join(sorted(self.failed))
            raise SyncError(
                f"Pull failed for {len(self.failed)} language(s): {languages}",
                failures=dict(self.failed),
            )


@dataclass
class ImportReport:
    """Files written by an import, per language id."""

    written: dict[str, list[Path]] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return sum(len(paths) for paths in self.written.values())


class TranslationSync:
    """Exchange translations between the project and the translation service."""

    def __init__(
        self,
        config: ExtBuildConfig,
        paths: ProjectPaths,
        client_factory: ClientFactory = TransifexClient,
    ) -> None:
        self.config: ExtBuildConfig = config
        self.paths: ProjectPaths = paths
        self.client_factory: ClientFactory = client_factory

    @property
    def project(self) -> str:
        return self.config.localization.transifex.project

    @property
    def resource(self) -> str:
        return self.config.extension.name

    @property
    def languages(self) -> tuple[LanguageTarget, ...]:
        return self.config.localization.languages

    def _client(self) -> TransifexClient:
        return self.client_factory(self.config.localization.transifex)

    async def build_exchange_unit(self, metadata_files: Sequence[Path]) -> ExchangeUnit:
        """
        Convert build metadata into one XLF document.

        Args:
            metadata_files: ``nls.metadata.header.json``, ``nls.metadata.json``
                and optionally ``package.nls.json``

        Raises:
            SyncError: If the build metadata is missing
        """
        header: dict[str, object] | None = None
        bundle: MetadataBundle | None = None
        package_nls: dict[str, str] | None = None

        for path in metadata_files:
            if path.name == METADATA_HEADER_FILE:
                data = await _read_json(path)
                if not isinstance(data, dict):
                    raise SyncError(f"{path} must contain a JSON object")
                header = {str(k): v for k, v in data.items()}  # pyright: ignore[reportUnknownVariableType,reportUnknownArgumentType]
            elif path.name == METADATA_FILE:
                bundle = MetadataBundle.from_json(await _read_json(path), str(path))
            elif path.name.endswith(".nls.json"):
                package_nls = await read_package_nls(path)
            else:
                logger.warning(f"Ignoring unexpected metadata input {path}")

        if header is None or bundle is None:
            raise SyncError(
                f"Build metadata not found in {self.paths.out_dir}; run the build first"
            )
        return exchange_unit_from_metadata(
            self.project, self.resource, header, bundle, package_nls
        )

    async def push(self, metadata_files: Sequence[Path]) -> None:
        """
        Upload the strings of the last build.

        Raises:
            SyncError: If the build metadata is missing
            TransifexError: If the upload fails
        """
        unit = await self.build_exchange_unit(metadata_files)
        async with self._client() as client:
            created = await client.push_resource(unit.project, unit.resource, unit.to_xml())
        action = "Created" if created else "Pushed"
        logger.info(f"{action} {unit.project}/{unit.filename}")

    async def push_test(self, metadata_files: Sequence[Path], dest: Path | None = None) -> Path:
        """
        Write the XLF document that push would upload.

        Returns:
            Path of the written ``<dest>/<project>/<resource>.xlf``
        """
        unit = await self.build_exchange_unit(metadata_files)
        target = (dest or self.paths.push_test_dir) / unit.relative_path
        await asyncio.to_thread(_write_text, target, unit.to_xml())
        logger.info(f"Wrote {target}")
        return target

    async def pull(
        self,
        languages: Sequence[LanguageTarget] | None = None,
        raise_on_failure: bool = True,
    ) -> PullReport:
        """
        Download translations for all languages concurrently.

        A failing language does not cancel the others.

        Args:
            languages: Languages to pull, all configured languages by default
            raise_on_failure: Raise the aggregate error after all pulls finished

        Returns:
            Which languages succeeded and which failed

        Raises:
            SyncError: If any language failed and raise_on_failure is set
        """
        targets = tuple(languages) if languages is not None else self.languages
        report = PullReport()

        async with self._client() as client:
            results = await asyncio.gather(
                *(self._pull_one(client, language) for language in targets),
                return_exceptions=True,
            )

        for language, result in zip(targets, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Failed to pull {language.id}: {result}")
                report.failed[language.id] = result
            else:
                report.succeeded[language.id] = result

        logger.info(f"Pulled {len(report.succeeded)} of {len(targets)} language(s)")
        if raise_on_failure:
            report.raise_for_failures()
        return report

    async def _pull_one(self, client: TransifexClient, language: LanguageTarget) -> Path:
        text = await client.pull_translation(self.project, self.resource, language.remote_id)
        unit = ExchangeUnit.parse(text, self.project, self.resource)
        target = self.paths.localization_dir / language.folder_name / unit.relative_path
        await asyncio.to_thread(_write_text, target, text)
        logger.debug(f"Saved {language.id} translations to {target}")
        return target

    async def import_translations(
        self, languages: Sequence[LanguageTarget] | None = None
    ) -> ImportReport:
        """
        Convert downloaded XLF files into ``.i18n.json`` resources.

        Reads ``<localization>/<folder>/**/*.xlf`` and writes
        ``<i18n>/<folder>/<original>.i18n.json`` for every file entry. A
        language without a localization folder is skipped with a warning.

        Raises:
            SyncError: Aggregating every language that failed to import
        """
        targets = tuple(languages) if languages is not None else self.languages
        report = ImportReport()
        writer = OutputWriter(self.paths.out_dir, self.paths.i18n_dir, self.paths.root)

        results = await asyncio.gather(
            *(self._import_one(writer, language) for language in targets),
            return_exceptions=True,
        )

        failures: dict[str, BaseException] = {}
        for language, result in zip(targets, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error(f"Failed to import {language.id}: {result}")
                failures[language.id] = result
            elif result is None:
                report.skipped.append(language.id)
            else:
                report.written[language.id] = result

        logger.info(
            f"Imported {report.count} resource file(s) for {len(report.written)} language(s)"
        )
        if failures:
            raise SyncError(
                f"Import failed for {len(failures)} language(s): {', '.join(sorted(failures))}",
                failures=failures,
            )
        return report

    async def _import_one(
        self, writer: OutputWriter, language: LanguageTarget
    ) -> list[Path] | None:
        folder = self.paths.localization_dir / language.folder_name
        if not folder.is_dir():
            logger.warning(f"No downloaded translations for {language.id} in {folder}")
            return None

        xlf_paths = sorted(await asyncio.to_thread(lambda: list(folder.rglob("*.xlf"))))
        resources: list[ResourceFile] = []
        for xlf_path in xlf_paths:
            text = await asyncio.to_thread(xlf_path.read_text, encoding="utf-8")
            unit = ExchangeUnit.parse(text, resource=xlf_path.stem)
            resources.extend(resource_bundles_from_exchange_unit(unit, language.folder_name))

        report = await writer.write_all(iter_items(resources))
        return report.written

    async def pull_and_import(
        self, languages: Sequence[LanguageTarget] | None = None
    ) -> PullReport:
        """
        Pull, then import according to the configured sync policy.

        Languages are imported only when ``import_after_pull`` is set. When
        some pulls failed, the succeeded languages are imported only if
        ``import_on_partial_pull`` is set as well.

        Raises:
            SyncError: If any language failed to pull or import
        """
        targets = tuple(languages) if languages is not None else self.languages
        report = await self.pull(targets, raise_on_failure=False)
        policy = self.config.localization.sync

        if policy.import_after_pull and report.succeeded:
            if report.ok or policy.import_on_partial_pull:
                pulled = [language for language in targets if language.id in report.succeeded]
                _ = await self.import_translations(pulled)
            else:
                logger.warning("Skipping import because some languages failed to pull")

        report.raise_for_failures()
        return report


async def _read_json(path: Path) -> object:
    try:
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except FileNotFoundError as e:
        raise SyncError(f"{path} not found; run the build first") from e
    try:
        return json.loads(raw)  # pyright: ignore[reportAny]
    except json.JSONDecodeError as e:
        raise SyncError(f"Invalid JSON in {path}: {e}") from e


def _write_text(path: Path, contents: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(contents, encoding="utf-8")
