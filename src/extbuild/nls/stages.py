"""
Localization pipeline stages.

Each stage transforms an asynchronous sequence of build items (CompiledUnits
and generated ResourceFiles). Units without localizable strings pass through
every stage unchanged and in their original order.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import replace
from enum import Enum
from pathlib import Path, PurePosixPath

from ..config.schema import LanguageTarget
from ..units import BuildItem, CompiledUnit, FileMetadata, OutputRoot, ResourceFile
from ..utils.core.exceptions import BundlingError
from .metadata import MetadataBundle, localize_messages, parse_translations
from .rewrite import rewrite_localize_calls

logger = logging.getLogger(__name__)

Stage = Callable[[AsyncIterator[BuildItem]], AsyncIterator[BuildItem]]

METADATA_FILE = "nls.metadata.json"
METADATA_HEADER_FILE = "nls.metadata.header.json"
DEFAULT_BUNDLE_FILE = "nls.bundle.json"


def nls_file(module_id: str, language: str | None = None) -> PurePosixPath:
    """Runtime message array of one file, optionally for one language."""
    if language is None:
        return PurePosixPath(f"{module_id}.nls.json")
    return PurePosixPath(f"{module_id}.nls.{language}.json")


def i18n_file(language: LanguageTarget, module_id: str, out_dir: str) -> PurePosixPath:
    """Translator-facing resource of one file, relative to the i18n root."""
    return PurePosixPath(language.folder_name, out_dir) / f"{module_id}.i18n.json"


def language_bundle_file(language: str) -> PurePosixPath:
    return PurePosixPath(f"nls.bundle.{language}.json")


class LocalizationStrategy(Enum):
    """Whether the build externalizes strings."""

    PASS_THROUGH = "pass_through"
    FULL_LOCALIZE = "full_localize"


class RewriteLocalizeCalls:
    """Stage 1: replace localize call sites with indexed lookups."""

    async def __call__(self, items: AsyncIterator[BuildItem]) -> AsyncIterator[BuildItem]:
        async for item in items:
            if not isinstance(item, CompiledUnit):
                yield item
                continue

            contents, metadata = rewrite_localize_calls(
                item.contents, str(item.relative_path)
            )
            if metadata is None:
                yield item
                continue

            logger.debug(f"Extracted {len(metadata)} string(s) from {item.relative_path}")
            yield replace(item, contents=contents, nls=metadata)
            yield ResourceFile.from_json(
                nls_file(item.module_id), list(metadata.messages)
            )
            yield ResourceFile.from_json(
                f"{item.module_id}.nls.metadata.json", metadata.to_json()
            )


class CreateAdditionalLanguageFiles:
    """
    Stage 2: produce a complete resource file per language for every file
    with extracted strings.

    Existing translations are read from
    ``<i18n>/<folder>/<out_dir>/<module>.i18n.json``.
    Missing keys fall back to the default message. The completed map is written
    back to the same location and a runtime array ``<module>.nls.<id>.json`` is
    emitted into the output directory.
    """

    def __init__(
        self, languages: Sequence[LanguageTarget], i18n_dir: Path, out_dir: str = "out"
    ) -> None:
        self.languages: tuple[LanguageTarget, ...] = tuple(languages)
        self.i18n_dir: Path = i18n_dir
        self.out_dir: str = out_dir

    async def __call__(self, items: AsyncIterator[BuildItem]) -> AsyncIterator[BuildItem]:
        async for item in items:
            yield item
            if not isinstance(item, CompiledUnit) or not item.nls:
                continue

            resources = await asyncio.gather(
                *(self._localize(item.module_id, item.nls, lang) for lang in self.languages)
            )
            for pair in resources:
                for resource in pair:
                    yield resource

    async def _localize(
        self, module_id: str, metadata: FileMetadata, language: LanguageTarget
    ) -> tuple[ResourceFile, ResourceFile]:
        relative = i18n_file(language, module_id, self.out_dir)
        translations = await read_translations(self.i18n_dir / relative)
        localized = localize_messages(
            metadata.keys, metadata.messages, translations, source=str(relative)
        )
        return (
            ResourceFile.from_json(relative, localized, root=OutputRoot.I18N),
            ResourceFile.from_json(
                nls_file(module_id, language.id),
                list(localized.values()),
                module_id=module_id,
                language=language.id,
            ),
        )


async def read_translations(path: Path) -> dict[str, str]:
    """
    Read an ``.i18n.json`` file; a missing file means no translations.

    Raises:
        BundlingError: If the file exists but is not a JSON object
    """

    def _read() -> str | None:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    raw = await asyncio.to_thread(_read)
    if raw is None:
        return {}
    try:
        data: object = json.loads(raw)  # pyright: ignore[reportAny]
    except json.JSONDecodeError as e:
        raise BundlingError(f"Invalid JSON in {path}: {e}", path=str(path)) from e
    return parse_translations(data, str(path))


class BundleMetadataFiles:
    """Stage 3: aggregate per-file metadata into the metadata index and header."""

    def __init__(self, bundle_id: str, out_dir: str) -> None:
        self.bundle_id: str = bundle_id
        self.out_dir: str = out_dir

    async def __call__(self, items: AsyncIterator[BuildItem]) -> AsyncIterator[BuildItem]:
        bundle = MetadataBundle()
        async for item in items:
            if isinstance(item, CompiledUnit) and item.nls is not None:
                bundle.add(item.module_id, item.nls)
            yield item

        logger.info(f"Bundled metadata of {len(bundle)} file(s)")
        yield ResourceFile.from_json(METADATA_FILE, bundle.to_json())
        yield ResourceFile.from_json(
            METADATA_HEADER_FILE, bundle.header(self.bundle_id, self.out_dir)
        )


class BundleLanguageFiles:
    """
    Stage 4: merge per-file runtime arrays into one bundle per language.

    ``nls.bundle.json`` holds the default messages and
    ``nls.bundle.<id>.json`` the messages of each language, both keyed by
    module id. The merged per-file arrays are not written separately.
    """

    def __init__(self, languages: Sequence[LanguageTarget]) -> None:
        self.languages: tuple[LanguageTarget, ...] = tuple(languages)

    async def __call__(self, items: AsyncIterator[BuildItem]) -> AsyncIterator[BuildItem]:
        default_bundle: dict[str, list[str]] = {}
        language_bundles: dict[str, dict[str, list[str]]] = {
            language.id: {} for language in self.languages
        }

        async for item in items:
            if isinstance(item, CompiledUnit):
                if item.nls is not None:
                    default_bundle[item.module_id] = list(item.nls.messages)
                yield item
            elif item.language is not None and item.module_id is not None:
                messages: object = json.loads(item.contents)  # pyright: ignore[reportAny]
                if not isinstance(messages, list):
                    raise BundlingError(
                        f"{item.relative_path} is not a message array",
                        path=str(item.relative_path),
                    )
                language_bundles.setdefault(item.language, {})[item.module_id] = messages  # pyright: ignore[reportUnknownArgumentType]
            else:
                yield item

        yield ResourceFile.from_json(DEFAULT_BUNDLE_FILE, dict(sorted(default_bundle.items())))
        for language_id, bundle in language_bundles.items():
            yield ResourceFile.from_json(
                language_bundle_file(language_id), dict(sorted(bundle.items()))
            )


class LocalizationPipeline:
    """Ordered composition of stages chosen once per invocation."""

    def __init__(self, strategy: LocalizationStrategy, stages: Sequence[Stage] = ()) -> None:
        self.strategy: LocalizationStrategy = strategy
        self.stages: tuple[Stage, ...] = tuple(stages)

    def __call__(self, items: AsyncIterator[BuildItem]) -> AsyncIterator[BuildItem]:
        for stage in self.stages:
            items = stage(items)
        return items


def create_localization_pipeline(
    strategy: LocalizationStrategy,
    languages: Sequence[LanguageTarget] = (),
    i18n_dir: Path | None = None,
    bundle_id: str = "",
    out_dir: str = "out",
) -> LocalizationPipeline:
    """
    Build the localization pipeline for a strategy.

    PASS_THROUGH returns units unchanged. FULL_LOCALIZE applies, in order:
    rewrite localize calls, create additional language files, bundle metadata
    files, bundle language files.
    """
    if strategy is LocalizationStrategy.PASS_THROUGH:
        return LocalizationPipeline(strategy)

    if i18n_dir is None:
        raise ValueError("FULL_LOCALIZE needs an i18n directory")
    if not bundle_id:
        raise ValueError("FULL_LOCALIZE needs a bundle id")
    return LocalizationPipeline(
        strategy,
        (
            RewriteLocalizeCalls(),
            CreateAdditionalLanguageFiles(languages, i18n_dir, out_dir),
            BundleMetadataFiles(bundle_id, out_dir),
            BundleLanguageFiles(languages),
        ),
    )
