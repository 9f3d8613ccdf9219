"""
Localized copies of ``package.nls.json``.

The extension manifest strings live in ``package.nls.json``. For every
language, translations from ``<i18n>/<folder>/package.i18n.json`` produce a
``package.nls.<id>.json`` next to the manifest.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from ..config.schema import LanguageTarget
from ..units import OutputRoot, ResourceFile
from ..utils.core.exceptions import BundlingError
from .metadata import localize_messages
from .stages import read_translations

logger = logging.getLogger(__name__)

PACKAGE_MODULE = "package"


async def read_package_nls(path: Path) -> dict[str, str]:
    """
    Read the default manifest strings.

    Raises:
        BundlingError: If the file is missing or not an object of strings
    """
    try:
        raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
    except OSError as e:
        raise BundlingError(f"Cannot read {path}: {e}", path=str(path)) from e
    try:
        data: object = json.loads(raw)  # pyright: ignore[reportAny]
    except json.JSONDecodeError as e:
        raise BundlingError(f"Invalid JSON in {path}: {e}", path=str(path)) from e
    if not isinstance(data, dict) or not all(
        isinstance(v, str) for v in data.values()  # pyright: ignore[reportUnknownVariableType]
    ):
        raise BundlingError(f"{path} must map keys to strings", path=str(path))
    return {str(k): v for k, v in data.items()}  # pyright: ignore[reportUnknownArgumentType,reportUnknownVariableType]


async def create_package_language_files(
    package_nls: Path,
    languages: Sequence[LanguageTarget],
    i18n_dir: Path,
) -> list[ResourceFile]:
    """Produce ``package.nls.<id>.json`` for every language, defaults filled in."""
    defaults = await read_package_nls(package_nls)
    keys = list(defaults)
    messages = list(defaults.values())
    stem = package_nls.name.removesuffix(".nls.json")

    async def _localize(language: LanguageTarget) -> ResourceFile:
        relative = PurePosixPath(language.folder_name) / f"{PACKAGE_MODULE}.i18n.json"
        translations = await read_translations(i18n_dir / relative)
        localized = localize_messages(keys, messages, translations, source=str(relative))
        return ResourceFile.from_json(
            f"{stem}.nls.{language.id}.json", localized, root=OutputRoot.PROJECT
        )

    files = await asyncio.gather(*(_localize(language) for language in languages))
    logger.info(f"Created {len(files)} localized manifest file(s)")
    return list(files)
