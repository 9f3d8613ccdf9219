"""
NLS metadata bundle and translation merging.

The metadata bundle is the authoritative list of extracted strings for one
build. It is serialized to ``nls.metadata.json`` and described by
``nls.metadata.header.json``; both files feed the XLF export.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from ..units import FileMetadata
from ..utils.core.exceptions import BundlingError

logger = logging.getLogger(__name__)

BUNDLE_TYPE = "extensionBundle"


@dataclass
class MetadataBundle:
    """Extracted-string metadata of all files in a build, keyed by module id."""

    files: dict[str, FileMetadata] = field(default_factory=dict)

    def add(self, module_id: str, metadata: FileMetadata) -> None:
        if module_id in self.files:
            raise BundlingError(f"Metadata for {module_id} was produced twice", path=module_id)
        self.files[module_id] = metadata

    def __iter__(self) -> Iterator[tuple[str, FileMetadata]]:
        return iter(sorted(self.files.items()))

    def __len__(self) -> int:
        return len(self.files)

    def to_json(self) -> dict[str, object]:
        """Serializable form, sorted by module id so output is stable."""
        return {module_id: metadata.to_json() for module_id, metadata in self}

    def content_hash(self) -> str:
        canonical = json.dumps(self.to_json(), sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def header(self, bundle_id: str, out_dir: str) -> dict[str, str]:
        return {
            "id": bundle_id,
            "type": BUNDLE_TYPE,
            "hash": self.content_hash(),
            "outDir": out_dir,
        }

    @classmethod
    def from_json(cls, data: object, source: str = "nls.metadata.json") -> MetadataBundle:
        """
        Rebuild a bundle from the content of ``nls.metadata.json``.

        Raises:
            BundlingError: If the content does not have the expected shape
        """
        if not isinstance(data, dict):
            raise BundlingError(f"{source} must contain a JSON object", path=source)

        bundle = cls()
        for module_id, entry in data.items():  # pyright: ignore[reportUnknownVariableType]
            if not isinstance(entry, dict):
                raise BundlingError(f"{source}: entry {module_id} is not an object", path=source)
            keys = entry.get("keys")  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
            messages = entry.get("messages")  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
            if not _is_string_list(keys) or not _is_string_list(messages):
                raise BundlingError(
                    f"{source}: entry {module_id} needs string lists 'keys' and 'messages'",
                    path=source,
                )
            comments_raw = entry.get("comments") or [[] for _ in keys]  # pyright: ignore[reportUnknownMemberType,reportUnknownVariableType]
            try:
                metadata = FileMetadata(
                    keys=tuple(keys),
                    messages=tuple(messages),
                    comments=tuple(tuple(c) for c in comments_raw),  # pyright: ignore[reportUnknownArgumentType,reportUnknownVariableType]
                )
            except ValueError as e:
                raise BundlingError(f"{source}: entry {module_id}: {e}", path=source) from e
            bundle.add(str(module_id), metadata)  # pyright: ignore[reportUnknownArgumentType]
        return bundle


def _is_string_list(value: object) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)  # pyright: ignore[reportUnknownVariableType]


def parse_translations(data: object, source: str) -> dict[str, str]:
    """
    Validate the content of an ``.i18n.json`` file.

    Non-string values are ignored with a warning so the default is used.

    Raises:
        BundlingError: If the content is not a JSON object
    """
    if not isinstance(data, dict):
        raise BundlingError(f"{source} must contain a JSON object", path=source)
    translations: dict[str, str] = {}
    for key, value in data.items():  # pyright: ignore[reportUnknownVariableType]
        if isinstance(value, str):
            translations[str(key)] = value  # pyright: ignore[reportUnknownArgumentType]
        else:
            logger.warning(f"{source}: ignoring non-string translation for '{key}'")
    return translations


def localize_messages(
    keys: Sequence[str],
    defaults: Sequence[str],
    translations: Mapping[str, str],
    source: str = "",
) -> dict[str, str]:
    """
    Build the complete key -> message map for one language.

    Every key is present; the value is the translation when there is one and
    the default message otherwise. Translations for keys that no longer exist
    are dropped.
    """
    localized = {
        key: translations.get(key, default) for key, default in zip(keys, defaults)
    }
    stale = sorted(set(translations) - set(keys))
    if stale:
        logger.warning(
            f"{source}: dropping {len(stale)} stale translation(s): {', '.join(stale)}"
        )
    return localized
