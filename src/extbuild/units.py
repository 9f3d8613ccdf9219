"""
Values that flow through the build pipeline.

The compiler adapter produces CompiledUnits. The localization stages attach
NLS metadata to them and add generated ResourceFiles to the same sequence; the
output writer persists both.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath


class OutputRoot(Enum):
    """Directory a generated file is written under."""

    OUT = "out"
    I18N = "i18n"
    PROJECT = "project"


@dataclass(frozen=True)
class FileMetadata:
    """Strings extracted from one compiled file, in source order."""

    keys: tuple[str, ...] = ()
    messages: tuple[str, ...] = ()
    comments: tuple[tuple[str, ...], ...] = ()

    def __post_init__(self) -> None:
        if len(self.keys) != len(self.messages):
            raise ValueError("keys and messages must have the same length")

    def __len__(self) -> int:
        return len(self.keys)

    def as_mapping(self) -> dict[str, str]:
        return dict(zip(self.keys, self.messages))

    def to_json(self) -> dict[str, object]:
        data: dict[str, object] = {
            "messages": list(self.messages),
            "keys": list(self.keys),
        }
        if any(self.comments):
            data["comments"] = [list(c) for c in self.comments]
        return data


@dataclass(frozen=True)
class CompiledUnit:
    """One compiled file plus its optional source map."""

    relative_path: PurePosixPath
    contents: str
    source_map: str | None = None
    nls: FileMetadata | None = field(default=None, compare=False)

    @property
    def module_id(self) -> str:
        """Path without extension, as used by the metadata bundle."""
        return str(self.relative_path.with_suffix(""))


@dataclass(frozen=True)
class ResourceFile:
    """A generated resource file."""

    relative_path: PurePosixPath
    contents: str
    root: OutputRoot = OutputRoot.OUT
    # Set on per-file runtime language arrays so they can be bundled later
    module_id: str | None = field(default=None, compare=False)
    language: str | None = field(default=None, compare=False)

    @classmethod
    def from_json(
        cls,
        relative_path: PurePosixPath | str,
        data: object,
        root: OutputRoot = OutputRoot.OUT,
        module_id: str | None = None,
        language: str | None = None,
    ) -> ResourceFile:
        return cls(
            relative_path=PurePosixPath(relative_path),
            contents=dump_json(data),
            root=root,
            module_id=module_id,
            language=language,
        )


BuildItem = CompiledUnit | ResourceFile


def dump_json(data: object) -> str:
    """Serialize generated JSON the same way everywhere so builds are diffable."""
    return json.dumps(data, indent=4, ensure_ascii=False) + "\n"
