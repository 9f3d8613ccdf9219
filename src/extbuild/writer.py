"""
Persist build items to disk.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .units import BuildItem, CompiledUnit, OutputRoot

logger = logging.getLogger(__name__)


@dataclass
class WriteReport:
    """Files written by one build."""

    written: list[Path] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.written)


class OutputWriter:
    """Write CompiledUnits and ResourceFiles under their output roots."""

    def __init__(self, out_dir: Path, i18n_dir: Path, project_dir: Path) -> None:
        self.roots: dict[OutputRoot, Path] = {
            OutputRoot.OUT: out_dir,
            OutputRoot.I18N: i18n_dir,
            OutputRoot.PROJECT: project_dir,
        }

    async def write_all(self, items: AsyncIterator[BuildItem]) -> WriteReport:
        """Consume the item sequence, writing each item as it arrives."""
        report = WriteReport()
        async for item in items:
            report.written.extend(await asyncio.to_thread(self._write, item))
        logger.debug(f"Wrote {report.count} file(s)")
        return report

    def _write(self, item: BuildItem) -> list[Path]:
        if isinstance(item, CompiledUnit):
            target = self.roots[OutputRoot.OUT] / item.relative_path
            contents = item.contents
            written = [target]
            if item.source_map is not None:
                map_name = f"{target.name}.map"
                if f"sourceMappingURL={map_name}" not in contents:
                    if not contents.endswith("\n"):
                        contents += "\n"
                    contents += f"//# sourceMappingURL={map_name}\n"
                map_path = target.with_name(map_name)
                _write_text(map_path, item.source_map)
                written.append(map_path)
            _write_text(target, contents)
            return written

        target = self.roots[item.root] / item.relative_path
        _write_text(target, item.contents)
        return [target]


def _write_text(path: Path, contents: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    _ = path.write_text(contents, encoding="utf-8")


async def iter_items(items: Iterable[BuildItem]) -> AsyncIterator[BuildItem]:
    """Feed already materialized items to write_all."""
    for item in items:
        yield item
