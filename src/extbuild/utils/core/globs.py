"""
Glob helpers shared by the watcher, the linter and the compiler adapter.

Patterns use the usual build-tool syntax: ``*`` matches within one path
segment, ``**`` matches any number of segments, ``?`` matches one character.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path, PurePosixPath


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a build glob into a regular expression over POSIX paths."""
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts) + r"\Z")


def matches_any(relative_path: PurePosixPath | str, patterns: Iterable[str]) -> bool:
    """Check whether a root-relative POSIX path matches one of the patterns."""
    path_str = str(relative_path)
    return any(glob_to_regex(pattern).match(path_str) for pattern in patterns)


def expand_globs(
    root: Path, patterns: Iterable[str], exclude: Iterable[str] = ()
) -> list[Path]:
    """
    Expand patterns relative to root into a sorted list of existing files.

    Args:
        root: Directory the patterns are relative to
        patterns: Glob patterns to include
        exclude: Glob patterns to drop from the result

    Returns:
        Sorted, de-duplicated list of matching file paths
    """
    exclude_list = list(exclude)
    found: set[Path] = set()
    for pattern in patterns:
        for path in root.glob(pattern):
            if not path.is_file():
                continue
            relative = path.relative_to(root).as_posix()
            if exclude_list and matches_any(relative, exclude_list):
                continue
            found.add(path)
    return sorted(found)
