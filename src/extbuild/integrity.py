"""
Integrity checks run before packaging.

A symbolic link inside the dependency directory means a dependency is linked
from a development checkout. Packaging against it would not be reproducible,
so the check is fatal.
"""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from pathlib import Path

from .utils.core.exceptions import IntegrityError

logger = logging.getLogger(__name__)


async def verify_not_a_linked_module(module_path: Path) -> None:
    """
    Check one dependency entry without following links.

    Raises:
        IntegrityError: If the entry is a symbolic link
    """
    try:
        info = await asyncio.to_thread(os.lstat, module_path)
    except OSError as e:
        raise IntegrityError(f"Cannot stat {module_path}: {e}", path=module_path) from e
    if stat.S_ISLNK(info.st_mode):
        raise IntegrityError(f"Symbolic link found: {module_path}", path=module_path)


async def verify_no_linked_modules(dependency_root: Path) -> None:
    """
    Verify that no immediate entry of dependency_root is a symbolic link.

    All entries are checked concurrently. The check fails if any entry fails,
    reporting the first offending path in name order.

    Raises:
        IntegrityError: If the root is missing or an entry is a symbolic link
    """
    try:
        names = await asyncio.to_thread(os.listdir, dependency_root)
    except OSError as e:
        raise IntegrityError(
            f"Cannot list dependency directory {dependency_root}: {e}",
            path=dependency_root,
        ) from e

    module_paths = [dependency_root / name for name in sorted(names)]
    results = await asyncio.gather(
        *(verify_not_a_linked_module(path) for path in module_paths),
        return_exceptions=True,
    )

    failures = [r for r in results if isinstance(r, BaseException)]
    for failure in failures:
        if not isinstance(failure, IntegrityError):
            raise failure
    if failures:
        if len(failures) > 1:
            logger.error(f"{len(failures)} linked modules found in {dependency_root}")
        raise failures[0]

    logger.info(f"Verified {len(module_paths)} module(s) in {dependency_root}: no links")
