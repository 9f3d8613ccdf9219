"""
Watch mode: re-run a task whenever watched sources change.

File system events arrive on the watchdog observer thread and are handed to
the asyncio loop. Changes are coalesced over a debounce window and builds are
serialized: changes seen while a build runs produce one follow-up build.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, override

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..utils.core.globs import matches_any

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from .graph import TaskGraph

logger = logging.getLogger(__name__)


class SourceChangeHandler(FileSystemEventHandler):
    """Forward file events to a SourceWatcher."""

    def __init__(self, watcher: SourceWatcher) -> None:
        super().__init__()
        self.watcher: SourceWatcher = watcher

    @override
    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed_no_write"):
            return

        for raw_path in (event.src_path, getattr(event, "dest_path", "")):
            if not raw_path:
                continue
            path_str = raw_path if isinstance(raw_path, str) else raw_path.decode("utf-8")
            self.watcher.notify_change(Path(path_str))


class SourceWatcher:
    """Serve a trigger task on source changes until stopped."""

    def __init__(
        self,
        graph: TaskGraph,
        trigger_task: str,
        root: Path,
        patterns: tuple[str, ...],
        debounce_seconds: float = 0.5,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ) -> None:
        self.graph: TaskGraph = graph
        self.trigger_task: str = trigger_task
        self.root: Path = root.resolve()
        self.patterns: tuple[str, ...] = patterns
        self.debounce_seconds: float = debounce_seconds
        self._observer_factory: Callable[[], BaseObserver] = observer_factory
        self._loop: asyncio.AbstractEventLoop | None = None
        self._wake: asyncio.Event | None = None
        self._pending: set[Path] = set()
        self._stopping: bool = False
        self.build_count: int = 0
        self.failure_count: int = 0

    def matches(self, path: Path) -> bool:
        """Check whether a changed path is one of the watched sources."""
        try:
            relative = path.resolve().relative_to(self.root)
        except ValueError:
            return False
        return matches_any(PurePosixPath(relative.as_posix()), self.patterns)

    def notify_change(self, path: Path) -> None:
        """Record a changed path. Safe to call from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        _ = loop.call_soon_threadsafe(self._on_change, path)

    def _on_change(self, path: Path) -> None:
        if self._wake is None or not self.matches(path):
            return
        logger.debug(f"Source changed: {path}")
        self._pending.add(path)
        self._wake.set()

    def stop(self) -> None:
        """Ask serve() to return after the current build."""
        self._stopping = True
        loop = self._loop
        if loop is not None and not loop.is_closed() and self._wake is not None:
            _ = loop.call_soon_threadsafe(self._wake.set)

    async def serve(self) -> None:
        """Watch sources and run the trigger task until stop() is called."""
        self._loop = asyncio.get_running_loop()
        self._wake = asyncio.Event()
        self._stopping = False

        observer = self._observer_factory()
        _ = observer.schedule(SourceChangeHandler(self), str(self.root), recursive=True)
        observer.start()
        logger.info("Watching build sources...")

        try:
            while not self._stopping:
                _ = await self._wake.wait()
                await self._settle()
                if self._stopping:
                    break
                changed = self._pending
                self._pending = set()
                if changed:
                    await self._trigger(changed)
        finally:
            observer.stop()
            await asyncio.to_thread(observer.join)
            self._loop = None
            logger.info("Stopped watching build sources")

    async def _settle(self) -> None:
        """Wait until no change arrived for a full debounce window."""
        assert self._wake is not None
        while not self._stopping:
            self._wake.clear()
            try:
                _ = await asyncio.wait_for(
                    self._wake.wait(), timeout=self.debounce_seconds
                )
            except asyncio.TimeoutError:
                return

    async def _trigger(self, changed: set[Path]) -> None:
        self.build_count += 1
        logger.info(f"{len(changed)} file(s) changed, running '{self.trigger_task}'")
        try:
            report = await self.graph.run(self.trigger_task)
        except Exception as e:
            self.failure_count += 1
            logger.error(f"'{self.trigger_task}' failed, still watching: {e}")
            return
        if not report.succeeded:
            self.failure_count += 1
