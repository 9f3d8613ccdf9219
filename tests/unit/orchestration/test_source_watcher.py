"""Tests for debounced watch mode."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import Mock

import pytest
from watchdog.events import DirCreatedEvent, FileModifiedEvent, FileMovedEvent

from extbuild.orchestration import FailurePolicy, SourceChangeHandler, SourceWatcher, TaskGraph


class FakeObserver:
    """Stands in for the watchdog observer thread."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[object, str, bool]] = []
        self.started: bool = False
        self.stopped: bool = False
        self.joined: bool = False

    def schedule(self, handler: object, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        self.joined = True


async def wait_for(condition, timeout: float = 2.0) -> None:  # pyright: ignore[reportMissingParameterType,reportUnknownParameterType]
    """Poll until condition() is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestSourceWatcher:
    """Test cases for SourceWatcher."""

    @pytest.fixture
    def observer(self) -> FakeObserver:
        return FakeObserver()

    def make_watcher(
        self,
        graph: TaskGraph,
        root: Path,
        observer: FakeObserver,
        debounce_seconds: float = 0.05,
    ) -> SourceWatcher:
        return SourceWatcher(
            graph=graph,
            trigger_task="dev-build",
            root=root,
            patterns=("src/**/*", "test/**/*"),
            debounce_seconds=debounce_seconds,
            observer_factory=lambda: observer,  # pyright: ignore[reportArgumentType,reportReturnType]
        )

    def test_matches_watched_sources_only(self, tmp_path: Path, observer: FakeObserver) -> None:
        watcher = self.make_watcher(TaskGraph(), tmp_path, observer)
        assert watcher.matches(tmp_path / "src" / "extension.ts")
        assert watcher.matches(tmp_path / "test" / "deep" / "suite.ts")
        assert not watcher.matches(tmp_path / "out" / "extension.js")
        assert not watcher.matches(tmp_path.parent / "elsewhere.ts")

    @pytest.mark.asyncio
    async def test_burst_of_changes_triggers_one_build(
        self, tmp_path: Path, observer: FakeObserver
    ) -> None:
        builds: list[int] = []
        graph = TaskGraph()

        async def dev_build() -> None:
            builds.append(len(builds))

        _ = graph.declare_task("dev-build", action=dev_build)
        watcher = self.make_watcher(graph, tmp_path, observer)
        serving = asyncio.create_task(watcher.serve())
        await wait_for(lambda: observer.started)

        for name in ("a.ts", "b.ts", "a.ts", "c.ts"):
            watcher.notify_change(tmp_path / "src" / name)
            await asyncio.sleep(0.005)

        await wait_for(lambda: watcher.build_count == 1)
        await asyncio.sleep(0.15)
        watcher.stop()
        await serving

        assert builds == [0]
        assert watcher.build_count == 1
        assert observer.stopped and observer.joined

    @pytest.mark.asyncio
    async def test_unwatched_change_does_not_trigger(
        self, tmp_path: Path, observer: FakeObserver
    ) -> None:
        action = Mock()

        async def dev_build() -> None:
            action()

        graph = TaskGraph()
        _ = graph.declare_task("dev-build", action=dev_build)
        watcher = self.make_watcher(graph, tmp_path, observer)
        serving = asyncio.create_task(watcher.serve())
        await wait_for(lambda: observer.started)

        watcher.notify_change(tmp_path / "out" / "extension.js")
        await asyncio.sleep(0.15)
        watcher.stop()
        await serving

        action.assert_not_called()

    @pytest.mark.asyncio
    async def test_changes_during_build_cause_one_follow_up(
        self, tmp_path: Path, observer: FakeObserver
    ) -> None:
        started = asyncio.Event()
        release = asyncio.Event()
        running = 0
        max_running = 0
        graph = TaskGraph()

        async def dev_build() -> None:
            nonlocal running, max_running
            running += 1
            max_running = max(max_running, running)
            started.set()
            _ = await release.wait()
            running -= 1

        _ = graph.declare_task("dev-build", action=dev_build)
        watcher = self.make_watcher(graph, tmp_path, observer)
        serving = asyncio.create_task(watcher.serve())
        await wait_for(lambda: observer.started)

        watcher.notify_change(tmp_path / "src" / "a.ts")
        _ = await asyncio.wait_for(started.wait(), timeout=2)
        for name in ("b.ts", "c.ts"):
            watcher.notify_change(tmp_path / "src" / name)
        await asyncio.sleep(0.02)
        release.set()

        await wait_for(lambda: watcher.build_count == 2)
        await asyncio.sleep(0.15)
        watcher.stop()
        await serving

        assert watcher.build_count == 2
        assert max_running == 1

    @pytest.mark.asyncio
    async def test_failing_build_keeps_watching(
        self, tmp_path: Path, observer: FakeObserver
    ) -> None:
        attempts: list[int] = []
        graph = TaskGraph(FailurePolicy.FAIL_FAST)

        async def dev_build() -> None:
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("syntax error")

        _ = graph.declare_task("dev-build", action=dev_build)
        watcher = self.make_watcher(graph, tmp_path, observer)
        serving = asyncio.create_task(watcher.serve())
        await wait_for(lambda: observer.started)

        watcher.notify_change(tmp_path / "src" / "a.ts")
        await wait_for(lambda: watcher.build_count == 1)
        watcher.notify_change(tmp_path / "src" / "a.ts")
        await wait_for(lambda: watcher.build_count == 2)
        watcher.stop()
        await serving

        assert len(attempts) == 2
        assert watcher.failure_count == 1


class TestSourceChangeHandler:
    """Test cases for translating watchdog events."""

    def test_forwards_file_events(self, tmp_path: Path) -> None:
        watcher = Mock(spec=SourceWatcher)
        handler = SourceChangeHandler(watcher)

        handler.on_any_event(FileModifiedEvent(str(tmp_path / "src" / "a.ts")))

        watcher.notify_change.assert_called_once_with(tmp_path / "src" / "a.ts")

    def test_forwards_both_paths_of_a_move(self, tmp_path: Path) -> None:
        watcher = Mock(spec=SourceWatcher)
        handler = SourceChangeHandler(watcher)

        handler.on_any_event(
            FileMovedEvent(str(tmp_path / "src" / "old.ts"), str(tmp_path / "src" / "new.ts"))
        )

        assert watcher.notify_change.call_count == 2

    def test_ignores_directory_events(self, tmp_path: Path) -> None:
        watcher = Mock(spec=SourceWatcher)
        handler = SourceChangeHandler(watcher)

        handler.on_any_event(DirCreatedEvent(str(tmp_path / "src" / "new")))

        watcher.notify_change.assert_not_called()
