"""
Task graph with dependency scheduling and serial sequences.

Tasks are declared with explicit prerequisites. Cycles are rejected when a
task is declared, so a run only has to resolve names. Within a run every task
executes at most once and independent branches run concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from ..utils.core.exceptions import SequenceError, TaskFailedError, TaskGraphError
from .types import FailurePolicy, RunReport, Task, TaskAction, TaskStatus

if TYPE_CHECKING:
    from .watch import SourceWatcher

logger = logging.getLogger(__name__)


class TaskGraph:
    """
    Directed acyclic graph of named build tasks.

    The graph also owns the pipeline-wide failure flag: any action that raises
    sets ``failed``. With ``FailurePolicy.FAIL_FAST`` a failing run raises to
    the caller; with ``FailurePolicy.CONTINUE`` it is logged and reported.
    """

    def __init__(self, policy: FailurePolicy = FailurePolicy.FAIL_FAST) -> None:
        self._tasks: dict[str, Task] = {}
        self.policy: FailurePolicy = policy
        self.failed: bool = False
        self.last_report: RunReport | None = None

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    @property
    def task_names(self) -> list[str]:
        return sorted(self._tasks)

    def get_task(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            raise TaskGraphError(f"Task '{name}' is not declared") from None

    def declare_task(
        self,
        name: str,
        prerequisites: Sequence[str] = (),
        action: TaskAction | None = None,
    ) -> Task:
        """
        Declare a task.

        Args:
            name: Unique task name
            prerequisites: Names of tasks that must succeed before this one runs
            action: Coroutine function to run, or None for a grouping task

        Returns:
            The declared task

        Raises:
            TaskGraphError: If the name is taken or the task would close a cycle
        """
        if not name:
            raise TaskGraphError("Task name must not be empty")
        if name in self._tasks:
            raise TaskGraphError(f"Task '{name}' is already declared")

        prereqs = tuple(prerequisites)
        if len(set(prereqs)) != len(prereqs):
            raise TaskGraphError(f"Task '{name}' lists a prerequisite twice")

        cycle = self._find_cycle(name, prereqs)
        if cycle is not None:
            raise TaskGraphError(
                f"Declaring '{name}' would create a cycle: {' -> '.join(cycle)}"
            )

        task = Task(name=name, prerequisites=prereqs, action=action)
        self._tasks[name] = task
        logger.debug(f"Declared task '{name}' (prerequisites: {list(prereqs)})")
        return task

    def _find_cycle(self, name: str, prerequisites: tuple[str, ...]) -> list[str] | None:
        """Return a path name -> ... -> name if the new edges close a cycle."""
        # The existing graph is acyclic, so any new cycle passes through name.
        stack: list[tuple[str, list[str]]] = [(p, [name, p]) for p in prerequisites]
        visited: set[str] = set()
        while stack:
            current, path = stack.pop()
            if current == name:
                return path
            if current in visited:
                continue
            visited.add(current)
            task = self._tasks.get(current)
            if task is None:
                continue
            for prereq in task.prerequisites:
                stack.append((prereq, [*path, prereq]))
        return None

    def resolve(self, name: str) -> list[str]:
        """
        Resolve a task and its transitive prerequisites in execution order.

        Raises:
            TaskGraphError: If a task or prerequisite is not declared
        """
        order: list[str] = []
        seen: set[str] = set()

        def visit(current: str, required_by: str | None) -> None:
            if current in seen:
                return
            if current not in self._tasks:
                if required_by is None:
                    raise TaskGraphError(f"Task '{current}' is not declared")
                raise TaskGraphError(
                    f"Task '{required_by}' requires undeclared task '{current}'"
                )
            seen.add(current)
            for prereq in self._tasks[current].prerequisites:
                visit(prereq, current)
            order.append(current)

        visit(name, None)
        return order

    async def run(self, name: str) -> RunReport:
        """
        Run a task after its prerequisites.

        Returns:
            Report of every task touched by the run

        Raises:
            TaskGraphError: If the task graph cannot be resolved
            Exception: The failing task's error, under FailurePolicy.FAIL_FAST
        """
        _ = self.resolve(name)
        report = RunReport()
        self.last_report = report
        try:
            await self._execute(name, report)
        except Exception as e:
            if self.policy is FailurePolicy.FAIL_FAST:
                raise
            logger.error(f"Task '{name}' failed: {e}")
        return report

    async def run_sequence(self, names: Iterable[str]) -> RunReport:
        """
        Run tasks strictly one after the other.

        Each stage (with its own prerequisites) completes before the next one
        starts. The first failing stage aborts the rest of the sequence.

        Raises:
            SequenceError: Naming the failing stage, chained to its error
        """
        stages = list(names)
        for stage in stages:
            _ = self.resolve(stage)

        combined = RunReport()
        self.last_report = combined
        for index, stage in enumerate(stages):
            report = RunReport()
            try:
                await self._execute(stage, report)
            except Exception as e:
                combined.records.update(report.records)
                remaining = stages[index + 1 :]
                if remaining:
                    logger.warning(f"Skipping remaining stages: {', '.join(remaining)}")
                raise SequenceError(
                    f"Sequence stage '{stage}' failed: {e}", stage=stage
                ) from e
            combined.records.update(report.records)
        return combined

    async def _execute(self, name: str, report: RunReport) -> None:
        running: dict[str, asyncio.Future[None]] = {}

        def schedule(task_name: str) -> asyncio.Future[None]:
            if task_name not in running:
                running[task_name] = asyncio.ensure_future(
                    self._run_node(task_name, schedule, report)
                )
            return running[task_name]

        try:
            await schedule(name)
        finally:
            # Prerequisite failures already surfaced through their dependents.
            for future in running.values():
                if future.done() and not future.cancelled():
                    _ = future.exception()

    async def _run_node(
        self,
        name: str,
        schedule: Callable[[str], asyncio.Future[None]],
        report: RunReport,
    ) -> None:
        task = self._tasks[name]
        record = report.record(name)

        if task.prerequisites:
            results = await asyncio.gather(
                *(schedule(prereq) for prereq in task.prerequisites),
                return_exceptions=True,
            )
            failed = [
                prereq
                for prereq, result in zip(task.prerequisites, results)
                if isinstance(result, BaseException)
            ]
            if failed:
                record.status = TaskStatus.SKIPPED
                raise TaskFailedError(
                    f"Task '{name}' not run: prerequisite '{failed[0]}' failed",
                    task=name,
                )

        record.start()
        if task.action is None:
            record.finish()
            return

        logger.info(f"Starting '{name}'...")
        try:
            await task.action()
        except Exception as e:
            record.finish(e)
            self.failed = True
            logger.error(f"'{name}' errored after {record.duration:.2f}s: {e}")
            raise
        record.finish()
        logger.info(f"Finished '{name}' after {record.duration:.2f}s")

    def watch(
        self,
        source_globs: Sequence[str],
        trigger_task: str,
        root: Path,
        debounce_seconds: float = 0.5,
    ) -> "SourceWatcher":
        """
        Create a watcher that re-runs trigger_task when watched sources change.

        Call ``await watcher.serve()`` to start watching.
        """
        from .watch import SourceWatcher

        _ = self.resolve(trigger_task)
        return SourceWatcher(
            graph=self,
            trigger_task=trigger_task,
            root=root,
            patterns=tuple(source_globs),
            debounce_seconds=debounce_seconds,
        )

