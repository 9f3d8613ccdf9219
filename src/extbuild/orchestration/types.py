"""
Core types, enums, and data classes for the task orchestrator.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

TaskAction = Callable[[], Awaitable[None]]


class TaskStatus(Enum):
    """Status of a task within one run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # A prerequisite failed


class FailurePolicy(Enum):
    """How a failing task affects the process."""

    FAIL_FAST = "fail_fast"  # Propagate, the CLI exits non-zero
    CONTINUE = "continue"  # Log and keep going (development / watch)


@dataclass(frozen=True)
class Task:
    """A named node of the task graph."""

    name: str
    prerequisites: tuple[str, ...] = ()
    action: TaskAction | None = None

    @property
    def is_group(self) -> bool:
        """A task without an action only groups its prerequisites."""
        return self.action is None


@dataclass
class TaskRecord:
    """Outcome of one task in a run."""

    name: str
    status: TaskStatus = TaskStatus.PENDING
    started_at: float | None = None
    finished_at: float | None = None
    error: BaseException | None = None

    def start(self) -> None:
        self.status = TaskStatus.RUNNING
        self.started_at = time.monotonic()

    def finish(self, error: BaseException | None = None) -> None:
        self.finished_at = time.monotonic()
        self.error = error
        self.status = TaskStatus.FAILED if error is not None else TaskStatus.SUCCEEDED

    @property
    def duration(self) -> float:
        """Seconds spent in the action, 0 when it never started."""
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return self.finished_at - self.started_at


@dataclass
class RunReport:
    """Per-task records of a graph run or sequence."""

    records: dict[str, TaskRecord] = field(default_factory=dict)

    def record(self, name: str) -> TaskRecord:
        if name not in self.records:
            self.records[name] = TaskRecord(name)
        return self.records[name]

    @property
    def failed(self) -> list[str]:
        return [
            name
            for name, record in self.records.items()
            if record.status == TaskStatus.FAILED
        ]

    @property
    def succeeded(self) -> bool:
        return not self.failed

    def order(self) -> list[str]:
        """Names of the tasks that started, in start order."""
        started = [r for r in self.records.values() if r.started_at is not None]
        return [r.name for r in sorted(started, key=lambda r: r.started_at or 0.0)]
