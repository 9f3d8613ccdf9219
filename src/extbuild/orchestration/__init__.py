"""
Task orchestration for extbuild.

This package provides the task graph, serial sequences, and watch mode:
- types: Task, TaskStatus, FailurePolicy and run reports
- graph: TaskGraph with declaration-time cycle detection
- watch: SourceWatcher for debounced rebuilds
"""

from .graph import TaskGraph
from .types import FailurePolicy, RunReport, Task, TaskAction, TaskRecord, TaskStatus
from .watch import SourceChangeHandler, SourceWatcher

__all__ = [
    "FailurePolicy",
    "RunReport",
    "SourceChangeHandler",
    "SourceWatcher",
    "Task",
    "TaskAction",
    "TaskGraph",
    "TaskRecord",
    "TaskStatus",
]
