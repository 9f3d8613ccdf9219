"""Tests for task graph declaration, scheduling and sequences."""

from __future__ import annotations

import asyncio

import pytest

from extbuild.orchestration import FailurePolicy, TaskGraph, TaskStatus
from extbuild.utils.core.exceptions import SequenceError, TaskFailedError, TaskGraphError


def recorder(log: list[str], name: str, delay: float = 0.0, fail: bool = False):
    """Create an action that appends its name to log."""

    async def action() -> None:
        if delay:
            await asyncio.sleep(delay)
        if fail:
            raise RuntimeError(f"{name} broke")
        log.append(name)

    return action


class TestDeclaration:
    """Test cases for declaring tasks."""

    def test_duplicate_name_rejected(self) -> None:
        graph = TaskGraph()
        _ = graph.declare_task("build")
        with pytest.raises(TaskGraphError, match="already declared"):
            _ = graph.declare_task("build")

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(TaskGraphError):
            _ = TaskGraph().declare_task("")

    def test_repeated_prerequisite_rejected(self) -> None:
        with pytest.raises(TaskGraphError, match="twice"):
            _ = TaskGraph().declare_task("build", ["clean", "clean"])

    def test_self_dependency_is_a_cycle(self) -> None:
        with pytest.raises(TaskGraphError, match="cycle"):
            _ = TaskGraph().declare_task("build", ["build"])

    def test_cycle_detected_at_declaration(self) -> None:
        """A -> B declared first lets B -> A close a cycle, even before B exists."""
        graph = TaskGraph()
        _ = graph.declare_task("a", ["b"])
        with pytest.raises(TaskGraphError, match="a -> b -> a|b -> a -> b"):
            _ = graph.declare_task("b", ["a"])
        assert "b" not in graph

    def test_longer_cycle_detected(self) -> None:
        graph = TaskGraph()
        _ = graph.declare_task("a", ["b"])
        _ = graph.declare_task("b", ["c"])
        with pytest.raises(TaskGraphError, match="cycle"):
            _ = graph.declare_task("c", ["a"])

    def test_task_without_action_is_group(self) -> None:
        graph = TaskGraph()
        task = graph.declare_task("default", ["build"])
        assert task.is_group
        assert task.prerequisites == ("build",)


class TestResolve:
    """Test cases for dependency resolution."""

    def test_topological_order(self) -> None:
        graph = TaskGraph()
        _ = graph.declare_task("copy-scripts")
        _ = graph.declare_task("build", ["copy-scripts"])
        _ = graph.declare_task("push", ["build"])
        assert graph.resolve("push") == ["copy-scripts", "build", "push"]

    def test_unknown_task(self) -> None:
        with pytest.raises(TaskGraphError, match="not declared"):
            _ = TaskGraph().resolve("missing")

    def test_unknown_prerequisite(self) -> None:
        graph = TaskGraph()
        _ = graph.declare_task("build", ["missing"])
        with pytest.raises(TaskGraphError, match="requires undeclared task 'missing'"):
            _ = graph.resolve("build")


class TestRun:
    """Test cases for running tasks."""

    @pytest.mark.asyncio
    async def test_prerequisites_run_first(self) -> None:
        log: list[str] = []
        graph = TaskGraph()
        _ = graph.declare_task("copy-scripts", action=recorder(log, "copy-scripts"))
        _ = graph.declare_task("build", ["copy-scripts"], recorder(log, "build"))

        report = await graph.run("build")

        assert log == ["copy-scripts", "build"]
        assert report.succeeded
        assert report.records["build"].status is TaskStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_shared_prerequisite_runs_once(self) -> None:
        log: list[str] = []
        graph = TaskGraph()
        _ = graph.declare_task("base", action=recorder(log, "base"))
        _ = graph.declare_task("left", ["base"], recorder(log, "left"))
        _ = graph.declare_task("right", ["base"], recorder(log, "right"))
        _ = graph.declare_task("all", ["left", "right"])

        _ = await graph.run("all")

        assert log.count("base") == 1
        assert log[0] == "base"
        assert sorted(log[1:]) == ["left", "right"]

    @pytest.mark.asyncio
    async def test_independent_branches_run_concurrently(self) -> None:
        log: list[str] = []
        graph = TaskGraph()
        _ = graph.declare_task("slow", action=recorder(log, "slow", delay=0.05))
        _ = graph.declare_task("fast", action=recorder(log, "fast"))
        _ = graph.declare_task("all", ["slow", "fast"])

        _ = await graph.run("all")

        assert log == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_group_task_is_noop(self) -> None:
        log: list[str] = []
        graph = TaskGraph()
        _ = graph.declare_task("build", action=recorder(log, "build"))
        _ = graph.declare_task("default", ["build"])

        report = await graph.run("default")

        assert log == ["build"]
        assert report.records["default"].status is TaskStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_failure_propagates_in_fail_fast(self) -> None:
        graph = TaskGraph(FailurePolicy.FAIL_FAST)
        _ = graph.declare_task("build", action=recorder([], "build", fail=True))

        with pytest.raises(RuntimeError, match="build broke"):
            _ = await graph.run("build")
        assert graph.failed

    @pytest.mark.asyncio
    async def test_failed_prerequisite_skips_dependent(self) -> None:
        log: list[str] = []
        graph = TaskGraph()
        _ = graph.declare_task("build", action=recorder(log, "build", fail=True))
        _ = graph.declare_task("push", ["build"], recorder(log, "push"))

        with pytest.raises(TaskFailedError, match="prerequisite 'build' failed"):
            _ = await graph.run("push")

        assert log == []
        report = graph.last_report
        assert report is not None
        assert report.records["build"].status is TaskStatus.FAILED
        assert report.records["push"].status is TaskStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_independent_sibling_unaffected_by_failure(self) -> None:
        log: list[str] = []
        graph = TaskGraph(FailurePolicy.CONTINUE)
        _ = graph.declare_task("broken", action=recorder(log, "broken", fail=True))
        _ = graph.declare_task("fine", action=recorder(log, "fine", delay=0.01))
        _ = graph.declare_task("all", ["broken", "fine"])

        report = await graph.run("all")

        assert log == ["fine"]
        assert report.failed == ["broken"]
        assert report.records["fine"].status is TaskStatus.SUCCEEDED
        assert graph.failed

    @pytest.mark.asyncio
    async def test_continue_policy_returns_report(self) -> None:
        graph = TaskGraph(FailurePolicy.CONTINUE)
        _ = graph.declare_task("build", action=recorder([], "build", fail=True))

        report = await graph.run("build")

        assert not report.succeeded
        assert isinstance(report.records["build"].error, RuntimeError)


class TestRunSequence:
    """Test cases for strictly serial sequences."""

    @pytest.mark.asyncio
    async def test_stages_run_in_order(self) -> None:
        log: list[str] = []
        graph = TaskGraph()
        _ = graph.declare_task("build", action=recorder(log, "build", delay=0.02))
        _ = graph.declare_task("add-i18n", action=recorder(log, "add-i18n"))
        _ = graph.declare_task("vsce-package", action=recorder(log, "vsce-package"))

        report = await graph.run_sequence(["build", "add-i18n", "vsce-package"])

        assert log == ["build", "add-i18n", "vsce-package"]
        assert report.order() == ["build", "add-i18n", "vsce-package"]

    @pytest.mark.asyncio
    async def test_failing_stage_aborts_rest(self) -> None:
        log: list[str] = []
        graph = TaskGraph()
        _ = graph.declare_task("verify", action=recorder(log, "verify", fail=True))
        _ = graph.declare_task("build", action=recorder(log, "build"))

        with pytest.raises(SequenceError) as exc_info:
            _ = await graph.run_sequence(["verify", "build"])

        assert exc_info.value.stage == "verify"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert log == []

    @pytest.mark.asyncio
    async def test_unknown_stage_rejected_before_running(self) -> None:
        log: list[str] = []
        graph = TaskGraph()
        _ = graph.declare_task("build", action=recorder(log, "build"))

        with pytest.raises(TaskGraphError):
            _ = await graph.run_sequence(["build", "missing"])
        assert log == []
