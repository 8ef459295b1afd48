"""Tests for tasks.py -- predecessor ordering, concurrency and failure rules."""

import asyncio

import pytest

from assetpipe.errors import TaskError
from assetpipe.tasks import TaskGraph

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def recorder(log: list, name: str, result=None, delay: float = 0.0):
    async def action():
        if delay:
            await asyncio.sleep(delay)
        log.append(name)
        return result

    return action


def failing(log: list, name: str, delay: float = 0.0):
    async def action():
        if delay:
            await asyncio.sleep(delay)
        log.append(name)
        raise RuntimeError(f"{name} broke")

    return action


def asset_graph(log: list, **actions) -> TaskGraph:
    graph = TaskGraph()
    graph.add("clean", actions.get("clean", recorder(log, "clean")))
    for name in ("script", "style", "markup"):
        graph.add(name, actions.get(name, recorder(log, name)), after=("clean",))
    return graph


# =========================================================================
# Declaration
# =========================================================================


class TestDeclaration:
    def test_duplicate_name_is_rejected(self) -> None:
        graph = TaskGraph()
        graph.add("clean", recorder([], "clean"))
        with pytest.raises(ValueError, match="already declared"):
            graph.add("clean", recorder([], "clean"))

    def test_predecessor_must_be_declared_first(self) -> None:
        graph = TaskGraph()
        with pytest.raises(ValueError, match="undeclared"):
            graph.add("script", recorder([], "script"), after=("clean",))

    async def test_unknown_task_name_is_rejected(self) -> None:
        graph = asset_graph([])
        with pytest.raises(ValueError, match="Unknown task"):
            await graph.run(["deploy"])


# =========================================================================
# Ordering and concurrency
# =========================================================================


class TestRun:
    async def test_predecessor_runs_first(self) -> None:
        log: list = []
        await asset_graph(log).run(["script", "style", "markup"])
        assert log[0] == "clean"
        assert sorted(log[1:]) == ["markup", "script", "style"]

    async def test_pulls_in_predecessors_only_as_needed(self) -> None:
        log: list = []
        await asset_graph(log).run(["style"])
        assert log == ["clean", "style"]

    async def test_independent_tasks_overlap(self) -> None:
        started = {name: asyncio.Event() for name in ("script", "style", "markup")}

        def rendezvous(name: str):
            async def action():
                started[name].set()
                # Only completes if all three are in flight at once.
                await asyncio.wait_for(
                    asyncio.gather(*(event.wait() for event in started.values())),
                    timeout=1.0,
                )
                return name

            return action

        graph = asset_graph([], **{name: rendezvous(name) for name in started})
        results = await graph.run(["script", "style", "markup"])
        assert results["script"] == "script"
        assert results["markup"] == "markup"

    async def test_returns_results_by_name(self) -> None:
        graph = asset_graph([], script=recorder([], "script", result=["app.js"]))
        results = await graph.run(["script"])
        assert results == {"clean": None, "script": ["app.js"]}


# =========================================================================
# Failure semantics
# =========================================================================


class TestFailures:
    async def test_failed_predecessor_skips_dependents(self) -> None:
        log: list = []
        graph = asset_graph(log, clean=failing(log, "clean"))
        with pytest.raises(TaskError) as info:
            await graph.run(["script", "style", "markup"])
        assert info.value.failed_task == "clean"
        assert isinstance(info.value.cause, RuntimeError)
        assert log == ["clean"]

    async def test_earliest_failure_is_reported(self) -> None:
        log: list = []
        graph = asset_graph(
            log,
            script=failing(log, "script", delay=0.05),
            markup=failing(log, "markup"),
        )
        with pytest.raises(TaskError) as info:
            await graph.run(["script", "style", "markup"])
        assert log.index("markup") < log.index("script")
        assert info.value.failed_task == "markup"

    async def test_simultaneous_failures_follow_declaration_order(self) -> None:
        log: list = []
        graph = asset_graph(
            log,
            script=failing(log, "script"),
            markup=failing(log, "markup"),
        )
        with pytest.raises(TaskError) as info:
            await graph.run(["markup", "script"])
        assert info.value.failed_task == "script"

    async def test_unrelated_tasks_still_complete(self) -> None:
        log: list = []
        graph = asset_graph(log, style=failing(log, "style"))
        with pytest.raises(TaskError):
            await graph.run(["script", "style", "markup"])
        assert "script" in log
        assert "markup" in log
