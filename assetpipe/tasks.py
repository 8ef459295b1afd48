"""A small static task graph: named async steps with declared predecessors."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import time
from typing import Any, Awaitable, Callable, Iterable

from assetpipe.console import info
from assetpipe.errors import TaskError

Action = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class Task:
    name: str
    action: Action
    after: tuple[str, ...] = ()


class Skipped(Exception):
    """A predecessor failed, so the task never started."""


class TaskGraph:
    def __init__(self):
        self.tasks: dict[str, Task] = {}

    def add(self, name: str, action: Action, after: Iterable[str] = ()) -> Task:
        """Declare a task. Predecessors must already be declared."""
        if name in self.tasks:
            raise ValueError(f"Task '{name}' is already declared")
        after = tuple(after)
        for dep in after:
            if dep not in self.tasks:
                raise ValueError(f"Task '{name}' depends on undeclared task '{dep}'")
        task = Task(name, action, after)
        self.tasks[name] = task
        return task

    def closure(self, names: Iterable[str]) -> list[Task]:
        """Requested tasks plus their predecessors, in declaration order."""
        wanted: set[str] = set()
        pending = list(names)
        while pending:
            name = pending.pop()
            if name in wanted:
                continue
            if name not in self.tasks:
                raise ValueError(f"Unknown task '{name}'")
            wanted.add(name)
            pending.extend(self.tasks[name].after)
        return [task for name, task in self.tasks.items() if name in wanted]

    async def run(self, names: Iterable[str]) -> dict[str, Any]:
        """Run tasks concurrently where unordered. Raise TaskError on failure.

        The reported task is the one that failed first. Failures within the
        same pass of the event loop are ordered by declaration.
        """
        selected = self.closure(names)
        running: dict[str, asyncio.Task] = {}
        loop = asyncio.get_running_loop()
        # declaration indices of failed tasks, one list per loop pass
        failures: list[list[int]] = []
        pass_open = False

        def close_pass():
            nonlocal pass_open
            pass_open = False

        def record_failure(index: int):
            nonlocal pass_open
            if not pass_open:
                failures.append([])
                pass_open = True
                loop.call_soon(close_pass)
            failures[-1].append(index)

        async def execute(index: int, task: Task):
            for dep in task.after:
                try:
                    await running[dep]
                except Exception as exc:
                    raise Skipped(dep) from exc
            start = time.perf_counter()
            info(f"Starting '{task.name}'...")
            try:
                result = await task.action()
            except Exception:
                record_failure(index)
                raise
            elapsed = (time.perf_counter() - start) * 1000
            info(f"Finished '{task.name}' after {elapsed:.0f} ms")
            return result

        for index, task in enumerate(selected):
            running[task.name] = asyncio.ensure_future(execute(index, task))

        await asyncio.gather(*running.values(), return_exceptions=True)

        if failures:
            failed = selected[min(failures[0])]
            raise TaskError(failed.name, running[failed.name].exception())
        return {task.name: running[task.name].result() for task in selected}
