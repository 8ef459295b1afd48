"""Debounced per-binding rebuilds driven by file-system events.

Each binding moves through IDLE -> PENDING -> RUNNING (-> QUEUED -> RUNNING)
-> IDLE. Bursts of events while PENDING re-arm the debounce timer; events
while RUNNING collapse into a single QUEUED rerun. A binding never has two
rebuilds in flight, and bindings never wait on each other.
"""

from __future__ import annotations

import asyncio
from enum import Enum
import os
from pathlib import Path
from typing import Awaitable, Callable

from rich.traceback import Traceback
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from assetpipe.config import SourceSet
from assetpipe.console import console, error, info, relative
from assetpipe.errors import CompileError, OutputError

Sequence = Callable[[frozenset], Awaitable[None]]


class BindingState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"
    QUEUED = "queued"


class WatchBinding:
    def __init__(self, name: str, source_set: SourceSet, sequence: Sequence):
        self.name = name
        self.source_set = source_set
        self.sequence = sequence
        self.state = BindingState.IDLE
        self.changes: set[Path] = set()
        self.timer: asyncio.TimerHandle | None = None
        self.task: asyncio.Task | None = None
        self.idle = asyncio.Event()
        self.idle.set()

    def drain(self) -> frozenset:
        changes = frozenset(self.changes)
        self.changes.clear()
        return changes

    def __repr__(self):
        return f"<WatchBinding {self.name} {self.state.value}>"


class ChangeHandler(FileSystemEventHandler):
    """Forward watchdog events (observer thread) to the event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, callback: Callable[[Path], object]):
        super().__init__()
        self.loop = loop
        self.callback = callback

    def forward(self, path):
        self.loop.call_soon_threadsafe(self.callback, Path(os.fsdecode(path)))

    def on_created(self, event: FileSystemEvent):
        if not event.is_directory:
            self.forward(event.src_path)

    def on_modified(self, event: FileSystemEvent):
        if not event.is_directory:
            self.forward(event.src_path)

    def on_deleted(self, event: FileSystemEvent):
        if not event.is_directory:
            self.forward(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        if not event.is_directory:
            self.forward(event.dest_path)


class WatchOrchestrator:
    def __init__(self, debounce: float = 0.1, root: Path | None = None):
        self.debounce = debounce
        self.root = root
        self.bindings: list[WatchBinding] = []
        self.observer = None

    def bind(self, name: str, source_set: SourceSet, sequence: Sequence) -> WatchBinding:
        binding = WatchBinding(name, source_set, sequence)
        self.bindings.append(binding)
        return binding

    def notify(self, path: Path) -> list[WatchBinding]:
        """Route one changed path to every binding that watches it."""
        path = Path(path)
        matched = [b for b in self.bindings if b.source_set.matches(path)]
        for binding in matched:
            self.on_change(binding, path)
        return matched

    def on_change(self, binding: WatchBinding, path: Path):
        binding.changes.add(path)
        if binding.state is BindingState.IDLE:
            self.set_state(binding, BindingState.PENDING)
            self.arm(binding)
        elif binding.state is BindingState.PENDING:
            self.arm(binding)
        elif binding.state is BindingState.RUNNING:
            self.set_state(binding, BindingState.QUEUED)

    def arm(self, binding: WatchBinding):
        if binding.timer is not None:
            binding.timer.cancel()
        loop = asyncio.get_running_loop()
        binding.timer = loop.call_later(self.debounce, self.start_rebuild, binding)

    def set_state(self, binding: WatchBinding, state: BindingState):
        binding.state = state
        if state is BindingState.IDLE:
            binding.idle.set()
        else:
            binding.idle.clear()

    def start_rebuild(self, binding: WatchBinding):
        binding.timer = None
        if binding.state is not BindingState.PENDING:
            return
        self.set_state(binding, BindingState.RUNNING)
        binding.task = asyncio.get_running_loop().create_task(self.rebuild(binding))
        binding.task.add_done_callback(lambda task: self.on_rebuild_done(binding, task))

    async def rebuild(self, binding: WatchBinding):
        while True:
            changes = binding.drain()
            self.set_state(binding, BindingState.RUNNING)
            names = ", ".join(sorted(self.describe(path) for path in changes))
            info(f"Rebuilding {binding.name} ({names})")
            try:
                await binding.sequence(changes)
            except CompileError as exc:
                error(f"{binding.name}: {self.describe(exc.file)}: {exc.message}")
            except OutputError as exc:
                error(
                    f"{binding.name} halted: {self.describe(exc.path)}: "
                    f"{exc.message or exc.kind.value}"
                )
                binding.changes.clear()
                self.set_state(binding, BindingState.IDLE)
                return
            if binding.state is not BindingState.QUEUED:
                self.set_state(binding, BindingState.IDLE)
                return

    def on_rebuild_done(self, binding: WatchBinding, task: asyncio.Task):
        binding.task = None
        if task.cancelled():
            self.set_state(binding, BindingState.IDLE)
            return
        exc = task.exception()
        if exc is not None:
            error(f"{binding.name}: unexpected failure: {exc!r}")
            console.print(Traceback.from_exception(type(exc), exc, exc.__traceback__))
            binding.changes.clear()
            self.set_state(binding, BindingState.IDLE)

    def describe(self, path) -> str:
        return relative(path, self.root) if self.root is not None else str(path)

    async def wait_idle(self):
        await asyncio.gather(*(binding.idle.wait() for binding in self.bindings))

    def start(self):
        """Attach a file-system observer to every binding's directories."""
        loop = asyncio.get_running_loop()
        handler = ChangeHandler(loop, self.notify)
        observer = Observer()
        scheduled: set[Path] = set()
        for binding in self.bindings:
            for directory in binding.source_set.watch_dirs():
                if directory in scheduled or not directory.is_dir():
                    continue
                observer.schedule(handler, str(directory), recursive=True)
                scheduled.add(directory)
        observer.start()
        self.observer = observer

    async def stop(self):
        """Detach watchers, drop armed timers, let running rebuilds finish."""
        if self.observer is not None:
            observer, self.observer = self.observer, None
            observer.stop()
            await asyncio.to_thread(observer.join)
        for binding in self.bindings:
            if binding.timer is not None:
                binding.timer.cancel()
                binding.timer = None
            if binding.state is BindingState.PENDING:
                binding.changes.clear()
                self.set_state(binding, BindingState.IDLE)
            elif binding.state is BindingState.QUEUED:
                self.set_state(binding, BindingState.RUNNING)
        await self.wait_idle()
