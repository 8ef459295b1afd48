"""Live reload dev server with per-asset incremental rebuilds."""

from __future__ import annotations

import asyncio
from typing import Protocol

from assetpipe.artifact import AssetCompiler, AssetKind
from assetpipe.build import compile_all, compile_and_write, make_writer
from assetpipe.config import BuildConfig
from assetpipe.console import describe_failure, error, info
from assetpipe.errors import BuildError
from assetpipe.output import OutputWriter
from assetpipe.pipeline import Pipeline, make_compilers
from assetpipe.server import DevServer
from assetpipe.watch import WatchOrchestrator


class Reloader(Protocol):
    def reload(self, path: str = "*"): ...


def rebuild_sequence(compiler: AssetCompiler, writer: OutputWriter, server: Reloader):
    """invalidate -> compile -> write -> reload, for one asset kind."""

    async def sequence(changes: frozenset):
        compiler.invalidate(changes)
        written = await asyncio.to_thread(compile_and_write, compiler, writer)
        server.reload(written[0].name)

    return sequence


def bind_assets(
    orchestrator: WatchOrchestrator,
    compilers: dict[AssetKind, AssetCompiler],
    writer: OutputWriter,
    server: Reloader,
):
    for kind, compiler in compilers.items():
        orchestrator.bind(
            kind.value,
            compiler.source_set,
            rebuild_sequence(compiler, writer, server),
        )


async def dev(config: BuildConfig, pipeline: Pipeline):
    """Initial build, then serve and rebuild on change until cancelled."""
    compilers = make_compilers(config, pipeline)
    writer = make_writer(config)

    info("Initial build...")
    try:
        await compile_all(config, compilers, writer)
    except BuildError as exc:
        error(describe_failure(exc, config.root))

    server = DevServer(config.output_path, config.markup_output)
    server.serve(config.host, config.port)

    orchestrator = WatchOrchestrator(config.debounce, root=config.root)
    bind_assets(orchestrator, compilers, writer, server)
    orchestrator.start()
    info("Watching for changes. Press Ctrl+C to stop.")
    try:
        await asyncio.Event().wait()
    finally:
        await orchestrator.stop()
