"""One-shot build: clean the output, then compile every asset."""

from __future__ import annotations

import asyncio
from pathlib import Path

from assetpipe.artifact import AssetCompiler, AssetKind
from assetpipe.config import BuildConfig
from assetpipe.output import OutputWriter, clean
from assetpipe.pipeline import Pipeline, make_compilers
from assetpipe.tasks import TaskGraph

CLEAN_TASK = "clean"
COMPILE_TASKS = tuple(kind.value for kind in AssetKind)


def compile_and_write(compiler: AssetCompiler, writer: OutputWriter) -> list[Path]:
    artifact = compiler.compile()
    return writer.write(artifact)


def asset_task(compiler: AssetCompiler, writer: OutputWriter):
    async def action() -> list[Path]:
        return await asyncio.to_thread(compile_and_write, compiler, writer)

    return action


def build_graph(
    config: BuildConfig,
    compilers: dict[AssetKind, AssetCompiler],
    writer: OutputWriter,
) -> TaskGraph:
    """clean -> {script, style, markup}"""
    graph = TaskGraph()

    async def clean_output():
        await asyncio.to_thread(clean, config.output_path)

    graph.add(CLEAN_TASK, clean_output)
    for kind, compiler in compilers.items():
        graph.add(kind.value, asset_task(compiler, writer), after=(CLEAN_TASK,))
    return graph


def make_writer(config: BuildConfig) -> OutputWriter:
    return OutputWriter(config.output_path, config.source_map_dir)


async def compile_all(
    config: BuildConfig,
    compilers: dict[AssetKind, AssetCompiler],
    writer: OutputWriter,
) -> list[Path]:
    """Run the clean + compile phase. Return list of written files."""
    graph = build_graph(config, compilers, writer)
    results = await graph.run(COMPILE_TASKS)
    changed: list[Path] = []
    for name in COMPILE_TASKS:
        changed.extend(results.get(name, []))
    return changed


async def build(config: BuildConfig, pipeline: Pipeline) -> list[Path]:
    compilers = make_compilers(config, pipeline)
    return await compile_all(config, compilers, make_writer(config))
