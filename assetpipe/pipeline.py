"""The two fixed build variants, chosen once per process from the build mode."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from assetpipe.artifact import Artifact, AssetCompiler, AssetKind
from assetpipe.config import BuildConfig, BuildMode
from assetpipe.markup import MarkupCompiler
from assetpipe.script import ScriptCompiler, minify_script
from assetpipe.sourcemap import link_source_map
from assetpipe.style import StyleCompiler, prefix_vendors

Step = Callable[[Artifact, BuildConfig], Artifact]


@dataclass(frozen=True)
class Pipeline:
    mode: BuildMode
    source_maps: bool
    incremental: bool
    style_output: str
    script_steps: tuple[Step, ...]
    style_steps: tuple[Step, ...]


DEVELOPMENT_PIPELINE = Pipeline(
    mode=BuildMode.DEVELOPMENT,
    source_maps=True,
    incremental=True,
    style_output="expanded",
    script_steps=(link_source_map,),
    style_steps=(prefix_vendors, link_source_map),
)

PRODUCTION_PIPELINE = Pipeline(
    mode=BuildMode.PRODUCTION,
    source_maps=False,
    incremental=False,
    style_output="compressed",
    script_steps=(minify_script,),
    style_steps=(prefix_vendors,),
)


def select_pipeline(mode: BuildMode) -> Pipeline:
    if mode is BuildMode.PRODUCTION:
        return PRODUCTION_PIPELINE
    return DEVELOPMENT_PIPELINE


def make_compilers(
    config: BuildConfig, pipeline: Pipeline
) -> dict[AssetKind, AssetCompiler]:
    """One compiler per asset kind, in declaration order."""
    return {
        AssetKind.SCRIPT: ScriptCompiler(config, pipeline),
        AssetKind.STYLE: StyleCompiler(config, pipeline),
        AssetKind.MARKUP: MarkupCompiler(config, pipeline),
    }
