from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from assetpipe.config import BuildConfig, SourceSet
    from assetpipe.pipeline import Pipeline


class AssetKind(Enum):
    SCRIPT = "script"
    STYLE = "style"
    MARKUP = "markup"


@dataclass(frozen=True)
class Artifact:
    """Output of one compile: the named bundle plus an optional source map."""

    name: str
    data: bytes
    source_map: bytes | None = None


class AssetCompiler:
    """Turns one SourceSet into one Artifact, with behaviour fixed by the pipeline."""

    kind: AssetKind

    def __init__(self, config: "BuildConfig", pipeline: "Pipeline", source_set: "SourceSet"):
        self.config = config
        self.pipeline = pipeline
        self.source_set = source_set

    def compile(self) -> Artifact:
        raise NotImplementedError

    def invalidate(self, paths: Iterable[Path]):
        """Forget cached state for changed paths. Stateless compilers ignore it."""
