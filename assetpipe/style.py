from __future__ import annotations

from dataclasses import replace
import json
import re
from pathlib import Path
from typing import TYPE_CHECKING

import sass

from assetpipe.artifact import Artifact, AssetCompiler, AssetKind
from assetpipe.errors import CompileError, CompileErrorKind
from assetpipe.sourcemap import index_map, source_map_url

if TYPE_CHECKING:
    from assetpipe.config import BuildConfig
    from assetpipe.pipeline import Pipeline

VENDOR_PREFIXES = {
    "appearance": ("-webkit-", "-moz-"),
    "backdrop-filter": ("-webkit-",),
    "box-decoration-break": ("-webkit-",),
    "hyphens": ("-webkit-", "-ms-"),
    "mask-image": ("-webkit-",),
    "text-size-adjust": ("-webkit-", "-moz-", "-ms-"),
    "user-select": ("-webkit-", "-moz-", "-ms-"),
}

BLOCK_RE = re.compile(r"\{([^{}]*)\}")
DECLARATION_RE = re.compile(
    r"(?P<lead>^|[;\s])(?P<prop>" + "|".join(map(re.escape, VENDOR_PREFIXES)) + r")"
    r"(?P<colon>\s*:\s*)(?P<value>[^;}]+?)(?=\s*(?:;|$))"
)
LOCATION_RE = re.compile(r"on line \d+(?::\d+)? of (?P<file>.+?)\s*$", re.MULTILINE)


def prefix_block(body: str) -> str:
    def add_prefixes(match: re.Match) -> str:
        prop = match.group("prop")
        colon = match.group("colon")
        value = match.group("value")
        prefixed = "".join(
            f"{prefix}{prop}{colon}{value}; "
            if colon.endswith(" ")
            else f"{prefix}{prop}{colon}{value};"
            for prefix in VENDOR_PREFIXES[prop]
            if f"{prefix}{prop}" not in body
        )
        return f"{match.group('lead')}{prefixed}{prop}{colon}{value}"

    return DECLARATION_RE.sub(add_prefixes, body)


def prefix_vendors(artifact: Artifact, config: "BuildConfig") -> Artifact:
    """Insert vendor-prefixed copies of known properties, on the same line.

    Line offsets in the map stay valid. Columns after an insertion on a line
    are not shifted, so they drift by the inserted length.
    """
    css = artifact.data.decode("utf-8")
    prefixed = BLOCK_RE.sub(lambda m: "{" + prefix_block(m.group(1)) + "}", css)
    return replace(artifact, data=prefixed.encode("utf-8"))


def compile_error(path: Path, exc: sass.CompileError) -> CompileError:
    text = str(exc)
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    message = " ".join(lines[:2]) if lines else "Sass compilation failed"
    location = LOCATION_RE.search(text)
    file = path
    if location is not None:
        reported = Path(location.group("file"))
        if reported.is_file():
            file = reported.resolve()
    if "to import not found" in text or "find stylesheet to import" in text:
        kind = CompileErrorKind.IMPORT_RESOLUTION
    else:
        kind = CompileErrorKind.SYNTAX
    return CompileError(kind, file, message)


class StyleCompiler(AssetCompiler):
    kind = AssetKind.STYLE

    def __init__(self, config: "BuildConfig", pipeline: "Pipeline"):
        super().__init__(config, pipeline, config.style_sources())

    def entries(self) -> list[Path]:
        """Stylesheets to compile; partials are only reachable through imports."""
        return [path for path in self.source_set.files() if not path.name.startswith("_")]

    def compile(self) -> Artifact:
        entries = self.entries()
        if not entries:
            raise CompileError(
                CompileErrorKind.IMPORT_RESOLUTION,
                self.config.style_glob,
                "no stylesheets matched",
            )

        chunks: list[str] = []
        sections: list[tuple[int, dict]] = []
        line = 0
        for path in entries:
            css, chunk_map = self.compile_entry(path)
            if chunk_map is not None:
                sections.append((line, chunk_map))
            if css and not css.endswith("\n"):
                css += "\n"
            chunks.append(css)
            line += css.count("\n")

        name = self.config.style_bundle
        source_map = index_map(name, sections) if self.pipeline.source_maps else None
        artifact = Artifact(name, "".join(chunks).encode("utf-8"), source_map)
        for step in self.pipeline.style_steps:
            artifact = step(artifact, self.config)
        return artifact

    def compile_entry(self, path: Path) -> tuple[str, dict | None]:
        options = {
            "filename": str(path),
            "output_style": self.pipeline.style_output,
        }
        try:
            if not self.pipeline.source_maps:
                return sass.compile(**options), None
            output = self.config.output_path
            css, raw_map = sass.compile(
                **options,
                source_map_filename=str(
                    output / source_map_url(self.config, self.config.style_bundle)
                ),
                output_filename_hint=str(output / self.config.style_bundle),
                source_map_contents=True,
                omit_source_map_url=True,
            )
        except sass.CompileError as exc:
            raise compile_error(path, exc) from exc
        return css, json.loads(raw_map)
