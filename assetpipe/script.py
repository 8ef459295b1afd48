"""Script bundling: resolve the module graph, transpile, link into one file."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import json
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from dukpy import JSRuntimeError, babel_compile
import rjsmin

from assetpipe.artifact import Artifact, AssetCompiler, AssetKind
from assetpipe.errors import CompileError, CompileErrorKind
from assetpipe.sourcemap import index_map

if TYPE_CHECKING:
    from assetpipe.config import BuildConfig
    from assetpipe.pipeline import Pipeline

REQUIRE_RE = re.compile(r"""\brequire\(\s*(['"])([^'"\n]+)\1\s*\)""")

PRELUDE = """(function (modules, entry) {
  var cache = {};
  function load(id) {
    if (cache[id]) {
      return cache[id].exports;
    }
    var module = cache[id] = { exports: {} };
    modules[id][0].call(module.exports, function (name) {
      return load(modules[id][1][name]);
    }, module, module.exports);
    return module.exports;
  }
  load(entry);
})({
"""


@dataclass(frozen=True)
class Module:
    path: Path
    digest: str
    code: str
    deps: tuple[str, ...]
    source_map: dict | None


def content_digest(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def find_requires(code: str) -> tuple[str, ...]:
    """Required specifiers in source order, without duplicates.

    Comments are stripped first, so a commented-out require is not a dependency.
    """
    code = rjsmin.jsmin(code)
    return tuple(dict.fromkeys(match.group(2) for match in REQUIRE_RE.finditer(code)))


def file_candidates(base: Path) -> list[Path]:
    return [
        base,
        base.with_name(base.name + ".js"),
        base.with_name(base.name + ".json"),
        base / "index.js",
    ]


def in_node_modules(path: Path) -> bool:
    return "node_modules" in path.parts


def minify_script(artifact: Artifact, config: "BuildConfig") -> Artifact:
    """Strip comments and whitespace from a script bundle."""
    minified = rjsmin.jsmin(artifact.data.decode("utf-8"))
    return Artifact(artifact.name, minified.encode("utf-8"), None)


class ScriptCompiler(AssetCompiler):
    kind = AssetKind.SCRIPT

    def __init__(self, config: "BuildConfig", pipeline: "Pipeline"):
        super().__init__(config, pipeline, config.script_sources())
        self.entry = config.entry_path
        self.cache: dict[Path, Module] | None = {} if pipeline.incremental else None

    def invalidate(self, paths: Iterable[Path]):
        if self.cache is None:
            return
        for path in paths:
            self.cache.pop(Path(path).resolve(), None)

    def compile(self) -> Artifact:
        modules = self.resolve_graph()
        artifact = self.link(modules)
        for step in self.pipeline.script_steps:
            artifact = step(artifact, self.config)
        return artifact

    def resolve_graph(self) -> list[tuple[Module, dict[str, Path]]]:
        """Load every module reachable from the entry, in discovery order."""
        entry = self.entry.resolve()
        if not entry.is_file():
            raise CompileError(
                CompileErrorKind.IMPORT_RESOLUTION, entry, "entry file not found"
            )

        order: list[tuple[Module, dict[str, Path]]] = []
        seen: set[Path] = set()

        def visit(path: Path):
            seen.add(path)
            module = self.load_module(path)
            resolved = {spec: self.resolve(spec, path) for spec in module.deps}
            order.append((module, resolved))
            for dep in resolved.values():
                if dep not in seen:
                    visit(dep)

        visit(entry)
        return order

    def resolve(self, spec: str, importer: Path) -> Path:
        if spec.startswith(("./", "../", "/")):
            base = Path(spec) if spec.startswith("/") else importer.parent / spec
            for candidate in file_candidates(base):
                if candidate.is_file():
                    return candidate.resolve()
        else:
            root = self.config.root
            for directory in importer.parents:
                found = self.resolve_package(directory / "node_modules" / spec)
                if found is not None:
                    return found
                if directory == root or root not in directory.parents:
                    break
        raise CompileError(
            CompileErrorKind.IMPORT_RESOLUTION,
            importer,
            f"Cannot find module '{spec}'",
        )

    def resolve_package(self, base: Path) -> Path | None:
        for candidate in file_candidates(base)[:3]:
            if candidate.is_file():
                return candidate.resolve()
        manifest = base / "package.json"
        if manifest.is_file():
            try:
                main = json.loads(manifest.read_text(encoding="utf-8")).get("main")
            except (OSError, json.JSONDecodeError, AttributeError):
                main = None
            if isinstance(main, str) and main:
                for candidate in file_candidates(base / main):
                    if candidate.is_file():
                        return candidate.resolve()
        index = base / "index.js"
        if index.is_file():
            return index.resolve()
        return None

    def load_module(self, path: Path) -> Module:
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise CompileError(
                CompileErrorKind.IMPORT_RESOLUTION, path, exc.strerror or str(exc)
            ) from exc

        digest = content_digest(data)
        if self.cache is not None:
            cached = self.cache.get(path)
            if cached is not None and cached.digest == digest:
                return cached

        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CompileError(CompileErrorKind.SYNTAX, path, str(exc)) from exc

        if path.suffix == ".json":
            code, source_map = f"module.exports = {text.strip()};", None
        elif in_node_modules(path):
            code, source_map = text, None
        else:
            code, source_map = self.transpile(path, text)

        module = Module(path, digest, code, find_requires(code), source_map)
        if self.cache is not None:
            self.cache[path] = module
        return module

    def transpile(self, path: Path, source: str) -> tuple[str, dict | None]:
        map_dir = self.config.output_path / self.config.source_map_dir
        options = {
            "presets": list(self.config.babel_presets),
            "filename": Path(os.path.relpath(path, self.config.root)).as_posix(),
        }
        if self.pipeline.source_maps:
            options["sourceMaps"] = True
            options["sourceFileName"] = Path(os.path.relpath(path, map_dir)).as_posix()
        try:
            result = babel_compile(source, **options)
        except JSRuntimeError as exc:
            text = str(exc).strip()
            message = text.splitlines()[0] if text else "Babel failed"
            kind = (
                CompileErrorKind.SYNTAX
                if "SyntaxError" in text
                else CompileErrorKind.INTERNAL
            )
            raise CompileError(kind, path, message) from exc
        source_map = result.get("map") if self.pipeline.source_maps else None
        return result["code"], source_map

    def link(self, modules: list[tuple[Module, dict[str, Path]]]) -> Artifact:
        """Wrap modules in the loader prelude; ids follow discovery order."""
        ids = {module.path: index for index, (module, _) in enumerate(modules)}
        parts = [PRELUDE]
        line = PRELUDE.count("\n")
        sections: list[tuple[int, dict]] = []

        for index, (module, resolved) in enumerate(modules):
            header = f"{index}: [function (require, module, exports) {{\n"
            parts.append(header)
            line += 1
            if module.source_map:
                sections.append((line, module.source_map))
            code = module.code if module.code.endswith("\n") else module.code + "\n"
            parts.append(code)
            line += code.count("\n")
            deps = json.dumps(
                {spec: ids[path] for spec, path in resolved.items()}, sort_keys=True
            )
            separator = "," if index < len(modules) - 1 else ""
            parts.append(f"}}, {deps}]{separator}\n")
            line += 1

        parts.append("}, 0);\n")
        bundle = "".join(parts).encode("utf-8")
        name = self.config.script_bundle
        source_map = index_map(name, sections) if self.pipeline.source_maps else None
        return Artifact(name, bundle, source_map)
