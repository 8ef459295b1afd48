from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
import fnmatch
import json
import os
from pathlib import Path
from typing import Mapping

from assetpipe.console import warn
from assetpipe.errors import ConfigError

CONFIG_FILE = "assetpipe.json"
PACKAGE_FILE = "package.json"
MODE_VARIABLE = "ASSETPIPE_MODE"

GLOB_MAGIC = ("*", "?", "[")


class BuildMode(Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "BuildMode":
        raw = environ.get(MODE_VARIABLE, "").strip().lower()
        if not raw:
            return cls.DEVELOPMENT
        for mode in cls:
            if mode.value == raw:
                return mode
        raise ConfigError(
            f"{MODE_VARIABLE}={raw!r} is not one of: development, production"
        )


@dataclass(frozen=True)
class SourceSet:
    """Glob patterns, relative to root, naming the inputs of one asset kind."""

    root: Path
    patterns: tuple[str, ...]

    def files(self) -> list[Path]:
        found: set[Path] = set()
        for pattern in self.patterns:
            for path in self.root.glob(pattern):
                if path.is_file():
                    found.add(path)
        return sorted(found)

    def matches(self, path: Path) -> bool:
        try:
            rel = Path(path).relative_to(self.root).as_posix()
        except ValueError:
            return False
        for pattern in self.patterns:
            # `**/` may stand for zero directories.
            if fnmatch.fnmatchcase(rel, pattern):
                return True
            if fnmatch.fnmatchcase(rel, pattern.replace("**/", "")):
                return True
        return False

    def watch_dirs(self) -> list[Path]:
        """Existing base directories that cover every pattern."""
        bases: set[Path] = set()
        for pattern in self.patterns:
            parts = []
            for part in Path(pattern).parts:
                if any(magic in part for magic in GLOB_MAGIC):
                    break
                parts.append(part)
            base = self.root.joinpath(*parts)
            if base.is_file():
                base = base.parent
            while not base.is_dir() and base != self.root:
                base = base.parent
            bases.add(base)
        return sorted(
            base
            for base in bases
            if not any(other != base and other in base.parents for other in bases)
        )


@dataclass(frozen=True)
class BuildConfig:
    root: Path
    mode: BuildMode = BuildMode.DEVELOPMENT
    title: str = ""
    entry: str = "src/js/index.js"
    script_glob: str = "src/js/**/*.js"
    style_glob: str = "src/scss/**/*.scss"
    markup_glob: str = "src/html/**/*.html"
    output_dir: str = "build"
    source_map_dir: str = "maps"
    script_bundle: str = "app.js"
    style_bundle: str = "app.css"
    markup_output: str = "index.html"
    host: str = "127.0.0.1"
    port: int = 8000
    debounce: float = 0.1
    babel_presets: tuple[str, ...] = field(default=("es2015",))

    @property
    def entry_path(self) -> Path:
        return self.root / self.entry

    @property
    def output_path(self) -> Path:
        return self.root / self.output_dir

    def script_sources(self) -> SourceSet:
        return SourceSet(self.root, (self.script_glob,))

    def style_sources(self) -> SourceSet:
        return SourceSet(self.root, (self.style_glob,))

    def markup_sources(self) -> SourceSet:
        return SourceSet(self.root, (self.markup_glob,))


# assetpipe.json key -> BuildConfig field
CONFIG_KEYS = {
    "title": "title",
    "entry": "entry",
    "scriptGlob": "script_glob",
    "styleGlob": "style_glob",
    "markupGlob": "markup_glob",
    "outputDir": "output_dir",
    "sourceMapDir": "source_map_dir",
    "scriptBundle": "script_bundle",
    "styleBundle": "style_bundle",
    "markupOutput": "markup_output",
    "host": "host",
    "port": "port",
    "debounce": "debounce",
    "babelPresets": "babel_presets",
}


def read_json(path: Path) -> dict:
    """Return JSON object read from path, or {} if it cannot be read."""
    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except OSError:
        warn(f"File '{path}' was not found. Using defaults.")
        return {}
    except json.JSONDecodeError as exc:
        warn(f"File '{path}' is not valid JSON ({exc}). Using defaults.")
        return {}
    return loaded if isinstance(loaded, dict) else {}


def coerce_option(key: str, value, default):
    """Check a config file value against the type of its default."""
    if isinstance(default, tuple):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"'{key}' must be a list of strings")
        return tuple(value)
    if isinstance(default, bool) or isinstance(value, bool):
        raise ConfigError(f"'{key}' has an invalid value: {value!r}")
    if isinstance(default, float) and isinstance(value, (int, float)):
        if value < 0:
            raise ConfigError(f"'{key}' must not be negative")
        return float(value)
    if isinstance(default, int) and isinstance(value, int):
        return value
    if isinstance(default, str) and isinstance(value, str):
        return value
    raise ConfigError(f"'{key}' must be of type {type(default).__name__}")


def load_options(path: Path) -> dict:
    """Parse assetpipe.json into BuildConfig keyword arguments."""
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot read {path.name}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"{path.name} must contain a JSON object")

    defaults = {f.name: f.default for f in fields(BuildConfig) if f.name != "root"}
    options = {}
    for key, value in raw.items():
        name = CONFIG_KEYS.get(key)
        if name is None:
            raise ConfigError(f"Unknown option '{key}' in {path.name}")
        options[name] = coerce_option(key, value, defaults[name])
    return options


def load_config(
    root: Path,
    environ: Mapping[str, str] | None = None,
    **overrides,
) -> BuildConfig:
    """Build the process-wide configuration once, from disk and environment."""
    if environ is None:
        environ = os.environ
    root = Path(root).resolve()
    options = load_options(root / CONFIG_FILE)
    if not options.get("title"):
        package = read_json(root / PACKAGE_FILE)
        name = package.get("name")
        options["title"] = name if isinstance(name, str) and name else root.name
    options.update({k: v for k, v in overrides.items() if v is not None})
    return BuildConfig(root=root, mode=BuildMode.from_environ(environ), **options)
