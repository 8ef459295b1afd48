from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateSyntaxError,
    select_autoescape,
)

from assetpipe.artifact import Artifact, AssetCompiler, AssetKind
from assetpipe.console import relative, warn
from assetpipe.errors import CompileError, CompileErrorKind

if TYPE_CHECKING:
    from assetpipe.config import BuildConfig
    from assetpipe.pipeline import Pipeline


def get_template_env(template_dir: Path) -> Environment:
    """Create a Jinja environment for HTML templates."""
    return Environment(
        loader=FileSystemLoader(template_dir),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


class MarkupCompiler(AssetCompiler):
    """Renders the page template with the bundle names injected."""

    kind = AssetKind.MARKUP

    def __init__(self, config: "BuildConfig", pipeline: "Pipeline"):
        super().__init__(config, pipeline, config.markup_sources())

    def template_path(self) -> Path:
        templates = self.source_set.files()
        if not templates:
            raise CompileError(
                CompileErrorKind.IMPORT_RESOLUTION,
                self.config.markup_glob,
                "no template matched",
            )
        if len(templates) > 1:
            warn(
                f"{len(templates)} templates match {self.config.markup_glob}; "
                f"rendering {relative(templates[0], self.config.root)}"
            )
        return templates[0]

    def compile(self) -> Artifact:
        path = self.template_path()
        env = get_template_env(path.parent)
        try:
            template = env.get_template(path.name)
            page = template.render(
                title=self.config.title,
                js_bundle=self.config.script_bundle,
                css_bundle=self.config.style_bundle,
            )
        except TemplateSyntaxError as exc:
            file = Path(exc.filename) if exc.filename else path
            raise CompileError(
                CompileErrorKind.SYNTAX, file, f"line {exc.lineno}: {exc.message}"
            ) from exc
        except TemplateError as exc:
            raise CompileError(CompileErrorKind.INTERNAL, path, str(exc)) from exc
        return Artifact(self.config.markup_output, page.encode("utf-8"))
