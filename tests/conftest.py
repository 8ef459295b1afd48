"""Shared fixtures: a small front-end project on disk and configs for it."""

import json
from pathlib import Path

import pytest

from assetpipe.config import load_config

INDEX_JS = """import greet from "./a.js";

document.title = greet("world");
"""

A_JS = """export default function greet(name) {
  // friendly greeting
  const message = `Hello, ${name}!`;
  return message;
}
"""

VARS_SCSS = """$accent: #3366ff;
"""

MAIN_SCSS = """@import "vars";

/* layout */
body {
  color: $accent;
  user-select: none;

  .title {
    margin: 0 auto;
  }
}
"""

INDEX_HTML = """<!doctype html>
<html>
  <head>
    <title>{{ title }}</title>
    <link rel="stylesheet" href="{{ css_bundle }}">
  </head>
  <body>
    <script src="{{ js_bundle }}"></script>
  </body>
</html>
"""


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """Project root with one script graph, one stylesheet and one template."""
    root = tmp_path / "project"
    write(root / "package.json", json.dumps({"name": "demo-site"}))
    write(root / "src" / "js" / "index.js", INDEX_JS)
    write(root / "src" / "js" / "a.js", A_JS)
    write(root / "src" / "scss" / "_vars.scss", VARS_SCSS)
    write(root / "src" / "scss" / "main.scss", MAIN_SCSS)
    write(root / "src" / "html" / "index.html", INDEX_HTML)
    return root.resolve()


@pytest.fixture()
def make_config(project: Path):
    """Return a factory building the config for `project` in a given mode."""

    def factory(mode: str = "development", **overrides):
        return load_config(project, environ={"ASSETPIPE_MODE": mode}, **overrides)

    return factory
