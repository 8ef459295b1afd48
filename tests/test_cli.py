"""End-to-end tests for the `build` and `clean` commands."""

import json
from pathlib import Path

import pytest

from assetpipe.cli import main


@pytest.fixture()
def production(monkeypatch) -> None:
    monkeypatch.setenv("ASSETPIPE_MODE", "production")


class TestBuild:
    def test_production_build_writes_bundles_without_maps(
        self, project: Path, production, capsys
    ) -> None:
        assert main(["--root", str(project), "build"]) == 0

        build = project / "build"
        assert (build / "app.js").is_file()
        assert (build / "app.css").is_file()
        assert (build / "index.html").is_file()
        assert not (build / "maps").exists()
        assert "Built: build/app.js" in capsys.readouterr().out

    def test_development_build_writes_maps(self, project: Path, monkeypatch) -> None:
        monkeypatch.delenv("ASSETPIPE_MODE", raising=False)
        assert main(["--root", str(project), "build"]) == 0

        maps = project / "build" / "maps"
        assert sorted(p.name for p in maps.iterdir()) == ["app.css.map", "app.js.map"]

    def test_json_lists_written_files(self, project: Path, production, capsys) -> None:
        assert main(["--root", str(project), "build", "--json"]) == 0
        written = json.loads(capsys.readouterr().out)
        assert written == ["app.js", "app.css", "index.html"]

    def test_build_replaces_previous_output(self, project: Path, production) -> None:
        stale = project / "build" / "old-bundle.js"
        stale.parent.mkdir()
        stale.write_text("stale")
        assert main(["--root", str(project), "build"]) == 0
        assert not stale.exists()

    def test_style_syntax_error_fails_build(self, project: Path, production, capsys) -> None:
        (project / "src" / "scss" / "main.scss").write_text("body {\n  color: red;\n")

        assert main(["--root", str(project), "build"]) == 1

        assert not (project / "build" / "app.css").exists()
        err = capsys.readouterr().err
        assert "style failed" in err
        assert "src/scss/main.scss" in err

    def test_invalid_mode_exits_with_config_error(
        self, project: Path, monkeypatch, capsys
    ) -> None:
        monkeypatch.setenv("ASSETPIPE_MODE", "staging")
        assert main(["--root", str(project), "build"]) == 2
        assert "staging" in capsys.readouterr().err


class TestClean:
    def test_clean_empties_output(self, project: Path) -> None:
        build = project / "build"
        (build / "maps").mkdir(parents=True)
        (build / "app.js").write_text("x")

        assert main(["--root", str(project), "clean"]) == 0
        assert main(["--root", str(project), "clean"]) == 0
        assert build.is_dir()
        assert list(build.iterdir()) == []
