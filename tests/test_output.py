"""Tests for output.py -- atomic artifact writes and the clean step."""

from pathlib import Path

import pytest

from assetpipe.artifact import Artifact
from assetpipe.errors import OutputError, OutputErrorKind
from assetpipe.output import OutputWriter, clean


class TestOutputWriter:
    def test_creates_directory_and_writes_bundle(self, tmp_path: Path) -> None:
        out = tmp_path / "build"
        writer = OutputWriter(out)
        written = writer.write(Artifact("app.js", b"var a = 1;\n"))
        assert written == [out / "app.js"]
        assert (out / "app.js").read_bytes() == b"var a = 1;\n"

    def test_writes_map_under_map_directory(self, tmp_path: Path) -> None:
        out = tmp_path / "build"
        writer = OutputWriter(out, "maps")
        written = writer.write(Artifact("app.css", b"a{}", b'{"version":3}'))
        assert written == [out / "app.css", out / "maps" / "app.css.map"]
        assert (out / "maps" / "app.css.map").read_bytes() == b'{"version":3}'

    def test_replaces_previous_content(self, tmp_path: Path) -> None:
        writer = OutputWriter(tmp_path)
        writer.write(Artifact("index.html", b"old"))
        writer.write(Artifact("index.html", b"new"))
        assert (tmp_path / "index.html").read_bytes() == b"new"

    def test_leaves_no_temporary_files(self, tmp_path: Path) -> None:
        writer = OutputWriter(tmp_path)
        writer.write(Artifact("app.js", b"x", b"{}"))
        names = sorted(p.name for p in tmp_path.rglob("*"))
        assert names == ["app.js", "app.js.map", "maps"]

    def test_artifact_without_map_removes_stale_map(self, tmp_path: Path) -> None:
        writer = OutputWriter(tmp_path)
        writer.write(Artifact("app.js", b"x", b"{}"))
        writer.write(Artifact("app.js", b"y"))
        assert not (tmp_path / "maps" / "app.js.map").exists()
        assert not (tmp_path / "maps").exists()

    def test_written_files_are_world_readable(self, tmp_path: Path) -> None:
        OutputWriter(tmp_path).write(Artifact("app.js", b"x"))
        assert (tmp_path / "app.js").stat().st_mode & 0o044 == 0o044

    def test_unwritable_target_raises_output_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "build"
        blocker.write_text("not a directory")
        with pytest.raises(OutputError) as info:
            OutputWriter(blocker).write(Artifact("app.js", b"x"))
        assert info.value.kind is OutputErrorKind.OTHER


class TestClean:
    def test_removes_files_and_directories(self, tmp_path: Path) -> None:
        (tmp_path / "maps").mkdir()
        (tmp_path / "maps" / "app.js.map").write_text("{}")
        (tmp_path / "app.js").write_text("x")
        clean(tmp_path)
        assert tmp_path.is_dir()
        assert list(tmp_path.iterdir()) == []

    def test_is_idempotent(self, tmp_path: Path) -> None:
        (tmp_path / "app.js").write_text("x")
        clean(tmp_path)
        clean(tmp_path)
        assert list(tmp_path.iterdir()) == []

    def test_missing_directory_is_a_no_op(self, tmp_path: Path) -> None:
        clean(tmp_path / "never-built")
        assert not (tmp_path / "never-built").exists()

    def test_removes_symlinks_without_following(self, tmp_path: Path) -> None:
        keep = tmp_path / "keep"
        keep.mkdir()
        (keep / "data.txt").write_text("precious")
        out = tmp_path / "build"
        out.mkdir()
        (out / "link").symlink_to(keep, target_is_directory=True)
        clean(out)
        assert list(out.iterdir()) == []
        assert (keep / "data.txt").read_text() == "precious"
