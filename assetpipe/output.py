from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from assetpipe.artifact import Artifact
from assetpipe.errors import OutputError

FILE_MODE = 0o644


def replace_file(path: Path, data: bytes) -> Path:
    """Write data next to path, then rename it into place."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
            os.chmod(tmp, FILE_MODE)
            os.replace(tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise OutputError.from_os_error(exc, path) from exc
    return path


def cleanup_empty_dirs(start: Path, stop: Path):
    """Remove empty directories up to stop (exclusive)."""
    current = start
    while current != stop and current.exists():
        try:
            current.rmdir()
        except OSError:
            break
        current = current.parent


class OutputWriter:
    def __init__(self, output_dir: Path, source_map_dir: str = "maps"):
        self.output_dir = output_dir
        self.source_map_dir = source_map_dir

    def map_path(self, name: str) -> Path:
        return self.output_dir / self.source_map_dir / f"{name}.map"

    def write(self, artifact: Artifact) -> list[Path]:
        """Persist artifact and its map. Return list of written files."""
        written = [replace_file(self.output_dir / artifact.name, artifact.data)]
        map_path = self.map_path(artifact.name)
        if artifact.source_map is not None:
            written.append(replace_file(map_path, artifact.source_map))
        elif map_path.exists():
            try:
                map_path.unlink()
            except OSError as exc:
                raise OutputError.from_os_error(exc, map_path) from exc
            cleanup_empty_dirs(map_path.parent, self.output_dir)
        return written


def clean(directory: Path):
    """Remove everything under directory, keeping the directory itself."""
    if not directory.exists():
        return
    try:
        for entry in directory.iterdir():
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
    except OSError as exc:
        raise OutputError.from_os_error(exc, directory) from exc
