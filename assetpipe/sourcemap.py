"""Source Map v3 helpers for concatenated bundles."""

from __future__ import annotations

from dataclasses import replace
import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from assetpipe.artifact import Artifact
    from assetpipe.config import BuildConfig


def index_map(name: str, sections: list[tuple[int, dict]]) -> bytes:
    """Combine per-chunk maps into an index map; each chunk starts at a line offset."""
    payload = {
        "version": 3,
        "file": name,
        "sections": [
            {"offset": {"line": line, "column": 0}, "map": chunk_map}
            for line, chunk_map in sections
        ],
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()


def source_map_url(config: "BuildConfig", name: str) -> str:
    return f"{config.source_map_dir.strip('/')}/{name}.map"


def link_source_map(artifact: "Artifact", config: "BuildConfig") -> "Artifact":
    """Append the sourceMappingURL comment for artifacts carrying a map."""
    if artifact.source_map is None:
        return artifact
    url = source_map_url(config, artifact.name)
    if artifact.name.endswith(".css"):
        comment = f"/*# sourceMappingURL={url} */\n"
    else:
        comment = f"//# sourceMappingURL={url}\n"
    data = artifact.data
    if data and not data.endswith(b"\n"):
        data += b"\n"
    return replace(artifact, data=data + comment.encode())
