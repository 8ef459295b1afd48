from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from assetpipe.build import build
from assetpipe.config import load_config
from assetpipe.console import describe_failure, error, info
from assetpipe.dev import dev
from assetpipe.errors import BuildError, ConfigError, OutputError
from assetpipe.output import clean
from assetpipe.pipeline import select_pipeline


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="assetpipe", description="Build and serve front-end assets"
    )
    parser.add_argument(
        "--root", type=Path, default=Path.cwd(), help="Project root directory"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    build_cmd = commands.add_parser("build", help="Clean and compile once, then exit")
    build_cmd.add_argument(
        "--json", action="store_true", help="Output written files as JSON"
    )

    dev_cmd = commands.add_parser("dev", help="Compile, then serve and watch")
    dev_cmd.add_argument("--host", help="Address to serve on")
    dev_cmd.add_argument("--port", type=int, help="Port to serve on")

    commands.add_parser("clean", help="Empty the output directory")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    overrides = {}
    if args.command == "dev":
        overrides = {"host": args.host, "port": args.port}

    try:
        config = load_config(args.root, **overrides)
    except ConfigError as exc:
        error(f"Configuration error: {exc}")
        return 2

    if args.command == "clean":
        try:
            clean(config.output_path)
        except OutputError as exc:
            error(describe_failure(exc, config.root))
            return 1
        info(f"Cleaned {config.output_dir}/")
        return 0

    pipeline = select_pipeline(config.mode)
    info(f"Mode: {config.mode.value}")

    if args.command == "dev":
        try:
            asyncio.run(dev(config, pipeline))
        except KeyboardInterrupt:
            info("Stopped.")
        return 0

    try:
        changed = asyncio.run(build(config, pipeline))
    except BuildError as exc:
        error(describe_failure(exc, config.root))
        return 1

    output = config.output_path
    if args.json:
        print(json.dumps([p.relative_to(output).as_posix() for p in changed]))
    else:
        for path in changed:
            print(f"Built: {path.relative_to(config.root).as_posix()}")
    return 0
