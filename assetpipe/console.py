"""Timestamped console output shared by every component."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from rich.markup import escape

from assetpipe.errors import CompileError, OutputError, TaskError

console = Console(stderr=True, highlight=False, log_path=False)


def info(message: str):
    console.log(escape(message))


def warn(message: str):
    console.log(f"[yellow]{escape(message)}[/yellow]")


def error(message: str):
    console.log(f"[red]{escape(message)}[/red]")


def relative(path: Path | str, root: Path) -> str:
    """Show path relative to root when it lives under it."""
    candidate = Path(path)
    try:
        return candidate.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def describe_failure(exc: BaseException, root: Path) -> str:
    """One-line description naming the offending file, if any."""
    prefix = ""
    if isinstance(exc, TaskError):
        prefix = f"{exc.failed_task} failed: "
        exc = exc.cause
    if isinstance(exc, CompileError):
        return f"{prefix}{relative(exc.file, root)}: {exc.message}"
    if isinstance(exc, OutputError):
        return f"{prefix}{relative(exc.path, root)}: {exc.message or exc.kind.value}"
    return f"{prefix}{exc}"
