"""Incremental front-end asset builds with a live-reloading dev server."""

__version__ = "0.1.0"
