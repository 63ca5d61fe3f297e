"""
Notebridge - related-note suggestions and phrase search for a personal knowledge base.
This package implements the similarity and search engines that sit behind a notes
browser, plus a Model Context Protocol (MCP) server that exposes them as tools.

All engines are synchronous pure functions over an in-memory snapshot of notes.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notebridge")
except PackageNotFoundError:
    __version__ = "0.3.0"
