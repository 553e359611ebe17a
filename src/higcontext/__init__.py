"""HIG Context: MCP server for searching Apple Human Interface Guidelines."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("higcontext")
except PackageNotFoundError:
    # Source checkout that was never installed
    __version__ = "0.0.0+unknown"
