"""Lua Lint MCP Server - static analysis for FiveM Lua resources."""

from importlib.metadata import version

from lua_lint_mcp.__main__ import _cli as main
from lua_lint_mcp.server import mcp

__version__ = version("lua-lint-mcp")
__all__ = ["mcp", "main", "__version__"]
