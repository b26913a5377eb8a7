"""Lexer-aware diagnostics for FiveM Lua."""

from lua_lint_mcp.analysis.blocks import find_block_end
from lua_lint_mcp.analysis.context import Diagnostic, Range, ScanContext, Severity
from lua_lint_mcp.analysis.lexer import sanitize
from lua_lint_mcp.analysis.rules import run_passes

__all__ = [
    "Diagnostic",
    "Range",
    "ScanContext",
    "Severity",
    "find_block_end",
    "run_passes",
    "sanitize",
]
