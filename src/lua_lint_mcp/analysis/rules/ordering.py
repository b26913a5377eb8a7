"""Local functions called before their declaration.

``local function f`` is only in scope from its declaration onwards, so a
call on an earlier line resolves to a nil global and fails at runtime.
"""

from __future__ import annotations

import re

from lua_lint_mcp.analysis.context import Diagnostic, Range, ScanContext, Severity
from lua_lint_mcp.config import Settings

CODE = "local-function-before-declaration"

_DECLARATION_RE = re.compile(r"local\s+function\s+([a-zA-Z_][a-zA-Z0-9_]*)\s*\(")
# Bare calls only: obj.name() and obj:name() are different functions
_CALL_RE = re.compile(r"(?<![\w.:])([a-zA-Z_][a-zA-Z0-9_]*)\s*\(")


def collect_declarations(lines: list[str]) -> dict[str, int]:
    """Map each locally declared function name to its (last) declaration line."""
    declarations: dict[str, int] = {}
    for index, line in enumerate(lines):
        match = _DECLARATION_RE.search(line)
        if match:
            declarations[match.group(1)] = index
    return declarations


def check_function_order(ctx: ScanContext, settings: Settings) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    lines = ctx.sanitized_lines
    declarations = collect_declarations(lines)
    if not declarations:
        return diagnostics

    for index, line in enumerate(lines):
        if not line.strip() or _DECLARATION_RE.search(line):
            continue

        for match in _CALL_RE.finditer(line):
            name = match.group(1)
            declared_at = declarations.get(name)
            if declared_at is None or index >= declared_at:
                continue
            diagnostics.append(
                Diagnostic(
                    range=Range.on_line(index, match.start(), match.start() + len(name)),
                    message=(
                        f"Local function '{name}' is used before it's declared "
                        f"(declared on line {declared_at + 1}). "
                        "This will cause a runtime error."
                    ),
                    severity=Severity.ERROR,
                    code=CODE,
                )
            )

    return diagnostics
