"""File-scope assignments to names that were never declared ``local``."""

from __future__ import annotations

import re

from lua_lint_mcp.analysis.blocks import FunctionDepthTracker, TableDepthTracker
from lua_lint_mcp.analysis.context import Diagnostic, Range, ScanContext, Severity
from lua_lint_mcp.config import Settings

CODE = "global-variable-leak"

_IDENT = r"[a-zA-Z_][a-zA-Z0-9_]*"
_LOCAL_RE = re.compile(rf"^local\s+({_IDENT}(?:\s*,\s*{_IDENT})*)")
_ASSIGNMENT_RE = re.compile(rf"^({_IDENT})\s*=(?!=)")
_DOTTED_RE = re.compile(rf"^{_IDENT}\.{_IDENT}")
_NAME_RE = re.compile(rf"^{_IDENT}$")


def _declared_locals(line: str) -> list[str]:
    match = _LOCAL_RE.match(line)
    if not match:
        return []
    names = (re.sub(r"\s*=.*", "", part.strip()) for part in match.group(1).split(","))
    return [name for name in names if name and _NAME_RE.match(name)]


def _is_candidate(line: str) -> bool:
    return not (
        line.startswith("local ")
        or "function" in line
        or "{" in line
        or "}" in line
        or _DOTTED_RE.match(line)
    )


def check_global_variables(ctx: ScanContext, settings: Settings) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    locals_seen: set[str] = set()
    exceptions = set(settings.global_exceptions)
    tables = TableDepthTracker()
    functions = FunctionDepthTracker()

    for index, sanitized in enumerate(ctx.sanitized_lines):
        line = sanitized.strip()
        if not line:
            continue

        table_depth = tables.feed(line)
        function_depth = functions.feed(line)
        locals_seen.update(_declared_locals(line))

        if table_depth > 0 or function_depth > 0:
            continue

        match = _ASSIGNMENT_RE.match(line)
        if not match or not _is_candidate(line):
            continue
        name = match.group(1)
        if name in locals_seen or name in exceptions:
            continue

        start = len(sanitized) - len(sanitized.lstrip())
        diagnostics.append(
            Diagnostic(
                range=Range.on_line(index, start, start + len(name)),
                message=f"Potential global variable '{name}' detected. Consider using 'local'.",
                severity=Severity.INFORMATION,
                code=CODE,
            )
        )

    return diagnostics
