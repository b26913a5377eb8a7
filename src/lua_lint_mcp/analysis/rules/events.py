"""Net event registration idioms.

Event names are string literals, so these patterns are matched against the
raw lines. A match only counts when its call identifier sits in code
(``ScanContext.is_code``); the same call text inside a comment or a string
is ignored.
"""

from __future__ import annotations

import re

from lua_lint_mcp.analysis.context import Diagnostic, Range, ScanContext, Severity
from lua_lint_mcp.config import Settings

_REGISTER_NET_EVENT_RE = re.compile(r"RegisterNetEvent\s*\(\s*['\"]([^'\"]+)['\"]\s*\)")
_REGISTER_SERVER_EVENT_RE = re.compile(
    r"RegisterServerEvent\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"
)
_ADD_EVENT_HANDLER_RE = re.compile(r"AddEventHandler\s*\(\s*['\"]([^'\"]+)['\"]")
_HANDLER_NAME_RE = re.compile(r"\bAddEventHandler\b")
_SOURCE_COMMA_RE = re.compile(r"function\s*\(\s*source\s*,(?!\s)")


def _code_matches(ctx: ScanContext, pattern: re.Pattern[str], index: int):
    for match in pattern.finditer(ctx.lines[index]):
        if ctx.is_code(index, match.start()):
            yield match


def _first(ctx: ScanContext, pattern: re.Pattern[str], index: int):
    return next(_code_matches(ctx, pattern, index), None)


def check_event_patterns(ctx: ScanContext, settings: Settings) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    lines = ctx.lines

    for index, line in enumerate(lines):
        register_server = _first(ctx, _REGISTER_SERVER_EVENT_RE, index)
        if register_server:
            has_handler = index + 1 < len(lines) and _first(
                ctx, _HANDLER_NAME_RE, index + 1
            )
            if not has_handler:
                diagnostics.append(
                    Diagnostic(
                        range=Range.on_line(index, 0, len(line)),
                        message=(
                            'Consider using RegisterNetEvent("event", function(...) end) '
                            "instead of separate RegisterServerEvent and AddEventHandler."
                        ),
                        severity=Severity.INFORMATION,
                        code="event-modern-register",
                    )
                )

        handler = _first(ctx, _ADD_EVENT_HANDLER_RE, index)
        if handler and index > 0:
            registered = _first(ctx, _REGISTER_NET_EVENT_RE, index - 1)
            event_name = handler.group(1)
            if registered and registered.group(1) == event_name:
                diagnostics.append(
                    Diagnostic(
                        range=Range.on_line(index, 0, len(line)),
                        message=(
                            "You can combine RegisterNetEvent and AddEventHandler: "
                            f'RegisterNetEvent("{event_name}", function(...) end)'
                        ),
                        severity=Severity.HINT,
                        code="event-combine-handler",
                    )
                )

        for match in _code_matches(ctx, _SOURCE_COMMA_RE, index):
            diagnostics.append(
                Diagnostic(
                    range=Range.on_line(index, match.start(), match.end()),
                    message=(
                        "Consider adding space after comma in function parameters: "
                        "function(source, ...)."
                    ),
                    severity=Severity.HINT,
                    code="event-style-spacing",
                )
            )

    return diagnostics
