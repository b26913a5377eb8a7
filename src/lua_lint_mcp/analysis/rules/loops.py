"""Unbounded loops that never yield to the CitizenFX scheduler.

A ``while`` or ``repeat`` loop without a ``Wait()`` call inside its body
blocks the resource thread and freezes the server or client.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from lua_lint_mcp.analysis.blocks import find_block_end
from lua_lint_mcp.analysis.context import Diagnostic, Range, ScanContext, Severity
from lua_lint_mcp.config import Settings


@dataclass(frozen=True, slots=True)
class LoopRule:
    opener: re.Pattern[str]
    start_keyword: str
    end_keyword: str
    message: str
    code: str


WHILE_RULE = LoopRule(
    opener=re.compile(r"\bwhile\s+.+\s+do\b"),
    start_keyword="while",
    end_keyword="end",
    message="While loop without Wait() detected. Possible server freeze detected!",
    code="loop-no-yield-while",
)

REPEAT_RULE = LoopRule(
    opener=re.compile(r"\brepeat\b"),
    start_keyword="repeat",
    end_keyword="until",
    message="Repeat loop without Wait() detected. Possible server freeze detected!",
    code="loop-no-yield-repeat",
)


def yield_call_pattern(names: list[str]) -> re.Pattern[str]:
    """Regex matching a call to any of the given yield primitives."""
    alternatives = "|".join(re.escape(name) for name in names) or r"(?!)"
    return re.compile(rf"\b(?:{alternatives})\s*\(")


def check_loop(ctx: ScanContext, rule: LoopRule, settings: Settings) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    lines = ctx.sanitized_lines
    yields = yield_call_pattern(settings.yield_functions)

    for index, line in enumerate(lines):
        if not line.strip():
            continue
        match = rule.opener.search(line)
        if not match:
            continue

        end = find_block_end(lines, index, rule.start_keyword, rule.end_keyword)
        if end is None:
            continue

        if any(yields.search(inner) for inner in lines[index + 1 : end]):
            continue

        diagnostics.append(
            Diagnostic(
                range=Range.on_line(index, match.start(), match.end()),
                message=rule.message,
                severity=Severity.WARNING,
                code=rule.code,
            )
        )

    return diagnostics


def check_while_loops(ctx: ScanContext, settings: Settings) -> list[Diagnostic]:
    return check_loop(ctx, WHILE_RULE, settings)


def check_repeat_loops(ctx: ScanContext, settings: Settings) -> list[Diagnostic]:
    return check_loop(ctx, REPEAT_RULE, settings)
