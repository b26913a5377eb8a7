"""Deprecated and legacy CitizenFX API usage.

Both rules are flat substring tables. Matches are found on the sanitized
line and reported at the same offsets of the raw line.
"""

from __future__ import annotations

from dataclasses import dataclass

from lua_lint_mcp.analysis.context import Diagnostic, Range, ScanContext, Severity
from lua_lint_mcp.config import Settings


@dataclass(frozen=True, slots=True)
class SubstringRule:
    needle: str
    message: str
    code: str
    severity: Severity
    replacement: str | None = None


DEPRECATED_CALLS: tuple[SubstringRule, ...] = (
    SubstringRule(
        needle="GetPlayerPed(-1)",
        replacement="PlayerPedId()",
        message="Use PlayerPedId() instead of GetPlayerPed(-1) for better performance.",
        code="deprecated-player-ped",
        severity=Severity.HINT,
    ),
    SubstringRule(
        needle="GetEntityCoords(PlayerPedId())",
        message="Consider caching PlayerPedId() and coordinates if used frequently in loops.",
        code="deprecated-cache-coords",
        severity=Severity.HINT,
    ),
    SubstringRule(
        needle="GetPlayerServerId(PlayerId())",
        message="Consider caching player server ID if used frequently.",
        code="deprecated-cache-server-id",
        severity=Severity.HINT,
    ),
)

LEGACY_RENAMES: tuple[SubstringRule, ...] = (
    SubstringRule(
        needle="Citizen.CreateThread",
        replacement="CreateThread",
        message="Use CreateThread instead of Citizen.CreateThread.",
        code="legacy-citizen-create-thread",
        severity=Severity.INFORMATION,
    ),
    SubstringRule(
        needle="Citizen.Wait",
        replacement="Wait",
        message="Use Wait instead of Citizen.Wait.",
        code="legacy-citizen-wait",
        severity=Severity.INFORMATION,
    ),
)


def _find_all(haystack: str, needle: str):
    start = haystack.find(needle)
    while start != -1:
        yield start
        start = haystack.find(needle, start + len(needle))


def check_substrings(
    ctx: ScanContext, rules: tuple[SubstringRule, ...]
) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for index, line in enumerate(ctx.sanitized_lines):
        for rule in rules:
            for start in _find_all(line, rule.needle):
                diagnostics.append(
                    Diagnostic(
                        range=Range.on_line(index, start, start + len(rule.needle)),
                        message=rule.message,
                        severity=rule.severity,
                        code=rule.code,
                    )
                )
    return diagnostics


def check_deprecated_calls(ctx: ScanContext, settings: Settings) -> list[Diagnostic]:
    return check_substrings(ctx, DEPRECATED_CALLS)


def check_legacy_renames(ctx: ScanContext, settings: Settings) -> list[Diagnostic]:
    return check_substrings(ctx, LEGACY_RENAMES)
