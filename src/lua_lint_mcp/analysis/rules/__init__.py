"""Diagnostic pass registry.

Each pass is a pure function ``(ScanContext, Settings) -> list[Diagnostic]``
enabled by one boolean setting.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from lua_lint_mcp.analysis.context import Diagnostic, ScanContext
from lua_lint_mcp.analysis.rules.api import check_deprecated_calls, check_legacy_renames
from lua_lint_mcp.analysis.rules.events import check_event_patterns
from lua_lint_mcp.analysis.rules.globals import check_global_variables
from lua_lint_mcp.analysis.rules.loops import check_repeat_loops, check_while_loops
from lua_lint_mcp.analysis.rules.ordering import check_function_order
from lua_lint_mcp.config import Settings

CheckFn = Callable[[ScanContext, Settings], list[Diagnostic]]


@dataclass(frozen=True, slots=True)
class RulePass:
    name: str
    toggle: str
    check: CheckFn


PASSES: tuple[RulePass, ...] = (
    RulePass("while-loop", "enable_while_loop_check", check_while_loops),
    RulePass("repeat-loop", "enable_repeat_loop_check", check_repeat_loops),
    RulePass("global-variable", "enable_global_variable_check", check_global_variables),
    RulePass("deprecated-api", "enable_performance_check", check_deprecated_calls),
    RulePass("net-event", "enable_net_event_check", check_event_patterns),
    RulePass("legacy-api", "enable_citizen_patterns", check_legacy_renames),
    RulePass(
        "function-order", "enable_local_function_order_check", check_function_order
    ),
)


def enabled_passes(settings: Settings) -> list[RulePass]:
    return [rule for rule in PASSES if getattr(settings, rule.toggle, False)]


def run_passes(ctx: ScanContext, settings: Settings) -> list[Diagnostic]:
    """Run every enabled pass over one context, in registry order."""
    diagnostics: list[Diagnostic] = []
    for rule in enabled_passes(settings):
        found = rule.check(ctx, settings)
        if found:
            logger.debug(f"{rule.name}: {len(found)} diagnostic(s)")
        diagnostics.extend(found)
    return diagnostics


__all__ = ["PASSES", "RulePass", "enabled_passes", "run_passes"]
