"""Textual block matching over sanitized lines.

These are keyword-counting heuristics, not a parser: ``find_block_end``
counts any line that *contains* the start or end keyword, including as part
of a longer identifier (``SendData`` contains ``end``). Rule results depend
on this exact behaviour, so it is reproduced as is.

Depth tracking used by the global-variable rule goes through the
``DepthTracker`` protocol so that a real scope tracker can replace the
heuristics without touching the rule.
"""

from __future__ import annotations

from typing import Protocol


def find_block_end(
    sanitized_lines: list[str],
    start_index: int,
    start_keyword: str,
    end_keyword: str,
) -> int | None:
    """Return the index of the line closing the block opened at ``start_index``.

    Depth starts at 1 for the opener. Each later non-blank line containing
    ``start_keyword`` increments it, each containing ``end_keyword``
    decrements it (both may apply to one line). Returns None when the
    document ends first.
    """
    depth = 1
    for index in range(start_index + 1, len(sanitized_lines)):
        line = sanitized_lines[index].strip()
        if not line:
            continue

        if start_keyword in line:
            depth += 1
        if end_keyword in line:
            depth -= 1
            if depth == 0:
                return index
    return None


class DepthTracker(Protocol):
    """Tracks a nesting depth line by line."""

    depth: int

    def feed(self, line: str) -> int:
        """Consume one trimmed sanitized line and return the new depth."""
        ...


class TableDepthTracker:
    """Depth of ``{`` / ``}`` table constructors, never below zero."""

    def __init__(self) -> None:
        self.depth = 0

    def feed(self, line: str) -> int:
        self.depth = max(0, self.depth + line.count("{") - line.count("}"))
        return self.depth


class FunctionDepthTracker:
    """Approximate function-body depth.

    A line containing ``function`` but not ``end`` opens a level; a line
    containing ``end`` but not ``function`` closes one. One-line functions
    and ``if ... end`` blocks inside functions are not distinguished.
    """

    def __init__(self) -> None:
        self.depth = 0

    def feed(self, line: str) -> int:
        has_function = "function" in line
        has_end = "end" in line
        if has_function and not has_end:
            self.depth += 1
        if has_end and not has_function:
            self.depth = max(0, self.depth - 1)
        return self.depth
