"""Lexical sanitizer for Lua source text.

``sanitize`` blanks every character that belongs to a comment or a string
literal while keeping the text's shape: the output has the same length as
the input and every ``\\n`` / ``\\r`` stays where it was. Diagnostic passes
run their regexes over the sanitized text, so they never match inside
comments or strings, and any column they report is a valid column in the
original text.

Recognised constructs:

- line comments ``-- ...``
- block comments ``--[[ ... ]]`` / ``--[==[ ... ]==]``
- short strings ``"..."`` / ``'...'`` with backslash escapes
- long strings ``[[ ... ]]`` / ``[=[ ... ]=]``

Long brackets do not nest: inside ``[==[`` only ``]==]`` closes the region,
and a literal ``[[`` has no effect.
"""

from __future__ import annotations

import re

_LINE_SPLIT_RE = re.compile(r"\r?\n")

# Characters kept verbatim inside masked regions
_LAYOUT_CHARS = frozenset("\r\n")


def split_lines(text: str) -> list[str]:
    """Split text into lines on ``\\n`` or ``\\r\\n``."""
    return _LINE_SPLIT_RE.split(text)


def long_bracket_open(text: str, index: int) -> tuple[int, int] | None:
    """Match a long-bracket opener ``[=*[`` at ``index``.

    Returns ``(length, level)`` where level is the number of ``=`` signs,
    or None when no opener starts here.
    """
    if index >= len(text) or text[index] != "[":
        return None

    cursor = index + 1
    level = 0
    while cursor < len(text) and text[cursor] == "=":
        level += 1
        cursor += 1

    if cursor < len(text) and text[cursor] == "[":
        return cursor - index + 1, level
    return None


def long_bracket_close(text: str, index: int, level: int) -> int:
    """Match a closer ``]`` + ``level`` ``=`` + ``]`` at ``index``.

    Returns the closer's length, or 0 when it does not close a bracket of
    this level. The ``=`` scan stops after ``level + 1`` signs.
    """
    if index >= len(text) or text[index] != "]":
        return 0

    cursor = index + 1
    matched = 0
    while cursor < len(text) and text[cursor] == "=" and matched <= level:
        matched += 1
        cursor += 1

    if matched == level and cursor < len(text) and text[cursor] == "]":
        return cursor - index + 1
    return 0


def _blank(char: str) -> str:
    return char if char in _LAYOUT_CHARS else " "


def sanitize(text: str) -> str:
    """Mask comments and string literals, preserving offsets and newlines."""
    chars = list(text)
    length = len(text)
    index = 0

    # state: None (code), "line", "block", "long", or a quote character
    state: str | None = None
    level = 0

    while index < length:
        char = text[index]

        if state == "line":
            if char == "\n":
                state = None
            else:
                chars[index] = _blank(char)
            index += 1
            continue

        if state in ("block", "long"):
            close = long_bracket_close(text, index, level)
            if close:
                for offset in range(close):
                    chars[index + offset] = " "
                index += close
                state = None
                continue
            chars[index] = _blank(char)
            index += 1
            continue

        if state is not None:
            # Short string delimited by ``state``
            if char == "\\" and index + 1 < length:
                chars[index] = " "
                chars[index + 1] = _blank(text[index + 1])
                index += 2
                continue
            chars[index] = _blank(char)
            if char == state:
                state = None
            index += 1
            continue

        if char == "-" and index + 1 < length and text[index + 1] == "-":
            opener = long_bracket_open(text, index + 2)
            if opener is not None:
                span, level = opener
                for offset in range(2 + span):
                    chars[index + offset] = " "
                index += 2 + span
                state = "block"
                continue
            chars[index] = chars[index + 1] = " "
            index += 2
            state = "line"
            continue

        opener = long_bracket_open(text, index)
        if opener is not None:
            span, level = opener
            for offset in range(span):
                chars[index + offset] = " "
            index += span
            state = "long"
            continue

        if char in ("'", '"'):
            chars[index] = " "
            state = char
            index += 1
            continue

        index += 1

    return "".join(chars)
