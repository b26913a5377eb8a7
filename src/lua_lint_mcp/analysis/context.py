"""Per-scan context and diagnostic records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from lua_lint_mcp.analysis.lexer import sanitize, split_lines

DIAGNOSTIC_SOURCE = "lua-lint"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"
    HINT = "hint"


@dataclass(frozen=True, slots=True)
class Range:
    """0-based, end-exclusive span."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int

    @classmethod
    def on_line(cls, line: int, start: int, end: int) -> Range:
        return cls(line, start, line, end)

    def to_dict(self) -> dict:
        return {
            "start": {"line": self.start_line, "character": self.start_col},
            "end": {"line": self.end_line, "character": self.end_col},
        }


@dataclass(frozen=True, slots=True)
class Diagnostic:
    range: Range
    message: str
    severity: Severity
    code: str
    source: str = DIAGNOSTIC_SOURCE

    def to_dict(self) -> dict:
        return {
            "range": self.range.to_dict(),
            "message": self.message,
            "severity": self.severity.value,
            "code": self.code,
            "source": self.source,
        }


class Document(Protocol):
    """What a scan needs from a document: identity, language and text."""

    @property
    def uri(self) -> str: ...

    @property
    def language_id(self) -> str: ...

    @property
    def text(self) -> str: ...


@dataclass(frozen=True)
class ScanContext:
    """Raw and sanitized views of one document, built once per scan."""

    document: Document
    text: str
    lines: list[str] = field(repr=False)
    sanitized_text: str = field(repr=False)
    sanitized_lines: list[str] = field(repr=False)

    @classmethod
    def build(cls, document: Document, text: str | None = None) -> ScanContext:
        raw = document.text if text is None else text
        sanitized = sanitize(raw)
        return cls(
            document=document,
            text=raw,
            lines=split_lines(raw),
            sanitized_text=sanitized,
            sanitized_lines=split_lines(sanitized),
        )

    @classmethod
    def from_text(cls, text: str, uri: str = "untitled:scratch.lua") -> ScanContext:
        from lua_lint_mcp.scanner import TextDocument

        return cls.build(TextDocument(uri=uri, text=text))

    def is_code(self, line: int, col: int) -> bool:
        """True when the raw character at (line, col) is outside comments and strings."""
        raw = self.lines[line]
        if col >= len(raw):
            return False
        return raw[col] != " " and self.sanitized_lines[line][col] == raw[col]
