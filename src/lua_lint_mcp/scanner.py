"""Per-document scan scheduling.

Scan lifecycle for one document URI:

1. idle -> ``schedule()`` arms a debounce timer (pending)
2. another ``schedule()`` while pending cancels and re-arms the timer
3. timer fires (or ``scan_now()`` / ``flush()``) -> scan runs, results are
   published, document is idle again
4. ``close()`` cancels the timer and deletes published diagnostics

Timers live on the running asyncio loop (``loop.call_later``); scans
themselves are synchronous and finish within one loop iteration.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from loguru import logger

from lua_lint_mcp.analysis.context import Diagnostic, ScanContext
from lua_lint_mcp.analysis.rules import run_passes
from lua_lint_mcp.config import Settings

# Directories never descended into during workspace scans
_SKIP_DIRS = {"node_modules", ".git"}


@dataclass(frozen=True)
class TextDocument:
    """A document snapshot: identity, language tag and full text."""

    uri: str
    text: str
    language_id: str = "lua"

    @classmethod
    def from_path(cls, path: Path, language_id: str = "lua") -> TextDocument:
        text = path.read_text(encoding="utf-8", errors="replace")
        return cls(uri=path.resolve().as_uri(), text=text, language_id=language_id)


class DiagnosticPublisher(Protocol):
    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None: ...

    def delete(self, uri: str) -> None: ...


class DiagnosticStore:
    """In-memory publisher: the latest diagnostic set per URI."""

    def __init__(self) -> None:
        self._diagnostics: dict[str, list[Diagnostic]] = {}

    def publish(self, uri: str, diagnostics: list[Diagnostic]) -> None:
        self._diagnostics[uri] = list(diagnostics)

    def delete(self, uri: str) -> None:
        self._diagnostics.pop(uri, None)

    def get(self, uri: str) -> list[Diagnostic] | None:
        return self._diagnostics.get(uri)

    def items(self) -> list[tuple[str, list[Diagnostic]]]:
        return list(self._diagnostics.items())

    def clear(self) -> None:
        self._diagnostics.clear()


@dataclass
class WorkspaceScanReport:
    scheduled: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "scheduled": len(self.scheduled),
            "failed": self.failed,
        }


def read_workspace(
    root: Path, glob: str, report: WorkspaceScanReport
) -> list[TextDocument]:
    """Read every file under ``root`` matching ``glob``; failures go to ``report``."""
    documents = []
    for path in sorted(root.glob(glob)):
        if not path.is_file() or _SKIP_DIRS.intersection(path.relative_to(root).parts):
            continue
        try:
            documents.append(TextDocument.from_path(path))
        except OSError as e:
            logger.error(f"Failed to open {path} during workspace scan: {e}")
            report.failed[str(path)] = str(e)
    return documents


def scan_text(
    document: TextDocument, settings: Settings | None = None
) -> list[Diagnostic]:
    """Build a context for one document and run the enabled passes."""
    active = settings or Settings()
    ctx = ScanContext.build(document)
    return run_passes(ctx, active)


class ScanOrchestrator:
    """Debounced scans keyed by document URI."""

    def __init__(
        self,
        publisher: DiagnosticPublisher,
        settings_factory: Callable[[], Settings] = Settings,
    ):
        self._publisher = publisher
        self._settings_factory = settings_factory
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._pending: dict[str, TextDocument] = {}

    # --- Scheduling ---

    def is_pending(self, uri: str) -> bool:
        return uri in self._timers

    def schedule(self, document: TextDocument) -> None:
        """Arm (or re-arm) the debounce timer for this document."""
        settings = self._settings_factory()
        if document.language_id not in settings.lua_language_ids:
            return

        self._cancel(document.uri)
        loop = asyncio.get_running_loop()
        delay = max(settings.scan_debounce_ms, 0) / 1000
        self._pending[document.uri] = document
        self._timers[document.uri] = loop.call_later(delay, self._fire, document.uri)

    def _fire(self, uri: str) -> None:
        self._timers.pop(uri, None)
        document = self._pending.pop(uri, None)
        if document is not None:
            self._scan(document)

    def _cancel(self, uri: str) -> None:
        timer = self._timers.pop(uri, None)
        if timer is not None:
            timer.cancel()
        self._pending.pop(uri, None)

    # --- Scanning ---

    def scan_now(self, document: TextDocument) -> list[Diagnostic]:
        """Scan immediately, superseding any pending timer for the document."""
        self._cancel(document.uri)
        return self._scan(document)

    def _scan(self, document: TextDocument) -> list[Diagnostic]:
        settings = self._settings_factory()
        if document.language_id not in settings.lua_language_ids:
            return []
        try:
            diagnostics = run_passes(ScanContext.build(document), settings)
        except Exception as e:
            logger.error(f"Scan failed for {document.uri}: {e}")
            return []
        self._publisher.publish(document.uri, diagnostics)
        logger.debug(f"Scanned {document.uri}: {len(diagnostics)} diagnostic(s)")
        return diagnostics

    def flush(self) -> int:
        """Run every pending scan now. Returns the number of scans run."""
        pending = list(self._pending.values())
        for document in pending:
            self._cancel(document.uri)
            self._scan(document)
        return len(pending)

    def close(self, document: TextDocument) -> None:
        """Drop pending work and published diagnostics for a closed document."""
        self._cancel(document.uri)
        self._publisher.delete(document.uri)

    async def scan_workspace(
        self, root: Path, pattern: str | None = None
    ) -> WorkspaceScanReport:
        """Schedule a scan for every file under ``root`` matching ``pattern``.

        Files that cannot be read are logged and reported, never raised.
        """
        settings = self._settings_factory()
        glob = pattern or settings.workspace_glob
        report = WorkspaceScanReport()

        documents = await asyncio.to_thread(read_workspace, root, glob, report)
        for document in documents:
            self.schedule(document)
            report.scheduled.append(document.uri)

        logger.info(
            f"Workspace scan scheduled {len(report.scheduled)} file(s), "
            f"{len(report.failed)} failed"
        )
        return report

    def dispose(self) -> None:
        """Cancel every pending timer."""
        for uri in list(self._timers):
            self._cancel(uri)
