"""Aggregated function documentation from all configured sources.

Entries are keyed by source name and persisted as one JSON file::

    {
      "<source>": {
        "functions": {"<name>": FunctionDoc, ...},
        "lastUpdate": "<ISO-8601>",
        "source": "<source>",
        "etag": "...",            # optional
        "lastModified": "..."     # optional
      }
    }

Refresh pipeline:
1. Enabled remote/local sources are fetched through a semaphore
   (``docs_max_concurrent_downloads``), each failure isolated
2. Workspace ``types.lua`` files are merged as ``Local: <path>`` sources
3. The whole index is written back to disk

Only one refresh runs at a time: a second call while one is in flight
awaits the running refresh and gets its report.
"""

import asyncio
import json
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import httpx
from loguru import logger

from lua_lint_mcp.config import DocumentationSource, Settings
from lua_lint_mcp.sources.extractor import extract, extract_annotated
from lua_lint_mcp.sources.fetcher import fetch_source
from lua_lint_mcp.sources.models import CacheEntry, FunctionDoc

# Directories never searched for local types files
_SKIP_DIRS = {"node_modules", ".git"}


@dataclass
class RefreshReport:
    updated: dict[str, int] = field(default_factory=dict)
    not_modified: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    local: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "not_modified": self.not_modified,
            "failed": self.failed,
            "local": self.local,
        }


def _default_client() -> httpx.AsyncClient:
    return httpx.AsyncClient()


class DocumentationIndex:
    """In-memory documentation cache with JSON persistence."""

    def __init__(
        self,
        cache_path: Path | None = None,
        settings_factory: Callable[[], Settings] = Settings,
        client_factory: Callable[[], httpx.AsyncClient] = _default_client,
    ):
        self._settings_factory = settings_factory
        self._client_factory = client_factory
        self._cache_path = cache_path or settings_factory().get_docs_cache_path()
        self._entries: dict[str, CacheEntry] = {}
        self._refresh_task: asyncio.Task | None = None

    @property
    def cache_path(self) -> Path:
        return self._cache_path

    @property
    def entries(self) -> dict[str, CacheEntry]:
        return self._entries

    # --- Persistence ---

    def load(self) -> int:
        """Load persisted entries. Returns the number of sources loaded."""
        if not self._cache_path.exists():
            logger.debug("No documentation cache file found, starting fresh")
            return 0
        try:
            data = json.loads(self._cache_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load documentation cache: {e}")
            return 0
        if not isinstance(data, dict):
            logger.error("Failed to load documentation cache: not a JSON object")
            return 0

        loaded = 0
        for name, entry in data.items():
            try:
                self._entries[name] = CacheEntry.from_dict(name, entry)
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed cache entry '{name}': {e}")
                continue
            loaded += 1
        logger.info(f"Loaded {loaded} documentation sources from cache")
        return loaded

    def save(self) -> None:
        data = {name: entry.to_dict() for name, entry in self._entries.items()}
        try:
            self._cache_path.parent.mkdir(parents=True, exist_ok=True)
            self._cache_path.write_text(
                json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8"
            )
            logger.debug(f"Documentation cache saved to {self._cache_path}")
        except OSError as e:
            logger.error(f"Failed to save documentation cache: {e}")

    # --- Lookup ---

    def _ordered_entries(self) -> list[CacheEntry]:
        priority = self._settings_factory().docs_source_priority
        first = [self._entries[name] for name in priority if name in self._entries]
        rest = [entry for name, entry in self._entries.items() if name not in priority]
        return first + rest

    def get_function(self, name: str) -> FunctionDoc | None:
        """First source (priority list, then insertion order) defining ``name``."""
        for entry in self._ordered_entries():
            doc = entry.functions.get(name)
            if doc is not None:
                return doc
        return None

    def get_all_functions(self) -> list[FunctionDoc]:
        return [doc for entry in self._ordered_entries() for doc in entry.functions.values()]

    def sources(self) -> list[dict]:
        return [
            {
                "source": entry.source_name,
                "functions": len(entry.functions),
                "last_update": entry.last_update.isoformat(),
            }
            for entry in self._ordered_entries()
        ]

    # --- Refresh ---

    async def add_source(self, source: DocumentationSource) -> RefreshReport:
        """Fetch one source and persist the index, skipping auto-discovery."""
        if self._refresh_task is not None and not self._refresh_task.done():
            await asyncio.shield(self._refresh_task)
        return await self.refresh([source])

    async def refresh(
        self, sources: Iterable[DocumentationSource] | None = None
    ) -> RefreshReport:
        """Refresh sources (default: all enabled), auto-discover, persist."""
        if self._refresh_task is not None and not self._refresh_task.done():
            logger.info("Documentation refresh already running, joining it")
            return await asyncio.shield(self._refresh_task)

        self._refresh_task = asyncio.create_task(self._refresh(sources))
        return await asyncio.shield(self._refresh_task)

    async def _refresh(
        self, sources: Iterable[DocumentationSource] | None
    ) -> RefreshReport:
        settings = self._settings_factory()
        pool = settings.documentation_sources if sources is None else list(sources)
        enabled = [source for source in pool if source.enabled]
        report = RefreshReport()

        if enabled:
            logger.info(f"Refreshing {len(enabled)} documentation source(s)...")
            semaphore = asyncio.Semaphore(max(settings.docs_max_concurrent_downloads, 1))
            async with self._client_factory() as client:
                await asyncio.gather(
                    *(
                        self._refresh_one(client, semaphore, source, settings, report)
                        for source in enabled
                    )
                )
        else:
            logger.warning("No enabled documentation sources found")

        if settings.auto_load_local_types and sources is None:
            self.load_local_types(
                settings.get_workspace_root(), settings.local_types_glob, report
            )

        self.save()
        logger.info(
            f"Documentation refresh completed: {len(self._entries)} cached source(s)"
        )
        return report

    async def _refresh_one(
        self,
        client: httpx.AsyncClient,
        semaphore: asyncio.Semaphore,
        source: DocumentationSource,
        settings: Settings,
        report: RefreshReport,
    ) -> None:
        async with semaphore:
            cached = self._entries.get(source.name)
            try:
                result = await fetch_source(client, source, cached, settings)
                if result.not_modified:
                    logger.info(f"{source.name} not modified; using cached version")
                    report.not_modified.append(source.name)
                    return

                functions = extract(result.content or "", source.name, source.kind)
            except Exception as e:
                logger.error(f"Failed to update {source.name} documentation: {e}")
                report.failed[source.name] = str(e)
                return

            self._entries[source.name] = CacheEntry(
                source_name=source.name,
                functions=functions,
                last_update=datetime.now(UTC),
                etag=result.etag,
                last_modified=result.last_modified,
            )
            report.updated[source.name] = len(functions)
            logger.info(f"{source.name} documentation updated: {len(functions)} functions")

    def load_local_types(
        self, root: Path, pattern: str, report: RefreshReport | None = None
    ) -> int:
        """Merge workspace types files as ``Local: <path>`` sources.

        Returns the number of files that contributed functions.
        """
        loaded = 0
        for path in sorted(root.glob(pattern)):
            relative = path.relative_to(root)
            if not path.is_file() or _SKIP_DIRS.intersection(relative.parts):
                continue
            source_name = f"Local: {relative.as_posix()}"
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.error(f"Failed to process {path}: {e}")
                continue

            functions = extract_annotated(content, source_name)
            if not functions:
                logger.debug(f"No functions found in {source_name}")
                continue

            self._entries[source_name] = CacheEntry(
                source_name=source_name,
                functions=functions,
                last_update=datetime.now(UTC),
            )
            loaded += 1
            if report is not None:
                report.local[source_name] = len(functions)
            logger.info(f"Auto-loaded {len(functions)} functions from {relative}")
        return loaded

    # --- Maintenance ---

    def clear(self, confirm: bool = False) -> bool:
        """Drop every entry and delete the cache file.

        Nothing happens unless ``confirm`` is True.
        """
        if not confirm:
            logger.info("Documentation cache clear cancelled (not confirmed)")
            return False

        self._entries.clear()
        self._cache_path.unlink(missing_ok=True)
        # Only the managed cache directory is wiped wholesale.
        cache_dir = self._settings_factory().get_docs_cache_dir()
        if self._cache_path.parent.resolve() == cache_dir.resolve():
            shutil.rmtree(cache_dir, ignore_errors=True)
            cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Documentation cache cleared")
        return True

    async def close(self) -> None:
        """Cancel an in-flight refresh."""
        task = self._refresh_task
        self._refresh_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, Exception):
                pass
