"""Lua Lint MCP Server - Main server definition."""

import asyncio
import functools
import json
import sys
from contextlib import asynccontextmanager, suppress
from importlib.resources import files
from pathlib import Path

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from lua_lint_mcp.config import DocumentationSource, Settings, settings
from lua_lint_mcp.scanner import DiagnosticStore, ScanOrchestrator, TextDocument
from lua_lint_mcp.security import wrap_external_content
from lua_lint_mcp.sources.index import DocumentationIndex

# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.log_level)

# Grace period (seconds) given to a cancelled task before it is abandoned
_CANCEL_GRACE_PERIOD = 5.0

# Settings that `config set` may change at runtime
_BOOL_KEYS = {
    "enable_while_loop_check",
    "enable_repeat_loop_check",
    "enable_global_variable_check",
    "enable_performance_check",
    "enable_net_event_check",
    "enable_citizen_patterns",
    "enable_local_function_order_check",
    "enable_documentation_features",
    "auto_load_local_types",
}
_INT_KEYS = {"tool_timeout", "scan_debounce_ms", "docs_max_concurrent_downloads"}
_STR_KEYS = {"log_level", "workspace_root"}

# Module-level state (set during lifespan, or lazily on first use)
_store: DiagnosticStore | None = None
_orchestrator: ScanOrchestrator | None = None
_docs_index: DocumentationIndex | None = None


def _current_settings() -> Settings:
    """Settings factory: runtime `config set` changes apply to the next scan."""
    return settings


def _get_orchestrator() -> ScanOrchestrator:
    global _store, _orchestrator
    if _orchestrator is None:
        _store = DiagnosticStore()
        _orchestrator = ScanOrchestrator(_store, settings_factory=_current_settings)
    return _orchestrator


def _get_docs_index() -> DocumentationIndex:
    global _docs_index
    if _docs_index is None:
        _docs_index = DocumentationIndex(
            settings.get_docs_cache_path(), settings_factory=_current_settings
        )
        _docs_index.load()
    return _docs_index


async def _refresh_docs_background() -> None:
    """Initial documentation refresh. Non-fatal: `docs refresh` can retry."""
    try:
        report = await _get_docs_index().refresh()
        if report.failed:
            logger.warning(f"Documentation sources failed: {', '.join(report.failed)}")
    except Exception as e:
        logger.error(f"Background documentation refresh failed: {e}")


@asynccontextmanager
async def _lifespan(_server: FastMCP):
    """Server lifespan: init scanner and docs index, cleanup on shutdown."""
    global _store, _orchestrator, _docs_index

    logger.info("Starting Lua Lint MCP Server...")

    # 1. Diagnostics
    _get_orchestrator()

    # 2. Documentation index (cached entries available immediately)
    refresh_task: asyncio.Task | None = None
    if settings.enable_documentation_features:
        index = _get_docs_index()
        logger.info(
            f"Documentation cache: {len(index.entries)} source(s) at {index.cache_path}"
        )
        if settings.enabled_sources() or settings.auto_load_local_types:
            refresh_task = asyncio.create_task(_refresh_docs_background())

    logger.info("Lua Lint MCP Server ready")

    try:
        yield
    finally:
        logger.info("Shutting down Lua Lint MCP Server...")
        if refresh_task is not None and not refresh_task.done():
            refresh_task.cancel()
            with suppress(asyncio.CancelledError):
                await refresh_task
        if _orchestrator is not None:
            _orchestrator.dispose()
        if _docs_index is not None:
            await _docs_index.close()
        _store = None
        _orchestrator = None
        _docs_index = None
        logger.info("Server stopped")


mcp = FastMCP(
    name="lua-lint",
    instructions=(
        "Static analysis for FiveM Lua resources. "
        "Use `lint` to scan Lua text, files or a whole workspace for "
        "loops without yields, leaked globals, deprecated natives, event "
        "registration style and local functions used before declaration. "
        "Use `docs` to look up function signatures from configured "
        "documentation sources (ox_lib, natives, local types.lua files)."
    ),
    lifespan=_lifespan,
)


def _wrap_tool(tool_name: str):
    """Decorator to wrap tool results with XPIA safety markers.

    Error responses are passed through unwrapped.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)
            return wrap_external_content(tool_name, result)

        return wrapper

    return decorator


async def _with_timeout(coro, action: str) -> str:
    """Wrap coroutine with hard timeout.

    ``asyncio.wait`` returns when the deadline expires even if the inner
    task does not react to cancellation; the task then gets a short grace
    period to release its HTTP connections.
    """
    timeout = settings.tool_timeout
    if timeout <= 0:
        return await coro

    task = asyncio.create_task(coro)
    done, _pending = await asyncio.wait({task}, timeout=timeout)

    if done:
        return task.result()

    task.cancel()
    logger.warning(f"Tool '{action}' timed out after {timeout}s, cancelling...")
    try:
        await asyncio.wait_for(asyncio.shield(task), timeout=_CANCEL_GRACE_PERIOD)
    except (asyncio.CancelledError, TimeoutError, Exception):
        pass

    logger.error(f"Tool '{action}' timed out after {timeout}s")
    return (
        f"Error: '{action}' timed out after {timeout}s. "
        "Increase TOOL_TIMEOUT or narrow the request."
    )


def _diagnostics_payload(uri: str, diagnostics: list) -> dict:
    return {
        "uri": uri,
        "diagnostics": [d.to_dict() for d in diagnostics],
        "total": len(diagnostics),
    }


# ---------------------------------------------------------------------------
# lint tool: scan_text, scan_file, scan_workspace, results, close
# ---------------------------------------------------------------------------


async def _scan_workspace(root: Path, pattern: str | None) -> str:
    orchestrator = _get_orchestrator()
    report = await orchestrator.scan_workspace(root, pattern)
    # A tool call wants results now, not after the debounce window
    orchestrator.flush()
    files_with_issues = []
    for uri in report.scheduled:
        found = _store.get(uri) if _store else None
        if found:
            files_with_issues.append(_diagnostics_payload(uri, found))
    return json.dumps(
        {
            "root": str(root),
            "files_scanned": len(report.scheduled),
            "failed": report.failed,
            "files": files_with_issues,
            "total": sum(f["total"] for f in files_with_issues),
        },
        ensure_ascii=False,
        indent=2,
    )


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False,
        idempotentHint=True,
    ),
)
async def lint(
    action: str,
    text: str | None = None,
    path: str | None = None,
    uri: str | None = None,
    pattern: str | None = None,
) -> str:
    """Scan FiveM Lua for common runtime and style problems.
    - scan_text: Scan Lua source passed inline (requires text, optional uri)
    - scan_file: Scan one file (requires path)
    - scan_workspace: Scan every Lua file under path (default: workspace root)
    - results: Latest diagnostics (optional uri, default all)
    - close: Forget a document's diagnostics (requires uri)
    Use `help` tool for full documentation.
    """
    match action:
        case "scan_text":
            if text is None:
                return "Error: text is required for scan_text action"
            document = TextDocument(uri=uri or "untitled:scratch.lua", text=text)
            diagnostics = _get_orchestrator().scan_now(document)
            return json.dumps(
                _diagnostics_payload(document.uri, diagnostics),
                ensure_ascii=False,
                indent=2,
            )

        case "scan_file":
            if not path:
                return "Error: path is required for scan_file action"
            file_path = Path(path).expanduser()
            if not file_path.is_file():
                return f"Error: file not found: {path}"
            try:
                document = TextDocument.from_path(file_path)
            except OSError as e:
                return f"Error: cannot read {path}: {e}"
            diagnostics = _get_orchestrator().scan_now(document)
            return json.dumps(
                _diagnostics_payload(document.uri, diagnostics),
                ensure_ascii=False,
                indent=2,
            )

        case "scan_workspace":
            root = Path(path).expanduser() if path else settings.get_workspace_root()
            if not root.is_dir():
                return f"Error: directory not found: {root}"
            return await _with_timeout(_scan_workspace(root, pattern), "scan_workspace")

        case "results":
            _get_orchestrator()
            if uri:
                found = _store.get(uri) if _store else None
                if found is None:
                    return json.dumps({"error": f"No results for {uri}"})
                return json.dumps(_diagnostics_payload(uri, found), indent=2)
            items = _store.items() if _store else []
            return json.dumps(
                [_diagnostics_payload(u, d) for u, d in items],
                ensure_ascii=False,
                indent=2,
            )

        case "close":
            if not uri:
                return "Error: uri is required for close action"
            _get_orchestrator().close(TextDocument(uri=uri, text=""))
            return json.dumps({"status": "closed", "uri": uri})

        case _:
            return json.dumps(
                {
                    "error": f"Unknown action: {action}",
                    "valid_actions": [
                        "scan_text",
                        "scan_file",
                        "scan_workspace",
                        "results",
                        "close",
                    ],
                }
            )


# ---------------------------------------------------------------------------
# docs tool: lookup, list, sources, refresh, add_source, clear
# ---------------------------------------------------------------------------


async def _refresh_docs() -> str:
    report = await _get_docs_index().refresh()
    return json.dumps(report.to_dict(), indent=2)


async def _add_docs_source(source: DocumentationSource) -> str:
    # Replace a same-named source so lookups stay unambiguous
    settings.documentation_sources = [
        s for s in settings.documentation_sources if s.name != source.name
    ] + [source]
    report = await _get_docs_index().add_source(source)
    if source.name in report.failed:
        return f"Error: {report.failed[source.name]}"
    return json.dumps(
        {"status": "added", "source": source.model_dump(mode="json"), **report.to_dict()},
        indent=2,
    )


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        openWorldHint=True,
        idempotentHint=True,
    ),
)
@_wrap_tool("docs")
async def docs(
    action: str,
    name: str | None = None,
    source: str | None = None,
    url: str | None = None,
    kind: str = "annotated-definitions",
    confirm: bool = False,
    limit: int = 50,
) -> str:
    """Function signatures from FiveM documentation sources.
    - lookup: Signature for one function (requires name)
    - list: Known function names (optional source filter, limit)
    - sources: Cached sources with function counts
    - refresh: Re-download every enabled source and rescan local types.lua
    - add_source: Add and download a source (requires name + url, optional kind)
    - clear: Delete the cache (requires confirm=true)
    Use `help` tool for full documentation.
    """
    if not settings.enable_documentation_features:
        return "Error: documentation features are disabled"

    match action:
        case "lookup":
            if not name:
                return "Error: name is required for lookup action"
            doc = _get_docs_index().get_function(name)
            if doc is None:
                return json.dumps({"error": f"Function '{name}' not found", "name": name})
            return json.dumps(doc.to_dict(), ensure_ascii=False, indent=2)

        case "list":
            functions = _get_docs_index().get_all_functions()
            if source:
                functions = [f for f in functions if f.source == source]
            names = [f"{f.name} ({f.source})" for f in functions[: max(limit, 0)]]
            return json.dumps(
                {"functions": names, "total": len(functions)},
                ensure_ascii=False,
                indent=2,
            )

        case "sources":
            return json.dumps(
                {
                    "cache_path": str(_get_docs_index().cache_path),
                    "sources": _get_docs_index().sources(),
                    "configured": [
                        s.model_dump(mode="json") for s in settings.documentation_sources
                    ],
                },
                indent=2,
            )

        case "refresh":
            return await _with_timeout(_refresh_docs(), "refresh")

        case "add_source":
            if not name or not url:
                return "Error: name and url are required for add_source action"
            try:
                new_source = DocumentationSource(name=name, url=url, kind=kind)
            except ValueError as e:
                return f"Error: invalid source: {e}"
            return await _with_timeout(_add_docs_source(new_source), "add_source")

        case "clear":
            if not _get_docs_index().clear(confirm=confirm):
                return json.dumps(
                    {
                        "status": "cancelled",
                        "hint": "Pass confirm=true to delete the documentation cache",
                    }
                )
            return json.dumps({"status": "cache cleared"})

        case _:
            return json.dumps(
                {
                    "error": f"Unknown action: {action}",
                    "valid_actions": [
                        "lookup",
                        "list",
                        "sources",
                        "refresh",
                        "add_source",
                        "clear",
                    ],
                }
            )


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False,
        idempotentHint=True,
    ),
)
async def help(tool_name: str = "lint") -> str:
    """Get full documentation for a tool.
    Use when compressed descriptions are insufficient.
    Valid tool names: lint, docs, config, help.
    """
    try:
        doc_file = files("lua_lint_mcp.docs").joinpath(f"{tool_name}.md")
        return doc_file.read_text()
    except FileNotFoundError:
        return f"Error: No documentation found for tool '{tool_name}'"
    except Exception as e:
        return f"Error loading documentation: {e}"


@mcp.tool(
    description=(
        "Server config and management. Actions: status|set. "
        "Use help tool with tool_name='config' for full docs."
    ),
    annotations=ToolAnnotations(
        title="Config",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
)
async def config(
    action: str,
    key: str | None = None,
    value: str | None = None,
) -> str:
    """Server configuration and management.

    Actions:
    - status: Show current config and status
    - set: Update runtime setting (key + value required)
    """
    match action:
        case "status":
            status = {
                "passes": {key: getattr(settings, key) for key in sorted(_BOOL_KEYS)},
                "scanning": {
                    "workspace_root": str(settings.get_workspace_root()),
                    "workspace_glob": settings.workspace_glob,
                    "debounce_ms": settings.scan_debounce_ms,
                    "documents": len(_store.items()) if _store else 0,
                },
                "documentation": {
                    "cache_path": str(settings.get_docs_cache_path()),
                    "configured_sources": len(settings.documentation_sources),
                    "enabled_sources": len(settings.enabled_sources()),
                    "cached_sources": (
                        len(_docs_index.entries) if _docs_index else 0
                    ),
                },
                "settings": {
                    "log_level": settings.log_level,
                    "tool_timeout": settings.tool_timeout,
                },
            }
            return json.dumps(status, indent=2, default=str)

        case "set":
            if not key or value is None:
                return json.dumps({"error": "key and value are required for set"})
            valid_keys = _BOOL_KEYS | _INT_KEYS | _STR_KEYS
            if key not in valid_keys:
                return json.dumps(
                    {
                        "error": f"Invalid key: {key}",
                        "valid_keys": sorted(valid_keys),
                    }
                )
            if key in _BOOL_KEYS:
                setattr(settings, key, value.lower() in ("true", "1", "yes"))
            elif key in _INT_KEYS:
                try:
                    setattr(settings, key, int(value))
                except ValueError:
                    return json.dumps({"error": f"{key} must be an integer"})
            elif key == "log_level":
                settings.log_level = value.upper()
                logger.remove()
                logger.add(sys.stderr, level=settings.log_level)
            else:
                setattr(settings, key, value)
            return json.dumps(
                {
                    "status": "updated",
                    "key": key,
                    "value": getattr(settings, key),
                },
                default=str,
            )

        case _:
            return json.dumps(
                {
                    "error": f"Unknown action: {action}",
                    "valid_actions": ["status", "set"],
                }
            )


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


@mcp.prompt()
def review_resource(path: str) -> str:
    """Generate a prompt to review a FiveM resource for runtime problems."""
    return (
        f"Review the FiveM resource at {path} for runtime problems.\n\n"
        f"1. Use the lint tool with action='scan_workspace', path='{path}'.\n"
        "2. For each diagnostic, read the surrounding code and explain the fix.\n"
        "3. Use the docs tool with action='lookup' to confirm native signatures "
        "before suggesting replacements."
    )


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
