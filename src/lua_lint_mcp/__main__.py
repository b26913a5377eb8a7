"""Lua Lint MCP Server entry point."""

import sys


def _scan(paths: list[str]) -> int:
    """Scan files or directories once and print diagnostics as JSON.

    Usage:
        lua-lint-mcp scan resources/[core] client.lua

    Exits with status 1 when any error-severity diagnostic is found.
    """
    import json
    from pathlib import Path

    from lua_lint_mcp.analysis.context import Severity
    from lua_lint_mcp.config import settings
    from lua_lint_mcp.scanner import TextDocument, scan_text

    targets = [Path(p).expanduser() for p in paths] or [settings.get_workspace_root()]
    files: list[Path] = []
    for target in targets:
        if target.is_dir():
            files.extend(
                p
                for p in sorted(target.glob(settings.workspace_glob))
                if p.is_file() and "node_modules" not in p.relative_to(target).parts
            )
        elif target.is_file():
            files.append(target)
        else:
            print(f"Not found: {target}", file=sys.stderr)

    results = []
    has_errors = False
    for path in files:
        try:
            document = TextDocument.from_path(path)
        except OSError as e:
            print(f"Cannot read {path}: {e}", file=sys.stderr)
            continue
        diagnostics = scan_text(document, settings)
        if not diagnostics:
            continue
        has_errors = has_errors or any(d.severity == Severity.ERROR for d in diagnostics)
        results.append(
            {"path": str(path), "diagnostics": [d.to_dict() for d in diagnostics]}
        )

    print(json.dumps(results, indent=2, ensure_ascii=False))
    return 1 if has_errors else 0


def _refresh_docs() -> int:
    """Download every enabled documentation source and rescan local types."""
    import asyncio
    import json

    from lua_lint_mcp.config import settings
    from lua_lint_mcp.sources.index import DocumentationIndex

    index = DocumentationIndex(
        settings.get_docs_cache_path(), settings_factory=lambda: settings
    )
    index.load()
    report = asyncio.run(index.refresh())
    print(json.dumps(report.to_dict(), indent=2))
    return 1 if report.failed else 0


def _clear_docs(args: list[str]) -> int:
    """Delete the documentation cache. Requires --yes."""
    from lua_lint_mcp.config import settings
    from lua_lint_mcp.sources.index import DocumentationIndex

    index = DocumentationIndex(
        settings.get_docs_cache_path(), settings_factory=lambda: settings
    )
    if not index.clear(confirm="--yes" in args):
        print("Refusing to clear the documentation cache without --yes")
        return 1
    print(f"Documentation cache cleared: {index.cache_path.parent}")
    return 0


def _cli() -> None:
    """CLI dispatcher: server (default), scan, refresh-docs or clear-docs."""
    if len(sys.argv) >= 2 and sys.argv[1] == "scan":
        sys.exit(_scan(sys.argv[2:]))
    elif len(sys.argv) >= 2 and sys.argv[1] == "refresh-docs":
        sys.exit(_refresh_docs())
    elif len(sys.argv) >= 2 and sys.argv[1] == "clear-docs":
        sys.exit(_clear_docs(sys.argv[2:]))
    else:
        from lua_lint_mcp.server import main

        main()


if __name__ == "__main__":
    _cli()
