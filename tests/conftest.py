"""Pytest configuration and fixtures."""

import textwrap

import pytest

from lua_lint_mcp.analysis.context import ScanContext
from lua_lint_mcp.config import DocumentationSource, Settings


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and the user's data dir."""
    return Settings(
        data_dir=str(tmp_path / "data"),
        workspace_root=str(tmp_path / "workspace"),
        documentation_sources=[],
        docs_retry_base_delay=0,
        scan_debounce_ms=20,
    )


@pytest.fixture
def make_ctx():
    """Build a ScanContext from dedented Lua source."""

    def _make(source: str) -> ScanContext:
        return ScanContext.from_text(textwrap.dedent(source).lstrip("\n"))

    return _make


@pytest.fixture
def ox_source():
    return DocumentationSource(
        name="ox_lib", url="https://example.com/ox_lib/types.lua"
    )


@pytest.fixture(autouse=True)
def _reset_server_state():
    """Reset server module-level singletons around each test."""
    import lua_lint_mcp.server as server_mod

    server_mod._store = None
    server_mod._orchestrator = None
    server_mod._docs_index = None

    yield

    server_mod._store = None
    server_mod._orchestrator = None
    server_mod._docs_index = None
