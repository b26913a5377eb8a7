"""Tests for the help tool in src/lua_lint_mcp/server.py."""

from unittest.mock import MagicMock, patch

import pytest

from lua_lint_mcp.server import help


@pytest.mark.asyncio
async def test_help_success():
    """Test help tool successfully retrieves documentation."""
    mock_path = MagicMock()
    mock_path.read_text.return_value = "Mock Documentation Content"

    mock_files = MagicMock()
    mock_files.joinpath.return_value = mock_path

    with patch("lua_lint_mcp.server.files", return_value=mock_files) as patched_files:
        result = await help(tool_name="lint")

        assert result == "Mock Documentation Content"
        patched_files.assert_called_once_with("lua_lint_mcp.docs")
        mock_files.joinpath.assert_called_once_with("lint.md")


@pytest.mark.asyncio
async def test_help_file_not_found():
    """Test help tool when documentation file is missing."""
    mock_path = MagicMock()
    mock_path.read_text.side_effect = FileNotFoundError("File not found")

    mock_files = MagicMock()
    mock_files.joinpath.return_value = mock_path

    with patch("lua_lint_mcp.server.files", return_value=mock_files):
        result = await help(tool_name="non_existent_tool")

        assert "Error: No documentation found" in result
        assert "non_existent_tool" in result


@pytest.mark.asyncio
@pytest.mark.parametrize("tool_name", ["lint", "docs", "config", "help"])
async def test_bundled_docs_exist(tool_name):
    """Test every tool ships a documentation file."""
    result = await help(tool_name=tool_name)
    assert result.startswith(f"# {tool_name}")
