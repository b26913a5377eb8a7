"""Tests for lua_lint_mcp.__main__: CLI dispatcher and subcommands."""

import json
import sys
from unittest.mock import patch

import pytest


class TestCli:
    """CLI dispatcher routes subcommands correctly."""

    @patch("lua_lint_mcp.server.main")
    def test_default_runs_server(self, mock_main):
        from lua_lint_mcp.__main__ import _cli

        with patch.object(sys, "argv", ["lua-lint-mcp"]):
            _cli()
        mock_main.assert_called_once()

    def test_scan_subcommand(self):
        with patch("lua_lint_mcp.__main__._scan", return_value=0) as mock_scan:
            from lua_lint_mcp.__main__ import _cli

            with patch.object(sys, "argv", ["lua-lint-mcp", "scan", "a.lua"]):
                with pytest.raises(SystemExit) as exc:
                    _cli()
            mock_scan.assert_called_once_with(["a.lua"])
            assert exc.value.code == 0

    def test_clear_docs_subcommand(self):
        with patch("lua_lint_mcp.__main__._clear_docs", return_value=1) as mock_clear:
            from lua_lint_mcp.__main__ import _cli

            with patch.object(sys, "argv", ["lua-lint-mcp", "clear-docs"]):
                with pytest.raises(SystemExit) as exc:
                    _cli()
            mock_clear.assert_called_once_with([])
            assert exc.value.code == 1


class TestScan:
    """_scan prints diagnostics for files and directories."""

    def test_scan_directory(self, tmp_path, capsys):
        from lua_lint_mcp.__main__ import _scan

        (tmp_path / "a.lua").write_text("counter = 0\n")
        (tmp_path / "b.lua").write_text("local ok = 1\n")

        assert _scan([str(tmp_path)]) == 0
        output = json.loads(capsys.readouterr().out)
        assert len(output) == 1
        assert output[0]["path"].endswith("a.lua")
        assert output[0]["diagnostics"][0]["code"] == "global-variable-leak"

    def test_scan_error_exit_code(self, tmp_path, capsys):
        from lua_lint_mcp.__main__ import _scan

        path = tmp_path / "order.lua"
        path.write_text("init()\nlocal function init()\nend\n")

        assert _scan([str(path)]) == 1


class TestClearDocs:
    def test_requires_yes(self, settings, capsys):
        from lua_lint_mcp.__main__ import _clear_docs

        with patch("lua_lint_mcp.config.settings", settings):
            assert _clear_docs([]) == 1
        assert "--yes" in capsys.readouterr().out

    def test_clears_with_yes(self, settings):
        from lua_lint_mcp.__main__ import _clear_docs

        cache = settings.get_docs_cache_path()
        cache.parent.mkdir(parents=True)
        cache.write_text("{}")

        with patch("lua_lint_mcp.config.settings", settings):
            assert _clear_docs(["--yes"]) == 0
        assert not cache.exists()
