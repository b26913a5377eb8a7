"""Tests for lua_lint_mcp.scanner: debounce, close and workspace scans."""

import asyncio
import threading
from unittest.mock import MagicMock, patch

import pytest

from lua_lint_mcp.scanner import (
    DiagnosticStore,
    ScanOrchestrator,
    TextDocument,
    scan_text,
)

LEAKY = "counter = 0\n"
CLEAN = "local counter = 0\n"


@pytest.fixture
def store():
    return DiagnosticStore()


@pytest.fixture
def orchestrator(store, settings):
    orch = ScanOrchestrator(store, settings_factory=lambda: settings)
    yield orch
    orch.dispose()


def doc(text: str, uri: str = "file:///res/client.lua", language_id: str = "lua"):
    return TextDocument(uri=uri, text=text, language_id=language_id)


class TestScanText:
    def test_returns_diagnostics(self, settings):
        diagnostics = scan_text(doc(LEAKY), settings)
        assert [d.code for d in diagnostics] == ["global-variable-leak"]

    def test_clean_document(self, settings):
        assert scan_text(doc(CLEAN), settings) == []


class TestDebounce:
    async def test_scan_runs_after_delay(self, orchestrator, store):
        """A scheduled scan publishes only once the debounce window passes."""
        orchestrator.schedule(doc(LEAKY))
        assert orchestrator.is_pending("file:///res/client.lua")
        assert store.get("file:///res/client.lua") is None

        await asyncio.sleep(0.1)

        assert not orchestrator.is_pending("file:///res/client.lua")
        assert len(store.get("file:///res/client.lua")) == 1

    async def test_rapid_edits_coalesce(self, orchestrator, store, settings):
        """Only the last text of a burst of edits is scanned."""
        publisher = MagicMock(wraps=store)
        orch = ScanOrchestrator(publisher, settings_factory=lambda: settings)

        orch.schedule(doc(LEAKY))
        orch.schedule(doc(LEAKY + "another = 1\n"))
        orch.schedule(doc(CLEAN))
        await asyncio.sleep(0.1)

        publisher.publish.assert_called_once()
        uri, diagnostics = publisher.publish.call_args.args
        assert uri == "file:///res/client.lua"
        assert diagnostics == []

    async def test_separate_documents_have_separate_timers(self, orchestrator, store):
        orchestrator.schedule(doc(LEAKY, uri="file:///a.lua"))
        orchestrator.schedule(doc(LEAKY, uri="file:///b.lua"))
        await asyncio.sleep(0.1)
        assert store.get("file:///a.lua") is not None
        assert store.get("file:///b.lua") is not None

    async def test_non_lua_documents_ignored(self, orchestrator, store):
        orchestrator.schedule(doc(LEAKY, language_id="json"))
        assert not orchestrator.is_pending("file:///res/client.lua")
        await asyncio.sleep(0.05)
        assert store.get("file:///res/client.lua") is None

    async def test_scan_now_cancels_pending(self, orchestrator, store):
        orchestrator.schedule(doc(LEAKY))
        diagnostics = orchestrator.scan_now(doc(CLEAN))
        assert diagnostics == []
        assert not orchestrator.is_pending("file:///res/client.lua")

        await asyncio.sleep(0.1)
        assert store.get("file:///res/client.lua") == []

    async def test_flush_runs_pending(self, orchestrator, store):
        orchestrator.schedule(doc(LEAKY, uri="file:///a.lua"))
        orchestrator.schedule(doc(LEAKY, uri="file:///b.lua"))
        assert orchestrator.flush() == 2
        assert len(store.get("file:///a.lua")) == 1
        assert not orchestrator.is_pending("file:///b.lua")

    async def test_settings_read_at_scan_time(self, orchestrator, store, settings):
        """A setting changed while the timer is armed applies to the scan."""
        orchestrator.schedule(doc(LEAKY))
        settings.enable_global_variable_check = False
        await asyncio.sleep(0.1)
        assert store.get("file:///res/client.lua") == []


class TestClose:
    async def test_close_cancels_pending_scan(self, orchestrator, store):
        orchestrator.schedule(doc(LEAKY))
        orchestrator.close(doc(LEAKY))
        await asyncio.sleep(0.1)
        assert store.get("file:///res/client.lua") is None

    async def test_close_deletes_published(self, orchestrator, store):
        orchestrator.scan_now(doc(LEAKY))
        assert store.get("file:///res/client.lua")
        orchestrator.close(doc(LEAKY))
        assert store.get("file:///res/client.lua") is None

    async def test_dispose_cancels_everything(self, orchestrator, store):
        orchestrator.schedule(doc(LEAKY, uri="file:///a.lua"))
        orchestrator.schedule(doc(LEAKY, uri="file:///b.lua"))
        orchestrator.dispose()
        await asyncio.sleep(0.1)
        assert store.items() == []


class TestScanFailures:
    async def test_pass_exception_logged_not_raised(self, orchestrator, store):
        with patch(
            "lua_lint_mcp.scanner.run_passes", side_effect=RuntimeError("boom")
        ):
            assert orchestrator.scan_now(doc(LEAKY)) == []
        assert store.get("file:///res/client.lua") is None


class TestWorkspaceScan:
    async def test_schedules_every_lua_file(self, orchestrator, store, tmp_path):
        (tmp_path / "client").mkdir()
        (tmp_path / "client" / "main.lua").write_text(LEAKY)
        (tmp_path / "server.lua").write_text(CLEAN)
        (tmp_path / "README.md").write_text("counter = 0")

        report = await orchestrator.scan_workspace(tmp_path)

        assert len(report.scheduled) == 2
        assert report.failed == {}
        orchestrator.flush()
        main_uri = (tmp_path / "client" / "main.lua").resolve().as_uri()
        assert [d.code for d in store.get(main_uri)] == ["global-variable-leak"]

    async def test_skips_node_modules(self, orchestrator, tmp_path):
        (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
        (tmp_path / "node_modules" / "pkg" / "x.lua").write_text(LEAKY)
        (tmp_path / "a.lua").write_text(LEAKY)

        report = await orchestrator.scan_workspace(tmp_path)
        assert len(report.scheduled) == 1

    async def test_unreadable_file_reported(self, orchestrator, tmp_path):
        (tmp_path / "a.lua").write_text(LEAKY)
        (tmp_path / "b.lua").write_text(LEAKY)

        real_from_path = TextDocument.from_path

        def flaky(path, language_id="lua"):
            if path.name == "b.lua":
                raise PermissionError("denied")
            return real_from_path(path, language_id)

        with patch.object(TextDocument, "from_path", side_effect=flaky):
            report = await orchestrator.scan_workspace(tmp_path)

        assert len(report.scheduled) == 1
        assert list(report.failed) == [str(tmp_path / "b.lua")]
        assert report.to_dict()["scheduled"] == 1

    async def test_custom_pattern(self, orchestrator, tmp_path):
        (tmp_path / "a.lua").write_text(LEAKY)
        (tmp_path / "b.lua").write_text(LEAKY)
        report = await orchestrator.scan_workspace(tmp_path, "a.*")
        assert len(report.scheduled) == 1

    async def test_files_read_off_the_event_loop(self, orchestrator, tmp_path):
        (tmp_path / "a.lua").write_text(LEAKY)
        loop_thread = threading.get_ident()
        reader_threads = []
        real_from_path = TextDocument.from_path

        def tracking(path, language_id="lua"):
            reader_threads.append(threading.get_ident())
            return real_from_path(path, language_id)

        with patch.object(TextDocument, "from_path", side_effect=tracking):
            report = await orchestrator.scan_workspace(tmp_path)

        assert len(report.scheduled) == 1
        assert reader_threads and loop_thread not in reader_threads
