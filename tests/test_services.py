"""
Unit tests for the background services: diagrams, explorer, queries and the
local server monitor.

Workers are run synchronously (``sync_workers``) or held back and run by the
test (``deferred_workers``) to simulate results arriving late.
"""
from unittest.mock import MagicMock
import threading

import pytest
from PySide6.QtCore import QThread

from ermaker_studio.core import background
from ermaker_studio.core.background import BackgroundTaskMixin
from ermaker_studio.core.connection_registry import ConnectionRegistry
from ermaker_studio.core.database_explorer import DatabaseExplorer
from ermaker_studio.core.diagram_service import DiagramService
from ermaker_studio.core.editor_sessions import EditorSessionManager
from ermaker_studio.core.local_server import LocalServerMonitor
from ermaker_studio.core.path_resolver import PathResolver
from ermaker_studio.core.query_runner import QueryRunner
from ermaker_studio.core.request_tracker import RequestTracker
from ermaker_studio.core.workspace_tree import WorkspaceTree
from ermaker_studio.database.models import ConnectionProfile, DatabaseInfo, DiagramTab
from ermaker_studio.errors import ValidationError
from ermaker_studio.services.commands import CachedIntrospection, CommandBackend
from ermaker_studio.workers.command_workers import (
    ConnectionTestWorker,
    ServerCommandWorker,
    ServerLogWorker,
    ServerProbeWorker,
)


@pytest.fixture
def registry(qapp):
    return ConnectionRegistry([
        ConnectionProfile(id="c1", name="Warehouse", db_type="postgresql", host="db",
                          database="dw"),
        ConnectionProfile(id="c2", name="Shop", db_type="mysql", host="shop"),
    ])


@pytest.fixture
def sessions(registry, gateway):
    tree = WorkspaceTree()
    return EditorSessionManager(tree, registry, PathResolver(tree, "/proj"), gateway)


@pytest.fixture
def introspection(backend):
    return CachedIntrospection(backend)


@pytest.fixture
def explorer(registry, introspection, backend, sessions):
    return DatabaseExplorer(registry, introspection, backend, sessions)


@pytest.fixture
def diagrams(sessions, registry, backend):
    return DiagramService(sessions, registry, backend)


@pytest.fixture
def queries(sessions, explorer, backend):
    return QueryRunner(sessions, explorer, backend)


@pytest.fixture
def monitor(backend, registry, explorer):
    m = LocalServerMonitor(backend, registry, explorer)
    yield m
    m.stop_monitoring()


def record(signal):
    received = []
    signal.connect(lambda *args: received.append(args if len(args) > 1 else args[0]))
    return received


class TestRequestTracker:
    """Test correlation tokens."""

    def test_latest_token_wins(self):
        tracker = RequestTracker()
        old = tracker.begin("t1")
        new = tracker.begin("t1")
        assert not tracker.finish(old)
        assert tracker.finish(new)
        assert not tracker.is_pending("t1")

    def test_forget(self):
        tracker = RequestTracker()
        token = tracker.begin("t1")
        tracker.forget("t1")
        assert not tracker.finish(token)

    def test_targets_are_independent(self):
        tracker = RequestTracker()
        a = tracker.begin("a")
        b = tracker.begin("b")
        assert tracker.finish(a)
        assert tracker.is_current(b)


class TestCachedIntrospection:
    """Test the database listing cache."""

    def test_fake_backend_matches_protocol(self, backend):
        assert isinstance(backend, CommandBackend)

    def test_cache_hit(self, introspection, backend, registry):
        profile = registry.get("c1")
        first = introspection.get_databases(profile)
        second = introspection.get_databases(profile)
        assert first == second
        assert backend.call_names().count("get_databases") == 1
        assert "c1" in introspection

    def test_refresh_bypasses_cache(self, introspection, backend, registry):
        profile = registry.get("c1")
        introspection.get_databases(profile)
        backend.responses["get_databases"] = [DatabaseInfo(name="new")]
        assert introspection.get_databases(profile, refresh=True)[0].name == "new"

    def test_invalidate(self, introspection, registry):
        introspection.get_databases(registry.get("c1"))
        introspection.get_databases(registry.get("c2"))
        introspection.invalidate("c1")
        assert "c1" not in introspection
        assert "c2" in introspection
        introspection.invalidate()
        assert "c2" not in introspection


class TestDiagramService:
    """Test diagram generation and export."""

    def test_generate_applies_result(self, diagrams, sessions, backend, sync_workers):
        ready = record(diagrams.diagram_ready)
        tab_id = sessions.open_diagram("c1", "sales")
        diagrams.generate(tab_id)
        request = backend.calls[-1][1]
        assert request.type == "postgres"
        assert request.connection_string == "postgresql://db:5432/sales"
        assert request.style == "chen"
        tab = sessions.get_tab(tab_id)
        assert tab.content == "erDiagram\n  USERS"
        assert tab.schema == {"tables": ["users"]}
        assert ready == [tab_id]
        assert not diagrams.is_generating(tab_id)

    def test_result_after_close_is_dropped(self, diagrams, sessions, deferred_workers):
        ready = record(diagrams.diagram_ready)
        tab_id = sessions.open_diagram("c1")
        diagrams.generate(tab_id)
        assert diagrams.is_generating(tab_id)
        sessions.close(tab_id)
        deferred_workers[0].run()
        assert ready == []
        assert sessions.tabs == []

    def test_superseded_result_is_dropped(self, diagrams, sessions, backend, deferred_workers):
        tab_id = sessions.open_diagram("c1")
        diagrams.generate(tab_id)
        diagrams.generate(tab_id)
        deferred_workers[0].run()
        assert sessions.get_tab(tab_id).content == ""
        deferred_workers[1].run()
        assert sessions.get_tab(tab_id).content == "erDiagram\n  USERS"

    def test_failure_reported(self, diagrams, sessions, backend, sync_workers):
        failed = record(diagrams.diagram_failed)
        backend.responses["generate_diagram"] = Exception("Connection refused")
        tab_id = sessions.open_diagram("c1")
        diagrams.generate(tab_id)
        assert len(failed) == 1
        assert failed[0][0] == tab_id
        assert failed[0][1].startswith("Connection refused")
        assert not diagrams.is_generating(tab_id)

    def test_generate_from_sql(self, diagrams, sessions, backend, sync_workers):
        tab_id = sessions.open_diagram("c1")
        with pytest.raises(ValidationError):
            diagrams.generate_from_sql(tab_id, "   ")
        diagrams.generate_from_sql(tab_id, "CREATE TABLE users (id INT);")
        request = backend.calls[-1][1]
        assert request.type == "sql"
        assert request.connection_string is None
        assert sessions.get_tab(tab_id).content == "erDiagram\n  USERS"

    def test_regenerate_requires_schema(self, diagrams, sessions, sync_workers):
        with pytest.raises(ValidationError):
            diagrams.regenerate_from_schema(sessions.open_diagram("c1"))

    def test_regenerate_from_schema(self, diagrams, sessions, backend, sync_workers):
        tab_id = sessions.open_diagram("c1")
        diagrams.generate(tab_id)
        sessions.update_diagram_settings(tab_id, theme="dark")
        diagrams.regenerate_from_schema(tab_id)
        assert backend.calls[-1] == ("generate_mermaid_from_schema", {"tables": ["users"]},
                                     "chen", "dark", "basis")
        tab = sessions.get_tab(tab_id)
        assert tab.content == "erDiagram\n  EDITED"
        assert tab.schema == {"tables": ["users"]}

    def test_file_tab_rejected(self, diagrams, sessions):
        with pytest.raises(ValidationError):
            diagrams.generate(sessions.new_untitled())

    def test_export(self, diagrams, sessions, backend, sync_workers):
        exported = record(diagrams.export_finished)
        tab_id = sessions.open_diagram("c1")
        with pytest.raises(ValidationError):
            diagrams.export(tab_id, "/out/d.png")
        diagrams.generate(tab_id)
        with pytest.raises(ValidationError):
            diagrams.export(tab_id, "/out/d.pdf", "pdf")
        with pytest.raises(ValidationError):
            diagrams.export(tab_id, "")
        diagrams.export(tab_id, "/out/d.svg", "SVG")
        assert backend.calls[-1] == ("export_diagram", "erDiagram\n  USERS", "/out/d.svg",
                                     "svg", "light")
        assert exported == ["/out/d.svg"]

    def test_export_failure(self, diagrams, sessions, backend, sync_workers):
        failures = record(diagrams.export_failed)
        tab_id = sessions.open_diagram("c1")
        diagrams.generate(tab_id)
        backend.responses["export_diagram"] = Exception("disk full")
        diagrams.export(tab_id, "/out/d.png")
        assert failures == ["disk full"]


class TestDatabaseExplorer:
    """Test active connection handling and database loading."""

    def test_activate_loads_databases(self, explorer, sync_workers):
        loaded = record(explorer.databases_loaded)
        changed = record(explorer.active_connection_changed)
        explorer.set_active_connection("c1")
        assert [db.name for db in explorer.databases] == ["sales", "hr"]
        assert loaded == ["c1"]
        assert changed == ["c1"]
        assert not explorer.is_loading

    def test_unknown_connection_rejected(self, explorer):
        with pytest.raises(ValidationError):
            explorer.set_active_connection("missing")
        assert explorer.active_connection_id is None

    def test_listing_of_previous_connection_dropped(self, explorer, backend, deferred_workers):
        explorer.set_active_connection("c1")
        explorer.set_active_connection("c2")
        backend.responses["get_databases"] = [DatabaseInfo(name="shop")]
        deferred_workers[0].run()
        assert explorer.databases == []
        assert explorer.is_loading
        deferred_workers[1].run()
        assert [db.name for db in explorer.databases] == ["shop"]
        assert not explorer.is_loading

    def test_refresh_uses_cache_unless_forced(self, explorer, backend, sync_workers):
        explorer.set_active_connection("c1")
        explorer.refresh()
        assert backend.call_names().count("get_databases") == 1
        explorer.refresh(force=True)
        assert backend.call_names().count("get_databases") == 2

    def test_load_failure(self, explorer, backend, sync_workers):
        failures = record(explorer.load_failed)
        backend.responses["get_databases"] = Exception("boom")
        explorer.set_active_connection("c1")
        assert explorer.error == "boom"
        assert failures == [("c1", "boom")]

    def test_deleting_active_connection_clears_it(self, explorer, registry, introspection,
                                                  sync_workers):
        changed = record(explorer.active_connection_changed)
        explorer.set_active_connection("c1")
        explorer.toggle_node("sales")
        registry.delete("c1")
        assert explorer.active_connection_id is None
        assert explorer.databases == []
        assert explorer.expanded_nodes == set()
        assert changed == ["c1", None]
        assert "c1" not in introspection

    def test_updating_active_connection_reloads(self, explorer, registry, backend, sync_workers):
        explorer.set_active_connection("c1")
        registry.update("c1", host="db2")
        assert backend.call_names().count("get_databases") == 2

    def test_toggle_node(self, explorer):
        assert explorer.toggle_node("sales") is True
        assert explorer.is_expanded("sales")
        assert explorer.toggle_node("sales") is False
        assert not explorer.is_expanded("sales")

    def test_test_connection(self, explorer, backend, sync_workers):
        results = record(explorer.connection_tested)
        profile = ConnectionProfile(id="tmp", name="tmp", db_type="mysql", host="h")
        explorer.test_connection(profile)
        backend.responses["test_connection"] = Exception("Access denied for user 'x'")
        explorer.test_connection(profile)
        assert results[0] == ("tmp", True, "Connection successful")
        assert results[1][:2] == ("tmp", False)

    def test_open_diagram(self, explorer, sessions, sync_workers):
        assert explorer.open_diagram() is None
        explorer.set_active_connection("c2")
        tab = sessions.get_tab(explorer.open_diagram("shop"))
        assert isinstance(tab, DiagramTab)
        assert (tab.connection_id, tab.database_name) == ("c2", "shop")


class TestQueryRunner:
    """Test query execution per tab."""

    def test_requires_active_connection(self, queries, sessions):
        tab_id = sessions.new_untitled()
        sessions.edit(tab_id, "SELECT 1")
        with pytest.raises(ValidationError) as exc_info:
            queries.execute(tab_id)
        assert exc_info.value.field == "connectionId"

    def test_execute_active_tab(self, queries, sessions, explorer, backend, sync_workers):
        finished = record(queries.query_finished)
        explorer.set_active_connection("c1")
        tab_id = sessions.new_untitled()
        sessions.edit(tab_id, "SELECT 1")
        queries.execute()
        assert backend.calls[-1][2] == "SELECT 1"
        assert queries.result_for(tab_id).rows == [{"id": 1}]
        assert queries.last_result is queries.result_for(tab_id)
        assert finished[0][0] == tab_id
        assert not queries.is_executing

    def test_explicit_sql_overrides_content(self, queries, sessions, explorer, backend,
                                            sync_workers):
        explorer.set_active_connection("c1")
        tab_id = sessions.new_untitled()
        sessions.edit(tab_id, "SELECT 1; SELECT 2")
        queries.execute(tab_id, "SELECT 2")
        assert backend.calls[-1][2] == "SELECT 2"

    def test_empty_query_rejected(self, queries, sessions, explorer, sync_workers):
        explorer.set_active_connection("c1")
        tab_id = sessions.new_untitled()
        sessions.edit(tab_id, "  \n ")
        with pytest.raises(ValidationError):
            queries.execute(tab_id)

    def test_diagram_tab_rejected(self, queries, sessions, explorer, sync_workers):
        explorer.set_active_connection("c1")
        with pytest.raises(ValidationError):
            queries.execute(sessions.open_diagram("c1"))

    def test_failure_stored_as_error_result(self, queries, sessions, explorer, backend,
                                            sync_workers):
        failed = record(queries.query_failed)
        explorer.set_active_connection("c1")
        backend.responses["execute_query"] = Exception('relation "users" does not exist')
        tab_id = sessions.new_untitled()
        sessions.edit(tab_id, "SELECT * FROM users")
        queries.execute(tab_id)
        assert queries.result_for(tab_id).error
        assert failed[0][0] == tab_id

    def test_result_for_closed_tab_dropped(self, queries, sessions, explorer, deferred_workers):
        finished = record(queries.query_finished)
        explorer.set_active_connection("c1")
        tab_id = sessions.new_untitled()
        sessions.edit(tab_id, "SELECT 1")
        queries.execute(tab_id)
        assert queries.is_executing
        sessions.close(tab_id)
        deferred_workers[-1].run()
        assert finished == []
        assert queries.result_for(tab_id) is None

    def test_results_pruned_on_close(self, queries, sessions, explorer, sync_workers):
        explorer.set_active_connection("c1")
        tab_id = sessions.new_untitled()
        sessions.edit(tab_id, "SELECT 1")
        queries.execute(tab_id)
        sessions.close(tab_id)
        assert queries.result_for(tab_id) is None
        assert queries.last_result is None


class TestLocalServerMonitor:
    """Test status polling and lifecycle operations of the local server."""

    def test_start_monitoring(self, monitor, sync_workers):
        availability = record(monitor.availability_changed)
        statuses = record(monitor.status_changed)
        monitor.start_monitoring()
        assert availability == [(True, True)]
        assert statuses == ["stopped"]
        assert monitor.is_monitoring
        monitor.stop_monitoring()
        assert not monitor.is_monitoring

    def test_unsupported_platform_stops_polling(self, monitor, backend, sync_workers):
        backend.responses["server_platform_supported"] = False
        monitor.start_monitoring()
        assert monitor.platform_supported is False
        assert not monitor.is_monitoring
        assert "server_status" not in backend.call_names()

    def test_unexpected_status_becomes_unknown(self, monitor, backend, sync_workers):
        statuses = record(monitor.status_changed)
        backend.responses["server_status"] = "running"
        monitor.refresh_status()
        backend.responses["server_status"] = "rebooting"
        monitor.refresh_status()
        assert statuses == ["running", "unknown"]

    def test_start_installs_missing_bundle(self, monitor, backend, registry, explorer,
                                           sync_workers):
        ready = record(monitor.local_connection_ready)
        finished = record(monitor.operation_finished)
        backend.responses["server_bundle_exists"] = False
        assert monitor.start() is True
        names = backend.call_names()
        assert names.index("server_install") < names.index("server_start")
        assert ("server_start", 3307) in backend.calls
        profile = registry.find_by_name("Local MariaDB (offline)")
        assert profile is not None
        assert explorer.active_connection_id == profile.id
        assert ready == [profile.id]
        assert finished == [("start", "started")]
        assert monitor.bundle_present is True
        assert not monitor.busy
        assert not monitor.is_tailing_log
        assert monitor.log_text == "server log"

    def test_start_twice_reuses_local_connection(self, monitor, registry, sync_workers):
        monitor.start()
        monitor.start()
        assert len(registry) == 3

    def test_operation_in_flight_blocks_others(self, monitor, deferred_workers):
        assert monitor.start() is True
        assert monitor.busy
        assert monitor.is_tailing_log
        assert monitor.stop() is False
        assert len(deferred_workers) == 1

    def test_operation_failure(self, monitor, backend, sync_workers):
        failures = record(monitor.operation_failed)
        backend.responses["server_stop"] = Exception("server is not running")
        monitor.stop()
        assert failures == [("stop", "server is not running")]
        assert not monitor.busy

    def test_toggle(self, monitor, backend, sync_workers):
        backend.responses["server_status"] = "running"
        monitor.refresh_status()
        monitor.toggle()
        assert "server_stop" in backend.call_names()
        assert "server_start" not in backend.call_names()


class TestWorkers:
    """Test workers in isolation with a mocked backend."""

    def test_failure_message_is_translated(self, qapp):
        backend = MagicMock()
        backend.test_connection.side_effect = RuntimeError(
            'FATAL: password authentication failed for user "bob"')
        profile = ConnectionProfile(id="x", name="pg", db_type="postgresql", host="h",
                                    database="d")
        worker = ConnectionTestWorker(backend, profile, token="t1")
        failed = record(worker.failed)
        worker.run()
        assert failed == [("t1", "Authentication failed: Wrong password for user 'bob'.")]
        assert worker.error.command == "test_connection"

    def test_probe_skips_bundle_check_on_unsupported_platform(self, qapp):
        backend = MagicMock()
        backend.server_platform_supported.return_value = False
        worker = ServerProbeWorker(backend)
        results = record(worker.succeeded)
        worker.run()
        assert results == [(None, (False, False))]
        backend.server_bundle_exists.assert_not_called()

    def test_missing_log_reads_as_empty(self, qapp):
        backend = MagicMock()
        backend.read_log.return_value = None
        worker = ServerLogWorker(backend, "server")
        results = record(worker.succeeded)
        worker.run()
        assert results == [(None, "")]
        backend.read_log.assert_called_once_with("server")

    def test_start_with_bundle_skips_install(self, qapp):
        backend = MagicMock()
        backend.server_bundle_exists.return_value = True
        backend.server_start.return_value = "started"
        worker = ServerCommandWorker(backend, "start", port=3307)
        worker.run()
        backend.server_install.assert_not_called()
        backend.server_start.assert_called_once_with(3307)

    def test_invalid_operation(self, qapp):
        with pytest.raises(ValueError):
            ServerCommandWorker(MagicMock(), "restart")


class BlockingWorker(QThread):
    """Worker that runs until the test releases it."""

    def __init__(self, release):
        super().__init__()
        self.release = release

    def run(self):
        self.release.wait(5)


class TestBackgroundTasks:
    """Test worker tracking across shutdown."""

    def test_stop_all_keeps_running_worker(self, qapp, monkeypatch):
        monkeypatch.setattr(background, "WORKER_STOP_TIMEOUT_MS", 10)
        tasks = BackgroundTaskMixin()
        tasks._init_workers()
        release = threading.Event()
        worker = BlockingWorker(release)
        tasks._launch(worker)
        try:
            tasks.stop_all()
            assert tasks._workers == {worker}
            assert worker.isRunning()
        finally:
            release.set()
            worker.wait()
        qapp.processEvents()
        assert len(tasks._workers) == 0

    def test_stop_all_forgets_finished_workers(self, qapp):
        tasks = BackgroundTaskMixin()
        tasks._init_workers()
        release = threading.Event()
        release.set()
        tasks._launch(BlockingWorker(release))
        tasks.stop_all()
        assert len(tasks._workers) == 0
