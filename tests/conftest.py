"""
Pytest configuration and fixtures for ERMaker Studio tests.
"""
from typing import Dict, List, Optional, Set

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from ermaker_studio.database.models import (
    DatabaseInfo,
    DiagramResult,
    FileEntry,
    QueryResult,
)
from ermaker_studio.errors import WorkspaceIOError

# Qt application fixture for tests that use signals, timers and threads
_qt_app = None


@pytest.fixture(scope="session")
def qapp():
    """Create a QCoreApplication (no display needed)."""
    global _qt_app
    from PySide6.QtCore import QCoreApplication
    if _qt_app is None:
        _qt_app = QCoreApplication.instance() or QCoreApplication([])
    yield _qt_app


class FakeFileSystemGateway:
    """
    In-memory FileSystemGateway.

    Paths are "/"-separated strings. Call ``fail("write_file")`` to make the
    next calls of that method raise WorkspaceIOError.
    """

    def __init__(self, home: str = "/home/user"):
        self.home = home
        self.dirs: Set[str] = set()
        self.files: Dict[str, str] = {}
        self.calls: List[tuple] = []
        self._failing: Set[str] = set()

    # -- fault injection -------------------------------------------------

    def fail(self, method: str):
        self._failing.add(method)

    def heal(self, method: Optional[str] = None):
        if method is None:
            self._failing.clear()
        else:
            self._failing.discard(method)

    def _enter(self, method: str, *args):
        self.calls.append((method,) + args)
        if method in self._failing:
            raise WorkspaceIOError(f"Injected failure in {method}", path=args[0] if args else None)

    @staticmethod
    def _parent(path: str) -> str:
        return path.rsplit("/", 1)[0] if "/" in path else ""

    def _under(self, path: str, candidate: str) -> bool:
        return candidate == path or candidate.startswith(path + "/")

    # -- gateway ---------------------------------------------------------

    def create_directory(self, path: str) -> None:
        self._enter("create_directory", path)
        while path and path not in self.dirs:
            self.dirs.add(path)
            path = self._parent(path)

    def write_file(self, path: str, content: str) -> None:
        self._enter("write_file", path, content)
        self.files[path] = content

    def delete_path(self, path: str) -> None:
        self._enter("delete_path", path)
        if path in self.files:
            del self.files[path]
        elif path in self.dirs:
            self.dirs = {d for d in self.dirs if not self._under(path, d)}
            self.files = {f: c for f, c in self.files.items() if not self._under(path, f)}
        else:
            raise WorkspaceIOError(f"Failed to delete file: {path} not found", path=path)

    def rename_path(self, old_path: str, new_path: str) -> None:
        self._enter("rename_path", old_path, new_path)
        if self.path_exists(new_path):
            raise WorkspaceIOError("Failed to rename: target already exists", path=new_path)
        if old_path in self.files:
            self.files[new_path] = self.files.pop(old_path)
        elif old_path in self.dirs:
            def moved(p):
                return new_path + p[len(old_path):] if self._under(old_path, p) else p
            self.dirs = {moved(d) for d in self.dirs}
            self.files = {moved(f): c for f, c in self.files.items()}
        else:
            raise WorkspaceIOError(f"Failed to rename: {old_path} not found", path=old_path)

    def read_file(self, path: str) -> str:
        self._enter("read_file", path)
        if path not in self.files:
            raise WorkspaceIOError(f"Failed to read file: {path} not found", path=path)
        return self.files[path]

    def list_directory(self, path: str) -> List[FileEntry]:
        self._enter("list_directory", path)
        if path not in self.dirs:
            raise WorkspaceIOError(f"Failed to read directory: {path} not found", path=path)
        entries = [FileEntry(d.rsplit("/", 1)[1], d, True)
                   for d in self.dirs if self._parent(d) == path]
        entries += [FileEntry(f.rsplit("/", 1)[1], f, False)
                    for f in self.files if self._parent(f) == path]
        return sorted(entries, key=lambda entry: entry.name.lower())

    def path_exists(self, path: str) -> bool:
        return path in self.dirs or path in self.files

    def get_default_project_root(self) -> str:
        self._enter("get_default_project_root")
        return f"{self.home}/Documents/ERMaker"

    def allocate_next_project_folder(self, base_path: str) -> str:
        self._enter("allocate_next_project_folder", base_path)
        counter = 1
        while self.path_exists(f"{base_path}/Project{counter}"):
            counter += 1
        path = f"{base_path}/Project{counter}"
        self.create_directory(path)
        return path


class FakeCommandBackend:
    """
    Scripted CommandBackend.

    Set ``responses[name]`` to the value a command returns, or to an
    exception instance it raises. Every call is recorded in ``calls``.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.responses = {
            "test_connection": "Connection successful",
            "get_databases": [DatabaseInfo(name="sales"), DatabaseInfo(name="hr")],
            "execute_query": QueryResult(columns=["id"], rows=[{"id": 1}], row_count=1,
                                         execution_time=0.01),
            "generate_diagram": DiagramResult("erDiagram\n  USERS", schema={"tables": ["users"]}),
            "generate_mermaid_from_schema": "erDiagram\n  EDITED",
            "export_diagram": None,
            "server_status": "stopped",
            "server_bundle_exists": True,
            "server_platform_supported": True,
            "server_install": "installed",
            "server_start": "started",
            "server_stop": "stopped",
            "read_log": "server log",
        }

    def _respond(self, name, *args):
        self.calls.append((name,) + args)
        response = self.responses[name]
        if isinstance(response, Exception):
            raise response
        return response

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def test_connection(self, profile):
        return self._respond("test_connection", profile)

    def get_databases(self, profile):
        return self._respond("get_databases", profile)

    def execute_query(self, profile, sql):
        return self._respond("execute_query", profile, sql)

    def generate_diagram(self, request):
        return self._respond("generate_diagram", request)

    def generate_mermaid_from_schema(self, schema, style, theme, curve):
        return self._respond("generate_mermaid_from_schema", schema, style, theme, curve)

    def export_diagram(self, mermaid_code, path, fmt, background):
        return self._respond("export_diagram", mermaid_code, path, fmt, background)

    def server_status(self):
        return self._respond("server_status")

    def server_bundle_exists(self):
        return self._respond("server_bundle_exists")

    def server_platform_supported(self):
        return self._respond("server_platform_supported")

    def server_install(self):
        return self._respond("server_install")

    def server_start(self, port):
        return self._respond("server_start", port)

    def server_stop(self):
        return self._respond("server_stop")

    def read_log(self, name):
        return self._respond("read_log", name)


@pytest.fixture
def gateway():
    """In-memory filesystem with the project root /proj already present."""
    fake = FakeFileSystemGateway()
    fake.create_directory("/proj")
    fake.calls.clear()
    return fake


@pytest.fixture
def backend():
    return FakeCommandBackend()


@pytest.fixture
def sync_workers(monkeypatch):
    """Run workers synchronously in the calling thread instead of starting them."""
    from ermaker_studio.core.background import BackgroundTaskMixin
    launched = []

    def launch(self, worker):
        launched.append(worker)
        worker.run()

    monkeypatch.setattr(BackgroundTaskMixin, "_launch", launch)
    return launched


@pytest.fixture
def deferred_workers(monkeypatch):
    """Collect workers without running them; the test calls run() when it wants."""
    from ermaker_studio.core.background import BackgroundTaskMixin
    pending = []
    monkeypatch.setattr(BackgroundTaskMixin, "_launch", lambda self, worker: pending.append(worker))
    return pending


class MemoryKeyring(KeyringBackend):
    """Keyring backend holding passwords in a dict."""

    priority = 1

    def __init__(self):
        super().__init__()
        self.passwords: Dict[tuple, str] = {}

    def get_password(self, service, username):
        return self.passwords.get((service, username))

    def set_password(self, service, username, password):
        self.passwords[(service, username)] = password

    def delete_password(self, service, username):
        if self.passwords.pop((service, username), None) is None:
            raise PasswordDeleteError(f"No password for {username}")


@pytest.fixture(autouse=True)
def memory_keyring():
    """Replace the system keyring for every test."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)
