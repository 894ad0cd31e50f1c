from typing import Any

import pytest

from orchflow import handlers
from orchflow.actions import PaneType, ShellType
from orchflow.backend import MuxBackend, MuxError, PaneSize, SplitType
from orchflow.errors import BackendError, GeneralError, NotFoundError
from orchflow.events import EventType
from orchflow.services import CommandHistory, FileManager, SearchProvider
from orchflow.state import PaneState, StateManager
from orchflow.storage import MemoryStore


class RecordingBackend(MuxBackend):
    def __init__(self, output: str = "test output", fail: frozenset = frozenset()):
        self.calls: list[tuple] = []
        self.output = output
        self.fail = set(fail)

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise MuxError(f"{name} failed")

    async def create_session(self, name):
        self._record("create_session", name)
        return name

    async def create_pane(self, session_id, split):
        self._record("create_pane", session_id, split)
        return f"{session_id}-pane-1"

    async def send_keys(self, pane_id, keys):
        self._record("send_keys", pane_id, keys)

    async def capture_pane(self, pane_id):
        self._record("capture_pane", pane_id)
        return self.output

    async def list_sessions(self):
        return []

    async def kill_session(self, session_id):
        self._record("kill_session", session_id)

    async def kill_pane(self, pane_id):
        self._record("kill_pane", pane_id)

    async def resize_pane(self, pane_id, size):
        self._record("resize_pane", pane_id, size)

    async def select_pane(self, pane_id):
        self._record("select_pane", pane_id)

    async def list_panes(self, session_id):
        return []

    async def attach_session(self, session_id):
        self._record("attach_session", session_id)

    async def detach_session(self, session_id):
        self._record("detach_session", session_id)


class MockFileManager(FileManager):
    def __init__(self):
        self.calls: list[tuple] = []

    def _check(self, *paths):
        if any("error" in p for p in paths):
            raise GeneralError("Mock error")

    async def create_file(self, path, content):
        self._check(path)
        self.calls.append(("create_file", path, content))

    async def read_file(self, path):
        self._check(path)
        return f"Content of {path}"

    async def delete_file(self, path):
        self.calls.append(("delete_file", path))

    async def rename_file(self, old_path, new_path):
        self.calls.append(("rename_file", old_path, new_path))

    async def copy_file(self, source, destination):
        self._check(source)
        self.calls.append(("copy_file", source, destination))

    async def move_file(self, source, destination):
        self._check(source)
        self.calls.append(("move_file", source, destination))

    async def create_directory(self, path):
        self.calls.append(("create_directory", path))

    async def list_directory(self, path):
        return ["file1.txt", "file2.txt"]


class EchoSearch(SearchProvider):
    async def search_project(self, pattern, options):
        return {"project": pattern, "options": options}

    async def search_in_file(self, file_path, pattern):
        return {"file": file_path, "pattern": pattern}


class ListHistory(CommandHistory):
    def __init__(self, fail: bool = False):
        self.commands: list[tuple[str, str]] = []
        self.fail = fail

    async def add_command(self, session_id, command):
        if self.fail:
            raise GeneralError("history down")
        self.commands.append((session_id, command))

    async def get_history(self, session_id, limit):
        return [c for s, c in self.commands if s == session_id][:limit]

    async def search_history(self, pattern):
        return [c for _, c in self.commands if pattern in c]


class FakeManager:
    def __init__(self, backend=None, file_manager=None, search_provider=None, command_history=None):
        self.state_manager = StateManager(MemoryStore())
        self.mux_backend = backend or RecordingBackend()
        self.file_manager = file_manager
        self.search_provider = search_provider
        self.command_history = command_history
        self.events = []

    def emit_event(self, event):
        self.events.append(event)


async def _session_and_pane(manager, **kwargs):
    session = await handlers.create_session(manager, "test-session")
    pane = await handlers.create_pane(
        manager,
        session["id"],
        kwargs.get("pane_type", PaneType.TERMINAL),
        kwargs.get("command", "bash"),
        kwargs.get("shell_type", ShellType.BASH),
        kwargs.get("name", "Test Pane"),
    )
    return session, pane


@pytest.mark.asyncio
async def test_create_session_registers_state_and_backend():
    manager = FakeManager()
    session = await handlers.create_session(manager, "test-session")
    assert session["name"] == "test-session"
    assert session["pane_ids"] == []
    assert manager.mux_backend.calls == [("create_session", session["id"])]
    stored = await manager.state_manager.get_session(session["id"])
    assert stored.name == "test-session"


@pytest.mark.asyncio
async def test_create_session_backend_failure_raises_backend_error():
    manager = FakeManager(RecordingBackend(fail=frozenset({"create_session"})))
    with pytest.raises(BackendError):
        await handlers.create_session(manager, "s")


@pytest.mark.asyncio
async def test_delete_session():
    manager = FakeManager()
    session = await handlers.create_session(manager, "s")
    result = await handlers.delete_session(manager, session["id"])
    assert result == {"status": "ok", "session_id": session["id"]}
    assert await manager.state_manager.get_session(session["id"]) is None
    assert ("kill_session", session["id"]) in manager.mux_backend.calls


@pytest.mark.asyncio
async def test_delete_session_tolerates_backend_failure():
    manager = FakeManager(RecordingBackend(fail=frozenset({"kill_session"})))
    session = await handlers.create_session(manager, "s")
    result = await handlers.delete_session(manager, session["id"])
    assert result["status"] == "ok"
    assert await manager.state_manager.list_sessions() == []


@pytest.mark.asyncio
async def test_delete_missing_session_raises_not_found():
    with pytest.raises(NotFoundError, match="Session not found: nope"):
        await handlers.delete_session(FakeManager(), "nope")


@pytest.mark.asyncio
async def test_create_pane():
    manager = FakeManager()
    session, pane = await _session_and_pane(manager)
    assert pane["title"] == "Test Pane"
    assert pane["command"] == "bash"
    assert pane["shell_type"] == "Bash"
    assert pane["pane_type"] == "terminal"
    assert pane["backend_id"] == f"{session['id']}-pane-1"
    assert (pane["width"], pane["height"]) == (80, 24)
    assert ("create_pane", session["id"], SplitType.NONE) in manager.mux_backend.calls
    stored_session = await manager.state_manager.get_session(session["id"])
    assert stored_session.pane_ids == [pane["id"]]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "shell, expected",
    [
        (ShellType.POWER_SHELL, "PowerShell"),
        (ShellType.custom("nu"), 'Custom("nu")'),
        (None, None),
    ],
)
async def test_create_pane_shell_type_text(shell, expected):
    manager = FakeManager()
    _, pane = await _session_and_pane(manager, shell_type=shell)
    assert pane["shell_type"] == expected


@pytest.mark.asyncio
async def test_create_pane_unknown_session():
    manager = FakeManager()
    with pytest.raises(NotFoundError):
        await handlers.create_pane(manager, "missing", PaneType.TERMINAL, None, None, None)
    assert manager.mux_backend.calls == []


@pytest.mark.asyncio
async def test_create_pane_backend_failure():
    manager = FakeManager(RecordingBackend(fail=frozenset({"create_pane"})))
    session = await handlers.create_session(manager, "s")
    with pytest.raises(BackendError):
        await handlers.create_pane(manager, session["id"], PaneType.EDITOR, None, None, None)


@pytest.mark.asyncio
async def test_close_pane():
    manager = FakeManager()
    session, pane = await _session_and_pane(manager)
    result = await handlers.close_pane(manager, pane["id"])
    assert result == {"status": "ok", "pane_id": pane["id"]}
    assert await manager.state_manager.get_pane(pane["id"]) is None
    assert ("kill_pane", pane["backend_id"]) in manager.mux_backend.calls
    assert (await manager.state_manager.get_session(session["id"])).pane_ids == []


@pytest.mark.asyncio
async def test_close_missing_pane():
    with pytest.raises(NotFoundError, match="Pane not found: ghost"):
        await handlers.close_pane(FakeManager(), "ghost")


@pytest.mark.asyncio
async def test_resize_pane():
    manager = FakeManager()
    _, pane = await _session_and_pane(manager)
    result = await handlers.resize_pane(manager, pane["id"], 120, 40)
    assert result["width"] == 120
    assert result["height"] == 40
    stored = await manager.state_manager.get_pane(pane["id"])
    assert (stored.width, stored.height) == (120, 40)
    assert ("resize_pane", pane["backend_id"], PaneSize(120, 40)) in manager.mux_backend.calls
    event = manager.events[-1]
    assert event.type is EventType.PANE_RESIZED
    assert (event.pane_id, event.width, event.height) == (pane["id"], 120, 40)


@pytest.mark.asyncio
async def test_rename_pane():
    manager = FakeManager()
    _, pane = await _session_and_pane(manager)
    result = await handlers.rename_pane(manager, pane["id"], "Logs")
    assert result["new_name"] == "Logs"
    assert (await manager.state_manager.get_pane(pane["id"])).title == "Logs"


@pytest.mark.asyncio
async def test_file_operations_need_file_manager():
    manager = FakeManager()
    with pytest.raises(GeneralError) as info:
        await handlers.create_file(manager, "a.txt", None)
    assert str(info.value) == "General error: File manager not available"
    with pytest.raises(GeneralError):
        await handlers.move_files(manager, ["a"], "b")


@pytest.mark.asyncio
async def test_create_and_open_file():
    manager = FakeManager(file_manager=MockFileManager())
    result = await handlers.create_file(manager, "test.txt", "Hello")
    assert result == {"status": "ok", "path": "test.txt"}
    assert manager.events[-1].type is EventType.FILE_SAVED

    result = await handlers.open_file(manager, "test.txt")
    assert result["content"] == "Content of test.txt"
    event = manager.events[-1]
    assert event.type is EventType.FILE_READ
    assert event.size == len("Content of test.txt")


@pytest.mark.asyncio
async def test_open_file_error_propagates():
    manager = FakeManager(file_manager=MockFileManager())
    with pytest.raises(GeneralError):
        await handlers.open_file(manager, "error.txt")
    assert manager.events == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "old, new_name, expected",
    [
        ("dir/a.txt", "b.txt", "dir/b.txt"),
        ("a.txt", "b.txt", "b.txt"),
        ("/a.txt", "b.txt", "/b.txt"),
        ("/", "b.txt", "b.txt"),
    ],
)
async def test_rename_path(old, new_name, expected):
    files = MockFileManager()
    manager = FakeManager(file_manager=files)
    result = await handlers.rename_path(manager, old, new_name)
    assert result["new_path"] == expected
    assert files.calls == [("rename_file", old, expected)]


@pytest.mark.asyncio
async def test_simple_file_operations_delegate():
    files = MockFileManager()
    manager = FakeManager(file_manager=files)
    assert (await handlers.create_directory(manager, "d"))["path"] == "d"
    assert (await handlers.delete_path(manager, "f", True))["path"] == "f"
    copied = await handlers.copy_path(manager, "s", "t")
    moved = await handlers.move_path(manager, "s", "t")
    assert copied["destination"] == moved["destination"] == "t"
    assert files.calls == [
        ("create_directory", "d"),
        ("delete_file", "f"),
        ("copy_file", "s", "t"),
        ("move_file", "s", "t"),
    ]


@pytest.mark.asyncio
async def test_move_files_reports_each_file():
    manager = FakeManager(file_manager=MockFileManager())
    result = await handlers.move_files(manager, ["a.txt", "error.txt"], "dest")
    assert result["results"][0] == {"file": "a.txt", "status": "moved"}
    failed = result["results"][1]
    assert failed["status"] == "error"
    assert failed["error"] == str(GeneralError("Mock error"))


@pytest.mark.asyncio
async def test_copy_files_reports_each_file():
    manager = FakeManager(file_manager=MockFileManager())
    result = await handlers.copy_files(manager, ["x", "y"], "dest")
    assert [r["status"] for r in result["results"]] == ["copied", "copied"]


@pytest.mark.asyncio
async def test_file_tree_and_search_defaults():
    manager = FakeManager()
    tree = await handlers.get_file_tree(manager, None, None)
    assert tree["path"] == "."
    assert tree["max_depth"] is None
    found = await handlers.search_files(manager, "*.rs", "src")
    assert (found["pattern"], found["path"]) == ("*.rs", "src")


@pytest.mark.asyncio
async def test_search_fallback_without_provider():
    manager = FakeManager()
    project = await handlers.search_project(manager, "todo", {})
    assert project["results"] == []
    assert project["message"] == "Search provider not available"
    in_file = await handlers.search_in_file(manager, "a.py", "todo")
    assert in_file["file_path"] == "a.py"
    assert in_file["results"] == []


@pytest.mark.asyncio
async def test_search_uses_provider():
    manager = FakeManager(search_provider=EchoSearch())
    assert await handlers.search_project(manager, "todo", {"case": True}) == {
        "project": "todo",
        "options": {"case": True},
    }
    assert await handlers.search_in_file(manager, "a.py", "x") == {"file": "a.py", "pattern": "x"}


@pytest.mark.asyncio
async def test_send_keys():
    manager = FakeManager()
    _, pane = await _session_and_pane(manager)
    result = await handlers.send_keys(manager, pane["id"], "echo test")
    assert result["status"] == "ok"
    assert manager.mux_backend.calls[-1] == ("send_keys", pane["backend_id"], "echo test")


@pytest.mark.asyncio
async def test_run_command_sends_newline_and_records_history():
    history = ListHistory()
    manager = FakeManager(command_history=history)
    session, pane = await _session_and_pane(manager)
    result = await handlers.run_command(manager, pane["id"], "ls -la")
    assert result["command"] == "ls -la"
    assert manager.mux_backend.calls[-1] == ("send_keys", pane["backend_id"], "ls -la\n")
    assert manager.events[-1].type is EventType.COMMAND_EXECUTED
    assert history.commands == [(session["id"], "ls -la")]


@pytest.mark.asyncio
async def test_run_command_ignores_history_failure():
    manager = FakeManager(command_history=ListHistory(fail=True))
    _, pane = await _session_and_pane(manager)
    result = await handlers.run_command(manager, pane["id"], "pwd")
    assert result["status"] == "ok"


@pytest.mark.asyncio
async def test_terminal_operations_on_missing_pane():
    manager = FakeManager()
    with pytest.raises(NotFoundError):
        await handlers.send_keys(manager, "nope", "x")
    with pytest.raises(NotFoundError):
        await handlers.get_pane_output(manager, "nope", None)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "lines, expected",
    [(None, "a\nb\nc\n"), (2, "b\nc"), (10, "a\nb\nc"), (0, "")],
)
async def test_get_pane_output_line_limit(lines, expected):
    manager = FakeManager(RecordingBackend(output="a\nb\nc\n"))
    _, pane = await _session_and_pane(manager)
    result = await handlers.get_pane_output(manager, pane["id"], lines)
    assert result["output"] == expected


@pytest.mark.asyncio
async def test_get_pane_output_default_backend():
    manager = FakeManager()
    _, pane = await _session_and_pane(manager)
    result = await handlers.get_pane_output(manager, pane["id"], 10)
    assert result["output"] == "test output"


@pytest.mark.asyncio
async def test_pane_without_backend_id_skips_backend():
    manager = FakeManager()
    session = await handlers.create_session(manager, "s")
    await manager.state_manager.create_pane(
        PaneState(id="local", session_id=session["id"], pane_type=PaneType.OUTPUT)
    )
    calls_before = list(manager.mux_backend.calls)
    output = await handlers.get_pane_output(manager, "local", 5)
    assert output["output"] == ""
    await handlers.send_keys(manager, "local", "x")
    assert manager.mux_backend.calls == calls_before