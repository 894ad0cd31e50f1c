"""Handlers that carry out each kind of action against a manager."""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from orchflow.actions import PaneType, ShellType
from orchflow.backend import MuxError, PaneSize, SplitType
from orchflow.errors import BackendError, GeneralError, NotFoundError, OrchflowError
from orchflow.events import Event, EventType
from orchflow.services import FileManager
from orchflow.state import PaneState, _now

if TYPE_CHECKING:
    from orchflow.manager import Manager

logger = logging.getLogger(__name__)

_NO_FILE_MANAGER = "File manager not available"
_NO_SEARCH_PROVIDER = "Search provider not available"


@contextmanager
def _backend_errors() -> Iterator[None]:
    """Turn multiplexer failures into BackendError."""
    try:
        yield
    except MuxError as exc:
        raise BackendError.from_mux_error(exc) from exc


def _files(manager: Manager) -> FileManager:
    if manager.file_manager is None:
        raise GeneralError(_NO_FILE_MANAGER)
    return manager.file_manager


async def _require_pane(manager: Manager, pane_id: str) -> PaneState:
    pane = await manager.state_manager.get_pane(pane_id)
    if pane is None:
        raise NotFoundError(f"Pane not found: {pane_id}")
    return pane


# Sessions


async def create_session(manager: Manager, name: str) -> dict[str, Any]:
    """Create a session in the state and in the backend."""
    session = await manager.state_manager.create_session(name)
    with _backend_errors():
        await manager.mux_backend.create_session(session.id)
    return session.to_dict()


async def delete_session(manager: Manager, session_id: str) -> dict[str, Any]:
    """Kill a session in the backend and remove it from the state."""
    if await manager.state_manager.get_session(session_id) is None:
        raise NotFoundError(f"Session not found: {session_id}")
    try:
        await manager.mux_backend.kill_session(session_id)
    except MuxError as exc:
        logger.error("Failed to kill backend session: %s", exc)
    await manager.state_manager.delete_session(session_id)
    return {"status": "ok", "session_id": session_id}


# Panes


async def create_pane(
    manager: Manager,
    session_id: str,
    pane_type: PaneType,
    command: str | None,
    shell_type: ShellType | None,
    name: str | None,
) -> dict[str, Any]:
    """Create a pane in an existing session."""
    if await manager.state_manager.get_session(session_id) is None:
        raise NotFoundError(f"Session not found: {session_id}")
    with _backend_errors():
        backend_id = await manager.mux_backend.create_pane(session_id, SplitType.NONE)

    import uuid

    now = _now()
    pane = PaneState(
        id=str(uuid.uuid4()),
        session_id=session_id,
        pane_type=pane_type,
        title=name,
        command=command,
        shell_type=str(shell_type) if shell_type is not None else None,
        working_dir=None,
        backend_id=backend_id,
        created_at=now,
        updated_at=now,
    )
    pane = await manager.state_manager.create_pane(pane)
    return pane.to_dict()


async def close_pane(manager: Manager, pane_id: str) -> dict[str, Any]:
    """Kill a pane in the backend and remove it from the state."""
    pane = await _require_pane(manager, pane_id)
    if pane.backend_id is not None:
        try:
            await manager.mux_backend.kill_pane(pane.backend_id)
        except MuxError as exc:
            logger.error("Failed to kill backend pane: %s", exc)
    await manager.state_manager.delete_pane(pane_id)
    return {"status": "ok", "pane_id": pane_id}


async def resize_pane(manager: Manager, pane_id: str, width: int, height: int) -> dict[str, Any]:
    """Resize a pane in the backend and record its new size."""
    pane = await _require_pane(manager, pane_id)
    if pane.backend_id is not None:
        with _backend_errors():
            await manager.mux_backend.resize_pane(pane.backend_id, PaneSize(width, height))
    pane.width = width
    pane.height = height
    pane.updated_at = _now()
    await manager.state_manager.update_pane(pane)
    manager.emit_event(Event(EventType.PANE_RESIZED, pane_id=pane_id, width=width, height=height))
    return {"status": "ok", "pane_id": pane_id, "width": width, "height": height}


async def rename_pane(manager: Manager, pane_id: str, name: str) -> dict[str, Any]:
    """Give a pane a new title."""
    pane = await _require_pane(manager, pane_id)
    pane.title = name
    pane.updated_at = _now()
    await manager.state_manager.update_pane(pane)
    return {"status": "ok", "pane_id": pane_id, "new_name": name}


# Files


def _parent(path: str) -> str | None:
    """Directory part of a path; None when the path has no parent."""
    stripped = path.rstrip("/")
    if not stripped:
        return None
    head, sep, _ = stripped.rpartition("/")
    if not sep:
        return ""
    trimmed = head.rstrip("/")
    if not trimmed:
        return "/"
    return trimmed


def _sibling_path(old_path: str, new_name: str) -> str:
    parent = _parent(old_path)
    if not parent:
        return new_name
    return posixpath.join(parent, new_name)


async def create_file(manager: Manager, path: str, content: str | None) -> dict[str, Any]:
    await _files(manager).create_file(path, content)
    manager.emit_event(Event(EventType.FILE_SAVED, path=path))
    return {"status": "ok", "path": path}


async def open_file(manager: Manager, path: str) -> dict[str, Any]:
    content = await _files(manager).read_file(path)
    manager.emit_event(Event(EventType.FILE_READ, path=path, size=len(content.encode("utf-8"))))
    return {"status": "ok", "path": path, "content": content}


async def create_directory(manager: Manager, path: str) -> dict[str, Any]:
    await _files(manager).create_directory(path)
    return {"status": "ok", "path": path}


async def delete_path(manager: Manager, path: str, permanent: bool) -> dict[str, Any]:
    await _files(manager).delete_file(path)
    return {"status": "ok", "path": path}


async def rename_path(manager: Manager, old_path: str, new_name: str) -> dict[str, Any]:
    """Rename a path, keeping it in the same directory."""
    files = _files(manager)
    new_path = _sibling_path(old_path, new_name)
    await files.rename_file(old_path, new_path)
    return {"status": "ok", "old_path": old_path, "new_path": new_path}


async def copy_path(manager: Manager, source: str, destination: str) -> dict[str, Any]:
    await _files(manager).copy_file(source, destination)
    return {"status": "ok", "source": source, "destination": destination}


async def move_path(manager: Manager, source: str, destination: str) -> dict[str, Any]:
    await _files(manager).move_file(source, destination)
    return {"status": "ok", "source": source, "destination": destination}


async def move_files(manager: Manager, files: Iterable[str], destination: str) -> dict[str, Any]:
    """Move each file, reporting success or failure per file."""
    file_manager = _files(manager)
    results = []
    for file in files:
        try:
            await file_manager.move_file(file, destination)
        except OrchflowError as exc:
            results.append({"file": file, "status": "error", "error": str(exc)})
        else:
            results.append({"file": file, "status": "moved"})
    return {"results": results}


async def copy_files(manager: Manager, files: Iterable[str], destination: str) -> dict[str, Any]:
    """Copy each file, reporting success or failure per file."""
    file_manager = _files(manager)
    results = []
    for file in files:
        try:
            await file_manager.copy_file(file, destination)
        except OrchflowError as exc:
            results.append({"file": file, "status": "error", "error": str(exc)})
        else:
            results.append({"file": file, "status": "copied"})
    return {"results": results}


async def get_file_tree(manager: Manager, path: str | None, max_depth: int | None) -> dict[str, Any]:
    return {
        "status": "ok",
        "path": path if path is not None else ".",
        "max_depth": max_depth,
        "message": "File tree functionality not fully implemented",
    }


async def search_files(manager: Manager, pattern: str, path: str | None) -> dict[str, Any]:
    return {
        "status": "ok",
        "pattern": pattern,
        "path": path if path is not None else ".",
        "message": "File search functionality not fully implemented",
    }


# Search


async def search_project(manager: Manager, pattern: str, options: Any) -> Any:
    if manager.search_provider is not None:
        return await manager.search_provider.search_project(pattern, options)
    return {"status": "ok", "pattern": pattern, "results": [], "message": _NO_SEARCH_PROVIDER}


async def search_in_file(manager: Manager, file_path: str, pattern: str) -> Any:
    if manager.search_provider is not None:
        return await manager.search_provider.search_in_file(file_path, pattern)
    return {
        "status": "ok",
        "file_path": file_path,
        "pattern": pattern,
        "results": [],
        "message": _NO_SEARCH_PROVIDER,
    }


# Terminal


def _text_lines(text: str) -> list[str]:
    """Split text into lines on \\n, dropping a final empty line and trailing \\r."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


async def send_keys(manager: Manager, pane_id: str, keys: str) -> dict[str, Any]:
    pane = await _require_pane(manager, pane_id)
    if pane.backend_id is not None:
        with _backend_errors():
            await manager.mux_backend.send_keys(pane.backend_id, keys)
    return {"status": "ok", "pane_id": pane_id}


async def run_command(manager: Manager, pane_id: str, command: str) -> dict[str, Any]:
    """Type a command followed by a newline and record it."""
    pane = await _require_pane(manager, pane_id)
    if pane.backend_id is not None:
        with _backend_errors():
            await manager.mux_backend.send_keys(pane.backend_id, f"{command}\n")
    manager.emit_event(Event(EventType.COMMAND_EXECUTED, pane_id=pane_id, command=command))
    if manager.command_history is not None:
        try:
            await manager.command_history.add_command(pane.session_id, command)
        except OrchflowError as exc:
            logger.debug("Could not record command: %s", exc)
    return {"status": "ok", "pane_id": pane_id, "command": command}


async def get_pane_output(manager: Manager, pane_id: str, lines: int | None) -> dict[str, Any]:
    """Capture a pane's output, keeping only the last ``lines`` lines if given."""
    pane = await _require_pane(manager, pane_id)
    output = ""
    if pane.backend_id is not None:
        with _backend_errors():
            output = await manager.mux_backend.capture_pane(pane.backend_id)
    if lines is not None:
        all_lines = _text_lines(output)
        start = max(len(all_lines) - lines, 0)
        output = "\n".join(all_lines[start:])
    return {"status": "ok", "pane_id": pane_id, "output": output}