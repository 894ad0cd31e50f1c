"""Session and pane state, kept in memory and persisted through a StateStore."""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from orchflow.actions import PaneType
from orchflow.errors import SerializationError, StateError
from orchflow.storage import StateStore

_U32_MAX = 2**32 - 1
_EVENT_QUEUE_SIZE = 1024


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _require(data: Mapping[str, Any], name: str) -> Any:
    if name not in data:
        raise SerializationError(f"missing field `{name}`")
    return data[name]


def _string(data: Mapping[str, Any], name: str) -> str:
    value = _require(data, name)
    if not isinstance(value, str):
        raise SerializationError(f"field `{name}` must be a string")
    return value


def _optional_string(data: Mapping[str, Any], name: str) -> str | None:
    value = data.get(name)
    if value is not None and not isinstance(value, str):
        raise SerializationError(f"field `{name}` must be a string or null")
    return value


def _u32(data: Mapping[str, Any], name: str) -> int:
    value = _require(data, name)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
        raise SerializationError(f"field `{name}` must be an unsigned 32-bit integer")
    return value


def _boolean(data: Mapping[str, Any], name: str) -> bool:
    value = _require(data, name)
    if not isinstance(value, bool):
        raise SerializationError(f"field `{name}` must be a boolean")
    return value


def _time(data: Mapping[str, Any], name: str) -> datetime:
    text = _string(data, name)
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        raise SerializationError(f"field `{name}` is not a valid timestamp: {text!r}") from None
    if value.tzinfo is None:
        raise SerializationError(f"field `{name}` has no time zone: {text!r}")
    return value.astimezone(timezone.utc)


def _metadata(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = _require(data, name)
    if not isinstance(value, Mapping) or not all(isinstance(k, str) for k in value):
        raise SerializationError(f"field `{name}` must be an object")
    return copy.deepcopy(dict(value))


def _check_object(data: Any) -> None:
    if not isinstance(data, Mapping):
        raise SerializationError(f"expected an object, got {data!r}")


@dataclass
class SessionState:
    """A session and the ids of the panes it holds."""

    id: str
    name: str
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    pane_ids: list[str] = field(default_factory=list)
    active_pane_id: str | None = None
    layout: Any = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
            "pane_ids": list(self.pane_ids),
            "active_pane_id": self.active_pane_id,
            "layout": copy.deepcopy(self.layout),
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SessionState:
        _check_object(data)
        pane_ids = _require(data, "pane_ids")
        if not isinstance(pane_ids, list) or not all(isinstance(p, str) for p in pane_ids):
            raise SerializationError("field `pane_ids` must be a list of strings")
        return cls(
            id=_string(data, "id"),
            name=_string(data, "name"),
            created_at=_time(data, "created_at"),
            updated_at=_time(data, "updated_at"),
            pane_ids=list(pane_ids),
            active_pane_id=_optional_string(data, "active_pane_id"),
            layout=copy.deepcopy(data.get("layout")),
            metadata=_metadata(data, "metadata"),
        )


@dataclass
class PaneState:
    """A pane, its place in a session and the backend pane behind it."""

    id: str
    session_id: str
    pane_type: PaneType
    title: str | None = None
    command: str | None = None
    shell_type: str | None = None
    working_dir: str | None = None
    backend_id: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    width: int = 80
    height: int = 24
    x: int = 0
    y: int = 0
    active: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "pane_type": self.pane_type.to_json(),
            "title": self.title,
            "command": self.command,
            "shell_type": self.shell_type,
            "working_dir": self.working_dir,
            "backend_id": self.backend_id,
            "created_at": _format_time(self.created_at),
            "updated_at": _format_time(self.updated_at),
            "width": self.width,
            "height": self.height,
            "x": self.x,
            "y": self.y,
            "active": self.active,
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PaneState:
        _check_object(data)
        return cls(
            id=_string(data, "id"),
            session_id=_string(data, "session_id"),
            pane_type=PaneType.from_json(_require(data, "pane_type")),
            title=_optional_string(data, "title"),
            command=_optional_string(data, "command"),
            shell_type=_optional_string(data, "shell_type"),
            working_dir=_optional_string(data, "working_dir"),
            backend_id=_optional_string(data, "backend_id"),
            created_at=_time(data, "created_at"),
            updated_at=_time(data, "updated_at"),
            width=_u32(data, "width"),
            height=_u32(data, "height"),
            x=_u32(data, "x"),
            y=_u32(data, "y"),
            active=_boolean(data, "active"),
            metadata=_metadata(data, "metadata"),
        )


class StateEventType(StrEnum):
    """Type tag of a state change."""

    SESSION_CREATED = "session_created"
    SESSION_UPDATED = "session_updated"
    SESSION_DELETED = "session_deleted"
    PANE_CREATED = "pane_created"
    PANE_UPDATED = "pane_updated"
    PANE_DELETED = "pane_deleted"
    LAYOUT_CHANGED = "layout_changed"
    SETTINGS_CHANGED = "settings_changed"


_STATE_EVENT_FIELDS: dict[StateEventType, tuple[str, ...]] = {
    StateEventType.SESSION_CREATED: ("session",),
    StateEventType.SESSION_UPDATED: ("session",),
    StateEventType.SESSION_DELETED: ("session_id",),
    StateEventType.PANE_CREATED: ("pane",),
    StateEventType.PANE_UPDATED: ("pane",),
    StateEventType.PANE_DELETED: ("pane_id",),
    StateEventType.LAYOUT_CHANGED: ("session_id", "layout"),
    StateEventType.SETTINGS_CHANGED: ("key", "value"),
}


@dataclass(frozen=True)
class StateEvent:
    """A change to the stored state; only the fields of its type are meaningful."""

    type: StateEventType
    session: SessionState | None = None
    pane: PaneState | None = None
    session_id: str | None = None
    pane_id: str | None = None
    layout: Any = None
    key: str | None = None
    value: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", StateEventType(self.type))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type.value}
        for name in _STATE_EVENT_FIELDS[self.type]:
            value = getattr(self, name)
            if isinstance(value, (SessionState, PaneState)):
                out[name] = value.to_dict()
            else:
                out[name] = copy.deepcopy(value)
        return out


class StateManager:
    """Keeps sessions and panes cached in memory and persisted in a store.

    Every change is announced to subscribers as a StateEvent.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store
        self._subscribers: list[asyncio.Queue[StateEvent]] = []
        self._sessions: dict[str, SessionState] = {}
        self._panes: dict[str, PaneState] = {}

    def subscribe(self) -> asyncio.Queue[StateEvent]:
        """Return a queue that receives every subsequent state event."""
        queue: asyncio.Queue[StateEvent] = asyncio.Queue(maxsize=_EVENT_QUEUE_SIZE)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[StateEvent]) -> None:
        """Stop delivering events to a queue returned by subscribe."""
        try:
            self._subscribers.remove(queue)
        except ValueError:
            pass

    def _emit(self, event: StateEvent) -> None:
        for queue in self._subscribers:
            if queue.full():
                # A slow subscriber loses its oldest event rather than blocking others.
                queue.get_nowait()
            queue.put_nowait(event)

    async def _save(self, key: str, value: dict[str, Any]) -> None:
        try:
            await self._store.set(key, value)
        except Exception as exc:
            raise StateError(str(exc)) from exc

    async def _remove(self, key: str) -> None:
        try:
            await self._store.delete(key)
        except Exception as exc:
            raise StateError(str(exc)) from exc

    async def _keys(self, prefix: str) -> list[str]:
        try:
            return await self._store.list_keys(prefix)
        except Exception as exc:
            raise StateError(str(exc)) from exc

    # Sessions

    async def create_session(self, name: str) -> SessionState:
        """Create, persist and announce a new session."""
        now = _now()
        session = SessionState(id=str(uuid.uuid4()), name=name, created_at=now, updated_at=now)
        await self._save(f"session:{session.id}", session.to_dict())
        self._sessions[session.id] = copy.deepcopy(session)
        self._emit(StateEvent(StateEventType.SESSION_CREATED, session=copy.deepcopy(session)))
        return session

    async def get_session(self, session_id: str) -> SessionState | None:
        session = self._sessions.get(session_id)
        return copy.deepcopy(session) if session is not None else None

    async def list_sessions(self) -> list[SessionState]:
        return [copy.deepcopy(session) for session in self._sessions.values()]

    async def update_session(self, session: SessionState) -> None:
        await self._save(f"session:{session.id}", session.to_dict())
        self._sessions[session.id] = copy.deepcopy(session)
        self._emit(StateEvent(StateEventType.SESSION_UPDATED, session=copy.deepcopy(session)))

    async def delete_session(self, session_id: str) -> None:
        await self._remove(f"session:{session_id}")
        self._sessions.pop(session_id, None)
        self._emit(StateEvent(StateEventType.SESSION_DELETED, session_id=session_id))

    # Panes

    async def create_pane(self, pane: PaneState) -> PaneState:
        """Persist a pane, add it to its session and announce it."""
        await self._save(f"pane:{pane.id}", pane.to_dict())
        self._panes[pane.id] = copy.deepcopy(pane)

        session = await self.get_session(pane.session_id)
        if session is not None:
            session.pane_ids.append(pane.id)
            session.updated_at = _now()
            try:
                await self.update_session(session)
            except StateError:
                pass

        self._emit(StateEvent(StateEventType.PANE_CREATED, pane=copy.deepcopy(pane)))
        return copy.deepcopy(pane)

    async def get_pane(self, pane_id: str) -> PaneState | None:
        pane = self._panes.get(pane_id)
        return copy.deepcopy(pane) if pane is not None else None

    async def update_pane(self, pane: PaneState) -> None:
        await self._save(f"pane:{pane.id}", pane.to_dict())
        self._panes[pane.id] = copy.deepcopy(pane)
        self._emit(StateEvent(StateEventType.PANE_UPDATED, pane=copy.deepcopy(pane)))

    async def delete_pane(self, pane_id: str) -> None:
        """Remove a pane and drop it from its session; a missing pane is ignored."""
        pane = self._panes.get(pane_id)
        if pane is None:
            return
        await self._remove(f"pane:{pane_id}")
        self._panes.pop(pane_id, None)

        session = await self.get_session(pane.session_id)
        if session is not None:
            session.pane_ids = [pid for pid in session.pane_ids if pid != pane_id]
            session.updated_at = _now()
            try:
                await self.update_session(session)
            except StateError:
                pass

        self._emit(StateEvent(StateEventType.PANE_DELETED, pane_id=pane_id))

    async def delete_panes_for_session(self, session_id: str) -> None:
        pane_ids = [p.id for p in self._panes.values() if p.session_id == session_id]
        for pane_id in pane_ids:
            try:
                await self.delete_pane(pane_id)
            except StateError:
                pass

    async def load_from_storage(self) -> None:
        """Fill the caches from the store; unreadable entries are skipped."""
        for key in await self._keys("session:"):
            value = await self._load(key)
            if value is None:
                continue
            try:
                session = SessionState.from_dict(value)
            except (SerializationError, ValueError, TypeError):
                continue
            self._sessions[session.id] = session

        for key in await self._keys("pane:"):
            value = await self._load(key)
            if value is None:
                continue
            try:
                pane = PaneState.from_dict(value)
            except (SerializationError, ValueError, TypeError):
                continue
            self._panes[pane.id] = pane

    async def _load(self, key: str) -> Any:
        try:
            return await self._store.get(key)
        except Exception:
            return None