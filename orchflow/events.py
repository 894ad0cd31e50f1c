"""Events emitted by the manager."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar

from orchflow.errors import SerializationError


class EventType(StrEnum):
    """Type tag of an event."""

    ORCHESTRATOR_STARTED = "orchestrator_started"
    ORCHESTRATOR_STOPPING = "orchestrator_stopping"
    SESSION_CREATED = "session_created"
    SESSION_UPDATED = "session_updated"
    SESSION_DELETED = "session_deleted"
    PANE_CREATED = "pane_created"
    PANE_OUTPUT = "pane_output"
    PANE_CLOSED = "pane_closed"
    PANE_DESTROYED = "pane_destroyed"
    PANE_FOCUSED = "pane_focused"
    PANE_RESIZED = "pane_resized"
    FILE_OPENED = "file_opened"
    FILE_SAVED = "file_saved"
    FILE_CHANGED = "file_changed"
    FILE_WATCH_STARTED = "file_watch_started"
    FILE_WATCH_STOPPED = "file_watch_stopped"
    FILE_WATCH_EVENT = "file_watch_event"
    COMMAND_EXECUTED = "command_executed"
    COMMAND_COMPLETED = "command_completed"
    PLUGIN_LOADED = "plugin_loaded"
    PLUGIN_UNLOADED = "plugin_unloaded"
    PLUGIN_ERROR = "plugin_error"
    CUSTOM = "custom"
    FILE_READ = "file_read"


_FIELDS: dict[EventType, tuple[str, ...]] = {
    EventType.ORCHESTRATOR_STARTED: (),
    EventType.ORCHESTRATOR_STOPPING: (),
    EventType.SESSION_CREATED: ("session",),
    EventType.SESSION_UPDATED: ("session",),
    EventType.SESSION_DELETED: ("session_id",),
    EventType.PANE_CREATED: ("pane",),
    EventType.PANE_OUTPUT: ("pane_id", "output"),
    EventType.PANE_CLOSED: ("pane_id",),
    EventType.PANE_DESTROYED: ("pane_id",),
    EventType.PANE_FOCUSED: ("pane_id",),
    EventType.PANE_RESIZED: ("pane_id", "width", "height"),
    EventType.FILE_OPENED: ("path", "pane_id"),
    EventType.FILE_SAVED: ("path",),
    EventType.FILE_CHANGED: ("path",),
    EventType.FILE_WATCH_STARTED: ("path", "recursive"),
    EventType.FILE_WATCH_STOPPED: ("path",),
    EventType.FILE_WATCH_EVENT: ("path", "kind"),
    EventType.COMMAND_EXECUTED: ("pane_id", "command"),
    EventType.COMMAND_COMPLETED: ("pane_id", "exit_code"),
    EventType.PLUGIN_LOADED: ("id",),
    EventType.PLUGIN_UNLOADED: ("id",),
    EventType.PLUGIN_ERROR: ("id", "error"),
    EventType.CUSTOM: ("event_type", "data"),
    EventType.FILE_READ: ("path", "size"),
}

_SIMPLE_WATCH_KINDS = ("created", "modified", "deleted")


@dataclass(frozen=True)
class FileWatchEventKind:
    """What happened to a watched path; ``renamed`` carries both paths."""

    kind: str
    from_path: str | None = None
    to_path: str | None = None

    CREATED: ClassVar[FileWatchEventKind]
    MODIFIED: ClassVar[FileWatchEventKind]
    DELETED: ClassVar[FileWatchEventKind]

    def __post_init__(self) -> None:
        if self.kind == "renamed":
            if not isinstance(self.from_path, str) or not isinstance(self.to_path, str):
                raise ValueError("a rename needs both paths")
        elif self.kind in _SIMPLE_WATCH_KINDS:
            if self.from_path is not None or self.to_path is not None:
                raise ValueError(f"watch event {self.kind!r} takes no paths")
        else:
            raise ValueError(f"unknown watch event kind: {self.kind!r}")

    def to_json(self) -> Any:
        if self.kind == "renamed":
            return {"renamed": {"from": self.from_path, "to": self.to_path}}
        return self.kind

    @classmethod
    def from_json(cls, value: Any) -> FileWatchEventKind:
        if isinstance(value, str) and value in _SIMPLE_WATCH_KINDS:
            return cls(value)
        if isinstance(value, Mapping) and len(value) == 1 and "renamed" in value:
            body = value["renamed"]
            if (
                isinstance(body, Mapping)
                and isinstance(body.get("from"), str)
                and isinstance(body.get("to"), str)
            ):
                return cls("renamed", body["from"], body["to"])
        raise SerializationError(f"invalid watch event kind: {value!r}")


FileWatchEventKind.CREATED = FileWatchEventKind("created")
FileWatchEventKind.MODIFIED = FileWatchEventKind("modified")
FileWatchEventKind.DELETED = FileWatchEventKind("deleted")


def _encode(value: Any) -> Any:
    if isinstance(value, FileWatchEventKind):
        return value.to_json()
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return copy.deepcopy(value)


class Event:
    """An event of a given type with that type's fields as attributes.

    Session and pane payloads are kept as given; when read back with
    ``from_dict`` they are plain mappings.
    """

    __slots__ = ("type", "_data")

    def __init__(self, type: EventType | str, **kwargs: Any) -> None:
        event_type = EventType(type)
        expected = _FIELDS[event_type]
        missing = [name for name in expected if name not in kwargs]
        unexpected = [name for name in kwargs if name not in expected]
        if missing or unexpected:
            raise TypeError(
                f"{event_type.value} event takes fields {list(expected)}; "
                f"missing {missing}, unexpected {unexpected}"
            )
        self.type = event_type
        self._data = {name: kwargs[name] for name in expected}

    def __getattr__(self, item: str) -> Any:
        # Only reached when normal lookup fails; guard against an unset slot.
        if item == "_data":
            raise AttributeError(item)
        try:
            return self._data[item]
        except KeyError:
            raise AttributeError(f"event has no field {item!r}") from None

    def name(self) -> str:
        """Name used to match plugin subscriptions."""
        if self.type is EventType.CUSTOM:
            return self._data["event_type"]
        return self.type.value

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type.value}
        out.update((key, _encode(value)) for key, value in self._data.items())
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Event:
        if not isinstance(data, Mapping):
            raise SerializationError(f"expected an object, got {data!r}")
        if "type" not in data:
            raise SerializationError("missing field `type`")
        try:
            event_type = EventType(data["type"])
        except ValueError:
            raise SerializationError(f"unknown event type: {data['type']!r}") from None
        kwargs: dict[str, Any] = {}
        for name in _FIELDS[event_type]:
            if name == "data":
                kwargs[name] = copy.deepcopy(data.get("data"))
                continue
            if name not in data:
                raise SerializationError(f"missing field `{name}`")
            value = data[name]
            if name == "kind":
                kwargs[name] = FileWatchEventKind.from_json(value)
            else:
                kwargs[name] = copy.deepcopy(value)
        return cls(event_type, **kwargs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self.type is other.type and self._data == other._data

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self._data.items())
        return f"Event({self.type.value!r}{', ' if fields else ''}{fields})"