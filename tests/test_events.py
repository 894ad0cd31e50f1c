import pytest

from orchflow.errors import SerializationError
from orchflow.events import Event, EventType, FileWatchEventKind

SAMPLES = [
    Event(EventType.ORCHESTRATOR_STARTED),
    Event("session_created", session={"id": "s1", "name": "demo"}),
    Event("session_deleted", session_id="s1"),
    Event("pane_resized", pane_id="p1", width=120, height=40),
    Event("file_watch_event", path="a.txt", kind=FileWatchEventKind.MODIFIED),
    Event("file_watch_event", path="a.txt", kind=FileWatchEventKind("renamed", "a.txt", "b.txt")),
    Event("command_completed", pane_id="p1", exit_code=1),
    Event("plugin_error", id="plug", error="boom"),
    Event("custom", event_type="build_done", data={"ok": True}),
    Event("file_read", path="test.txt", size=5),
]


@pytest.mark.parametrize("event", SAMPLES, ids=lambda e: e.type.value)
def test_round_trip(event):
    data = event.to_dict()
    assert data["type"] == event.type.value
    assert Event.from_dict(data) == event


def test_unit_event_wire_form():
    assert Event("orchestrator_started").to_dict() == {"type": "orchestrator_started"}


def test_fields_are_attributes():
    event = Event("command_executed", pane_id="p1", command="ls -la")
    assert event.pane_id == "p1"
    assert event.command == "ls -la"
    with pytest.raises(AttributeError):
        event.session


def test_name_for_builtin_and_custom():
    assert Event("pane_closed", pane_id="p1").name() == EventType.PANE_CLOSED.value
    assert Event("custom", event_type="build_done", data=None).name() == "build_done"


def test_wrong_fields_rejected():
    with pytest.raises(TypeError):
        Event("pane_closed")
    with pytest.raises(TypeError):
        Event("pane_closed", pane_id="p1", extra=1)


def test_unknown_type_rejected():
    with pytest.raises(ValueError):
        Event("nonsense")
    with pytest.raises(SerializationError):
        Event.from_dict({"type": "nonsense"})


def test_from_dict_missing_field():
    with pytest.raises(SerializationError):
        Event.from_dict({"type": "pane_output", "pane_id": "p1"})


def test_custom_data_defaults_to_none():
    event = Event.from_dict({"type": "custom", "event_type": "ping"})
    assert event.data is None


def test_payload_with_to_dict_is_encoded():
    class Payload:
        def to_dict(self):
            return {"id": "s9"}

    event = Event("session_updated", session=Payload())
    assert event.to_dict()["session"] == {"id": "s9"}


def test_watch_kind_json():
    renamed = FileWatchEventKind("renamed", "a", "b")
    assert renamed.to_json() == {"renamed": {"from": "a", "to": "b"}}
    assert FileWatchEventKind.from_json(renamed.to_json()) == renamed
    assert FileWatchEventKind.from_json(FileWatchEventKind.DELETED.to_json()) == FileWatchEventKind.DELETED


def test_watch_kind_invalid():
    with pytest.raises(SerializationError):
        FileWatchEventKind.from_json({"renamed": {"from": "a"}})
    with pytest.raises(ValueError):
        FileWatchEventKind("renamed", "a")