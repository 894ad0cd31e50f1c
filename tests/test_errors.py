import pytest

from orchflow.backend import MuxError
from orchflow.errors import (
    BackendError,
    GeneralError,
    InvalidOperationError,
    NotFoundError,
    OrchflowError,
    PluginError,
    SerializationError,
    StateError,
)


def test_not_found_message_has_prefix():
    err = NotFoundError("Session not found: abc")
    assert str(err) == "Not found: Session not found: abc"
    assert err.message == "Session not found: abc"


@pytest.mark.parametrize(
    "cls, prefix",
    [
        (NotFoundError, "Not found"),
        (InvalidOperationError, "Invalid operation"),
        (BackendError, "Backend error"),
        (PluginError, "Plugin error"),
        (StateError, "State error"),
        (SerializationError, "Serialization error"),
        (GeneralError, "General error"),
    ],
)
def test_prefixes_follow_error_kind(cls, prefix):
    err = cls("details")
    assert str(err) == f"{prefix}: details"
    assert isinstance(err, OrchflowError)


def test_backend_error_from_mux_error_keeps_message():
    err = BackendError.from_mux_error(MuxError("pane gone"))
    assert isinstance(err, BackendError)
    assert err.message == "pane gone"


def test_subclass_caught_as_base():
    err = GeneralError("Failed to send action")
    assert str(err) == "General error: Failed to send action"
    with pytest.raises(OrchflowError) as info:
        raise err
    assert info.value is err
    assert info.value.message == "Failed to send action"