"""Error types raised by the orchestration engine."""

from __future__ import annotations

from typing import ClassVar


class OrchflowError(Exception):
    """Base class for every error the engine raises."""

    prefix: ClassVar[str] = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = str(message)

    def __str__(self) -> str:
        return f"{self.prefix}: {self.message}"


class NotFoundError(OrchflowError):
    """A session, pane or plugin does not exist."""

    prefix = "Not found"


class InvalidOperationError(OrchflowError):
    """The requested operation is not allowed in the current state."""

    prefix = "Invalid operation"


class BackendError(OrchflowError):
    """The multiplexer backend reported a failure."""

    prefix = "Backend error"

    @classmethod
    def from_mux_error(cls, err: BaseException) -> BackendError:
        """Wrap an error raised by a multiplexer backend."""
        return cls(str(err))


class PluginError(OrchflowError):
    """A plugin failed to initialise, handle an event or shut down."""

    prefix = "Plugin error"


class StateError(OrchflowError):
    """The state store failed."""

    prefix = "State error"


class SerializationError(OrchflowError):
    """A value could not be converted to or from its JSON form."""

    prefix = "Serialization error"


class GeneralError(OrchflowError):
    """Any other failure."""

    prefix = "General error"