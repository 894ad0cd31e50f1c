"""Interface to terminal multiplexer backends and the values exchanged with them."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from orchflow.errors import SerializationError


class MuxError(Exception):
    """Raised by a multiplexer backend when an operation fails."""


class SplitType(Enum):
    """How a new pane is split from an existing one."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    NONE = "none"


@dataclass(frozen=True)
class PaneSize:
    """Size of a pane in character cells."""

    width: int
    height: int


@dataclass
class WindowInfo:
    """A window of a session together with descriptions of its panes."""

    id: str
    name: str
    panes: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "panes": copy.deepcopy(self.panes)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WindowInfo:
        if not isinstance(data, Mapping):
            raise SerializationError(f"expected an object, got {data!r}")
        for key in ("id", "name", "panes"):
            if key not in data:
                raise SerializationError(f"missing field `{key}`")
        if not isinstance(data["id"], str) or not isinstance(data["name"], str):
            raise SerializationError("fields `id` and `name` must be strings")
        if not isinstance(data["panes"], list):
            raise SerializationError("field `panes` must be a list")
        return cls(id=data["id"], name=data["name"], panes=copy.deepcopy(data["panes"]))


class MuxBackend(ABC):
    """A terminal multiplexer that hosts sessions and panes.

    Implementations raise MuxError when an operation fails.
    """

    @abstractmethod
    async def create_session(self, name: str) -> str:
        """Create a session and return its backend id."""

    @abstractmethod
    async def create_pane(self, session_id: str, split: SplitType) -> str:
        """Create a pane in a session and return its backend id."""

    @abstractmethod
    async def send_keys(self, pane_id: str, keys: str) -> None:
        """Type keys into a pane."""

    @abstractmethod
    async def capture_pane(self, pane_id: str) -> str:
        """Return the visible contents of a pane."""

    @abstractmethod
    async def list_sessions(self) -> list[Any]:
        """Return descriptions of all sessions."""

    @abstractmethod
    async def kill_session(self, session_id: str) -> None:
        """Terminate a session."""

    @abstractmethod
    async def kill_pane(self, pane_id: str) -> None:
        """Terminate a pane."""

    @abstractmethod
    async def resize_pane(self, pane_id: str, size: PaneSize) -> None:
        """Resize a pane."""

    @abstractmethod
    async def select_pane(self, pane_id: str) -> None:
        """Give a pane the focus."""

    @abstractmethod
    async def list_panes(self, session_id: str) -> list[Any]:
        """Return descriptions of the panes of a session."""

    @abstractmethod
    async def attach_session(self, session_id: str) -> None:
        """Attach to a session."""

    @abstractmethod
    async def detach_session(self, session_id: str) -> None:
        """Detach from a session."""