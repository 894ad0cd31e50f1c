"""Plugin interface and the context handed to loaded plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection
from dataclasses import dataclass, field
from typing import Any

from orchflow.actions import Action
from orchflow.errors import PluginError
from orchflow.events import Event


@dataclass
class PluginMetadata:
    """Descriptive information a plugin reports about itself."""

    name: str
    version: str
    author: str
    description: str
    capabilities: list[str] = field(default_factory=list)


@dataclass
class PluginInfo:
    """A plugin's metadata together with its id and load status."""

    id: str
    name: str
    version: str
    author: str
    description: str
    capabilities: list[str] = field(default_factory=list)
    loaded: bool = False


class Plugin(ABC):
    """An extension that receives manager events.

    The async methods raise an exception to report failure.
    """

    @abstractmethod
    def id(self) -> str:
        """Unique id of the plugin."""

    @abstractmethod
    def metadata(self) -> PluginMetadata:
        """Descriptive metadata."""

    @abstractmethod
    async def init(self, context: PluginContext) -> None:
        """Prepare the plugin; called once when it is loaded."""

    @abstractmethod
    async def handle_event(self, event: Event) -> None:
        """React to an event the plugin is subscribed to."""

    async def handle_request(self, method: str, params: Any) -> Any:
        """Answer a custom request; by default every method is unknown."""
        raise PluginError(f"Unknown method: {method}")

    @abstractmethod
    async def shutdown(self) -> None:
        """Release resources; called when the plugin is unloaded."""


@dataclass
class PluginContext:
    """What a plugin may use to act on the manager that loaded it."""

    manager: Any
    plugin_id: str

    async def execute(self, action: Action) -> Any:
        """Run an action through the manager and return its result."""
        return await self.manager.execute_action(action)

    async def subscribe(self, events: Collection[str]) -> None:
        """Replace this plugin's event subscriptions."""
        await self.manager.subscribe_plugin(self.plugin_id, list(events))


def is_subscribed(subscriptions: Collection[str], event: Event) -> bool:
    """Whether a list of subscribed event names matches an event."""
    return event.name() in subscriptions or "*" in subscriptions