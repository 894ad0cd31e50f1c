"""The orchestration engine: runs actions and routes events to subscribers and plugins."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

from orchflow import handlers
from orchflow.actions import (
    Action,
    ClosePane,
    CopyFiles,
    CopyPath,
    CreateDirectory,
    CreateFile,
    CreatePane,
    CreateSession,
    DeletePath,
    DeleteSession,
    GetFileTree,
    GetPaneOutput,
    LoadPlugin,
    MoveFiles,
    MovePath,
    OpenFile,
    RenamePane,
    RenamePath,
    ResizePane,
    RunCommand,
    SaveSession,
    SearchFiles,
    SearchInFile,
    SearchProject,
    SendKeys,
    UnloadPlugin,
)
from orchflow.backend import MuxBackend
from orchflow.errors import GeneralError, NotFoundError, OrchflowError, PluginError
from orchflow.events import Event, EventType
from orchflow.plugins import Plugin, PluginContext, PluginInfo, is_subscribed
from orchflow.services import CommandHistory, FileManager, SearchProvider
from orchflow.state import StateEvent, StateEventType, StateManager

logger = logging.getLogger(__name__)

_EVENT_QUEUE_SIZE = 1024
_ACTION_QUEUE_SIZE = 100


def _as_plugin_error(exc: BaseException) -> PluginError:
    if isinstance(exc, PluginError):
        return exc
    if isinstance(exc, OrchflowError):
        return PluginError(exc.message)
    return PluginError(str(exc))


def _offer(queue: asyncio.Queue[Any], item: Any) -> None:
    """Put an item on a bounded queue, dropping the oldest entry when it is full."""
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(item)


@dataclass
class _LoadedPlugin:
    plugin: Plugin
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ManagerBuilder:
    """Collects the optional services of a Manager before creating it."""

    def __init__(self, mux_backend: MuxBackend, state_manager: StateManager) -> None:
        self._mux_backend = mux_backend
        self._state_manager = state_manager
        self._file_manager: FileManager | None = None
        self._search_provider: SearchProvider | None = None
        self._command_history: CommandHistory | None = None

    def with_file_manager(self, file_manager: FileManager) -> ManagerBuilder:
        self._file_manager = file_manager
        return self

    def with_search_provider(self, search_provider: SearchProvider) -> ManagerBuilder:
        self._search_provider = search_provider
        return self

    def with_command_history(self, command_history: CommandHistory) -> ManagerBuilder:
        self._command_history = command_history
        return self

    def build(self) -> Manager:
        return Manager(
            self._mux_backend,
            self._state_manager,
            self._file_manager,
            self._search_provider,
            self._command_history,
        )


class Manager:
    """Transport-agnostic orchestration engine.

    Actions are processed one at a time by a background worker. State changes
    are re-emitted as events, and every event is delivered to subscriber queues
    and to the plugins subscribed to it. Background work starts on ``start``,
    on entering ``async with``, or on the first ``execute_action``.
    """

    def __init__(
        self,
        mux_backend: MuxBackend,
        state_manager: StateManager,
        file_manager: FileManager | None = None,
        search_provider: SearchProvider | None = None,
        command_history: CommandHistory | None = None,
    ) -> None:
        self.mux_backend = mux_backend
        self.state_manager = state_manager
        self.file_manager = file_manager
        self.search_provider = search_provider
        self.command_history = command_history

        self._plugins: dict[str, _LoadedPlugin] = {}
        self._plugin_subscriptions: dict[str, list[str]] = {}
        self._subscribers: list[asyncio.Queue[Event]] = []
        self._plugin_events: asyncio.Queue[Event] = asyncio.Queue(maxsize=_EVENT_QUEUE_SIZE)
        self._state_events = state_manager.subscribe()
        self._actions: asyncio.Queue[tuple[Action, asyncio.Future[Any]]] = asyncio.Queue(
            maxsize=_ACTION_QUEUE_SIZE
        )
        self._tasks: list[asyncio.Task[None]] = []
        self._handler_tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @classmethod
    def builder(cls, mux_backend: MuxBackend, state_manager: StateManager) -> ManagerBuilder:
        return ManagerBuilder(mux_backend, state_manager)

    # Lifecycle

    def start(self) -> None:
        """Start the background tasks; must be called with a running event loop."""
        self._closed = False
        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._process_actions()),
            loop.create_task(self._bridge_state_events()),
            loop.create_task(self._dispatch_events()),
        ]

    async def stop(self) -> None:
        """Stop the background tasks and fail any actions still waiting."""
        self._closed = True
        tasks = [*self._tasks, *self._handler_tasks]
        self._tasks = []
        self._handler_tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        while not self._actions.empty():
            _, future = self._actions.get_nowait()
            if not future.done():
                future.set_exception(GeneralError("No response received"))

    async def __aenter__(self) -> Manager:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # Events

    def subscribe(self) -> asyncio.Queue[Event]:
        """Return a queue that receives every subsequent event."""
        queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=_EVENT_QUEUE_SIZE)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[Event]) -> None:
        """Stop delivering events to a queue returned by subscribe."""
        try:
            self._subscribers.remove(queue)
        except ValueError:
            pass

    def emit_event(self, event: Event) -> None:
        """Deliver an event to subscribers and to the plugin dispatcher."""
        _offer(self._plugin_events, event)
        for queue in self._subscribers:
            _offer(queue, event)

    # Actions

    async def execute_action(self, action: Action) -> Any:
        """Queue an action for the worker and return its result."""
        if self._closed:
            raise GeneralError("Failed to send action")
        self.start()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        await self._actions.put((action, future))
        return await future

    async def process_action(self, action: Action) -> Any:
        """Carry out an action directly, without the worker queue."""
        match action:
            case CreateSession(name=name):
                return await handlers.create_session(self, name)
            case DeleteSession(session_id=session_id):
                return await handlers.delete_session(self, session_id)
            case SaveSession(session_id=session_id, name=name):
                return {"status": "ok", "session_id": session_id, "name": name}
            case CreatePane(
                session_id=session_id,
                pane_type=pane_type,
                command=command,
                shell_type=shell_type,
                name=name,
            ):
                return await handlers.create_pane(
                    self, session_id, pane_type, command, shell_type, name
                )
            case ClosePane(pane_id=pane_id):
                return await handlers.close_pane(self, pane_id)
            case ResizePane(pane_id=pane_id, width=width, height=height):
                return await handlers.resize_pane(self, pane_id, width, height)
            case RenamePane(pane_id=pane_id, name=name):
                return await handlers.rename_pane(self, pane_id, name)
            case CreateFile(path=path, content=content):
                return await handlers.create_file(self, path, content)
            case OpenFile(path=path):
                return await handlers.open_file(self, path)
            case CreateDirectory(path=path):
                return await handlers.create_directory(self, path)
            case DeletePath(path=path, permanent=permanent):
                return await handlers.delete_path(self, path, permanent)
            case RenamePath(old_path=old_path, new_name=new_name):
                return await handlers.rename_path(self, old_path, new_name)
            case CopyPath(source=source, destination=destination):
                return await handlers.copy_path(self, source, destination)
            case MovePath(source=source, destination=destination):
                return await handlers.move_path(self, source, destination)
            case MoveFiles(files=files, destination=destination):
                return await handlers.move_files(self, files, destination)
            case CopyFiles(files=files, destination=destination):
                return await handlers.copy_files(self, files, destination)
            case GetFileTree(path=path, max_depth=max_depth):
                return await handlers.get_file_tree(self, path, max_depth)
            case SearchFiles(pattern=pattern, path=path):
                return await handlers.search_files(self, pattern, path)
            case SearchProject(pattern=pattern, options=options):
                return await handlers.search_project(self, pattern, options)
            case SearchInFile(file_path=file_path, pattern=pattern):
                return await handlers.search_in_file(self, file_path, pattern)
            case SendKeys(pane_id=pane_id, keys=keys):
                return await handlers.send_keys(self, pane_id, keys)
            case RunCommand(pane_id=pane_id, command=command):
                return await handlers.run_command(self, pane_id, command)
            case GetPaneOutput(pane_id=pane_id, lines=lines):
                return await handlers.get_pane_output(self, pane_id, lines)
            case LoadPlugin():
                raise GeneralError("Plugin loading must be done through Manager.load_plugin")
            case UnloadPlugin(id=plugin_id):
                await self.unload_plugin(plugin_id)
                return {"status": "ok", "plugin_id": plugin_id, "unloaded": True}
        raise GeneralError(f"Unsupported action: {action!r}")

    # Plugins

    async def subscribe_plugin(self, plugin_id: str, events: list[str]) -> None:
        """Set the event names a plugin receives; "*" matches every event."""
        self._plugin_subscriptions[plugin_id] = list(events)

    async def load_plugin(self, plugin: Plugin) -> None:
        """Initialise a plugin and register it under its id."""
        plugin_id = plugin.id()
        try:
            await plugin.init(PluginContext(manager=self, plugin_id=plugin_id))
        except Exception as exc:
            raise _as_plugin_error(exc) from exc
        self._plugins[plugin_id] = _LoadedPlugin(plugin)
        self.emit_event(Event(EventType.PLUGIN_LOADED, id=plugin_id))

    async def unload_plugin(self, plugin_id: str) -> None:
        """Shut a plugin down and forget it and its subscriptions."""
        loaded = self._plugins.pop(plugin_id, None)
        if loaded is None:
            raise NotFoundError(f"Plugin not loaded: {plugin_id}")
        async with loaded.lock:
            try:
                await loaded.plugin.shutdown()
            except Exception as exc:
                raise _as_plugin_error(exc) from exc
        self._plugin_subscriptions.pop(plugin_id, None)
        self.emit_event(Event(EventType.PLUGIN_UNLOADED, id=plugin_id))

    def list_plugins(self) -> list[PluginInfo]:
        """Describe every loaded plugin."""
        infos = []
        for plugin_id, loaded in self._plugins.items():
            meta = loaded.plugin.metadata()
            infos.append(
                PluginInfo(
                    id=plugin_id,
                    name=meta.name,
                    version=meta.version,
                    author=meta.author,
                    description=meta.description,
                    capabilities=list(meta.capabilities),
                    loaded=True,
                )
            )
        return infos

    # Background work

    async def _process_actions(self) -> None:
        while True:
            action, future = await self._actions.get()
            if future.done():
                continue
            try:
                result = await self.process_action(action)
            except asyncio.CancelledError:
                if not future.done():
                    future.set_exception(GeneralError("No response received"))
                raise
            except Exception as exc:
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)

    async def _bridge_state_events(self) -> None:
        while True:
            self._handle_state_event(await self._state_events.get())

    def _handle_state_event(self, event: StateEvent) -> None:
        match event.type:
            case StateEventType.SESSION_CREATED:
                self.emit_event(Event(EventType.SESSION_CREATED, session=event.session))
            case StateEventType.SESSION_UPDATED:
                self.emit_event(Event(EventType.SESSION_UPDATED, session=event.session))
            case StateEventType.SESSION_DELETED:
                self.emit_event(Event(EventType.SESSION_DELETED, session_id=event.session_id))
            case StateEventType.PANE_CREATED:
                self.emit_event(Event(EventType.PANE_CREATED, pane=event.pane))

    async def _dispatch_events(self) -> None:
        while True:
            self._dispatch_event_to_plugins(await self._plugin_events.get())

    def _dispatch_event_to_plugins(self, event: Event) -> None:
        loop = asyncio.get_running_loop()
        for plugin_id, loaded in list(self._plugins.items()):
            subscriptions = self._plugin_subscriptions.get(plugin_id)
            if subscriptions is None or not is_subscribed(subscriptions, event):
                continue
            task = loop.create_task(self._deliver(plugin_id, loaded, event))
            self._handler_tasks.add(task)
            task.add_done_callback(self._handler_tasks.discard)

    @staticmethod
    async def _deliver(plugin_id: str, loaded: _LoadedPlugin, event: Event) -> None:
        async with loaded.lock:
            try:
                await loaded.plugin.handle_event(event)
            except Exception as exc:
                logger.error(
                    "Plugin %s error handling event %s: %s", plugin_id, event.name(), exc
                )