# orchflow

An asyncio orchestration engine for terminal sessions, panes and plugins.
It does not talk to any particular terminal multiplexer itself: you supply
a backend, and orchflow keeps track of sessions and panes, persists their
state through a key/value store, broadcasts events and routes them to
plugins.

Requires Python 3.11 or later and has no runtime dependencies.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Concepts

- **`MuxBackend`** (`orchflow.backend`) – the abstract interface a
  terminal multiplexer backend implements: `create_session`,
  `create_pane`, `send_keys`, `capture_pane`, `list_sessions`,
  `kill_session`, `kill_pane`, `resize_pane`, `select_pane`,
  `list_panes`, `attach_session` and `detach_session`. Backends raise
  `MuxError` on failure; the engine turns that into `BackendError`. The
  module also defines `SplitType`, `PaneSize` and `WindowInfo`.
- **`StateStore` / `MemoryStore`** (`orchflow.storage`) – asynchronous
  key/value storage of JSON-like values (`set`, `get`, `delete`,
  `list_keys`, `get_many`, `set_many`, `clear`). `MemoryStore` keeps
  copies of the values in memory.
- **`StateManager`** (`orchflow.state`) – owns `SessionState` and
  `PaneState` records, writes them to a store under `session:<id>` and
  `pane:<id>` keys, and publishes a `StateEvent` for every change to the
  queues returned by `subscribe()`. `load_from_storage()` refills its
  caches from the store, skipping entries it cannot read.
- **`Manager`** (`orchflow.manager`) – the engine. `execute_action()`
  queues an action for a background worker and returns its result;
  `process_action()` runs one directly. State events are re-emitted as
  `Event`s, and every event goes to the queues returned by
  `Manager.subscribe()` and to the plugins subscribed to it. Background
  tasks start with `start()`, on entering `async with`, or on the first
  `execute_action()`; `stop()` (or leaving `async with`) ends them.
  `Manager.builder(backend, state_manager)` returns a `ManagerBuilder`
  with `with_file_manager`, `with_search_provider` and
  `with_command_history`.
- **Actions** (`orchflow.actions`) – `CreateSession`, `DeleteSession`,
  `SaveSession`, `CreatePane`, `ClosePane`, `ResizePane`, `RenamePane`,
  `CreateFile`, `OpenFile`, `CreateDirectory`, `DeletePath`,
  `RenamePath`, `CopyPath`, `MovePath`, `MoveFiles`, `CopyFiles`,
  `GetFileTree`, `SearchFiles`, `SearchProject`, `SearchInFile`,
  `SendKeys`, `RunCommand`, `GetPaneOutput`, `LoadPlugin` and
  `UnloadPlugin`. Each converts to and from a dict tagged with a
  camel-case `type` via `to_dict()` and `Action.from_dict()`. `PaneType`
  and `ShellType` name pane and shell kinds, including custom ones;
  `ShellType.detect()` guesses the shell from the platform and `$SHELL`.
- **Events** (`orchflow.events`) – `Event(EventType..., **fields)`, for
  example session created, pane resized, command executed or file read,
  with `to_dict()` / `Event.from_dict()`. `FileWatchEventKind` describes
  file-watch changes.
- **Optional services** (`orchflow.services`) – abstract `FileManager`,
  `SearchProvider` and `CommandHistory`. File actions raise
  `GeneralError` when no file manager is configured; search actions fall
  back to an empty result; `RunCommand` records commands in the command
  history when one is present.
- **Plugins** (`orchflow.plugins`) – subclass `Plugin` (`id`,
  `metadata`, `init`, `handle_event`, `shutdown`, and optionally
  `handle_request`), load it with `Manager.load_plugin`, subscribe it to
  event names with `Manager.subscribe_plugin` (`"*"` matches every
  event), and list loaded plugins with `Manager.list_plugins()`. A plugin
  receives a `PluginContext` that can `execute` actions and `subscribe`
  to events.
- **Errors** (`orchflow.errors`) – every failure raises a subclass of
  `OrchflowError`: `NotFoundError`, `InvalidOperationError`,
  `BackendError`, `PluginError`, `StateError`, `SerializationError` or
  `GeneralError`.

## Usage

```python
import asyncio

from orchflow.actions import CreateSession
from orchflow.manager import Manager
from orchflow.state import StateManager
from orchflow.storage import MemoryStore


async def run(backend):
    state_manager = StateManager(MemoryStore())
    async with Manager.builder(backend, state_manager).build() as manager:
        events = manager.subscribe()
        session = await manager.execute_action(CreateSession(name="main"))
        print(session["name"], session["id"])
        print(await events.get())
```

`backend` is any object implementing `MuxBackend`. Action results are
plain dicts, the same shape as their JSON form; `SessionState.from_dict`
and `PaneState.from_dict` turn session and pane results back into
records.

## Demo

A self-contained walk-through with a backend that prints every call it
receives:

```
orchflow-demo
```

It creates a session and a terminal pane, runs a command, reads the pane
output, resizes the pane and cleans up, printing each event as it
arrives. The same is available from Python as `orchflow.demo.run_demo()`.

## What it does not do

- There is no backend for a real terminal multiplexer; only the
  `MuxBackend` interface and the demo's `PrintingBackend`, which has no
  terminals behind it.
- The only store is the in-memory `MemoryStore`; nothing is written to
  disk unless you supply your own `StateStore`.
- `FileManager`, `SearchProvider` and `CommandHistory` are interfaces
  only; no implementations are included.
- `GetFileTree` and `SearchFiles` return a status and a message saying
  the feature is not fully implemented, not a tree or matches.
  `SaveSession` only echoes its arguments, and `LoadPlugin` as an action
  raises `GeneralError`: plugins are loaded with `Manager.load_plugin`.
- There is no server or network transport; the engine is used from
  Python code.