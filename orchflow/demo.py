"""A walk-through of the engine driving a backend that only reports what it is asked."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import sys
from typing import Any, TextIO

from orchflow.actions import (
    ClosePane,
    CreatePane,
    CreateSession,
    DeleteSession,
    GetPaneOutput,
    PaneType,
    ResizePane,
    RunCommand,
)
from orchflow.backend import MuxBackend, PaneSize, SplitType
from orchflow.events import Event, EventType
from orchflow.manager import Manager
from orchflow.state import PaneState, SessionState, StateManager
from orchflow.storage import MemoryStore

_CAPTURED_OUTPUT = "Mock output\nLine 2\nLine 3"


class PrintingBackend(MuxBackend):
    """A backend with no real terminals that describes every call it gets."""

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out

    def _say(self, text: str) -> None:
        print(text, file=self._out if self._out is not None else sys.stdout)

    async def create_session(self, name: str) -> str:
        self._say(f"Creating session: {name}")
        return name

    async def create_pane(self, session_id: str, split: SplitType) -> str:
        self._say(f"Creating pane in session {session_id} with split type: {split.value}")
        return f"{session_id}-pane-1"

    async def send_keys(self, pane_id: str, keys: str) -> None:
        self._say(f"Sending keys to pane {pane_id}: {keys}")

    async def capture_pane(self, pane_id: str) -> str:
        self._say(f"Capturing pane: {pane_id}")
        return _CAPTURED_OUTPUT

    async def list_sessions(self) -> list[Any]:
        return []

    async def kill_session(self, session_id: str) -> None:
        self._say(f"Killing session: {session_id}")

    async def kill_pane(self, pane_id: str) -> None:
        self._say(f"Killing pane: {pane_id}")

    async def resize_pane(self, pane_id: str, size: PaneSize) -> None:
        self._say(f"Resizing pane {pane_id} to {size.width}x{size.height}")

    async def select_pane(self, pane_id: str) -> None:
        self._say(f"Selecting pane: {pane_id}")

    async def list_panes(self, session_id: str) -> list[Any]:
        self._say(f"Listing panes in session: {session_id}")
        return []

    async def attach_session(self, session_id: str) -> None:
        self._say(f"Attaching to session: {session_id}")

    async def detach_session(self, session_id: str) -> None:
        self._say(f"Detaching from session: {session_id}")


def _describe(event: Event) -> str | None:
    match event.type:
        case EventType.SESSION_CREATED:
            return f"Event: Session created - {_field(event.session, 'name')}"
        case EventType.PANE_CREATED:
            pane = event.pane
            pane_type = pane.pane_type.to_json() if isinstance(pane, PaneState) else pane["pane_type"]
            return f"Event: Pane created - {pane_type}"
        case EventType.COMMAND_EXECUTED:
            return f"Event: Command executed in pane {event.pane_id} - {event.command}"
    return None


def _field(value: Any, name: str) -> Any:
    return value[name] if isinstance(value, dict) else getattr(value, name)


async def _listen(queue: asyncio.Queue[Event], out: TextIO) -> None:
    while True:
        text = _describe(await queue.get())
        if text is not None:
            print(text, file=out)


async def run_demo(out: TextIO | None = None) -> None:
    """Create a session and a pane, run a command, read output, then clean up."""
    out = out if out is not None else sys.stdout

    def say(text: str) -> None:
        print(text, file=out)

    manager = Manager(PrintingBackend(out), StateManager(MemoryStore()))
    events = manager.subscribe()
    listener = asyncio.get_running_loop().create_task(_listen(events, out))

    try:
        async with manager:
            say("\n=== Creating Session ===")
            session = SessionState.from_dict(
                await manager.execute_action(CreateSession(name="demo-session"))
            )
            say(f"Created session: {session.name} (ID: {session.id})")

            say("\n=== Creating Terminal Pane ===")
            pane = PaneState.from_dict(
                await manager.execute_action(
                    CreatePane(
                        session_id=session.id,
                        pane_type=PaneType.from_json("terminal"),
                        command="bash",
                        shell_type=None,
                        name="Main Terminal",
                    )
                )
            )
            say(f"Created pane: {pane.title or ''} (ID: {pane.id})")

            say("\n=== Running Command ===")
            await manager.execute_action(
                RunCommand(pane_id=pane.id, command="echo 'Hello from OrchFlow!'")
            )

            say("\n=== Getting Pane Output ===")
            result = await manager.execute_action(GetPaneOutput(pane_id=pane.id, lines=10))
            output = result.get("output") if isinstance(result, dict) else None
            if isinstance(output, str):
                say(f"Pane output:\n{output}")

            say("\n=== Resizing Pane ===")
            await manager.execute_action(ResizePane(pane_id=pane.id, width=120, height=40))

            say("\n=== Cleaning Up ===")
            await manager.execute_action(ClosePane(pane_id=pane.id))
            await manager.execute_action(DeleteSession(session_id=session.id))

            # Let events still in flight reach the listener.
            await asyncio.sleep(0.05)
    finally:
        listener.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await listener
        manager.unsubscribe(events)

    say("\nDemo completed!")


def main(argv: list[str] | None = None) -> int:
    """Run the walk-through, printing to standard output."""
    parser = argparse.ArgumentParser(
        prog="orchflow-demo",
        description="Walk through sessions, panes and commands with a printing backend.",
    )
    parser.parse_args(argv)
    asyncio.run(run_demo(sys.stdout))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())