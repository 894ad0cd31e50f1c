"""Asyncio engine for terminal sessions, panes, state, events and plugins over a pluggable backend."""

__version__ = "0.1.0"