"""Key-value stores used to persist orchestration state."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any


class StateStore(ABC):
    """Storage of JSON values by string key.

    Implementations raise an exception when the underlying storage fails.
    """

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a value under a key."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under a key, or None."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key; removing a missing key is not an error."""

    @abstractmethod
    async def list_keys(self, prefix: str | None = None) -> list[str]:
        """Return all keys, or those starting with a prefix."""

    @abstractmethod
    async def get_many(self, keys: Iterable[str]) -> list[Any | None]:
        """Return the values of several keys, None where a key is missing."""

    @abstractmethod
    async def set_many(self, items: Iterable[tuple[str, Any]]) -> None:
        """Store several key-value pairs."""

    @abstractmethod
    async def clear(self, prefix: str | None = None) -> None:
        """Remove all keys, or those starting with a prefix."""


class MemoryStore(StateStore):
    """A store that keeps values in memory; values are copied in and out."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self, prefix: str | None = None) -> list[str]:
        if prefix is None:
            return list(self._data)
        return [key for key in self._data if key.startswith(prefix)]

    async def get_many(self, keys: Iterable[str]) -> list[Any | None]:
        return [copy.deepcopy(self._data.get(key)) for key in keys]

    async def set_many(self, items: Iterable[tuple[str, Any]]) -> None:
        for key, value in items:
            self._data[key] = copy.deepcopy(value)

    async def clear(self, prefix: str | None = None) -> None:
        if prefix is None:
            self._data.clear()
        else:
            self._data = {k: v for k, v in self._data.items() if not k.startswith(prefix)}