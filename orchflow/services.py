"""Optional services a manager can be given: files, search and command history."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class FileManager(ABC):
    """File system operations; methods raise an OrchflowError on failure."""

    @abstractmethod
    async def create_file(self, path: str, content: str | None) -> None:
        """Create a file, optionally with content."""

    @abstractmethod
    async def read_file(self, path: str) -> str:
        """Return the contents of a file."""

    @abstractmethod
    async def delete_file(self, path: str) -> None:
        """Delete a file."""

    @abstractmethod
    async def rename_file(self, old_path: str, new_path: str) -> None:
        """Rename a file."""

    @abstractmethod
    async def copy_file(self, source: str, destination: str) -> None:
        """Copy a file."""

    @abstractmethod
    async def move_file(self, source: str, destination: str) -> None:
        """Move a file."""

    @abstractmethod
    async def create_directory(self, path: str) -> None:
        """Create a directory."""

    @abstractmethod
    async def list_directory(self, path: str) -> list[str]:
        """Return the names of the entries in a directory."""


class SearchProvider(ABC):
    """Text search over a project; methods raise an OrchflowError on failure."""

    @abstractmethod
    async def search_project(self, pattern: str, options: Any) -> Any:
        """Search the whole project and return the results."""

    @abstractmethod
    async def search_in_file(self, file_path: str, pattern: str) -> Any:
        """Search one file and return the results."""


class CommandHistory(ABC):
    """Record of commands run in sessions; methods raise an OrchflowError on failure."""

    @abstractmethod
    async def add_command(self, session_id: str, command: str) -> None:
        """Record a command run in a session."""

    @abstractmethod
    async def get_history(self, session_id: str, limit: int) -> list[str]:
        """Return up to ``limit`` recorded commands of a session."""

    @abstractmethod
    async def search_history(self, pattern: str) -> list[str]:
        """Return recorded commands matching a pattern."""