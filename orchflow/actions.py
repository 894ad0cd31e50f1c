"""Actions accepted by the manager, and the pane and shell kinds they refer to."""

from __future__ import annotations

import copy
import json
import os
import sys
from collections.abc import Mapping
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, ClassVar

from orchflow.errors import SerializationError

_U32_MAX = 2**32 - 1


def _debug_name(kind: str, name: str | None) -> str:
    if kind == "custom":
        return f"Custom({json.dumps(name)})"
    return "".join(part.capitalize() for part in kind.split("_"))


def _check_variant(what: str, kinds: tuple[str, ...], kind: str, name: str | None) -> None:
    if kind == "custom":
        if not isinstance(name, str):
            raise ValueError(f"a custom {what} needs a name")
    elif kind in kinds:
        if name is not None:
            raise ValueError(f"{what} {kind!r} takes no name")
    else:
        raise ValueError(f"unknown {what}: {kind!r}")


def _variant_to_json(kind: str, name: str | None) -> Any:
    return {"custom": name} if kind == "custom" else kind


def _variant_from_json(what: str, kinds: tuple[str, ...], value: Any) -> tuple[str, str | None]:
    if isinstance(value, str) and value in kinds:
        return value, None
    if isinstance(value, Mapping) and len(value) == 1 and isinstance(value.get("custom"), str):
        return "custom", value["custom"]
    raise SerializationError(f"invalid {what}: {value!r}")


_PANE_KINDS = ("terminal", "editor", "file_tree", "output")
_SHELL_KINDS = ("bash", "zsh", "fish", "power_shell", "cmd")


@dataclass(frozen=True)
class PaneType:
    """Kind of content a pane shows; ``custom`` kinds carry a name."""

    kind: str
    name: str | None = None

    TERMINAL: ClassVar[PaneType]
    EDITOR: ClassVar[PaneType]
    FILE_TREE: ClassVar[PaneType]
    OUTPUT: ClassVar[PaneType]

    def __post_init__(self) -> None:
        _check_variant("pane type", _PANE_KINDS, self.kind, self.name)

    @classmethod
    def custom(cls, name: str) -> PaneType:
        return cls("custom", name)

    def to_json(self) -> Any:
        return _variant_to_json(self.kind, self.name)

    @classmethod
    def from_json(cls, value: Any) -> PaneType:
        return cls(*_variant_from_json("pane type", _PANE_KINDS, value))

    def __str__(self) -> str:
        return _debug_name(self.kind, self.name)


PaneType.TERMINAL = PaneType("terminal")
PaneType.EDITOR = PaneType("editor")
PaneType.FILE_TREE = PaneType("file_tree")
PaneType.OUTPUT = PaneType("output")


@dataclass(frozen=True)
class ShellType:
    """Shell run in a terminal pane; ``custom`` kinds carry a name."""

    kind: str
    name: str | None = None

    BASH: ClassVar[ShellType]
    ZSH: ClassVar[ShellType]
    FISH: ClassVar[ShellType]
    POWER_SHELL: ClassVar[ShellType]
    CMD: ClassVar[ShellType]

    def __post_init__(self) -> None:
        _check_variant("shell type", _SHELL_KINDS, self.kind, self.name)

    @classmethod
    def custom(cls, name: str) -> ShellType:
        return cls("custom", name)

    @classmethod
    def detect(cls) -> ShellType:
        """Guess the user's shell from the platform and the SHELL variable."""
        if sys.platform == "win32":
            return cls.POWER_SHELL
        shell = os.environ.get("SHELL")
        if shell:
            for kind in ("zsh", "bash", "fish"):
                if kind in shell:
                    return cls(kind)
        return cls.BASH

    def to_json(self) -> Any:
        return _variant_to_json(self.kind, self.name)

    @classmethod
    def from_json(cls, value: Any) -> ShellType:
        return cls(*_variant_from_json("shell type", _SHELL_KINDS, value))

    def __str__(self) -> str:
        return _debug_name(self.kind, self.name)


ShellType.BASH = ShellType("bash")
ShellType.ZSH = ShellType("zsh")
ShellType.FISH = ShellType("fish")
ShellType.POWER_SHELL = ShellType("power_shell")
ShellType.CMD = ShellType("cmd")


_ACTIONS: dict[str, type[Action]] = {}
_U32_FIELDS = frozenset({"width", "height", "lines", "max_depth"})
_JSON_FIELDS = frozenset({"options", "config"})


def _encode_field(value: Any) -> Any:
    if isinstance(value, (PaneType, ShellType)):
        return value.to_json()
    return copy.deepcopy(value)


def _decode_field(name: str, value: Any, optional: bool) -> Any:
    if value is None and (optional or name in _JSON_FIELDS):
        return None
    if name == "pane_type":
        return PaneType.from_json(value)
    if name == "shell_type":
        return ShellType.from_json(value)
    if name in _U32_FIELDS:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U32_MAX:
            raise SerializationError(f"field `{name}` must be an unsigned 32-bit integer")
        return value
    if name == "permanent":
        if not isinstance(value, bool):
            raise SerializationError("field `permanent` must be a boolean")
        return value
    if name == "files":
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            raise SerializationError("field `files` must be a list of strings")
        return list(value)
    if name in _JSON_FIELDS:
        return copy.deepcopy(value)
    if not isinstance(value, str):
        raise SerializationError(f"field `{name}` must be a string")
    return value


class Action:
    """Base of all actions; each subclass has a JSON ``type`` tag."""

    tag: ClassVar[str] = ""

    def __init_subclass__(cls, *, tag: str, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.tag = tag
        _ACTIONS[tag] = cls

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.tag}
        for f in fields(self):  # type: ignore[arg-type]
            out[f.name] = _encode_field(getattr(self, f.name))
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Action:
        if not isinstance(data, Mapping):
            raise SerializationError(f"expected an object, got {data!r}")
        if "type" not in data:
            raise SerializationError("missing field `type`")
        target = _ACTIONS.get(data["type"])
        if target is None:
            raise SerializationError(f"unknown action type: {data['type']!r}")
        if not issubclass(target, cls):
            raise SerializationError(f"{data['type']!r} is not a {cls.__name__} action")
        kwargs: dict[str, Any] = {}
        for f in fields(target):  # type: ignore[arg-type]
            optional = f.default is not MISSING
            if f.name in data:
                kwargs[f.name] = _decode_field(f.name, data[f.name], optional)
            elif not optional:
                raise SerializationError(f"missing field `{f.name}`")
        return target(**kwargs)


@dataclass(frozen=True)
class CreateSession(Action, tag="createSession"):
    name: str


@dataclass(frozen=True)
class DeleteSession(Action, tag="deleteSession"):
    session_id: str


@dataclass(frozen=True)
class SaveSession(Action, tag="saveSession"):
    session_id: str
    name: str | None = None


@dataclass(frozen=True)
class CreatePane(Action, tag="createPane"):
    session_id: str
    pane_type: PaneType
    command: str | None = None
    shell_type: ShellType | None = None
    name: str | None = None


@dataclass(frozen=True)
class ClosePane(Action, tag="closePane"):
    pane_id: str


@dataclass(frozen=True)
class ResizePane(Action, tag="resizePane"):
    pane_id: str
    width: int
    height: int


@dataclass(frozen=True)
class RenamePane(Action, tag="renamePane"):
    pane_id: str
    name: str


@dataclass(frozen=True)
class CreateFile(Action, tag="createFile"):
    path: str
    content: str | None = None


@dataclass(frozen=True)
class OpenFile(Action, tag="openFile"):
    path: str


@dataclass(frozen=True)
class CreateDirectory(Action, tag="createDirectory"):
    path: str


@dataclass(frozen=True)
class DeletePath(Action, tag="deletePath"):
    path: str
    permanent: bool


@dataclass(frozen=True)
class RenamePath(Action, tag="renamePath"):
    old_path: str
    new_name: str


@dataclass(frozen=True)
class CopyPath(Action, tag="copyPath"):
    source: str
    destination: str


@dataclass(frozen=True)
class MovePath(Action, tag="movePath"):
    source: str
    destination: str


@dataclass(frozen=True)
class MoveFiles(Action, tag="moveFiles"):
    files: list[str] = field(default_factory=list)
    destination: str = ""


@dataclass(frozen=True)
class CopyFiles(Action, tag="copyFiles"):
    files: list[str] = field(default_factory=list)
    destination: str = ""


@dataclass(frozen=True)
class GetFileTree(Action, tag="getFileTree"):
    path: str | None = None
    max_depth: int | None = None


@dataclass(frozen=True)
class SearchFiles(Action, tag="searchFiles"):
    pattern: str
    path: str | None = None


@dataclass(frozen=True)
class SearchProject(Action, tag="searchProject"):
    pattern: str
    options: Any = None


@dataclass(frozen=True)
class SearchInFile(Action, tag="searchInFile"):
    file_path: str
    pattern: str


@dataclass(frozen=True)
class SendKeys(Action, tag="sendKeys"):
    pane_id: str
    keys: str


@dataclass(frozen=True)
class RunCommand(Action, tag="runCommand"):
    pane_id: str
    command: str


@dataclass(frozen=True)
class GetPaneOutput(Action, tag="getPaneOutput"):
    pane_id: str
    lines: int | None = None


@dataclass(frozen=True)
class LoadPlugin(Action, tag="loadPlugin"):
    id: str
    config: Any = None


@dataclass(frozen=True)
class UnloadPlugin(Action, tag="unloadPlugin"):
    id: str