"""Command Registry - Deterministic Dispatch of Structured Commands.

Every line of input is offered to the registry before anything else. The
registry walks its commands in registration order and returns the first one
whose matcher accepts the line; only when none does is the line treated as a
prompt for the model.

Architecture:
    Matcher: Decides applicability and captures arguments
    ├─ ExactMatcher: whole line equals a literal ("help")
    ├─ PrefixMatcher: line starts with a literal ("ls" + " /tmp")
    └─ PatternMatcher: line fully matches a regex, named groups become args
    Command: Matcher + execute(args) -> str (raises CommandError)
    CommandRegistry: Ordered commands, first match wins

Priority Rule:
    Registration order is priority order. Two commands with overlapping
    matchers are never ambiguous: the one registered first is selected and
    the later one is only reachable for inputs the first rejects.

Example:
    >>> registry = CommandRegistry()
    >>> registry.register(HelpCommand(registry=registry))
    >>> handle = registry.find("help")
    >>> registry.execute(handle).text
    'Available commands: help'
"""

from __future__ import annotations

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from .errors import CommandError
from .model_catalog import ModelCatalog

logger = logging.getLogger(__name__)

CLEAR_SCREEN = "\x1b[2J\x1b[H"


def normalize_input(text: str) -> str:
    """Collapse whitespace runs to single spaces and strip both ends."""
    return " ".join(text.split())


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------


class ExactMatcher(BaseModel):
    """Accepts a line equal to `text` (case-sensitive)."""

    text: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)

    @field_validator("text")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Matcher text must not be blank")
        return v

    def match(self, text: str) -> dict[str, str] | None:
        return {} if text == self.text else None


class PrefixMatcher(BaseModel):
    """Accepts a line starting with `prefix`.

    The remainder of the line, stripped, is captured as the `argument`
    entry when it is not empty.
    """

    prefix: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)

    @field_validator("prefix")
    @classmethod
    def reject_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Matcher prefix must not be blank")
        return v

    def match(self, text: str) -> dict[str, str] | None:
        if not text.startswith(self.prefix):
            return None
        rest = text[len(self.prefix) :].strip()
        return {"argument": rest} if rest else {}


class PatternMatcher(BaseModel):
    """Accepts a line the regex matches in full; named groups become args.

    Groups that did not participate in the match are left out of the
    captured arguments so commands can apply their own defaults.
    """

    pattern: str = Field(min_length=1)
    _compiled: re.Pattern[str] | None = PrivateAttr(default=None)

    model_config = ConfigDict(frozen=True)

    @field_validator("pattern")
    @classmethod
    def must_compile(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"Invalid pattern {v!r}: {exc}") from exc
        return v

    @property
    def compiled(self) -> re.Pattern[str]:
        if self._compiled is None:
            self._compiled = re.compile(self.pattern)
        return self._compiled

    def match(self, text: str) -> dict[str, str] | None:
        found = self.compiled.fullmatch(text)
        if found is None:
            return None
        return {name: value for name, value in found.groupdict().items() if value is not None}


Matcher = ExactMatcher | PrefixMatcher | PatternMatcher


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@runtime_checkable
class CommandHandler(Protocol):
    """Plugin interface: anything with a name, a matcher and an executor."""

    name: str

    def match(self, text: str) -> dict[str, str] | None: ...

    def execute(self, args: Mapping[str, Any]) -> str: ...


class Command(BaseModel, ABC):
    """Base class for built-in commands.

    Subclasses declare a default `name`, `description` and `matcher` and
    implement `execute`. Failures are reported by raising CommandError;
    the registry turns them into display text.
    """

    name: str
    description: str = ""
    matcher: Matcher

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def match(self, text: str) -> dict[str, str] | None:
        return self.matcher.match(text)

    def matches(self, text: str) -> bool:
        return self.match(text) is not None

    @abstractmethod
    def execute(self, args: Mapping[str, Any]) -> str:
        """Produce the command output for the given JSON-like arguments."""


class HelpCommand(Command):
    name: str = "help"
    description: str = "List available commands"
    matcher: Matcher = ExactMatcher(text="help")
    registry: CommandRegistry

    def execute(self, args: Mapping[str, Any]) -> str:
        return "Available commands: " + ", ".join(self.registry.names())


class ClearCommand(Command):
    name: str = "clear"
    description: str = "Clear the terminal screen"
    matcher: Matcher = ExactMatcher(text="clear")

    def execute(self, args: Mapping[str, Any]) -> str:
        return CLEAR_SCREEN


class VersionCommand(Command):
    name: str = "version"
    description: str = "Show the application version"
    matcher: Matcher = ExactMatcher(text="version")
    app_name: str
    app_version: str

    def execute(self, args: Mapping[str, Any]) -> str:
        return f"{self.app_name} v{self.app_version}"


class ModelsCommand(Command):
    """Lists the model catalog, marking the configured default with `*`."""

    name: str = "models"
    description: str = "List models known to the catalog"
    matcher: Matcher = ExactMatcher(text="models")
    catalog: ModelCatalog
    default_model: str

    def execute(self, args: Mapping[str, Any]) -> str:
        lines = []
        for variant in self.catalog.root:
            marker = "*" if self.default_model in variant.identifiers else " "
            lines.append(f"{marker} {variant.id} ({variant.backend_id})")
        if not lines:
            raise CommandError("Model catalog is empty")
        return "\n".join(lines)


class ListFilesCommand(Command):
    """Lists a directory: `ls` or `ls <path>`. Directories end with `/`."""

    name: str = "ls"
    description: str = "List files in a directory"
    matcher: Matcher = PatternMatcher(pattern=r"ls(?: (?P<path>.+))?")

    def execute(self, args: Mapping[str, Any]) -> str:
        target = Path(str(args.get("path", "."))).expanduser()
        if not target.exists():
            raise CommandError(f"No such directory: {target}")
        if not target.is_dir():
            raise CommandError(f"Not a directory: {target}")
        try:
            entries = sorted(target.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise CommandError(f"Cannot list {target}: {exc.strerror or exc}") from exc
        if not entries:
            return f"{target} is empty"
        return "\n".join(f"{entry.name}/" if entry.is_dir() else entry.name for entry in entries)


class WorkingDirectoryCommand(Command):
    name: str = "pwd"
    description: str = "Show the current working directory"
    matcher: Matcher = ExactMatcher(text="pwd")

    def execute(self, args: Mapping[str, Any]) -> str:
        return os.getcwd()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class CommandHandle(BaseModel):
    """A matched command together with the arguments captured from the input."""

    command: Any
    arguments: dict[str, str] = {}

    model_config = ConfigDict(frozen=True)

    @property
    def name(self) -> str:
        return str(self.command.name)


class CommandResult(BaseModel):
    """Outcome of executing a command: output text or a displayable error."""

    ok: bool
    text: str

    model_config = ConfigDict(frozen=True)

    @classmethod
    def success(cls, text: str) -> CommandResult:
        return cls(ok=True, text=text)

    @classmethod
    def failure(cls, text: str) -> CommandResult:
        return cls(ok=False, text=text)


class CommandRegistry:
    """
    Ordered collection of commands with first-match-wins lookup.

    Responsibilities:
    - Keep commands in registration (= priority) order
    - Resolve an input line to at most one command
    - Run a command and convert every failure into a CommandResult

    The registry holds no state besides its command list and performs no
    side effects of its own.
    """

    def __init__(self, commands: Sequence[CommandHandler] = ()):
        self._commands: list[CommandHandler] = []
        for command in commands:
            self.register(command)

    def register(self, command: CommandHandler) -> None:
        """Append a command at the lowest priority."""
        if not isinstance(command, CommandHandler):
            raise TypeError(f"{command!r} does not implement the command interface")
        if command.name in self.names():
            raise ValueError(f"Command '{command.name}' already registered")
        self._commands.append(command)

    def names(self) -> tuple[str, ...]:
        return tuple(command.name for command in self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[CommandHandler]:
        return iter(tuple(self._commands))

    def find(self, text: str) -> CommandHandle | None:
        """
        Select the command for an input line.

        The line is whitespace-normalized first. Empty input never matches.
        Commands are tried in registration order and the first match wins.

        Returns:
            CommandHandle for the selected command, or None on a miss
        """
        line = normalize_input(text)
        if not line:
            return None
        for command in self._commands:
            captured = command.match(line)
            if captured is not None:
                return CommandHandle(command=command, arguments=captured)
        return None

    def execute(self, handle: CommandHandle, args: str | Mapping[str, Any] | None = None) -> CommandResult:
        """
        Run a matched command.

        Args:
            handle: Result of a previous find()
            args: JSON object text, a mapping, or None to use the arguments
                captured when the command matched

        Returns:
            CommandResult; failures are never raised
        """
        try:
            payload = self._decode_args(handle, args)
        except ValueError as exc:
            return CommandResult.failure(f"Invalid arguments for '{handle.name}': {exc}")

        try:
            output = handle.command.execute(payload)
        except CommandError as exc:
            logger.info("Command '%s' failed: %s", handle.name, exc)
            return CommandResult.failure(str(exc))
        except Exception as exc:
            logger.exception("Command '%s' raised unexpectedly", handle.name)
            return CommandResult.failure(f"{handle.name} failed: {exc}")
        return CommandResult.success(output)

    @staticmethod
    def _decode_args(handle: CommandHandle, args: str | Mapping[str, Any] | None) -> dict[str, Any]:
        if args is None:
            return dict(handle.arguments)
        if isinstance(args, Mapping):
            return dict(args)
        if not args.strip():
            return {}
        decoded = json.loads(args)
        if not isinstance(decoded, dict):
            raise ValueError("expected a JSON object")
        return decoded


HelpCommand.model_rebuild()


def default_registry(
    *,
    app_name: str,
    app_version: str,
    catalog: ModelCatalog,
    default_model: str,
) -> CommandRegistry:
    """Registry with the built-in commands in their priority order."""
    registry = CommandRegistry()
    registry.register(HelpCommand(registry=registry))
    registry.register(ClearCommand())
    registry.register(VersionCommand(app_name=app_name, app_version=app_version))
    registry.register(ModelsCommand(catalog=catalog, default_model=default_model))
    registry.register(ListFilesCommand())
    registry.register(WorkingDirectoryCommand())
    return registry


__all__ = [
    "CLEAR_SCREEN",
    "ClearCommand",
    "Command",
    "CommandHandle",
    "CommandHandler",
    "CommandRegistry",
    "CommandResult",
    "ExactMatcher",
    "HelpCommand",
    "ListFilesCommand",
    "Matcher",
    "ModelsCommand",
    "PatternMatcher",
    "PrefixMatcher",
    "VersionCommand",
    "WorkingDirectoryCommand",
    "default_registry",
    "normalize_input",
]
