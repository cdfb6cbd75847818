"""Chat Session - Ordered, Durable Conversation Log for One Session Key.

Lifecycle:
    UNINITIALIZED ──load_history()──▶ LOADED ──save_history()──▶ PERSISTED
                                        ▲                           │
                                        └──────add_message()────────┘

A session never reaches a closed state; it goes away with the process and
needs nothing released beyond its last save.

Failure Semantics:
    - Corrupted persisted history does not stop the session: it starts empty
      and the problem is logged and kept on `load_warning`.
    - Storage that cannot be opened at all (StorageUnavailableError) is
      fatal and propagates.
    - A failed save raises HistorySaveError and keeps the in-memory history,
      so the caller can retry without losing the turn.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from .domain_type import Role, SessionState
from .domain_value import ChatHistory, Message, SessionKey
from .errors import HistoryLoadError, HistorySaveError, SessionStateError

logger = logging.getLogger(__name__)


class HistoryStore(Protocol):
    """Persistence interface consumed by ChatSession.

    Implementations must make `write` atomic at the record level: a reader
    sees either the previous sequence or the new one, never a mix.
    """

    async def read(self, key: SessionKey) -> tuple[Message, ...] | None:
        """Persisted messages for `key`, or None if nothing was ever saved.

        Raises:
            HistoryLoadError: Persisted state exists but is unreadable
            StorageUnavailableError: The store itself cannot be reached
        """
        ...

    async def write(self, key: SessionKey, messages: Sequence[Message]) -> None:
        """Replace the persisted messages for `key`.

        Raises:
            HistorySaveError: Nothing was written
        """
        ...

    async def delete(self, key: SessionKey) -> bool:
        """Remove persisted state for `key`; True if something was removed."""
        ...

    async def aclose(self) -> None:
        """Release connections held by the store."""
        ...


class ChatSession:
    """
    Per-conversation message log with explicit load/save.

    The in-memory history is an immutable ChatHistory replaced on every
    append, so `history` can be handed to renderers and stores without
    copying.

    Example:
        >>> session = ChatSession("demo", store)
        >>> await session.load_history()
        True
        >>> session.add_message(Role.USER, "hello")
        >>> await session.save_history()
    """

    def __init__(self, key: SessionKey | str, store: HistoryStore):
        self.key = key if isinstance(key, SessionKey) else SessionKey(key)
        self._store = store
        self._history = ChatHistory(key=self.key)
        self._state = SessionState.UNINITIALIZED
        self._dirty = False
        self.load_warning: str | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def dirty(self) -> bool:
        """True when messages were added since the last successful save."""
        return self._dirty

    @property
    def history(self) -> tuple[Message, ...]:
        """Read-only view of the conversation, oldest first."""
        return self._history.messages

    @property
    def chat_history(self) -> ChatHistory:
        return self._history

    async def load_history(self) -> bool:
        """
        Read persisted messages for this session key.

        Missing state initializes an empty history. Unreadable state also
        initializes an empty history, with a warning.

        Returns:
            False when persisted state was unreadable and has been ignored

        Raises:
            StorageUnavailableError: The store cannot be used at all
        """
        self.load_warning = None
        try:
            messages = await self._store.read(self.key)
        except HistoryLoadError as exc:
            logger.warning("Ignoring unreadable history for chat '%s': %s", self.key, exc)
            self.load_warning = str(exc)
            messages = None

        self._history = ChatHistory(key=self.key, messages=tuple(messages or ()))
        self._state = SessionState.LOADED
        self._dirty = False
        logger.debug("Loaded %d messages for chat '%s'", len(self._history.messages), self.key)
        return self.load_warning is None

    def add_message(self, role: Role | str, content: str) -> Message:
        """Append a message; never reorders or deduplicates."""
        if self._state is SessionState.UNINITIALIZED:
            raise SessionStateError("load_history() must run before messages are added")
        message = Message(role=Role(role), content=content)
        self._history = self._history.append_message(message)
        self._state = SessionState.LOADED
        self._dirty = True
        return message

    async def save_history(self) -> None:
        """
        Durably replace the persisted history with the in-memory one.

        Raises:
            HistorySaveError: The write failed; in-memory history is kept
            SessionStateError: Called before load_history()
        """
        if self._state is SessionState.UNINITIALIZED:
            raise SessionStateError("load_history() must run before the history is saved")

        snapshot = self._history
        try:
            await self._store.write(self.key, snapshot.messages)
        except HistorySaveError:
            logger.error("Saving chat '%s' failed; %d messages kept in memory", self.key, len(snapshot.messages))
            raise

        # A message added while the write was in flight keeps the session dirty.
        if self._history is snapshot:
            self._state = SessionState.PERSISTED
            self._dirty = False


__all__ = ["ChatSession", "HistoryStore"]
