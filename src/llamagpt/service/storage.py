"""History storage - file and Redis implementations of HistoryStore.

Both stores persist a whole ChatHistory as one JSON document per session key
and replace it in a single atomic step:

- FileHistoryStore: `<dir>/<key>.json`, written to a temp file in the same
  directory, fsynced, then moved over the old file with os.replace().
- RedisHistoryStore: one `SET <prefix>:<key>`, atomic on the server.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, ValidationError

from ..domain.chat_session import HistoryStore
from ..domain.domain_type import HistoryBackend
from ..domain.domain_value import ChatHistory, Message, SessionKey
from ..domain.errors import HistoryLoadError, HistorySaveError, StorageUnavailableError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class FileStoreConfig(BaseModel):
    """Directory holding one JSON file per chat."""

    directory: Path

    model_config = ConfigDict(frozen=True)


class RedisStoreConfig(BaseModel):
    """Redis connection configuration."""

    url: str
    key_prefix: str = "chat"

    model_config = ConfigDict(frozen=True)


def _decode(key: SessionKey, data: str | bytes, source: str) -> tuple[Message, ...]:
    try:
        history = ChatHistory.model_validate_json(data)
    except ValidationError as exc:
        raise HistoryLoadError(f"Corrupted history in {source}: {exc.error_count()} validation error(s)") from exc
    if history.key != key:
        raise HistoryLoadError(f"{source} holds chat '{history.key}', expected '{key}'")
    return history.messages


def _encode(key: SessionKey, messages: Sequence[Message]) -> str:
    return ChatHistory(key=key, messages=tuple(messages)).model_dump_json(indent=2)


class FileHistoryStore:
    """
    HistoryStore writing JSON documents to a local directory.

    The directory is created on construction; failing that is the one
    unrecoverable storage error (StorageUnavailableError).
    """

    def __init__(self, config: FileStoreConfig):
        self.directory = config.directory.expanduser()
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailableError(f"Cannot open history directory {self.directory}: {exc}") from exc

    def path_for(self, key: SessionKey) -> Path:
        return self.directory / f"{key.root}.json"

    async def read(self, key: SessionKey) -> tuple[Message, ...] | None:
        return await asyncio.to_thread(self._read, key)

    async def write(self, key: SessionKey, messages: Sequence[Message]) -> None:
        await asyncio.to_thread(self._write, key, tuple(messages))

    async def delete(self, key: SessionKey) -> bool:
        return await asyncio.to_thread(self._delete, key)

    def _read(self, key: SessionKey) -> tuple[Message, ...] | None:
        path = self.path_for(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise HistoryLoadError(f"Cannot read {path}: {exc}") from exc
        return _decode(key, data, str(path))

    def _write(self, key: SessionKey, messages: tuple[Message, ...]) -> None:
        path = self.path_for(key)
        payload = _encode(key, messages)
        tmp_path: str | None = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=f".{key.root}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            if tmp_path is not None:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(tmp_path)
            raise HistorySaveError(f"Cannot write {path}: {exc}") from exc
        logger.debug("Wrote %d messages to %s", len(messages), path)

    def _delete(self, key: SessionKey) -> bool:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise HistorySaveError(f"Cannot delete history for '{key}': {exc}") from exc
        return True

    async def aclose(self) -> None:
        """Nothing to release: files are opened per call."""


class RedisHistoryStore:
    """
    HistoryStore keeping each chat as one Redis string.

    The client is created lazily from the config unless one is injected.
    Connection failures mean storage is unavailable; other Redis errors are
    load/save failures for that chat.
    """

    def __init__(self, config: RedisStoreConfig, client: Redis | None = None):
        self.config = config
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> Redis:
        """Get or create Redis client (lazy)."""
        if self._client is None:
            from redis.asyncio import Redis

            self._client = Redis.from_url(self.config.url)
        return self._client

    def key_for(self, key: SessionKey) -> str:
        return f"{self.config.key_prefix}:{key.root}"

    async def read(self, key: SessionKey) -> tuple[Message, ...] | None:
        from redis.exceptions import ConnectionError as RedisConnectionError
        from redis.exceptions import RedisError

        try:
            data = await self.client.get(self.key_for(key))
        except RedisConnectionError as exc:
            raise StorageUnavailableError(f"Cannot reach Redis at {self.config.url}: {exc}") from exc
        except RedisError as exc:
            raise HistoryLoadError(f"Cannot read {self.key_for(key)}: {exc}") from exc
        if data is None:
            return None
        return _decode(key, data, self.key_for(key))

    async def write(self, key: SessionKey, messages: Sequence[Message]) -> None:
        from redis.exceptions import RedisError

        try:
            await self.client.set(self.key_for(key), _encode(key, messages))
        except RedisError as exc:
            raise HistorySaveError(f"Cannot write {self.key_for(key)}: {exc}") from exc

    async def delete(self, key: SessionKey) -> bool:
        from redis.exceptions import RedisError

        try:
            removed = await self.client.delete(self.key_for(key))
        except RedisError as exc:
            raise HistorySaveError(f"Cannot delete {self.key_for(key)}: {exc}") from exc
        return bool(removed)

    async def aclose(self) -> None:
        """Close the client if this store created it; injected clients belong to the caller."""
        if self._client is None or not self._owns_client:
            return
        client, self._client = self._client, None
        await client.aclose()


def create_history_store(
    backend: HistoryBackend,
    *,
    file_config: FileStoreConfig | None = None,
    redis_config: RedisStoreConfig | None = None,
) -> HistoryStore:
    """Factory from infrastructure configs."""
    if backend is HistoryBackend.REDIS:
        if redis_config is None:
            raise ValueError("Redis history backend needs a RedisStoreConfig")
        return RedisHistoryStore(redis_config)
    if file_config is None:
        raise ValueError("File history backend needs a FileStoreConfig")
    return FileHistoryStore(file_config)


__all__ = [
    "FileHistoryStore",
    "FileStoreConfig",
    "RedisHistoryStore",
    "RedisStoreConfig",
    "create_history_store",
]
