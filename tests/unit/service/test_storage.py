"""
Tests for the file and Redis history stores.

These tests demonstrate:
- Testing atomic replacement (no temp files left behind, old file intact on failure)
- Testing corruption detection as HistoryLoadError
- Testing the Redis store against an in-process fake client
"""

import os
from pathlib import Path

import pytest
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from llamagpt.domain.domain_type import HistoryBackend, Role
from llamagpt.domain.domain_value import Message, SessionKey
from llamagpt.domain.errors import HistoryLoadError, HistorySaveError, StorageUnavailableError
from llamagpt.service.storage import (
    FileHistoryStore,
    FileStoreConfig,
    RedisHistoryStore,
    RedisStoreConfig,
    create_history_store,
)

KEY = SessionKey("notes")
MESSAGES = (
    Message(role=Role.USER, content="hello"),
    Message(role=Role.ASSISTANT, content="Hi there!"),
)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the history store."""

    def __init__(self, error: Exception | None = None):
        self.values: dict[str, str] = {}
        self.error = error
        self.closed = False

    async def get(self, name: str) -> bytes | None:
        if self.error:
            raise self.error
        value = self.values.get(name)
        return None if value is None else value.encode()

    async def set(self, name: str, value: str) -> bool:
        if self.error:
            raise self.error
        self.values[name] = value
        return True

    async def delete(self, name: str) -> int:
        if self.error:
            raise self.error
        return 1 if self.values.pop(name, None) is not None else 0

    async def aclose(self) -> None:
        self.closed = True


async def test_file_store_round_trip(file_store: FileHistoryStore):
    assert await file_store.read(KEY) is None

    await file_store.write(KEY, MESSAGES)

    assert await file_store.read(KEY) == MESSAGES
    assert file_store.path_for(KEY).name == "notes.json"


async def test_file_store_leaves_no_temp_files(file_store: FileHistoryStore):
    await file_store.write(KEY, MESSAGES)
    await file_store.write(KEY, MESSAGES[:1])

    assert sorted(p.name for p in file_store.directory.iterdir()) == ["notes.json"]
    assert await file_store.read(KEY) == MESSAGES[:1]


async def test_failed_replace_keeps_previous_file(file_store: FileHistoryStore, monkeypatch):
    """
    Demonstrates: A failed save never leaves a partial history.

    The previous document is still readable and the temp file is gone.
    """
    await file_store.write(KEY, MESSAGES)

    def broken_replace(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(HistorySaveError):
        await file_store.write(KEY, MESSAGES[:1])

    monkeypatch.undo()
    assert await file_store.read(KEY) == MESSAGES
    assert [p.name for p in file_store.directory.iterdir()] == ["notes.json"]


async def test_file_store_detects_corruption(file_store: FileHistoryStore):
    file_store.path_for(KEY).write_text('{"key": "notes", "messages": [{"role": "robot"}]}')

    with pytest.raises(HistoryLoadError):
        await file_store.read(KEY)


async def test_file_store_rejects_history_of_another_chat(file_store: FileHistoryStore):
    await file_store.write(SessionKey("other"), MESSAGES)
    os.replace(file_store.path_for(SessionKey("other")), file_store.path_for(KEY))

    with pytest.raises(HistoryLoadError, match="expected 'notes'"):
        await file_store.read(KEY)


async def test_file_store_delete(file_store: FileHistoryStore):
    await file_store.write(KEY, MESSAGES)

    assert await file_store.delete(KEY) is True
    assert await file_store.delete(KEY) is False
    assert await file_store.read(KEY) is None


def test_unusable_directory_is_storage_unavailable(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    with pytest.raises(StorageUnavailableError):
        FileHistoryStore(FileStoreConfig(directory=blocker / "chats"))


async def test_redis_store_round_trip():
    client = FakeRedis()
    store = RedisHistoryStore(RedisStoreConfig(url="redis://localhost:6379/0", key_prefix="test"), client=client)

    await store.write(KEY, MESSAGES)

    assert "test:notes" in client.values
    assert await store.read(KEY) == MESSAGES
    assert await store.delete(KEY) is True
    assert await store.read(KEY) is None


async def test_redis_connection_failure_is_storage_unavailable():
    store = RedisHistoryStore(
        RedisStoreConfig(url="redis://localhost:6379/0"),
        client=FakeRedis(error=RedisConnectionError("refused")),
    )

    with pytest.raises(StorageUnavailableError):
        await store.read(KEY)
    with pytest.raises(HistorySaveError):
        await store.write(KEY, MESSAGES)


async def test_redis_other_errors_are_load_failures():
    store = RedisHistoryStore(
        RedisStoreConfig(url="redis://localhost:6379/0"),
        client=FakeRedis(error=ResponseError("WRONGTYPE")),
    )

    with pytest.raises(HistoryLoadError):
        await store.read(KEY)


def test_factory_selects_backend(tmp_path: Path):
    file_config = FileStoreConfig(directory=tmp_path)
    redis_config = RedisStoreConfig(url="redis://localhost:6379/0")

    assert isinstance(create_history_store(HistoryBackend.FILE, file_config=file_config), FileHistoryStore)
    assert isinstance(create_history_store(HistoryBackend.REDIS, redis_config=redis_config), RedisHistoryStore)
    with pytest.raises(ValueError):
        create_history_store(HistoryBackend.REDIS, file_config=file_config)


async def test_redis_store_closes_the_client_it_created(monkeypatch):
    """
    Demonstrates: The store owns a client only if it built one.

    A lazily created client is closed by aclose(); the next use builds a new one.
    """
    created: list[FakeRedis] = []

    def from_url(url: str, **kwargs) -> FakeRedis:
        created.append(FakeRedis())
        return created[-1]

    monkeypatch.setattr(Redis, "from_url", from_url)
    store = RedisHistoryStore(RedisStoreConfig(url="redis://localhost:6379/0"))

    await store.write(KEY, MESSAGES)
    await store.aclose()
    await store.aclose()

    assert len(created) == 1
    assert created[0].closed is True
    assert await store.read(KEY) is None
    assert len(created) == 2


async def test_redis_store_leaves_injected_client_open():
    client = FakeRedis()
    store = RedisHistoryStore(RedisStoreConfig(url="redis://localhost:6379/0"), client=client)

    await store.write(KEY, MESSAGES)
    await store.aclose()

    assert client.closed is False
    assert await store.read(KEY) == MESSAGES


async def test_file_store_aclose_keeps_store_usable(file_store: FileHistoryStore):
    await file_store.aclose()
    await file_store.write(KEY, MESSAGES)

    assert await file_store.read(KEY) == MESSAGES
