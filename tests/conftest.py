"""
Shared test fixtures and configuration.

Environment strategy:
- Tests load .env.test when present (isolated, no real infra needed)
- The model server is never contacted: inference goes through fakes or
  Pydantic AI's FunctionModel
- History lives in pytest's tmp_path or an in-memory store
"""

import asyncio
from collections.abc import Sequence
from pathlib import Path

import pytest
from dotenv import load_dotenv

ENV_FILE = Path(__file__).parent.parent / ".env.test"
load_dotenv(ENV_FILE, override=True)

from llamagpt.config import Settings
from llamagpt.domain.chat_session import ChatSession
from llamagpt.domain.commands import CommandRegistry, default_registry
from llamagpt.domain.domain_type import InferenceErrorKind
from llamagpt.domain.domain_value import GenerationParams, Message, SessionKey
from llamagpt.domain.errors import HistoryLoadError, HistorySaveError, InferenceError
from llamagpt.domain.model_catalog import DEFAULT_CATALOG_PATH, ModelCatalog
from llamagpt.domain.orchestrator import Orchestrator
from llamagpt.domain.response_cache import ResponseCache
from llamagpt.service.conversation import ConversationService, create_conversation_service
from llamagpt.service.storage import FileHistoryStore, FileStoreConfig


class FakeGateway:
    """InferenceGateway double that records calls and returns canned text."""

    def __init__(self, reply: str = "Paris", *, error: InferenceError | None = None, delay: float = 0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, float, str, float | None]] = []

    async def generate(
        self,
        prompt: str,
        *,
        temperature: float,
        model_id: str,
        deadline: float | None = None,
    ) -> str:
        self.calls.append((prompt, temperature, model_id, deadline))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class MemoryHistoryStore:
    """HistoryStore double keeping histories in a dict."""

    def __init__(self):
        self.data: dict[SessionKey, tuple[Message, ...]] = {}
        self.fail_reads = False
        self.fail_writes = False
        self.writes = 0
        self.closed = False

    async def read(self, key: SessionKey) -> tuple[Message, ...] | None:
        if self.fail_reads:
            raise HistoryLoadError(f"history for '{key}' is corrupted")
        return self.data.get(key)

    async def write(self, key: SessionKey, messages: Sequence[Message]) -> None:
        if self.fail_writes:
            raise HistorySaveError("disk full")
        self.writes += 1
        self.data[key] = tuple(messages)

    async def delete(self, key: SessionKey) -> bool:
        return self.data.pop(key, None) is not None

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def model_catalog() -> ModelCatalog:
    """Load the real model catalog shipped with the package."""
    return ModelCatalog.from_json_file(DEFAULT_CATALOG_PATH)


@pytest.fixture
def registry(model_catalog: ModelCatalog) -> CommandRegistry:
    """The built-in command set, in priority order."""
    return default_registry(
        app_name="llamagpt",
        app_version="0.1.0",
        catalog=model_catalog,
        default_model="llama3-8b-q4",
    )


@pytest.fixture
def cache() -> ResponseCache:
    return ResponseCache()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def memory_store() -> MemoryHistoryStore:
    return MemoryHistoryStore()


@pytest.fixture
def file_store(tmp_path: Path) -> FileHistoryStore:
    return FileHistoryStore(FileStoreConfig(directory=tmp_path / "chats"))


@pytest.fixture
def params() -> GenerationParams:
    return GenerationParams(model="llama3-8b-q4", temperature=0.7)


@pytest.fixture
async def session(memory_store: MemoryHistoryStore) -> ChatSession:
    """A loaded, empty session backed by the memory store."""
    chat = ChatSession("test-chat", memory_store)
    await chat.load_history()
    return chat


@pytest.fixture
def orchestrator(
    registry: CommandRegistry,
    cache: ResponseCache,
    gateway: FakeGateway,
    session: ChatSession,
) -> Orchestrator:
    return Orchestrator(registry=registry, cache=cache, gateway=gateway, session=session)


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every side effect at tmp_path."""
    return Settings(
        history_dir=tmp_path / "chats",
        default_model="llama3-8b-q4",
        default_temperature=0.7,
        inference_timeout=5.0,
    )


@pytest.fixture
def service(test_settings: Settings, gateway: FakeGateway) -> ConversationService:
    """Conversation service with file history in tmp_path and a fake model."""
    return create_conversation_service(test_settings, gateway=gateway)


@pytest.fixture
def make_gateway() -> type[FakeGateway]:
    """Factory for gateways with a custom reply, error or delay."""
    return FakeGateway


@pytest.fixture
def timeout_error() -> InferenceError:
    return InferenceError(InferenceErrorKind.TIMEOUT, "llama3-8b-q4 did not answer within 1s")
