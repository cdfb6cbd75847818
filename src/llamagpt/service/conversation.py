"""Conversation service - composition root for orchestrators.

Owns the process-wide pieces (model catalog, response cache, inference
gateway, history store) and hands out one Orchestrator per session run.
Zero routing logic lives here; that is the Orchestrator's job.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable

from ..config import Settings
from ..domain.chat_session import ChatSession, HistoryStore
from ..domain.commands import CommandRegistry, default_registry
from ..domain.domain_value import GenerationParams, Message, Reply, SessionKey
from ..domain.inference import AgentGateway, InferenceGateway
from ..domain.model_catalog import ModelCatalog
from ..domain.model_pool import ModelPool
from ..domain.orchestrator import Orchestrator
from ..domain.response_cache import ResponseCache
from .storage import FileStoreConfig, RedisStoreConfig, create_history_store

logger = logging.getLogger(__name__)


class _ChatLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class ConversationService:
    """
    Shared infrastructure for every session in the process.

    Service responsibilities:
    1. Own the ResponseCache shared by all sessions
    2. Build a fresh CommandRegistry and Orchestrator per session run
    3. Resolve default generation parameters
    4. Serialize turns per session key (one input at a time per chat)
    """

    def __init__(
        self,
        *,
        catalog: ModelCatalog,
        cache: ResponseCache,
        gateway: InferenceGateway,
        store: HistoryStore,
        registry_factory: Callable[[], CommandRegistry],
        default_model: str,
        default_temperature: float,
        inference_timeout: float | None = None,
    ):
        self.catalog = catalog
        self.cache = cache
        self.gateway = gateway
        self.store = store
        self.registry_factory = registry_factory
        self.default_model = default_model
        self.default_temperature = default_temperature
        self.inference_timeout = inference_timeout
        self._locks: dict[SessionKey, _ChatLock] = {}

    def params(
        self,
        model: str | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
    ) -> GenerationParams:
        """Generation parameters with configured defaults filled in."""
        return GenerationParams(
            model=model or self.default_model,
            temperature=self.default_temperature if temperature is None else temperature,
            timeout=timeout if timeout is not None else self.inference_timeout,
        )

    async def open_session(self, chat_id: SessionKey | str) -> ChatSession:
        """Create a session for `chat_id` and load its history."""
        session = ChatSession(chat_id, self.store)
        logger.info("Starting chat session: %s", session.key)
        await session.load_history()
        return session

    def orchestrator_for(self, session: ChatSession | None = None) -> Orchestrator:
        return Orchestrator(
            registry=self.registry_factory(),
            cache=self.cache,
            gateway=self.gateway,
            session=session,
        )

    @contextlib.asynccontextmanager
    async def chat_lock(self, key: SessionKey) -> AsyncIterator[None]:
        """Hold the lock for one chat. Its entry is dropped once no task holds or awaits it."""
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _ChatLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    async def send_message(
        self,
        chat_id: SessionKey | str,
        text: str,
        params: GenerationParams,
    ) -> tuple[Reply | None, ChatSession]:
        """
        Run one turn on a persisted chat, serialized with other turns on it.

        Returns:
            The reply (None for empty input) and the session after the turn

        Raises:
            HistorySaveError: Turn produced but not persisted
            StorageUnavailableError: History store unreachable
        """
        key = chat_id if isinstance(chat_id, SessionKey) else SessionKey(chat_id)
        async with self.chat_lock(key):
            session = await self.open_session(key)
            reply = await self.orchestrator_for(session).run_turn(text, params)
        return reply, session

    async def history(self, chat_id: SessionKey | str) -> tuple[Message, ...] | None:
        """
        Stored messages for a chat, or None if it was never saved.

        Raises:
            HistoryLoadError: Stored history is corrupt
            StorageUnavailableError: History store unreachable
        """
        key = chat_id if isinstance(chat_id, SessionKey) else SessionKey(chat_id)
        return await self.store.read(key)

    async def delete_chat(self, chat_id: SessionKey | str) -> bool:
        key = chat_id if isinstance(chat_id, SessionKey) else SessionKey(chat_id)
        async with self.chat_lock(key):
            deleted = await self.store.delete(key)
        if deleted:
            logger.info("Deleted chat history: %s", key)
        return deleted

    async def aclose(self) -> None:
        """Release the history store's connections."""
        await self.store.aclose()


def create_conversation_service(
    settings: Settings,
    *,
    gateway: InferenceGateway | None = None,
    store: HistoryStore | None = None,
    cache: ResponseCache | None = None,
) -> ConversationService:
    """
    Factory function for creating ConversationService from settings.

    Any collaborator can be passed in ready-made (tests, embedders); the
    rest are built from configuration.
    """
    catalog = ModelCatalog.from_json_file(settings.model_catalog_path)

    if gateway is None:
        pool = ModelPool(
            catalog=catalog,
            base_url=settings.ollama_base_url,
            system_prompt=settings.system_prompt or None,
        )
        gateway = AgentGateway(pool)

    if store is None:
        store = create_history_store(
            settings.history_backend,
            file_config=FileStoreConfig(directory=settings.history_dir),
            redis_config=RedisStoreConfig(url=settings.redis_url, key_prefix=settings.redis_key_prefix),
        )

    def registry_factory() -> CommandRegistry:
        return default_registry(
            app_name=settings.app_name,
            app_version=settings.app_version,
            catalog=catalog,
            default_model=settings.default_model,
        )

    return ConversationService(
        catalog=catalog,
        cache=cache if cache is not None else ResponseCache(max_entries=settings.cache_max_entries),
        gateway=gateway,
        store=store,
        registry_factory=registry_factory,
        default_model=settings.default_model,
        default_temperature=settings.default_temperature,
        inference_timeout=settings.inference_timeout,
    )


__all__ = ["ConversationService", "create_conversation_service"]
