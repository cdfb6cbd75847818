"""Service layer exports."""

from .conversation import ConversationService, create_conversation_service
from .storage import (
    FileHistoryStore,
    FileStoreConfig,
    RedisHistoryStore,
    RedisStoreConfig,
    create_history_store,
)

__all__ = [
    "ConversationService",
    "FileHistoryStore",
    "FileStoreConfig",
    "RedisHistoryStore",
    "RedisStoreConfig",
    "create_conversation_service",
    "create_history_store",
]
