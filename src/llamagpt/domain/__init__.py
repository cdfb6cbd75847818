"""Domain Layer - Dispatch, Caching and Session Orchestration.

Key Components:
    - CommandRegistry: First-match-wins dispatch of structured commands
    - ResponseCache: Process-wide memoization of inference results
    - ChatSession: Ordered, durable message log per session key
    - InferenceGateway/AgentGateway: Boundary to the on-device model
    - Orchestrator: Routes each input and records the turn

Design Principles:
    - Immutable values: messages, histories and params are frozen models
    - Explicit dependencies: the cache and stores are passed in, never global
    - Recoverable by default: only history saves and unusable storage raise
"""

from .chat_session import ChatSession, HistoryStore
from .commands import (
    Command,
    CommandHandle,
    CommandHandler,
    CommandRegistry,
    CommandResult,
    ExactMatcher,
    PatternMatcher,
    PrefixMatcher,
    default_registry,
)
from .domain_type import HistoryBackend, InferenceErrorKind, ReplySource, Role, SessionState
from .domain_value import ChatHistory, GenerationParams, Message, Reply, SessionKey
from .errors import (
    CommandError,
    HistoryLoadError,
    HistorySaveError,
    InferenceError,
    LlamaGPTError,
    SessionStateError,
    StorageUnavailableError,
)
from .inference import AgentGateway, InferenceGateway
from .model_catalog import DEFAULT_CATALOG_PATH, ModelCatalog, ModelSpec, ModelVariant
from .model_pool import ModelPool
from .orchestrator import Orchestrator
from .response_cache import CacheEntry, CacheStats, ResponseCache, fingerprint

__all__ = [
    "DEFAULT_CATALOG_PATH",
    "AgentGateway",
    "CacheEntry",
    "CacheStats",
    "ChatHistory",
    "ChatSession",
    "Command",
    "CommandError",
    "CommandHandle",
    "CommandHandler",
    "CommandRegistry",
    "CommandResult",
    "ExactMatcher",
    "GenerationParams",
    "HistoryBackend",
    "HistoryLoadError",
    "HistorySaveError",
    "HistoryStore",
    "InferenceError",
    "InferenceErrorKind",
    "InferenceGateway",
    "LlamaGPTError",
    "Message",
    "ModelCatalog",
    "ModelPool",
    "ModelSpec",
    "ModelVariant",
    "Orchestrator",
    "PatternMatcher",
    "PrefixMatcher",
    "Reply",
    "ReplySource",
    "ResponseCache",
    "Role",
    "SessionKey",
    "SessionState",
    "SessionStateError",
    "StorageUnavailableError",
    "default_registry",
    "fingerprint",
]
