"""LlamaGPT - intelligent CLI assistant with on-device inference."""

from .config import Settings, get_settings
from .domain import ChatSession, CommandRegistry, Orchestrator, ResponseCache
from .service import ConversationService, create_conversation_service

__version__ = "0.1.0"

__all__ = [
    "ChatSession",
    "CommandRegistry",
    "ConversationService",
    "Orchestrator",
    "ResponseCache",
    "Settings",
    "__version__",
    "create_conversation_service",
    "get_settings",
]
