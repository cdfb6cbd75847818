from .conversation import (
    ConversationHistoryResponse,
    MessageResponse,
    SendMessageRequest,
    SendMessageResponse,
    StoredMessageResponse,
)
from .health import HealthResponse

__all__ = [
    "ConversationHistoryResponse",
    "HealthResponse",
    "MessageResponse",
    "SendMessageRequest",
    "SendMessageResponse",
    "StoredMessageResponse",
]
