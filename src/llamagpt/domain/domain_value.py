"""Value Layer - Immutable Records Shared by the Orchestration Core.

Everything in this module is a frozen Pydantic model. Chat sessions replace
their ChatHistory on every append instead of mutating it, so a history handed
out for display or persistence never changes underneath its reader.

Architecture:
    - Identity: SessionKey (which persisted conversation)
    - Content: Message (one authored line of a conversation)
    - State: ChatHistory (ordered messages for one key)
    - Request/Result: GenerationParams in, Reply out
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, RootModel

from .domain_type import ReplySource, Role


class SessionKey(RootModel[str]):
    """Identifier of a persisted conversation (the chat id).

    Uses Pydantic's RootModel pattern to create a strongly-typed string
    wrapper. The pattern keeps keys safe to use as file names and Redis keys:
    no path separators, no leading dot.

    Usage:
        >>> key = SessionKey("work-notes")
        >>> key.root
        'work-notes'
        >>> SessionKey("../etc/passwd")  # Raises ValidationError
    """

    root: str = Field(min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$")
    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return self.root


class Message(BaseModel):
    """One authored line of a conversation.

    Attributes:
        role: Who wrote it (user or assistant, nothing else)
        content: Text exactly as typed or produced
        timestamp: Creation time in UTC
    """

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class ChatHistory(BaseModel):
    """Ordered Messages for One Session Key.

    The serializable state of a chat session. Insertion order is conversation
    order; nothing in this layer reorders or deduplicates messages.

    Attributes:
        key: Session key the history belongs to
        messages: Ordered tuple of messages (immutable for functional updates)

    Example:
        >>> history = ChatHistory(key=SessionKey("demo"))
        >>> history = history.append_message(Message(role=Role.USER, content="hi"))
        >>> len(history.messages)
        1
    """

    key: SessionKey
    messages: tuple[Message, ...] = ()

    model_config = ConfigDict(frozen=True)

    def append_message(self, msg: Message) -> ChatHistory:
        """Append Message Immutably.

        Functional update pattern: creates new ChatHistory with the added
        message. The original instance remains unchanged.
        """
        return self.model_copy(update={"messages": (*self.messages, msg)})


class GenerationParams(BaseModel):
    """Parameters that select and shape one inference call.

    `model` and `temperature` take part in the cache fingerprint; `timeout`
    only bounds how long the caller waits and therefore does not.

    Attributes:
        model: Model identifier as understood by the inference gateway
        temperature: Sampling temperature
        timeout: Deadline in seconds for the gateway call, None for no bound
    """

    model: str = Field(min_length=1)
    temperature: float = Field(ge=0.0, le=2.0)
    timeout: float | None = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True)


class Reply(BaseModel):
    """Text produced for one input, with where it came from."""

    text: str
    source: ReplySource
    is_error: bool = False

    model_config = ConfigDict(frozen=True)


__all__ = ["ChatHistory", "GenerationParams", "Message", "Reply", "SessionKey"]
