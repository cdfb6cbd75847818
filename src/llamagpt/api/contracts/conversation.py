# src/llamagpt/api/contracts/conversation.py
"""Conversation API contracts - use domain types directly."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from ...domain.domain_type import ReplySource, Role
from ...domain.domain_value import SessionKey


class SendMessageRequest(BaseModel):
    """Request to run one turn in a chat."""

    text: str = Field(
        min_length=1,
        max_length=10_000,
        description="User input: a command such as 'help', or a prompt for the model",
        examples=["What is the capital of France?"],
    )
    chat_id: SessionKey = Field(
        description="Chat whose history to continue; created on first use",
        examples=["work-notes"],
    )
    model_id: str | None = Field(
        default=None,
        description="Model identifier or alias. Leave empty for the configured default.",
        examples=["llama3-8b-q4"],
    )
    temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature. Leave empty for the configured default.",
        examples=[0.7],
    )


class MessageResponse(BaseModel):
    """The reply produced for one input."""

    content: str = Field(description="Reply text (command output, cached or generated text, or an error)")
    source: ReplySource = Field(description="Which path produced the reply")
    is_error: bool = Field(description="True when the reply reports a command or inference failure")


class SendMessageResponse(BaseModel):
    """Response from running a turn."""

    chat_id: SessionKey
    message: MessageResponse
    message_count: int = Field(ge=0, description="Messages in the chat after this turn")


class StoredMessageResponse(BaseModel):
    """One persisted message."""

    role: Role
    content: str
    timestamp: datetime


class ConversationHistoryResponse(BaseModel):
    """Response containing a chat's history."""

    chat_id: SessionKey
    message_count: int = Field(ge=0)
    messages: list[StoredMessageResponse]
