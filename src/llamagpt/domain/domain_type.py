"""Domain Type System - Core Enumerations.

Defines type-safe constants using Python's StrEnum for domain concepts.
Using StrEnum instead of plain Enum provides automatic string coercion
and better JSON serialization without custom encoders.
"""

from enum import StrEnum


class Role(StrEnum):
    """Author of a conversation message.

    Closed set: the orchestration layer only ever writes user input and the
    reply produced for it. There is no system or tool role in a persisted
    history.
    """

    USER = "user"
    ASSISTANT = "assistant"


class SessionState(StrEnum):
    """Chat Session Lifecycle States.

    States:
        UNINITIALIZED: Created, history not read yet
        LOADED: History read (or initialized empty) and possibly mutated
        PERSISTED: In-memory history equals the last durable write

    LOADED and PERSISTED alternate for the life of a run. There is no closed
    state; a session simply goes away with the process.
    """

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    PERSISTED = "persisted"


class ReplySource(StrEnum):
    """Which path of the orchestrator produced a reply."""

    COMMAND = "command"
    CACHE = "cache"
    INFERENCE = "inference"


class InferenceErrorKind(StrEnum):
    """Failure categories reported by an inference gateway.

    The orchestrator treats all of them the same way ("inference unavailable
    for this turn"); the kind exists for logging and for the HTTP surface.
    """

    MODEL_NOT_FOUND = "model_not_found"
    BACKEND_FAILURE = "backend_failure"
    TIMEOUT = "timeout"


class HistoryBackend(StrEnum):
    """Persistence backends for chat history."""

    FILE = "file"
    REDIS = "redis"


__all__ = [
    "HistoryBackend",
    "InferenceErrorKind",
    "ReplySource",
    "Role",
    "SessionState",
]
