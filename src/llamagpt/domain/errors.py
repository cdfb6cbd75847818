"""Error taxonomy for the orchestration layer.

Recoverable errors (command, inference, history load) are turned into display
text or degraded state by the layer that owns them. Only history saves and
unusable storage reach the caller.
"""

from __future__ import annotations

from .domain_type import InferenceErrorKind


class LlamaGPTError(Exception):
    """Base class for every error raised by this package."""


class CommandError(LlamaGPTError):
    """A command handler could not produce its output."""


class InferenceError(LlamaGPTError):
    """The inference gateway produced no text for this turn."""

    def __init__(self, kind: InferenceErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"{self.args[0]} ({self.kind.value})"


class HistoryLoadError(LlamaGPTError):
    """Persisted history exists but cannot be read back."""


class HistorySaveError(LlamaGPTError):
    """History could not be written durably."""


class StorageUnavailableError(LlamaGPTError):
    """Session storage cannot be opened at all."""


class SessionStateError(LlamaGPTError):
    """A session operation was called in the wrong lifecycle state."""


__all__ = [
    "CommandError",
    "HistoryLoadError",
    "HistorySaveError",
    "InferenceError",
    "LlamaGPTError",
    "SessionStateError",
    "StorageUnavailableError",
]
