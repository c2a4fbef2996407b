"""Exception types raised by the practice engine."""

from __future__ import annotations


class PracticeEngineError(Exception):
    """Base class for recoverable practice engine errors."""


class TransportError(PracticeEngineError):
    """Raised when a call to the receiving system fails or is rejected."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SnapshotStorageError(PracticeEngineError):
    """Raised by ephemeral snapshot backends when a slot cannot be read or written."""


class QuestionImportError(PracticeEngineError):
    """Raised when a question bank file cannot be parsed."""
