"""
Engine exceptions.

All failures are local to a single card or operation; nothing here implies
a multi-record rollback.
"""

from __future__ import annotations


class RecallError(Exception):
    """Base class for all recall-engine errors."""


class InvalidArgument(RecallError, ValueError):
    """Raised when a caller passes a value outside the accepted domain."""


class StorageCorruption(RecallError):
    """Raised when a persisted record cannot be decoded."""

    def __init__(self, question_id: str | None, reason: str):
        self.question_id = question_id
        self.reason = reason
        target = f"card {question_id!r}" if question_id else "record"
        super().__init__(f"Corrupted {target}: {reason}")
