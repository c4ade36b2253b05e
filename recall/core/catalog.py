"""
Question catalog port.

The catalog is owned elsewhere; the engine only asks whether a question
still exists so callers can flag orphaned cards.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol


class QuestionCatalog(Protocol):
    """Anything that can answer ``exists(question_id)``."""

    def exists(self, question_id: str) -> bool: ...


class StaticCatalog:
    """Set-backed catalog, for tests and offline exports."""

    def __init__(self, question_ids: Iterable[str] = ()):
        self._ids = set(question_ids)

    def exists(self, question_id: str) -> bool:
        return question_id in self._ids
