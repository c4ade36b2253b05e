"""
Core Module - Shared domain models and interfaces.

Components:
- errors: Exception hierarchy (InvalidArgument, StorageCorruption)
- ratings: The closed four-way confidence Rating
- mastery: MasteryLevel, the classifier and the mastery state machine
- catalog: QuestionCatalog port used to detect orphaned cards
- clock: Timestamp normalization

Design Principle:
Everything here is pure. Persistence lives in recall.delivery, rewards and
rollups in recall.study.
"""

from recall.core.catalog import QuestionCatalog, StaticCatalog
from recall.core.errors import InvalidArgument, RecallError, StorageCorruption
from recall.core.mastery import (
    MasteryLevel,
    classify,
    get_mastery_color,
    get_mastery_emoji,
    get_mastery_label,
    next_mastery,
)
from recall.core.ratings import Rating, get_rating_label

__all__ = [
    # Errors
    "RecallError",
    "InvalidArgument",
    "StorageCorruption",
    # Ratings
    "Rating",
    "get_rating_label",
    # Mastery
    "MasteryLevel",
    "classify",
    "next_mastery",
    "get_mastery_label",
    "get_mastery_emoji",
    "get_mastery_color",
    # Catalog
    "QuestionCatalog",
    "StaticCatalog",
]
