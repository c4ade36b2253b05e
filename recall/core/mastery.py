"""
Core Mastery Module.

Classifies how well a card is retained and drives the cached mastery level
stored on each ReviewCard.

Design:
- MasteryLevel: Ordered enum with display helpers (label, emoji, color)
- classify: Pure mapping from repetitions + interval to a level
- next_mastery: State machine applied after every review

The cached level is not a pure re-derivation: a lapse demotes by exactly one
step instead of resetting to New, and successful reviews climb at most one
step at a time.
"""

from __future__ import annotations

from enum import Enum

from recall.core.ratings import Rating

# Interval thresholds (days) for the classification ladder
LEARNING_MAX_DAYS = 1.0
YOUNG_MAX_DAYS = 21.0
MATURE_MAX_DAYS = 60.0


class MasteryLevel(str, Enum):
    """
    Mastery level categorization.

    Ordered from weakest to strongest; ``rank`` gives the position.
    """

    NEW = "new"
    LEARNING = "learning"
    YOUNG = "young"
    MATURE = "mature"
    MASTERED = "mastered"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    def promote(self) -> MasteryLevel:
        """One step up, capped at MASTERED."""
        return _ORDER[min(self.rank + 1, len(_ORDER) - 1)]

    def demote(self) -> MasteryLevel:
        """One step down, floored at NEW."""
        return _ORDER[max(self.rank - 1, 0)]

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.value.title()

    @property
    def emoji(self) -> str:
        """Status emoji for CLI/UI display."""
        return {
            MasteryLevel.NEW: "🆕",
            MasteryLevel.LEARNING: "📖",
            MasteryLevel.YOUNG: "🌱",
            MasteryLevel.MATURE: "🌳",
            MasteryLevel.MASTERED: "🏆",
        }[self]

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            MasteryLevel.NEW: "dim",
            MasteryLevel.LEARNING: "blue",
            MasteryLevel.YOUNG: "cyan",
            MasteryLevel.MATURE: "green",
            MasteryLevel.MASTERED: "yellow",
        }[self]


_ORDER: tuple[MasteryLevel, ...] = (
    MasteryLevel.NEW,
    MasteryLevel.LEARNING,
    MasteryLevel.YOUNG,
    MasteryLevel.MATURE,
    MasteryLevel.MASTERED,
)


def classify(repetitions: int, interval_days: float) -> MasteryLevel:
    """
    Map scheduling state to a mastery level.

    Args:
        repetitions: Consecutive non-Again reviews since the last lapse
        interval_days: Current review interval

    Returns:
        The highest level the scheduling state supports
    """
    if repetitions <= 0:
        return MasteryLevel.NEW
    if interval_days < LEARNING_MAX_DAYS:
        return MasteryLevel.LEARNING
    if interval_days < YOUNG_MAX_DAYS:
        return MasteryLevel.YOUNG
    if interval_days < MATURE_MAX_DAYS:
        return MasteryLevel.MATURE
    return MasteryLevel.MASTERED


def next_mastery(
    prior: MasteryLevel,
    rating: Rating,
    repetitions: int,
    interval_days: float,
) -> MasteryLevel:
    """
    Apply one review to a cached mastery level.

    Again demotes exactly one level. Any other rating climbs at most one
    level, never past what ``classify`` allows for the new state, and never
    drops below the prior level.
    """
    if rating.is_lapse:
        return prior.demote()

    ceiling = classify(repetitions, interval_days)
    candidate = min(prior.promote(), ceiling, key=lambda level: level.rank)
    return max(prior, candidate, key=lambda level: level.rank)


def get_mastery_label(level: MasteryLevel | str) -> str:
    return MasteryLevel(level).display_name


def get_mastery_emoji(level: MasteryLevel | str) -> str:
    return MasteryLevel(level).emoji


def get_mastery_color(level: MasteryLevel | str) -> str:
    return MasteryLevel(level).color
