"""
XP and Leveling Engine.

Rewards review outcomes with XP and derives a level from the running total.

Reward = base[rating] x multiplier[prior mastery], rounded down.
Again always earns 0 so failing on purpose never pays.

Level curve: level = floor(sqrt(total_xp / K)) + 1, so level L starts at
K * (L - 1)^2 XP. The curve is monotonic; XP is only ever added.
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loguru import logger

from recall.config import Settings
from recall.core.errors import InvalidArgument
from recall.core.mastery import MasteryLevel
from recall.core.ratings import Rating

if TYPE_CHECKING:
    from recall.delivery.state_store import CardStore


def _default_base_xp() -> dict[Rating, int]:
    return {
        Rating.AGAIN: 0,
        Rating.HARD: 5,
        Rating.GOOD: 10,
        Rating.EASY: 15,
    }


def _default_multipliers() -> dict[MasteryLevel, int]:
    # Percent, kept integral so rewards never suffer float drift
    return {
        MasteryLevel.NEW: 100,
        MasteryLevel.LEARNING: 100,
        MasteryLevel.YOUNG: 120,
        MasteryLevel.MATURE: 150,
        MasteryLevel.MASTERED: 200,
    }


@dataclass
class XPConfig:
    """Reward table and level curve."""

    base_xp: dict[Rating, int] = field(default_factory=_default_base_xp)
    mastery_multiplier_pct: dict[MasteryLevel, int] = field(default_factory=_default_multipliers)
    level_constant: int = 100  # K

    @classmethod
    def from_settings(cls, settings: Settings) -> XPConfig:
        return cls(level_constant=settings.xp_level_constant)


# (first level, title); a level takes the last title at or below it
LEVEL_TITLES: tuple[tuple[int, str], ...] = (
    (1, "Novice"),
    (2, "Learner"),
    (3, "Student"),
    (4, "Apprentice"),
    (5, "Practitioner"),
    (6, "Adept"),
    (7, "Professional"),
    (8, "Specialist"),
    (9, "Veteran"),
    (10, "Expert"),
    (11, "Senior"),
    (12, "Mentor"),
    (13, "Authority"),
    (14, "Virtuoso"),
    (15, "Ace"),
    (16, "Champion"),
    (17, "Elite"),
    (18, "Prodigy"),
    (19, "Genius"),
    (20, "Master"),
    (25, "Grandmaster"),
    (30, "Sage"),
    (35, "Oracle"),
    (40, "Titan"),
    (45, "Immortal"),
    (50, "Legend"),
)


@dataclass
class LevelProgress:
    """Where a learner stands on the level curve."""

    total_xp: int
    level: int
    xp_to_next_level: int
    progress_percent: float  # 0 <= p < 100
    level_floor_xp: int  # XP at which the current level started
    next_level_xp: int  # XP at which the next level starts
    title: str = "Novice"


def calculate_xp(
    rating: Rating | str,
    prior_mastery: MasteryLevel,
    config: XPConfig | None = None,
) -> int:
    """
    XP earned for one review.

    Args:
        rating: Confidence rating given
        prior_mastery: Card mastery before the review

    Returns:
        Non-negative whole XP
    """
    config = config or XPConfig()
    rating = Rating.coerce(rating)
    if rating.is_lapse:
        return 0
    base = config.base_xp[rating]
    return base * config.mastery_multiplier_pct[MasteryLevel(prior_mastery)] // 100


def level_title(level: int) -> str:
    """Rank title shown next to a level."""
    index = bisect.bisect_right([start for start, _ in LEVEL_TITLES], level) - 1
    return LEVEL_TITLES[max(index, 0)][1]


def level_threshold(level: int, k: int = 100) -> int:
    """Total XP required to reach ``level``."""
    return k * (level - 1) ** 2


def level_progress(total_xp: int, k: int = 100) -> LevelProgress:
    """Derive level and progress from total XP."""
    level = math.isqrt(total_xp // k) + 1
    floor_xp = level_threshold(level, k)
    next_xp = level_threshold(level + 1, k)
    span = next_xp - floor_xp

    return LevelProgress(
        total_xp=total_xp,
        level=level,
        xp_to_next_level=next_xp - total_xp,
        progress_percent=(total_xp - floor_xp) * 100 / span,
        level_floor_xp=floor_xp,
        next_level_xp=next_xp,
        title=level_title(level),
    )


class XPEngine:
    """
    Stateful XP ledger over a CardStore's singleton XP record.

    The total only ever grows.
    """

    def __init__(self, store: CardStore, config: XPConfig | None = None):
        self.store = store
        self.config = config or XPConfig()

    def calculate_xp(self, rating: Rating | str, prior_mastery: MasteryLevel) -> int:
        return calculate_xp(rating, prior_mastery, self.config)

    def add_xp(self, amount: int) -> LevelProgress:
        """
        Add XP to the learner's total.

        Args:
            amount: Whole, finite, non-negative XP

        Returns:
            LevelProgress after the addition

        Raises:
            InvalidArgument: If the amount is negative, non-finite or
                fractional; the stored total is left unchanged
        """
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise InvalidArgument(f"XP amount must be a number, got {amount!r}")
        if isinstance(amount, float) and (not math.isfinite(amount) or not amount.is_integer()):
            raise InvalidArgument(f"XP amount must be a whole finite number, got {amount!r}")
        if amount < 0:
            raise InvalidArgument(f"XP amount must be non-negative, got {amount!r}")

        with self.store.lock():
            before = self.store.get_xp()
            total = before + int(amount)
            self.store.set_xp(total)

        progress = level_progress(total, self.config.level_constant)
        if progress.level > level_progress(before, self.config.level_constant).level:
            logger.info(f"Level up! Now level {progress.level} ({total} XP)")
        return progress

    def get_user_xp(self) -> LevelProgress:
        return level_progress(self.store.get_xp(), self.config.level_constant)
