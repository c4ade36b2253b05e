"""
SM-2 style Spaced Repetition Scheduler.

Implements:
- Rating-keyed initial intervals for a card's first review
- Ease-factor arithmetic for every later review
- Mastery transitions (see recall.core.mastery.next_mastery)
- Non-mutating previews of all four outcomes

Confidence Rating Scale:
again - Forgot; interval shrinks to 20%, ease drops 0.20
hard  - Recalled with effort; interval x1.2, ease drops 0.15
good  - Recalled; interval x ease
easy  - Effortless; interval x ease x 1.3, ease rises 0.15

The scheduler is pure: it never touches a store and never mutates the card
it is given.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from loguru import logger

from recall.config import Settings
from recall.core.clock import as_aware
from recall.core.errors import InvalidArgument
from recall.core.mastery import next_mastery
from recall.core.ratings import Rating

from .state_store import ReviewCard

# =============================================================================
# Configuration
# =============================================================================


def _default_initial_intervals() -> dict[Rating, float]:
    return {
        Rating.AGAIN: 0.0,
        Rating.HARD: 1.0,
        Rating.GOOD: 3.0,
        Rating.EASY: 7.0,
    }


@dataclass
class SchedulerConfig:
    """Configuration for the scheduling arithmetic."""

    initial_ease: float = 2.5
    minimum_ease: float = 1.3
    minimum_interval: float = 1.0  # Floor for every non-first review
    initial_intervals: dict[Rating, float] = field(default_factory=_default_initial_intervals)
    lapse_interval_factor: float = 0.2
    hard_interval_factor: float = 1.2
    easy_bonus: float = 1.3
    again_ease_penalty: float = 0.20
    hard_ease_penalty: float = 0.15
    easy_ease_bonus: float = 0.15

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerConfig:
        return cls(
            initial_ease=settings.initial_ease_factor,
            minimum_ease=settings.minimum_ease_factor,
        )


@dataclass(frozen=True)
class IntervalStep:
    """Outcome of the interval arithmetic for one rating."""

    interval_days: float
    ease_factor: float
    repetitions: int
    lapses: int


# =============================================================================
# Scheduler
# =============================================================================


class Scheduler:
    """
    Computes the next review state from a card and a confidence rating.

    Each card has:
    - Ease factor: How fast the interval grows (2.5 default, min 1.3)
    - Interval: Days until next review
    - Repetitions: Consecutive non-Again recalls since the last lapse
    """

    def __init__(self, config: SchedulerConfig | None = None):
        """
        Initialize the scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
        """
        self.config = config or SchedulerConfig()

    def schedule(
        self,
        card: ReviewCard | None,
        rating: Rating | str,
        now: datetime,
        question_id: str = "",
    ) -> ReviewCard:
        """
        Calculate the card state after a review.

        Args:
            card: Current state, or None for a question never seen before
            rating: Confidence rating
            now: Review timestamp
            question_id: Used only when ``card`` is None

        Returns:
            A new ReviewCard; the input is left untouched

        Raises:
            InvalidArgument: If ``rating`` is not one of the four ratings, or
                ``card`` is None and no ``question_id`` is given
        """
        rating = Rating.coerce(rating)
        if card is None:
            if not question_id:
                raise InvalidArgument("question_id is required to schedule a new card")
            card = ReviewCard.fresh(question_id, ease_factor=self.config.initial_ease)

        step = self.next_step(card, rating)
        mastery = next_mastery(card.mastery_level, rating, step.repetitions, step.interval_days)
        reviewed_at = as_aware(now)

        updated = replace(
            card,
            ease_factor=step.ease_factor,
            interval_days=step.interval_days,
            repetitions=step.repetitions,
            lapses=step.lapses,
            mastery_level=mastery,
            due_at=reviewed_at + timedelta(days=step.interval_days),
            last_reviewed_at=reviewed_at,
            total_reviews=card.total_reviews + 1,
        )

        logger.debug(
            f"Scheduled {updated.question_id}: rating={rating.value}, "
            f"interval={card.interval_days:g}d->{updated.interval_days:g}d, "
            f"ease={updated.ease_factor:.2f}, mastery={updated.mastery_level.value}"
        )
        return updated

    def next_step(self, card: ReviewCard, rating: Rating) -> IntervalStep:
        """Interval, ease, repetitions and lapses after ``rating``."""
        if card.is_new:
            return self._first_step(card, rating)

        cfg = self.config
        interval = card.interval_days
        ease = card.ease_factor

        match rating:
            case Rating.AGAIN:
                shrunk = max(cfg.minimum_interval, math.floor(interval * cfg.lapse_interval_factor))
                return IntervalStep(
                    interval_days=min(interval, shrunk),
                    ease_factor=max(cfg.minimum_ease, ease - cfg.again_ease_penalty),
                    repetitions=0,
                    lapses=card.lapses + 1,
                )
            case Rating.HARD:
                return IntervalStep(
                    interval_days=max(cfg.minimum_interval, interval * cfg.hard_interval_factor),
                    ease_factor=max(cfg.minimum_ease, ease - cfg.hard_ease_penalty),
                    repetitions=card.repetitions + 1,
                    lapses=card.lapses,
                )
            case Rating.GOOD:
                return IntervalStep(
                    interval_days=max(cfg.minimum_interval, interval * ease),
                    ease_factor=ease,
                    repetitions=card.repetitions + 1,
                    lapses=card.lapses,
                )
            case Rating.EASY:
                return IntervalStep(
                    interval_days=max(cfg.minimum_interval, interval * ease * cfg.easy_bonus),
                    ease_factor=ease + cfg.easy_ease_bonus,
                    repetitions=card.repetitions + 1,
                    lapses=card.lapses,
                )

    def _first_step(self, card: ReviewCard, rating: Rating) -> IntervalStep:
        # No history yet, so ease arithmetic has nothing to multiply
        lapsed = rating.is_lapse
        return IntervalStep(
            interval_days=self.config.initial_intervals[rating],
            ease_factor=card.ease_factor,
            repetitions=0 if lapsed else 1,
            lapses=card.lapses + (1 if lapsed else 0),
        )

    def preview(self, card: ReviewCard | None) -> dict[Rating, str]:
        """
        Show what each rating would do, without committing.

        Args:
            card: Current state, or None for a question never seen before

        Returns:
            Mapping of rating to a human-readable interval ("3d", "2w", ...)
        """
        if card is None:
            card = ReviewCard.fresh("", ease_factor=self.config.initial_ease)
        return {
            rating: format_interval(self.next_step(card, rating).interval_days)
            for rating in Rating
        }


def format_interval(days: float) -> str:
    """
    Format an interval for buttons and tables.

    Examples:
        0 -> "now", 3 -> "3d", 14 -> "2w", 90 -> "3mo", 400 -> "1.1y"
    """
    if days < 1:
        return "now"
    if days < 7:
        return f"{round(days)}d"
    if days < 30:
        return f"{round(days / 7)}w"
    if days < 365:
        return f"{round(days / 30)}mo"
    return f"{days / 365:.1f}y"
