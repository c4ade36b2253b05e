"""
Review statistics.

A read-only rollup over the controller's store, streak tracker and XP
engine. Nothing is cached; every call reflects the current persisted state.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from recall.core.clock import as_aware
from recall.core.mastery import MasteryLevel
from recall.core.ratings import Rating

if TYPE_CHECKING:
    from recall.delivery.session import ReviewController


@dataclass
class ReviewStats:
    """Snapshot of the learner's review state."""

    due_today: int = 0
    due_tomorrow: int = 0
    due_this_week: int = 0
    review_streak: int = 0
    longest_streak: int = 0
    mastery_distribution: dict[MasteryLevel, int] = field(default_factory=dict)
    rating_tally: dict[Rating, int] = field(default_factory=dict)
    lifetime_lapses: int = 0
    total_cards_tracked: int = 0
    total_reviews: int = 0
    reviewed_today: int = 0
    total_xp: int = 0
    level: int = 1

    def to_dict(self) -> dict[str, Any]:
        """Plain-JSON form for exports and the CLI."""
        return {
            "due_today": self.due_today,
            "due_tomorrow": self.due_tomorrow,
            "due_this_week": self.due_this_week,
            "review_streak": self.review_streak,
            "longest_streak": self.longest_streak,
            "mastery_distribution": {
                level.value: count for level, count in self.mastery_distribution.items()
            },
            "rating_tally": {rating.value: count for rating, count in self.rating_tally.items()},
            "lifetime_lapses": self.lifetime_lapses,
            "total_cards_tracked": self.total_cards_tracked,
            "total_reviews": self.total_reviews,
            "reviewed_today": self.reviewed_today,
            "total_xp": self.total_xp,
            "level": self.level,
        }


class StatsAggregator:
    """Composes stats from a ReviewController's collaborators."""

    def __init__(self, controller: ReviewController):
        self.controller = controller

    def get_stats(self, now: datetime | None = None) -> ReviewStats:
        """
        Build a stats snapshot.

        ``due_today`` counts cards due by the end of ``now``'s calendar day;
        ``due_tomorrow`` those falling on the next day; ``due_this_week``
        those due by the end of the seventh day from now.
        """
        now = as_aware(now)
        today = now.date()
        end_of_today = datetime.combine(today + timedelta(days=1), time.min, tzinfo=now.tzinfo)
        end_of_tomorrow = end_of_today + timedelta(days=1)
        end_of_week = end_of_today + timedelta(days=7)

        # Stats are read-only, so corrupted cards are skipped, not repaired
        cards = self.controller.load_cards(now, repair=False)
        due_times = [as_aware(c.due_at) for c in cards if c.due_at is not None]

        distribution = {level: 0 for level in MasteryLevel}
        distribution.update(Counter(c.mastery_level for c in cards))

        events = self.controller.store.list_reviews()
        tally = {rating: 0 for rating in Rating}
        tally.update(Counter(e.rating for e in events))

        streaks = self.controller.streaks
        xp = self.controller.xp.get_user_xp()

        return ReviewStats(
            due_today=sum(1 for t in due_times if t < end_of_today),
            due_tomorrow=sum(1 for t in due_times if end_of_today <= t < end_of_tomorrow),
            due_this_week=sum(1 for t in due_times if t < end_of_week),
            review_streak=streaks.get_streak(now),
            longest_streak=streaks.longest_streak(),
            mastery_distribution=distribution,
            rating_tally=tally,
            lifetime_lapses=sum(c.lapses for c in cards),
            total_cards_tracked=len(cards),
            total_reviews=len(events),
            reviewed_today=sum(
                1 for e in events if as_aware(e.reviewed_at).astimezone(now.tzinfo).date() == today
            ),
            total_xp=xp.total_xp,
            level=xp.level,
        )
