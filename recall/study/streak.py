"""
Daily review streaks.

The activity ledger holds one ISO date per calendar day with at least one
review. Streaks are derived from it on every call, never stored.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from recall.core.clock import as_aware

if TYPE_CHECKING:
    from recall.delivery.state_store import CardStore


class StreakTracker:
    """Reads and appends the activity ledger of a CardStore."""

    def __init__(self, store: CardStore):
        self.store = store

    def record_activity(self, now: datetime | None = None) -> date:
        """Mark today as active. Repeating it on the same day is a no-op."""
        today = as_aware(now).date()
        self.store.add_day(today)
        return today

    def active_days(self) -> set[date]:
        """Parsed ledger; unreadable entries are logged and dropped."""
        days: set[date] = set()
        for raw in self.store.list_days():
            try:
                days.add(date.fromisoformat(raw))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring unreadable activity ledger entry: {raw!r}")
        return days

    def get_streak(self, now: datetime | None = None) -> int:
        """
        Consecutive active days ending today.

        Returns 0 when today has no activity yet.
        """
        days = self.active_days()
        day = as_aware(now).date()
        streak = 0
        while day in days:
            streak += 1
            day -= timedelta(days=1)
        return streak

    def longest_streak(self) -> int:
        """Longest run of consecutive active days ever recorded."""
        days = self.active_days()
        longest = 0
        for day in days:
            # Only count from the first day of each run
            if day - timedelta(days=1) in days:
                continue
            length = 1
            while day + timedelta(days=length) in days:
                length += 1
            longest = max(longest, length)
        return longest
