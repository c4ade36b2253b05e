"""
Study progress module.

Provides the learner-level views built on top of card scheduling:
- XP rewards and the level curve
- Daily review streaks
- Stats rollups
"""

from recall.study.stats import ReviewStats, StatsAggregator
from recall.study.streak import StreakTracker
from recall.study.xp_engine import (
    LevelProgress,
    XPConfig,
    XPEngine,
    calculate_xp,
    level_progress,
    level_threshold,
    level_title,
)

__all__ = [
    "XPEngine",
    "XPConfig",
    "LevelProgress",
    "calculate_xp",
    "level_progress",
    "level_threshold",
    "level_title",
    "StreakTracker",
    "StatsAggregator",
    "ReviewStats",
]
