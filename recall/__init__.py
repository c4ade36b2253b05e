"""
recall-engine: spaced-repetition scheduling and mastery tracking.

Packages:
- recall.core: Ratings, mastery classification, errors, catalog port
- recall.delivery: Stores, scheduler, review sessions, CLI
- recall.study: XP/levels, streaks, stats
"""

__version__ = "1.0.0"
