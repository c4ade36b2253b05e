"""
Review delivery: persistence, scheduling and sessions.

Components:
- StateStore / MemoryStateStore: Card, ledger, review log and XP persistence
- Scheduler: Next interval, ease factor and due time for a rating
- ReviewController: Due-card selection and the single mutating entry point
- ReviewSession: Iteration state of one study sitting
- cli: Rich terminal interface
"""

from .scheduler import Scheduler, SchedulerConfig, format_interval
from .session import ReviewController, ReviewResult, ReviewSession
from .state_store import CardStore, MemoryStateStore, ReviewCard, ReviewEvent, StateStore

__all__ = [
    # Persistence
    "CardStore",
    "StateStore",
    "MemoryStateStore",
    "ReviewCard",
    "ReviewEvent",
    # Scheduling
    "Scheduler",
    "SchedulerConfig",
    "format_interval",
    # Sessions
    "ReviewController",
    "ReviewResult",
    "ReviewSession",
]
