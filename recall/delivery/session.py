"""
Review session controller.

ReviewController is the only component that calls the Scheduler and writes
cards back. ReviewSession holds the local iteration state of one sitting
(current card, skips, XP earned) and delegates every answer to the
controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from loguru import logger

from recall.core.catalog import QuestionCatalog
from recall.core.clock import as_aware
from recall.core.errors import InvalidArgument, StorageCorruption
from recall.core.mastery import MasteryLevel
from recall.core.ratings import Rating
from recall.study.streak import StreakTracker
from recall.study.xp_engine import XPEngine

from .scheduler import Scheduler
from .state_store import CardStore, ReviewCard, ReviewEvent


@dataclass
class ReviewResult:
    """Outcome of a single recorded review."""

    card: ReviewCard
    xp_earned: int
    prior_mastery: MasteryLevel
    level_before: int
    level_after: int

    @property
    def leveled_up(self) -> bool:
        return self.level_after > self.level_before


class ReviewController:
    """
    Selects due cards and records reviews.

    Key principles:
    1. Oldest due cards come first, weakest mastery breaks ties
    2. A corrupted card is reset on its own; the rest of the query proceeds
    3. record_review is the single mutating entry point
    """

    def __init__(
        self,
        store: CardStore,
        scheduler: Scheduler | None = None,
        xp_engine: XPEngine | None = None,
        streaks: StreakTracker | None = None,
        catalog: QuestionCatalog | None = None,
    ):
        """
        Initialize the controller.

        Args:
            store: Persistence for cards, ledger, review log and XP
            scheduler: Scheduler (creates default if None)
            xp_engine: XP engine over the same store (creates default if None)
            streaks: Streak tracker over the same store (creates default if None)
            catalog: Optional question catalog for orphan detection
        """
        self.store = store
        self.scheduler = scheduler or Scheduler()
        self.xp = xp_engine or XPEngine(store)
        self.streaks = streaks or StreakTracker(store)
        self.catalog = catalog

    # =========================================================================
    # Loading
    # =========================================================================

    def _fresh_card(self, question_id: str, channel: str = "", difficulty: str = "") -> ReviewCard:
        return ReviewCard.fresh(
            question_id,
            channel=channel,
            difficulty=difficulty,
            ease_factor=self.scheduler.config.initial_ease,
        )

    def _reset_corrupted(self, question_id: str, error: StorageCorruption, now: datetime) -> ReviewCard:
        with self.store.lock():
            # Another writer may have replaced the record since it was read
            try:
                current = self.store.get(question_id)
            except StorageCorruption:
                current = None
            if current is not None:
                return current

            logger.warning(f"Resetting corrupted card {question_id}: {error.reason}")
            card = self._fresh_card(question_id)
            card.due_at = now
            self.store.put(card)
            return card

    def load_cards(self, now: datetime | None = None, repair: bool = True) -> list[ReviewCard]:
        """
        Load every tracked card, one at a time.

        Args:
            now: Due time given to repaired cards
            repair: Reset corrupted cards to New (True) or skip them (False)

        Returns:
            Decodable cards, plus repaired ones when ``repair`` is set
        """
        now = as_aware(now)
        cards: list[ReviewCard] = []

        for question_id in self.store.list_ids():
            try:
                card = self.store.get(question_id)
            except StorageCorruption as e:
                if not repair:
                    logger.warning(f"Skipping corrupted card {question_id}: {e.reason}")
                    continue
                card = self._reset_corrupted(question_id, e, now)
            if card is not None:
                cards.append(card)

        return cards

    # =========================================================================
    # Queries
    # =========================================================================

    def get_due_cards(self, now: datetime | None = None, limit: int | None = None) -> list[ReviewCard]:
        """
        Cards due at or before ``now``.

        Sorted by due time ascending, then mastery rank ascending, then
        question id so the order is fully deterministic.

        Args:
            now: Reference time (defaults to the current UTC time)
            limit: Maximum cards to return

        Returns:
            Ordered list of due cards
        """
        now = as_aware(now)
        due = [card for card in self.load_cards(now) if card.is_due(now)]
        due.sort(key=lambda c: (as_aware(c.due_at), c.mastery_level.rank, c.question_id))

        logger.debug(f"Found {len(due)} due cards")
        return due[:limit] if limit is not None else due

    def get_cards_due_in_range(self, days: int, now: datetime | None = None) -> list[ReviewCard]:
        """Cards that will be due within ``days`` days of ``now``."""
        if days < 0:
            raise InvalidArgument(f"days must be non-negative, got {days}")
        return self.get_due_cards(as_aware(now) + timedelta(days=days))

    def is_tracked(self, question_id: str) -> bool:
        """True once a question has been reviewed at least once."""
        return question_id in self.store.list_ids()

    def find_orphans(self) -> list[str]:
        """Tracked question IDs the catalog no longer knows about."""
        if self.catalog is None:
            return []
        return [qid for qid in self.store.list_ids() if not self.catalog.exists(qid)]

    def preview(self, question_id: str) -> dict[Rating, str]:
        """Interval each rating would produce for a question."""
        try:
            card = self.store.get(question_id)
        except StorageCorruption as e:
            logger.warning(f"Previewing corrupted card {question_id} as new: {e.reason}")
            card = None
        return self.scheduler.preview(card)

    # =========================================================================
    # Recording
    # =========================================================================

    def record_review(
        self,
        question_id: str,
        channel: str,
        difficulty: str,
        rating: Rating | str,
        now: datetime | None = None,
    ) -> ReviewResult:
        """
        Record a review and update scheduling state.

        Args:
            question_id: Reviewed question (unknown IDs start a new card)
            channel: Catalog channel, used only when creating the card
            difficulty: Catalog difficulty, used only when creating the card
            rating: Confidence rating
            now: Review time (defaults to the current UTC time)

        Returns:
            ReviewResult with the updated card and XP earned

        Raises:
            InvalidArgument: If the rating is invalid; nothing is written
        """
        rating = Rating.coerce(rating)
        now = as_aware(now)

        if self.catalog is not None and not self.catalog.exists(question_id):
            logger.warning(f"Question {question_id} is not in the catalog; scheduling anyway")

        with self.store.lock():
            try:
                card = self.store.get(question_id)
            except StorageCorruption as e:
                card = self._reset_corrupted(question_id, e, now)

            if card is None:
                card = self._fresh_card(question_id, channel, difficulty)

            prior_mastery = card.mastery_level
            updated = self.scheduler.schedule(card, rating, now)

            self.store.put(updated)
            self.store.log_review(ReviewEvent(question_id, rating, now))
            self.streaks.record_activity(now)

            level_before = self.xp.get_user_xp().level
            xp_earned = self.xp.calculate_xp(rating, prior_mastery)
            progress = self.xp.add_xp(xp_earned)

        logger.debug(
            f"Recorded review for {question_id}: rating={rating.value}, "
            f"due_at={updated.due_at}, xp=+{xp_earned}"
        )

        return ReviewResult(
            card=updated,
            xp_earned=xp_earned,
            prior_mastery=prior_mastery,
            level_before=level_before,
            level_after=progress.level,
        )

    def start_session(self, now: datetime | None = None, limit: int | None = None) -> ReviewSession:
        """Snapshot the due queue into a new session."""
        cards = self.get_due_cards(now, limit=limit)
        logger.info(f"Session built: {len(cards)} due cards")
        return ReviewSession(controller=self, queue=cards)


@dataclass
class ReviewSession:
    """
    One sitting over a snapshot of due cards.

    Skipping defers a card without touching it; answering goes through
    ReviewController.record_review.
    """

    controller: ReviewController
    queue: list[ReviewCard] = field(default_factory=list)
    position: int = 0
    reviewed: list[ReviewResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def current(self) -> ReviewCard | None:
        if self.position >= len(self.queue):
            return None
        return self.queue[self.position]

    @property
    def remaining(self) -> int:
        return max(0, len(self.queue) - self.position)

    @property
    def is_complete(self) -> bool:
        return self.current is None

    @property
    def xp_earned(self) -> int:
        return sum(r.xp_earned for r in self.reviewed)

    def answer(self, rating: Rating | str, now: datetime | None = None) -> ReviewResult:
        """Rate the current card and advance."""
        card = self.current
        if card is None:
            raise InvalidArgument("Session is complete; no card to answer")

        result = self.controller.record_review(
            card.question_id, card.channel, card.difficulty, rating, now
        )
        self.reviewed.append(result)
        self.position += 1
        return result

    def skip(self) -> ReviewCard | None:
        """
        Defer the current card and advance.

        Returns:
            The next card, or None when the session is over
        """
        card = self.current
        if card is not None:
            self.skipped.append(card.question_id)
            self.position += 1
        return self.current
