"""
Unit tests for ReviewController and ReviewSession.

Uses the in-memory store so no database is required.
"""

from datetime import timedelta

import pytest

from recall.core.catalog import StaticCatalog
from recall.core.errors import InvalidArgument, StorageCorruption
from recall.core.mastery import MasteryLevel
from recall.core.ratings import Rating
from recall.delivery.session import ReviewController
from recall.delivery.state_store import MemoryStateStore


class TestDueCards:
    def test_orders_by_due_then_mastery(self, controller, store, make_card, now):
        store.put(make_card("late", due_in_days=-1, mastery_level=MasteryLevel.MATURE))
        store.put(make_card("weak", due_in_days=-3, mastery_level=MasteryLevel.LEARNING))
        store.put(make_card("strong", due_in_days=-3, mastery_level=MasteryLevel.MASTERED,
                            interval_days=80))
        store.put(make_card("future", due_in_days=2))

        due = controller.get_due_cards(now)

        assert [c.question_id for c in due] == ["weak", "strong", "late"]

    def test_never_returns_future_cards(self, controller, store, make_card, now):
        for i, offset in enumerate([-5, -0.5, 0, 0.01, 3]):
            store.put(make_card(f"q-{i}", due_in_days=offset))

        due = controller.get_due_cards(now)

        assert all(c.due_at <= now for c in due)
        assert [c.question_id for c in due] == ["q-0", "q-1", "q-2"]

    def test_ties_are_deterministic(self, controller, store, make_card, now):
        for qid in ["c", "a", "b"]:
            store.put(make_card(qid, due_in_days=-1))

        assert [c.question_id for c in controller.get_due_cards(now)] == ["a", "b", "c"]

    def test_limit(self, controller, store, make_card, now):
        for i in range(5):
            store.put(make_card(f"q-{i}", due_in_days=-i))

        assert len(controller.get_due_cards(now, limit=2)) == 2

    def test_corrupted_card_is_reset_not_fatal(self, controller, store, make_card, now):
        store.put(make_card("good", due_in_days=-1))
        store.records["broken"] = {"question_id": "broken", "ease_factor": "??"}

        due = controller.get_due_cards(now)

        assert {c.question_id for c in due} == {"good", "broken"}
        repaired = store.get("broken")
        assert repaired.mastery_level == MasteryLevel.NEW
        assert repaired.is_new
        assert repaired.due_at == now

    def test_reset_keeps_card_written_since_failed_read(self, make_card, now):
        card = make_card(due_in_days=-1)

        class RepairedElsewhere(MemoryStateStore):
            def get(self, question_id):
                if self.records.get(question_id) == "garbage":
                    # Another writer replaces the record right after this read fails
                    self.records[question_id] = card.to_dict()
                    raise StorageCorruption(question_id, "unreadable")
                return super().get(question_id)

        store = RepairedElsewhere()
        store.records["q-1"] = "garbage"

        due = ReviewController(store).get_due_cards(now)

        assert due == [card]
        assert store.get("q-1") == card

    def test_cards_due_in_range(self, controller, store, make_card, now):
        store.put(make_card("soon", due_in_days=2))
        store.put(make_card("later", due_in_days=10))

        ids = [c.question_id for c in controller.get_cards_due_in_range(7, now)]

        assert ids == ["soon"]

    def test_negative_range_rejected(self, controller, now):
        with pytest.raises(InvalidArgument):
            controller.get_cards_due_in_range(-1, now)


class TestRecordReview:
    def test_unknown_question_creates_card(self, controller, store, now):
        result = controller.record_review("q-new", "frontend", "beginner", Rating.GOOD, now)

        card = store.get("q-new")
        assert card == result.card
        assert card.channel == "frontend"
        assert card.difficulty == "beginner"
        assert card.interval_days == 3
        assert card.mastery_level == MasteryLevel.LEARNING
        assert result.prior_mastery == MasteryLevel.NEW
        assert result.xp_earned == 10

    def test_existing_card_keeps_catalog_fields(self, controller, store, make_card, now):
        store.put(make_card(channel="database"))

        result = controller.record_review("q-1", "ignored", "ignored", Rating.GOOD, now)

        assert result.card.channel == "database"

    def test_records_activity_xp_and_log(self, controller, store, now):
        controller.record_review("q-1", "", "", Rating.EASY, now)

        assert store.list_days() == ["2024-03-10"]
        assert store.get_xp() == 15
        assert [e.rating for e in store.list_reviews()] == [Rating.EASY]

    def test_xp_uses_prior_mastery(self, controller, store, make_card, now):
        store.put(make_card(mastery_level=MasteryLevel.MATURE, interval_days=30))

        result = controller.record_review("q-1", "", "", Rating.EASY, now)

        assert result.xp_earned == 22

    def test_invalid_rating_writes_nothing(self, controller, store, make_card, now):
        card = make_card()
        store.put(card)

        with pytest.raises(InvalidArgument):
            controller.record_review("q-1", "", "", "meh", now)

        assert store.get("q-1") == card
        assert store.list_days() == []
        assert store.get_xp() == 0
        assert store.list_reviews() == []

    def test_corrupted_card_restarts_as_first_review(self, controller, store, now):
        store.records["q-1"] = ["not", "a", "dict"]

        result = controller.record_review("q-1", "", "", Rating.GOOD, now)

        assert result.card.interval_days == 3
        assert result.card.total_reviews == 1

    def test_level_up_reported(self, controller, store, now):
        store.set_xp(95)

        result = controller.record_review("q-1", "", "", Rating.GOOD, now)

        assert result.level_before == 1
        assert result.level_after == 2
        assert result.leveled_up

    def test_missing_catalog_entry_does_not_block(self, store, now):
        controller = ReviewController(store, catalog=StaticCatalog(["q-1"]))

        controller.record_review("q-gone", "", "", Rating.GOOD, now)

        assert store.get("q-gone") is not None
        assert controller.find_orphans() == ["q-gone"]

    def test_is_tracked(self, controller, now):
        assert not controller.is_tracked("q-1")
        controller.record_review("q-1", "", "", Rating.HARD, now)
        assert controller.is_tracked("q-1")

    def test_preview_of_unknown_question(self, controller):
        assert controller.preview("q-x")[Rating.GOOD] == "3d"


class TestReviewSession:
    def test_answer_advances_and_persists(self, controller, store, make_card, now):
        store.put(make_card("a", due_in_days=-2))
        store.put(make_card("b", due_in_days=-1))
        session = controller.start_session(now)

        result = session.answer(Rating.GOOD, now)

        assert result.card.question_id == "a"
        assert session.current.question_id == "b"
        assert store.get("a").due_at > now

    def test_skip_does_not_touch_card(self, controller, store, make_card, now):
        card = make_card("a", due_in_days=-1)
        store.put(card)
        session = controller.start_session(now)

        next_card = session.skip()

        assert next_card is None
        assert session.is_complete
        assert session.skipped == ["a"]
        assert store.get("a") == card
        assert store.list_reviews() == []
        assert store.get_xp() == 0

    def test_session_totals(self, controller, store, make_card, now):
        for qid in ["a", "b", "c"]:
            store.put(make_card(qid, due_in_days=-1))
        session = controller.start_session(now)

        session.answer(Rating.EASY, now)
        session.skip()
        session.answer(Rating.AGAIN, now + timedelta(minutes=1))

        assert session.is_complete
        assert session.remaining == 0
        assert len(session.reviewed) == 2
        assert session.xp_earned == 18  # Easy on a Young card: 15 x 1.2

    def test_answer_after_completion_rejected(self, controller, now):
        session = controller.start_session(now)

        with pytest.raises(InvalidArgument):
            session.answer(Rating.GOOD, now)
