"""
Unit tests for the Scheduler.

Tests:
- First-review initial intervals
- Ease-factor arithmetic for each rating
- Ease floor and the never-grow rule on Again
- Mastery transitions driven by scheduling
- Previews do not mutate the card
"""

from dataclasses import replace
from datetime import timedelta

import pytest

from recall.core.errors import InvalidArgument
from recall.core.mastery import MasteryLevel
from recall.core.ratings import Rating
from recall.delivery.scheduler import Scheduler, SchedulerConfig, format_interval
from recall.delivery.state_store import ReviewCard


@pytest.fixture
def scheduler():
    return Scheduler()


class TestFirstReview:
    """A card with no history uses rating-keyed intervals."""

    @pytest.mark.parametrize(
        "rating, interval, repetitions, lapses",
        [
            (Rating.AGAIN, 0, 0, 1),
            (Rating.HARD, 1, 1, 0),
            (Rating.GOOD, 3, 1, 0),
            (Rating.EASY, 7, 1, 0),
        ],
    )
    def test_initial_intervals(self, scheduler, now, rating, interval, repetitions, lapses):
        card = scheduler.schedule(None, rating, now, question_id="q-new")

        assert card.question_id == "q-new"
        assert card.interval_days == interval
        assert card.repetitions == repetitions
        assert card.lapses == lapses
        assert card.ease_factor == 2.5
        assert card.due_at == now + timedelta(days=interval)
        assert card.last_reviewed_at == now
        assert card.total_reviews == 1

    def test_good_first_review_is_learning(self, scheduler, now):
        """Brand-new card rated Good: 3 days, Learning, due in 3 days."""
        card = scheduler.schedule(ReviewCard.fresh("q-1"), Rating.GOOD, now)

        assert card.interval_days == 3
        assert card.mastery_level == MasteryLevel.LEARNING
        assert card.due_at == now + timedelta(days=3)

    def test_again_first_review_is_due_immediately(self, scheduler, now):
        card = scheduler.schedule(None, Rating.AGAIN, now, question_id="q-1")

        assert card.due_at == now
        assert card.mastery_level == MasteryLevel.NEW

    def test_new_card_requires_question_id(self, scheduler, now):
        with pytest.raises(InvalidArgument):
            scheduler.schedule(None, Rating.GOOD, now)

    def test_new_card_survives_round_trip(self, scheduler, now):
        card = scheduler.schedule(None, Rating.GOOD, now, question_id="q-new")

        assert ReviewCard.from_dict(card.to_dict()) == card

    def test_fresh_card_keeps_catalog_fields(self, scheduler, now):
        fresh = ReviewCard.fresh("q-1", channel="algorithms", difficulty="advanced")
        card = scheduler.schedule(fresh, Rating.EASY, now)

        assert card.channel == "algorithms"
        assert card.difficulty == "advanced"


class TestSubsequentReviews:
    """Ease-factor arithmetic on cards with history."""

    def test_again_shrinks_interval_and_demotes(self, scheduler, make_card, now):
        """Interval 10, ease 2.5, Again: 2 days, ease 2.3, one more lapse."""
        card = make_card(interval_days=10, ease_factor=2.5, lapses=1)

        updated = scheduler.schedule(card, Rating.AGAIN, now)

        assert updated.interval_days == 2
        assert updated.ease_factor == pytest.approx(2.3)
        assert updated.lapses == 2
        assert updated.repetitions == 0
        assert updated.mastery_level == MasteryLevel.LEARNING

    def test_again_interval_floor_is_one_day(self, scheduler, make_card, now):
        card = make_card(interval_days=3)
        assert scheduler.schedule(card, Rating.AGAIN, now).interval_days == 1

    def test_again_never_increases_interval(self, scheduler, now):
        card = scheduler.schedule(None, Rating.AGAIN, now, question_id="q-1")
        again = scheduler.schedule(card, Rating.AGAIN, now + timedelta(minutes=5))

        assert again.interval_days == 0
        assert again.lapses == 2

    def test_hard(self, scheduler, make_card, now):
        card = make_card(interval_days=10, ease_factor=2.5, repetitions=2)

        updated = scheduler.schedule(card, Rating.HARD, now)

        assert updated.interval_days == pytest.approx(12)
        assert updated.ease_factor == pytest.approx(2.35)
        assert updated.repetitions == 3

    def test_good(self, scheduler, make_card, now):
        card = make_card(interval_days=10, ease_factor=2.5, repetitions=2)

        updated = scheduler.schedule(card, Rating.GOOD, now)

        assert updated.interval_days == pytest.approx(25)
        assert updated.ease_factor == 2.5
        assert updated.repetitions == 3
        assert updated.due_at == now + timedelta(days=updated.interval_days)

    def test_easy_uses_prior_ease(self, scheduler, make_card, now):
        card = make_card(interval_days=10, ease_factor=2.5, repetitions=2)

        updated = scheduler.schedule(card, Rating.EASY, now)

        assert updated.interval_days == pytest.approx(10 * 2.5 * 1.3)
        assert updated.ease_factor == pytest.approx(2.65)

    def test_ease_never_below_floor(self, scheduler, make_card, now):
        card = make_card(ease_factor=1.35)

        assert scheduler.schedule(card, Rating.AGAIN, now).ease_factor == 1.3
        assert scheduler.schedule(card, Rating.HARD, now).ease_factor == 1.3

    def test_interval_floor_after_lapse(self, scheduler, now):
        card = scheduler.schedule(None, Rating.AGAIN, now, question_id="q-1")

        assert scheduler.schedule(card, Rating.GOOD, now).interval_days == 1
        assert scheduler.schedule(card, Rating.HARD, now).interval_days == 1

    def test_input_card_is_not_mutated(self, scheduler, make_card, now):
        card = make_card()
        snapshot = replace(card)

        scheduler.schedule(card, Rating.EASY, now)

        assert card == snapshot

    def test_invalid_rating_rejected(self, scheduler, make_card, now):
        with pytest.raises(InvalidArgument):
            scheduler.schedule(make_card(), "perfect", now)

    def test_rating_strings_accepted(self, scheduler, make_card, now):
        card = make_card()
        assert scheduler.schedule(card, "GOOD", now) == scheduler.schedule(card, Rating.GOOD, now)


class TestProperties:
    """Invariants that must hold for any card."""

    @pytest.mark.parametrize("interval", [0, 1, 2.5, 7, 10, 33, 120, 400])
    @pytest.mark.parametrize("level", list(MasteryLevel))
    def test_again_never_grows_interval_or_mastery(self, scheduler, make_card, now, interval, level):
        card = make_card(interval_days=interval, mastery_level=level)

        updated = scheduler.schedule(card, Rating.AGAIN, now)

        assert updated.interval_days <= card.interval_days
        assert updated.mastery_level.rank <= card.mastery_level.rank

    def test_repeated_easy_grows_until_mastered(self, scheduler, now):
        card = scheduler.schedule(None, Rating.EASY, now, question_id="q-1")
        previous = card.interval_days
        at = now

        for _ in range(6):
            at = card.due_at
            card = scheduler.schedule(card, Rating.EASY, at)
            assert card.interval_days > previous
            previous = card.interval_days

        assert card.mastery_level == MasteryLevel.MASTERED
        assert card.interval_days >= 60

    def test_mastered_implies_long_interval(self, scheduler, now):
        card = scheduler.schedule(None, Rating.HARD, now, question_id="q-1")
        for _ in range(30):
            card = scheduler.schedule(card, Rating.HARD, card.due_at)
            if card.mastery_level == MasteryLevel.MASTERED:
                assert card.interval_days >= 60

    def test_due_never_before_last_review(self, scheduler, make_card, now):
        for rating in Rating:
            updated = scheduler.schedule(make_card(), rating, now)
            assert updated.due_at >= updated.last_reviewed_at


class TestPreview:
    """Previews run the same arithmetic without committing."""

    def test_preview_new_card(self, scheduler):
        assert scheduler.preview(None) == {
            Rating.AGAIN: "now",
            Rating.HARD: "1d",
            Rating.GOOD: "3d",
            Rating.EASY: "1w",
        }

    def test_preview_matches_schedule(self, scheduler, make_card, now):
        card = make_card(interval_days=10, ease_factor=2.5)

        previews = scheduler.preview(card)

        for rating in Rating:
            expected = format_interval(scheduler.schedule(card, rating, now).interval_days)
            assert previews[rating] == expected

    def test_preview_does_not_mutate(self, scheduler, make_card):
        card = make_card()
        snapshot = replace(card)

        scheduler.preview(card)

        assert card == snapshot


class TestFormatInterval:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (0, "now"),
            (0.5, "now"),
            (1, "1d"),
            (3, "3d"),
            (7, "1w"),
            (14, "2w"),
            (29, "4w"),
            (30, "1mo"),
            (90, "3mo"),
            (365, "1.0y"),
        ],
    )
    def test_format(self, days, expected):
        assert format_interval(days) == expected


class TestConfig:
    def test_custom_initial_intervals(self, now):
        config = SchedulerConfig()
        config.initial_intervals[Rating.GOOD] = 2.0
        scheduler = Scheduler(config)

        assert scheduler.schedule(None, Rating.GOOD, now, question_id="q").interval_days == 2

    def test_default_configs_are_independent(self):
        a, b = SchedulerConfig(), SchedulerConfig()
        a.initial_intervals[Rating.EASY] = 10.0
        assert b.initial_intervals[Rating.EASY] == 7.0
