"""
Tests for the SM-2 style scheduler.

Run with:
    pytest backend/tests/test_scheduler.py -v
"""
import random
from datetime import timedelta

import pytest

from prepdeck.config import Settings
from prepdeck.errors import NotFoundError, ValidationError
from prepdeck.models.review import Grade, ReviewState
from prepdeck.services.scheduler import ReviewPolicy, Scheduler, next_state, round_days


class TestGoodProgression:
    def test_three_goods_from_default_ease(self, repo, make_entry, scheduler, now):
        repo.add(make_entry("beh-1"), now=now)
        assert repo.state("beh-1").ease_factor == 2.5

        first = scheduler.grade(repo, "beh-1", Grade.GOOD, now=now)
        assert first.interval_days == pytest.approx(1.0)
        assert first.next_due == now + timedelta(days=1)

        t1 = first.next_due
        second = scheduler.grade(repo, "beh-1", Grade.GOOD, now=t1)
        assert second.interval_days == pytest.approx(2.5)
        assert second.next_due == t1 + timedelta(days=3)

        t2 = second.next_due
        third = scheduler.grade(repo, "beh-1", Grade.GOOD, now=t2)
        assert third.interval_days == pytest.approx(6.25)
        assert third.due_in_days == 6
        assert third.next_due == t2 + timedelta(days=6)

        state = repo.state("beh-1")
        assert state.last_reviewed == t2
        assert state.consecutive_successes == 3
        assert state.ease_factor == pytest.approx(2.5)
        assert state.review_count == 3

    def test_fail_after_two_goods_resets(self, repo, make_entry, scheduler, now):
        repo.add(make_entry(), now=now)
        scheduler.grade(repo, "beh-1", "good", now=now)
        scheduler.grade(repo, "beh-1", "good", now=now + timedelta(days=1))

        result = scheduler.grade(repo, "beh-1", "fail", now=now + timedelta(days=4))

        state = repo.state("beh-1")
        assert result.interval_days == 1.0
        assert state.interval_days == 1.0
        assert state.consecutive_successes == 0
        assert state.lapse_count == 1
        assert state.ease_factor == pytest.approx(2.3)
        assert state.next_due == now + timedelta(days=5)


class TestGradeRules:
    @pytest.mark.parametrize("prior_interval", [1.0, 2.5, 17.3, 240.0])
    def test_fail_always_resets_to_one_day(self, now, prior_interval):
        state = ReviewState(
            last_reviewed=now - timedelta(days=prior_interval),
            next_due=now,
            interval_days=prior_interval,
            consecutive_successes=4,
            ease_factor=3.1,
        )
        new = next_state(state, Grade.FAIL, now, ReviewPolicy())
        assert new.interval_days == 1.0
        assert new.next_due == now + timedelta(days=1)
        assert new.consecutive_successes == 0

    def test_hard(self, now):
        state = ReviewState(last_reviewed=now, next_due=now, interval_days=5.0, ease_factor=2.5)
        new = next_state(state, Grade.HARD, now, ReviewPolicy())
        assert new.interval_days == pytest.approx(6.0)
        assert new.ease_factor == pytest.approx(2.35)

    def test_hard_interval_never_below_one_day(self, now):
        state = ReviewState(last_reviewed=now, next_due=now, interval_days=0.5, ease_factor=2.5)
        new = next_state(state, Grade.HARD, now, ReviewPolicy())
        assert new.interval_days == 1.0

    def test_easy(self, now):
        state = ReviewState(last_reviewed=now, next_due=now, interval_days=2.0, ease_factor=2.5)
        new = next_state(state, Grade.EASY, now, ReviewPolicy())
        assert new.interval_days == pytest.approx(6.5)
        assert new.ease_factor == pytest.approx(2.65)
        assert new.next_due == now + timedelta(days=7)

    def test_easy_ease_capped(self, now):
        state = ReviewState(last_reviewed=now, next_due=now, interval_days=2.0, ease_factor=4.95)
        new = next_state(state, Grade.EASY, now, ReviewPolicy())
        assert new.ease_factor == 5.0

    def test_fail_ease_floored(self, now):
        state = ReviewState(last_reviewed=now, next_due=now, interval_days=2.0, ease_factor=1.4)
        new = next_state(state, Grade.FAIL, now, ReviewPolicy())
        assert new.ease_factor == 1.3

    def test_first_review_is_one_day_for_any_grade(self, now):
        for grade in Grade:
            new = next_state(ReviewState.initial(now), grade, now, ReviewPolicy())
            assert new.interval_days == 1.0
            assert new.last_reviewed == now

    def test_ease_stays_in_bounds_for_any_sequence(self, now):
        rng = random.Random(20261019)
        policy = ReviewPolicy()
        grades = list(Grade)
        for _ in range(50):
            state = ReviewState.initial(now)
            t = now
            for _ in range(40):
                state = next_state(state, rng.choice(grades), t, policy)
                assert 1.3 <= state.ease_factor <= 5.0
                assert state.next_due >= state.last_reviewed
                t = state.next_due

    def test_max_interval_cap(self, now):
        policy = ReviewPolicy(max_interval_days=30)
        state = ReviewState(last_reviewed=now, next_due=now, interval_days=25.0, ease_factor=2.5)
        new = next_state(state, Grade.GOOD, now, policy)
        assert new.interval_days == 30
        assert new.next_due == now + timedelta(days=30)


class TestScheduler:
    def test_unknown_id_leaves_repository_unchanged(self, repo, make_entry, scheduler, now):
        repo.add(make_entry(), now=now)
        before = repo.items()
        with pytest.raises(NotFoundError) as exc_info:
            scheduler.grade(repo, "xyz", "good", now=now)
        assert exc_info.value.entry_id == "xyz"
        assert repo.items() == before

    def test_early_review_reschedules_from_now(self, repo, make_entry, scheduler, now):
        repo.add(make_entry(), now=now)
        scheduler.grade(repo, "beh-1", "good", now=now)
        early = now + timedelta(hours=2)
        result = scheduler.grade(repo, "beh-1", "good", now=early)
        assert repo.state("beh-1").last_reviewed == early
        assert result.next_due == early + timedelta(days=3)

    def test_invalid_grade_rejected_before_any_change(self, repo, make_entry, scheduler, now):
        repo.add(make_entry(), now=now)
        before = repo.state("beh-1")
        with pytest.raises(ValidationError) as exc_info:
            scheduler.grade(repo, "beh-1", "perfect", now=now)
        assert exc_info.value.field == "grade"
        assert repo.state("beh-1") == before

    def test_custom_policy(self, repo, make_entry, now):
        scheduler = Scheduler(ReviewPolicy(fail_ease_penalty=0.5, initial_ease=2.5))
        repo.add(make_entry(), now=now)
        scheduler.grade(repo, "beh-1", "fail", now=now)
        assert repo.state("beh-1").ease_factor == pytest.approx(2.0)


class TestGradeParsing:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("fail", Grade.FAIL),
            ("Again", Grade.FAIL),
            (0, Grade.FAIL),
            ("1", Grade.HARD),
            (2, Grade.GOOD),
            (" EASY ", Grade.EASY),
            (Grade.GOOD, Grade.GOOD),
        ],
    )
    def test_parse(self, raw, expected):
        assert Grade.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["perfect", 4, -1, True, None, ""])
    def test_parse_rejects(self, raw):
        with pytest.raises(ValidationError):
            Grade.parse(raw)


class TestPolicy:
    def test_from_settings(self):
        policy = ReviewPolicy.from_settings(Settings(min_ease=1.5, hard_ease_penalty=0.1))
        assert policy.min_ease == 1.5
        assert policy.hard_ease_penalty == 0.1
        assert policy.max_ease == 5.0

    def test_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            ReviewPolicy(min_ease=3.0, max_ease=2.0, initial_ease=2.5)

    @pytest.mark.parametrize("interval, days", [(1.0, 1), (2.5, 3), (6.25, 6), (0.2, 1), (7.5, 8)])
    def test_round_days(self, interval, days):
        assert round_days(interval) == days
