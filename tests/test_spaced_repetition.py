"""
Tests for spaced repetition functionality.
"""

from datetime import datetime, timedelta

import pytest

from cardstack.spaced_repetition import (
    FACTOR,
    FSRS,
    CardState,
    FSRSParameters,
    Outcome,
    Rating,
    Scheduler,
    SchedulerState,
    SchedulerStateError,
    rating_from_outcome,
    validate_state,
)

T0 = datetime(2025, 1, 15, 12, 0, 0)


class TestOutcomeConversion:
    """Test outcome conversion to the algorithm's ratings."""

    def test_ok_is_good(self):
        assert rating_from_outcome(Outcome.OK) == Rating.GOOD

    def test_fail_is_again(self):
        assert rating_from_outcome(Outcome.FAIL) == Rating.AGAIN

    def test_string_outcomes_accepted(self):
        assert rating_from_outcome("ok") == Rating.GOOD
        assert rating_from_outcome("fail") == Rating.AGAIN

    def test_unknown_outcome_rejected(self):
        with pytest.raises(ValueError):
            rating_from_outcome("maybe")


class TestFSRSParameters:
    """Test FSRSParameters default values."""

    def test_default_parameters(self):
        parameters = FSRSParameters()
        assert len(parameters.weights) == 19
        assert parameters.request_retention == 0.9
        assert parameters.maximum_interval_days == 36500
        assert parameters.again_step == timedelta(minutes=1)
        assert parameters.good_step == timedelta(minutes=10)
        assert parameters.relearning_step == timedelta(minutes=5)

    def test_factor_matches_decay(self):
        assert FACTOR == pytest.approx(19 / 81)


class TestNewCards:
    """Test the first review of a card."""

    def test_good_starts_learning_for_ten_minutes(self):
        state = FSRS().next_state(SchedulerState.new(T0), Rating.GOOD, T0)

        assert state.state == CardState.LEARNING
        assert state.due == T0 + timedelta(minutes=10)
        assert state.stability == pytest.approx(3.1262)
        assert state.difficulty == pytest.approx(5.3146, abs=1e-3)
        assert state.reps == 1
        assert state.lapses == 0
        assert state.last_review == T0

    def test_again_is_due_in_one_minute(self):
        state = FSRS().next_state(SchedulerState.new(T0), Rating.AGAIN, T0)

        assert state.state == CardState.LEARNING
        assert state.due == T0 + timedelta(minutes=1)
        assert state.stability == pytest.approx(0.4072)
        assert state.difficulty == pytest.approx(7.2102)

    def test_hard_is_due_in_five_minutes(self):
        state = FSRS().next_state(SchedulerState.new(T0), Rating.HARD, T0)

        assert state.state == CardState.LEARNING
        assert state.due == T0 + timedelta(minutes=5)

    def test_easy_goes_straight_to_review(self):
        state = FSRS().next_state(SchedulerState.new(T0), Rating.EASY, T0)

        assert state.state == CardState.REVIEW
        assert state.scheduled_days == 15
        assert state.due == T0 + timedelta(days=15)

    def test_maximum_interval_is_respected(self):
        fsrs = FSRS(FSRSParameters(maximum_interval_days=2))
        state = fsrs.next_state(SchedulerState.new(T0), Rating.EASY, T0)

        assert state.due == T0 + timedelta(days=2)


class TestLearningAndReview:
    """Test reviews of cards that were already studied."""

    def _learning_state(self):
        return FSRS().next_state(SchedulerState.new(T0), Rating.GOOD, T0)

    def test_good_while_learning_graduates(self):
        learning = self._learning_state()
        now = T0 + timedelta(minutes=10)

        state = FSRS().next_state(learning, Rating.GOOD, now)

        assert state.state == CardState.REVIEW
        assert state.stability == pytest.approx(4.351, abs=1e-3)
        assert state.scheduled_days == 4
        assert state.due == now + timedelta(days=4)
        assert state.reps == 2

    def test_again_while_learning_stays_in_learning(self):
        learning = self._learning_state()
        now = T0 + timedelta(minutes=10)

        state = FSRS().next_state(learning, Rating.AGAIN, now)

        assert state.state == CardState.LEARNING
        assert state.due == now + timedelta(minutes=5)
        assert state.lapses == 0

    def test_review_good_grows_the_interval(self):
        fsrs = FSRS()
        review = fsrs.next_state(self._learning_state(), Rating.GOOD, T0 + timedelta(minutes=10))
        now = review.due

        state = fsrs.next_state(review, Rating.GOOD, now)

        assert state.state == CardState.REVIEW
        assert state.elapsed_days == 4
        assert state.stability > review.stability
        assert state.scheduled_days > review.scheduled_days

    def test_review_again_lapses_into_relearning(self):
        fsrs = FSRS()
        review = fsrs.next_state(self._learning_state(), Rating.GOOD, T0 + timedelta(minutes=10))
        now = review.due

        state = fsrs.next_state(review, Rating.AGAIN, now)

        assert state.state == CardState.RELEARNING
        assert state.lapses == 1
        assert state.due == now + timedelta(minutes=5)
        assert state.stability < review.stability

    def test_relearning_good_returns_to_review(self):
        fsrs = FSRS()
        review = fsrs.next_state(self._learning_state(), Rating.GOOD, T0 + timedelta(minutes=10))
        relearning = fsrs.next_state(review, Rating.AGAIN, review.due)

        state = fsrs.next_state(relearning, Rating.GOOD, relearning.due)

        assert state.state == CardState.REVIEW
        assert state.lapses == 1
        assert state.due >= relearning.due + timedelta(days=1)

    def test_due_is_never_before_review_time(self):
        fsrs = FSRS()
        state = SchedulerState.new(T0)
        now = T0
        for rating in (Rating.GOOD, Rating.AGAIN, Rating.GOOD, Rating.GOOD, Rating.AGAIN):
            state = fsrs.next_state(state, rating, now)
            assert state.due >= now
            now = state.due

    def test_difficulty_stays_in_range(self):
        fsrs = FSRS()
        state = SchedulerState.new(T0)
        now = T0
        for _ in range(20):
            state = fsrs.next_state(state, Rating.AGAIN, now)
            assert 1.0 <= state.difficulty <= 10.0
            now = state.due


class TestStateValidation:
    """Test rejection of states the algorithm cannot have produced."""

    def test_new_state_is_valid(self):
        validate_state(SchedulerState.new(T0))

    def test_negative_reps_rejected(self):
        with pytest.raises(SchedulerStateError):
            validate_state(SchedulerState(due=T0, reps=-1))

    def test_reviewed_state_without_last_review_rejected(self):
        state = SchedulerState(
            due=T0, stability=3.0, difficulty=5.0, reps=1, state=CardState.REVIEW
        )
        with pytest.raises(SchedulerStateError):
            validate_state(state)

    def test_non_positive_stability_rejected(self):
        state = SchedulerState(
            due=T0, difficulty=5.0, reps=1, state=CardState.REVIEW, last_review=T0
        )
        with pytest.raises(SchedulerStateError):
            FSRS().next_state(state, Rating.GOOD, T0)

    def test_difficulty_out_of_range_rejected(self):
        state = SchedulerState(
            due=T0, stability=3.0, difficulty=11.0, reps=1, state=CardState.LEARNING, last_review=T0
        )
        with pytest.raises(SchedulerStateError):
            FSRS().next_state(state, Rating.GOOD, T0)


class TestScheduler:
    """Test the outcome-based scheduler facade."""

    def test_apply_outcome_returns_state_and_due_date(self):
        result = Scheduler().apply_outcome(SchedulerState.new(T0), Outcome.OK, T0)

        assert result.due_date == T0 + timedelta(minutes=10)
        assert result.state.due == result.due_date

    def test_apply_outcome_does_not_mutate_input(self):
        state = SchedulerState.new(T0)
        Scheduler().apply_outcome(state, Outcome.FAIL, T0)

        assert state.reps == 0
        assert state.state == CardState.NEW

    def test_custom_algorithm(self):
        class FixedDelay:
            def next_state(self, state, rating, now):
                return state.model_copy(update={"due": now + timedelta(hours=rating)})

        result = Scheduler(FixedDelay()).apply_outcome(SchedulerState.new(T0), Outcome.OK, T0)

        assert result.due_date == T0 + timedelta(hours=3)
