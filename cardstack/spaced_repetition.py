"""
FSRS spaced repetition algorithm implementation.

Free Spaced Repetition Scheduler (FSRS-5) with the default parameter set:
- Per-card memory state: stability (days until recall probability drops to
  the requested retention) and difficulty (1-10)
- Short learning steps for new and lapsed cards (minutes)
- Review intervals derived from stability and the requested retention
- Rating scale: Again(1) -> Hard(2) -> Good(3) -> Easy(4)

Only two outcomes are exposed to learners: ``ok`` (Good) and ``fail`` (Again).
The algorithm sits behind the ``SchedulingAlgorithm`` protocol so another
conformant strategy can be swapped in without touching the callers.
"""

import math
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import NamedTuple, Protocol

from pydantic import BaseModel, ConfigDict


class Outcome(str, Enum):
    """Coarse result of a review as reported by the learner."""

    OK = "ok"
    FAIL = "fail"


class Rating(IntEnum):
    """Grade values understood by the FSRS algorithm."""

    AGAIN = 1  # Forgotten
    HARD = 2  # Recalled with serious difficulty
    GOOD = 3  # Recalled after hesitation
    EASY = 4  # Recalled effortlessly


class CardState(IntEnum):
    """Learning phase of a card."""

    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


class SchedulerStateError(RuntimeError):
    """Raised when a scheduler state cannot have been produced by the algorithm."""


DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4072,
    1.1829,
    3.1262,
    15.4722,
    7.2102,
    0.5316,
    1.0651,
    0.0234,
    1.616,
    0.1544,
    1.0824,
    1.9813,
    0.0953,
    0.2975,
    2.2042,
    0.2407,
    2.9466,
    0.5034,
    0.6567,
)

DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1
MINIMUM_STABILITY = 0.01


class FSRSParameters(NamedTuple):
    """Configuration for the FSRS algorithm."""

    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    request_retention: float = 0.9  # Target recall probability at due time
    maximum_interval_days: int = 36500  # Upper bound for review intervals
    again_step: timedelta = timedelta(minutes=1)  # New card forgotten
    hard_step: timedelta = timedelta(minutes=5)  # New card hard
    good_step: timedelta = timedelta(minutes=10)  # New card good
    relearning_step: timedelta = timedelta(minutes=5)  # Lapse or forgotten while learning


class SchedulerState(BaseModel):
    """Per-card algorithm state. Callers treat it as an opaque value."""

    model_config = ConfigDict(frozen=True)

    due: datetime
    stability: float = 0.0
    difficulty: float = 0.0
    elapsed_days: int = 0
    scheduled_days: int = 0
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW
    last_review: datetime | None = None

    @classmethod
    def new(cls, anchor: datetime) -> "SchedulerState":
        """Default state of a card that has never been reviewed, due at ``anchor``."""
        return cls(due=anchor)


class ScheduleResult(NamedTuple):
    """Result of applying an outcome to a scheduler state."""

    state: SchedulerState
    due_date: datetime


class SchedulingAlgorithm(Protocol):
    """A spaced repetition strategy usable by ``Scheduler``."""

    def next_state(self, state: SchedulerState, rating: Rating, now: datetime) -> SchedulerState:
        ...


def rating_from_outcome(outcome: Outcome) -> Rating:
    """Convert a learner outcome to the algorithm's rating."""
    rating_mapping = {
        Outcome.OK: Rating.GOOD,
        Outcome.FAIL: Rating.AGAIN,
    }
    return rating_mapping[Outcome(outcome)]


class FSRS:
    """FSRS-5 scheduling with fixed parameters and no interval fuzzing."""

    def __init__(self, parameters: FSRSParameters | None = None):
        self.parameters = parameters or FSRSParameters()
        self.w = self.parameters.weights

    def next_state(self, state: SchedulerState, rating: Rating, now: datetime) -> SchedulerState:
        """
        Compute the state following a review.

        Args:
            state: Current state of the card
            rating: Rating given for this review
            now: Time of the review

        Returns:
            The updated state; its ``due`` is never before ``now``

        Raises:
            SchedulerStateError: If ``state`` is structurally invalid
        """
        validate_state(state)
        rating = Rating(rating)

        elapsed_days = 0
        if state.last_review is not None:
            elapsed_days = max(0, (now - state.last_review).days)

        if state.state == CardState.NEW:
            update = self._schedule_new(rating)
        elif state.state in (CardState.LEARNING, CardState.RELEARNING):
            update = self._schedule_learning(state, rating)
        else:
            update = self._schedule_review(state, rating, elapsed_days)

        stability, difficulty, next_phase, step, interval_days = update
        lapses = state.lapses
        if state.state == CardState.REVIEW and rating == Rating.AGAIN:
            lapses += 1

        if interval_days:
            due = now + timedelta(days=interval_days)
        else:
            due = now + step

        return SchedulerState(
            due=due,
            stability=stability,
            difficulty=difficulty,
            elapsed_days=elapsed_days,
            scheduled_days=interval_days,
            reps=state.reps + 1,
            lapses=lapses,
            state=next_phase,
            last_review=now,
        )

    def _schedule_new(self, rating: Rating):
        stability = self.init_stability(rating)
        difficulty = self.init_difficulty(rating)

        if rating == Rating.AGAIN:
            return stability, difficulty, CardState.LEARNING, self.parameters.again_step, 0
        if rating == Rating.HARD:
            return stability, difficulty, CardState.LEARNING, self.parameters.hard_step, 0
        if rating == Rating.GOOD:
            return stability, difficulty, CardState.LEARNING, self.parameters.good_step, 0
        return stability, difficulty, CardState.REVIEW, None, self.next_interval(stability)

    def _schedule_learning(self, state: SchedulerState, rating: Rating):
        stability = self.short_term_stability(state.stability, rating)
        difficulty = self.next_difficulty(state.difficulty, rating)

        if rating == Rating.AGAIN:
            return stability, difficulty, state.state, self.parameters.relearning_step, 0
        if rating == Rating.HARD:
            return stability, difficulty, state.state, self.parameters.good_step, 0

        good_interval = self.next_interval(self.short_term_stability(state.stability, Rating.GOOD))
        if rating == Rating.GOOD:
            return stability, difficulty, CardState.REVIEW, None, good_interval

        easy_interval = max(self.next_interval(stability), good_interval + 1)
        return stability, difficulty, CardState.REVIEW, None, easy_interval

    def _schedule_review(self, state: SchedulerState, rating: Rating, elapsed_days: int):
        retrievability = self.retrievability(elapsed_days, state.stability)
        difficulty = self.next_difficulty(state.difficulty, rating)

        if rating == Rating.AGAIN:
            stability = self.forget_stability(state.difficulty, state.stability, retrievability)
            return stability, difficulty, CardState.RELEARNING, self.parameters.relearning_step, 0

        # Hard <= Good < Easy must hold for the resulting intervals.
        stabilities = {
            r: self.recall_stability(state.difficulty, state.stability, retrievability, r)
            for r in (Rating.HARD, Rating.GOOD, Rating.EASY)
        }
        hard_interval = self.next_interval(stabilities[Rating.HARD])
        good_interval = self.next_interval(stabilities[Rating.GOOD])
        hard_interval = min(hard_interval, good_interval)
        good_interval = max(good_interval, hard_interval + 1)
        easy_interval = max(self.next_interval(stabilities[Rating.EASY]), good_interval + 1)

        intervals = {
            Rating.HARD: hard_interval,
            Rating.GOOD: good_interval,
            Rating.EASY: easy_interval,
        }
        return stabilities[rating], difficulty, CardState.REVIEW, None, intervals[rating]

    def init_stability(self, rating: Rating) -> float:
        return max(self.w[rating - 1], MINIMUM_STABILITY)

    def init_difficulty(self, rating: Rating) -> float:
        return _clamp_difficulty(self.w[4] - math.exp(self.w[5] * (rating - 1)) + 1)

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        next_d = difficulty - self.w[6] * (rating - 3)
        # Mean reversion towards the difficulty of an "easy" first review.
        reverted = self.w[7] * self.init_difficulty(Rating.EASY) + (1 - self.w[7]) * next_d
        return _clamp_difficulty(reverted)

    def short_term_stability(self, stability: float, rating: Rating) -> float:
        return max(stability * math.exp(self.w[17] * (rating - 3 + self.w[18])), MINIMUM_STABILITY)

    def recall_stability(
        self, difficulty: float, stability: float, retrievability: float, rating: Rating
    ) -> float:
        hard_penalty = self.w[15] if rating == Rating.HARD else 1.0
        easy_bonus = self.w[16] if rating == Rating.EASY else 1.0
        growth = (
            math.exp(self.w[8])
            * (11 - difficulty)
            * stability ** (-self.w[9])
            * (math.exp((1 - retrievability) * self.w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )
        return max(stability * (1 + growth), MINIMUM_STABILITY)

    def forget_stability(self, difficulty: float, stability: float, retrievability: float) -> float:
        long_term = (
            self.w[11]
            * difficulty ** (-self.w[12])
            * ((stability + 1) ** self.w[13] - 1)
            * math.exp((1 - retrievability) * self.w[14])
        )
        short_term = stability / math.exp(self.w[17] * self.w[18])
        return max(min(long_term, short_term), MINIMUM_STABILITY)

    @staticmethod
    def retrievability(elapsed_days: float, stability: float) -> float:
        return (1 + FACTOR * elapsed_days / stability) ** DECAY

    def next_interval(self, stability: float) -> int:
        interval = stability / FACTOR * (self.parameters.request_retention ** (1 / DECAY) - 1)
        return min(max(round(interval), 1), self.parameters.maximum_interval_days)


def _clamp_difficulty(difficulty: float) -> float:
    return min(max(difficulty, 1.0), 10.0)


def validate_state(state: SchedulerState) -> None:
    """
    Check that a state is one the algorithm could have produced.

    Raises:
        SchedulerStateError: If the state is structurally invalid
    """
    if state.reps < 0 or state.lapses < 0 or state.elapsed_days < 0 or state.scheduled_days < 0:
        raise SchedulerStateError(f"negative counters in scheduler state: {state!r}")

    if state.state == CardState.NEW:
        return

    if state.last_review is None:
        raise SchedulerStateError(f"reviewed scheduler state has no last review: {state!r}")
    if not state.stability > 0:
        raise SchedulerStateError(f"non-positive stability in scheduler state: {state!r}")
    if not 1.0 <= state.difficulty <= 10.0:
        raise SchedulerStateError(f"difficulty out of range in scheduler state: {state!r}")


class Scheduler:
    """Applies learner outcomes to scheduler states."""

    def __init__(self, algorithm: SchedulingAlgorithm | None = None):
        self.algorithm = algorithm or FSRS()

    def apply_outcome(self, state: SchedulerState, outcome: Outcome, now: datetime) -> ScheduleResult:
        """
        Calculate the state and due date following a review.

        Args:
            state: Current scheduler state of the card
            outcome: ``ok`` or ``fail``
            now: Time of the review

        Returns:
            ScheduleResult with the new state and due date

        Raises:
            SchedulerStateError: If ``state`` is structurally invalid
        """
        rating = rating_from_outcome(outcome)
        new_state = self.algorithm.next_state(state, rating, now)
        return ScheduleResult(state=new_state, due_date=new_state.due)
