"""
Review ledger: the append-only review history of a flashcard and the facts
derived from it.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from cardstack.schemas import Flashcard, ReviewEvent
from cardstack.spaced_repetition import Outcome, Scheduler, SchedulerState

logger = logging.getLogger(__name__)

# Cards due within this window (e.g. just failed and relearning) stay in the study queue.
DONE_FOR_NOW_THRESHOLD = timedelta(minutes=8)

_default_scheduler = Scheduler()


def as_local_naive(value: datetime) -> datetime:
    """Convert timezone-aware datetimes to naive local time."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def create_card(
    front: str = "",
    back: str = "",
    notes: str = "",
    tag_ids: Iterable[str] = (),
    created_at: datetime | None = None,
) -> Flashcard:
    """
    Create a new flashcard, due at its creation time.

    Args:
        front: Front side text
        back: Back side text
        notes: Free-text notes
        tag_ids: Ids of the tags of the flashcard
        created_at: Creation time (defaults to now)

    Returns:
        The new flashcard, with the default scheduler state anchored at creation
    """
    created_at = as_local_naive(created_at) if created_at else datetime.now()
    return Flashcard(
        front=front,
        back=back,
        notes=notes,
        created_at=created_at,
        modified_at=created_at,
        next_review_date=created_at,
        scheduler_state=SchedulerState.new(created_at),
        tag_ids=set(tag_ids),
    )


def record_review(
    card: Flashcard,
    outcome: Outcome,
    now: datetime | None = None,
    scheduler: Scheduler | None = None,
) -> ReviewEvent:
    """
    Record a review of a card and reschedule it.

    The schedule is computed before anything is mutated, so if the scheduler
    fails the card is left untouched.

    Args:
        card: The reviewed card (mutated in place)
        outcome: ``ok`` or ``fail``
        now: Time of the review (defaults to now)
        scheduler: Scheduler to use (defaults to FSRS with default parameters)

    Returns:
        The appended ReviewEvent
    """
    now = as_local_naive(now) if now else datetime.now()
    scheduler = scheduler or _default_scheduler

    result = scheduler.apply_outcome(card.scheduler_state, outcome, now)
    event = ReviewEvent(card_id=card.id, reviewed_at=now, outcome=outcome)

    card.reviews.append(event)
    card.scheduler_state = result.state
    card.next_review_date = result.due_date

    logger.debug(
        "Recorded %s review of flashcard %s, next review at %s",
        event.outcome.value,
        card.id,
        card.next_review_date.isoformat(),
    )
    return event


def last_review_date(card: Flashcard) -> datetime | None:
    """Get the time of the most recent review, or None if never reviewed."""
    if not card.reviews:
        return None
    return card.reviews[-1].reviewed_at


def is_done_for_now(card: Flashcard, now: datetime | None = None) -> bool:
    """
    Check whether a card is handled for the current session.

    A card due within the next 8 minutes (DONE_FOR_NOW_THRESHOLD) is not
    "done", as such cards are typically being learned: a card just marked as
    failed is due again within minutes.
    """
    now = as_local_naive(now) if now else datetime.now()
    return card.next_review_date - now > DONE_FOR_NOW_THRESHOLD


def is_card_due(next_review_date: datetime, now: datetime | None = None) -> bool:
    """
    Check if a card is due for review.

    Args:
        next_review_date: The scheduled next review date
        now: Current time (defaults to now)

    Returns:
        True if the card is due for review
    """
    now = as_local_naive(now) if now else datetime.now()
    return now >= as_local_naive(next_review_date)


def count_due_cards(cards: Iterable[Flashcard], now: datetime | None = None) -> int:
    """Count the cards still to study in this session, i.e. not done for now."""
    now = now or datetime.now()
    return sum(1 for card in cards if not is_done_for_now(card, now))
