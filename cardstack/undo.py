"""
Undo support for reviews.

Before a review mutates a card, an UndoToken captures the three pieces of
state the scheduler touches: the review event about to be appended, the
scheduler state and the due date. Tokens are kept by the caller in a bounded
UndoStack; once a token is evicted or consumed, its review is permanent.
"""

import logging
from collections import deque
from datetime import datetime
from typing import NamedTuple

from cardstack.ledger import record_review
from cardstack.schemas import Flashcard, ReviewEvent
from cardstack.spaced_repetition import Outcome, Scheduler, SchedulerState

logger = logging.getLogger(__name__)

DEFAULT_UNDO_DEPTH = 10


class UndoToken(NamedTuple):
    """Snapshot taken before a review, allowing it to be reversed exactly."""

    card_id: str
    event: ReviewEvent
    prior_state: SchedulerState
    prior_due: datetime

    def undo(self, card: Flashcard) -> bool:
        """
        Reverse the review on ``card``.

        Only the most recent review of a card can be undone: if the captured
        event is gone, or a newer review was recorded after it, nothing
        changes.

        Returns:
            True if the review was reversed
        """
        if card.id != self.card_id:
            raise ValueError(f"undo token for flashcard {self.card_id} applied to {card.id}")

        index = next(
            (i for i in range(len(card.reviews) - 1, -1, -1) if card.reviews[i].id == self.event.id),
            None,
        )
        if index is None:
            logger.debug("Review %s of flashcard %s already gone", self.event.id, card.id)
            return False
        if index != len(card.reviews) - 1:
            logger.warning(
                "Refusing to undo review %s of flashcard %s: a newer review exists",
                self.event.id,
                card.id,
            )
            return False

        del card.reviews[index]
        card.next_review_date = self.prior_due
        card.scheduler_state = self.prior_state

        logger.info("Undid %s review of flashcard %s", self.event.outcome.value, card.id)
        return True


def record_undo_token(
    card: Flashcard, event: ReviewEvent, prior_state: SchedulerState, prior_due: datetime
) -> UndoToken:
    """Capture the state needed to reverse ``event`` on ``card``."""
    return UndoToken(card_id=card.id, event=event, prior_state=prior_state, prior_due=prior_due)


class UndoStack:
    """Bounded stack of undo tokens. When full, the oldest token is discarded."""

    def __init__(self, maxlen: int = DEFAULT_UNDO_DEPTH):
        if maxlen < 1:
            raise ValueError("undo depth must be at least 1")
        self._tokens: deque[UndoToken] = deque(maxlen=maxlen)

    @property
    def maxlen(self) -> int:
        return self._tokens.maxlen

    def push(self, token: UndoToken) -> None:
        if len(self._tokens) == self._tokens.maxlen:
            discarded = self._tokens[0]
            logger.debug("Review %s is no longer undoable", discarded.event.id)
        self._tokens.append(token)

    def pop(self) -> UndoToken | None:
        if not self._tokens:
            return None
        return self._tokens.pop()

    def peek(self) -> UndoToken | None:
        if not self._tokens:
            return None
        return self._tokens[-1]

    def clear(self) -> None:
        self._tokens.clear()

    def resize(self, maxlen: int) -> None:
        """Change the depth, keeping the most recent tokens."""
        if maxlen < 1:
            raise ValueError("undo depth must be at least 1")
        self._tokens = deque(self._tokens, maxlen=maxlen)

    def __len__(self) -> int:
        return len(self._tokens)

    def __bool__(self) -> bool:
        return bool(self._tokens)


def submit_review(
    card: Flashcard,
    outcome: Outcome,
    undo_stack: UndoStack,
    now: datetime | None = None,
    scheduler: Scheduler | None = None,
) -> ReviewEvent:
    """
    Record a review and push the token needed to undo it.

    Args:
        card: The reviewed card (mutated in place)
        outcome: ``ok`` or ``fail``
        undo_stack: The session's undo stack
        now: Time of the review (defaults to now)
        scheduler: Scheduler to use

    Returns:
        The appended ReviewEvent
    """
    prior_state = card.scheduler_state
    prior_due = card.next_review_date

    event = record_review(card, outcome, now=now, scheduler=scheduler)
    undo_stack.push(record_undo_token(card, event, prior_state, prior_due))
    return event
