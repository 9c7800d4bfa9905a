"""
Selection of the cards to study and grouping of cards for the flashcard list.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime

from cardstack.schemas import DueGroup, Flashcard, StudyMode, Tag, TagSelection

NEVER_STUDIED_LABEL = "Never studied"


def effective_study_mode(tag_modes: Iterable[StudyMode | None]) -> StudyMode | None:
    """
    Merge the study modes requested by the tags of a card.

    Recalling both sides wins, either when a tag asks for it or when one tag
    asks for the front and another for the back. Otherwise the single
    requested side is used, or None if no tag is studied.
    """
    result: StudyMode | None = None

    for mode in tag_modes:
        if mode is None:
            continue
        if mode == StudyMode.RECALL_BOTH_SIDES:
            return StudyMode.RECALL_BOTH_SIDES
        if result is not None and result != mode:
            return StudyMode.RECALL_BOTH_SIDES
        result = mode

    return result


def card_study_mode(card: Flashcard, tags_by_id: Mapping[str, Tag]) -> StudyMode | None:
    """Get the study mode of a card from its tags. Unknown tag ids are ignored."""
    return effective_study_mode(
        tags_by_id[tag_id].study_mode for tag_id in card.tag_ids if tag_id in tags_by_id
    )


def matches(card: Flashcard, selection: TagSelection) -> bool:
    """Check whether a card passes the tag filter."""
    if not card.tag_ids:
        # Untagged cards only show up when no positive filter is active.
        return not selection.all and not selection.any

    if card.tag_ids & selection.exclude:
        return False
    if not selection.all <= card.tag_ids:
        return False
    if selection.any and not card.tag_ids & selection.any:
        return False
    return True


def due_queue(
    cards: Iterable[Flashcard],
    tags_by_id: Mapping[str, Tag],
    selection: TagSelection | None = None,
) -> list[Flashcard]:
    """
    Get the cards to study, in the order they should be presented.

    Args:
        cards: All flashcards
        tags_by_id: All tags, by id
        selection: Optional tag filter; without one, any studied card qualifies

    Returns:
        Non-empty studied cards matching the filter, by ascending due date
    """
    queue = [
        card
        for card in cards
        if not card.is_empty
        and card_study_mode(card, tags_by_id) is not None
        and (selection is None or matches(card, selection))
    ]
    queue.sort(key=lambda card: card.next_review_date)
    return queue


def current_card(
    cards: Iterable[Flashcard],
    tags_by_id: Mapping[str, Tag],
    selection: TagSelection | None = None,
) -> Flashcard | None:
    """Get the card presented to the learner, or None if no flashcard is due."""
    queue = due_queue(cards, tags_by_id, selection)
    return queue[0] if queue else None


def due_label(day_offset: int) -> str:
    if day_offset == 0:
        return "Due today"
    if day_offset == 1:
        return "Due tomorrow"
    return f"Due in {day_offset} days"


def due_day_offset(next_review_date: datetime, now: datetime) -> int:
    """Number of calendar days from today to the due day; overdue cards are due today."""
    return max((next_review_date.date() - now.date()).days, 0)


def group_by_due_offset(cards: Iterable[Flashcard], now: datetime | None = None) -> list[DueGroup]:
    """
    Group cards for the flashcard list.

    Cards never studied come first, followed by one group per due day,
    soonest first.
    """
    now = now or datetime.now()
    never_studied: list[Flashcard] = []
    by_offset: dict[int, list[Flashcard]] = {}

    for card in cards:
        if not card.reviews:
            never_studied.append(card)
            continue
        by_offset.setdefault(due_day_offset(card.next_review_date, now), []).append(card)

    groups = []
    if never_studied:
        groups.append(DueGroup(label=NEVER_STUDIED_LABEL, flashcards=never_studied))

    for offset, flashcards in sorted(by_offset.items()):
        groups.append(DueGroup(label=due_label(offset), day_offset=offset, flashcards=flashcards))

    return groups


def displayed_tags(all_tags: Iterable[Tag], selection: TagSelection) -> list[Tag]:
    """
    Get the tags whose progress is shown above the study prompt.

    Without a positive filter every tag but the excluded ones is shown;
    otherwise the included tags are shown, by name.
    """
    all_tags = list(all_tags)
    if not selection.all and not selection.any:
        return [tag for tag in all_tags if tag.id not in selection.exclude]

    included = selection.all | selection.any
    return sorted((tag for tag in all_tags if tag.id in included), key=lambda tag: tag.name)
