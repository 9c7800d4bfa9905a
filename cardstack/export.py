"""
Export of flashcards to delimited text or JSON.
"""

import json
from collections.abc import Iterable, Mapping
from datetime import datetime

from cardstack.parser import resolve_separator
from cardstack.schemas import Flashcard, Tag


def quote_for_csv(text: str) -> str:
    """Wrap a value in double quotes, doubling the quotes it contains."""
    return '"' + text.replace('"', '""') + '"'


def export_delimited(
    flashcards: Iterable[Flashcard], separator: str = ",", quote_values: bool = True
) -> str:
    """
    Export flashcards as delimited text, one ``front<separator>back`` line per card.

    Args:
        flashcards: Flashcards to export
        separator: Separator text or name (comma, semicolon, tab)
        quote_values: Whether to quote values

    Returns:
        The exported text
    """
    separator = resolve_separator(separator)
    lines = []
    for flashcard in flashcards:
        front, back = flashcard.front, flashcard.back
        if quote_values:
            front, back = quote_for_csv(front), quote_for_csv(back)
        lines.append(f"{front}{separator}{back}\n")
    return "".join(lines)


def _iso8601(value: datetime) -> str:
    return value.astimezone().isoformat(timespec="seconds")


def flashcard_to_dict(flashcard: Flashcard, tags_by_id: Mapping[str, Tag]) -> dict:
    return {
        "front": flashcard.front,
        "back": flashcard.back,
        "notes": flashcard.notes,
        "created": _iso8601(flashcard.created_at),
        "nextReview": _iso8601(flashcard.next_review_date),
        "tags": sorted(
            ({"name": tags_by_id[tag_id].name} for tag_id in flashcard.tag_ids if tag_id in tags_by_id),
            key=lambda tag: tag["name"],
        ),
        "reviews": [
            {"date": _iso8601(review.reviewed_at), "rating": review.outcome.value}
            for review in flashcard.reviews
        ],
    }


def export_json(flashcards: Iterable[Flashcard], tags_by_id: Mapping[str, Tag] | None = None) -> str:
    """Export flashcards with their tags and review history as a JSON array."""
    tags_by_id = tags_by_id or {}
    return json.dumps(
        [flashcard_to_dict(flashcard, tags_by_id) for flashcard in flashcards],
        ensure_ascii=False,
        indent=2,
    )
