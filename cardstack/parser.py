"""
Delimited text parser for importing flashcards.

Expected format, one flashcard per line:
front,back
front,back,notes

With quote detection enabled, values may be wrapped in double quotes, in
which case they can contain the separator, line breaks, and doubled quotes:
"Hello, world","안녕, 세상","said ""hi"" twice"

A malformed line is reported as an error row and does not prevent the other
lines from being imported.
"""

import logging
from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import NamedTuple

from cardstack.ledger import create_card
from cardstack.schemas import Flashcard

logger = logging.getLogger(__name__)

SEPARATOR_ERROR = "Separator text must contain exactly one character."
NOT_ENOUGH_VALUES = "Not enough values"
TOO_MANY_VALUES = "2 or 3 values were expected"
QUOTE_NOT_AT_START = "Quote can only appear at start of field"
QUOTE_NOT_CLOSED = "Quote must be followed by separator or end of line"

NAMED_SEPARATORS = {
    "comma": ",",
    "semicolon": ";",
    "tab": "\t",
}


class ParsedRow(NamedTuple):
    row: int
    front: str
    back: str
    notes: str
    conflicts_with: Flashcard | None = None


class ErrorRow(NamedTuple):
    row: int
    error: str


class ImportResult(NamedTuple):
    rows: list[ParsedRow]
    errors: list[ErrorRow]
    separator_error: str | None = None


def resolve_separator(separator: str) -> str:
    """Map separator names (comma, semicolon, tab) to their character."""
    return NAMED_SEPARATORS.get(separator.lower(), separator)


def index_by_text(existing_cards: Iterable[Flashcard]) -> dict[str, Flashcard]:
    """
    Index cards by lowercased front and back text for duplicate detection.

    Fronts are inserted last so they win when a text is both a front and a back.
    """
    existing_cards = list(existing_cards)
    by_text: dict[str, Flashcard] = {}
    for card in existing_cards:
        by_text[card.back.lower()] = card
    for card in existing_cards:
        by_text[card.front.lower()] = card
    return by_text


def parse_rows(
    text: str,
    separator: str = ",",
    detect_quotes: bool = True,
    existing_cards: Iterable[Flashcard] = (),
) -> ImportResult:
    """
    Parse delimited text into flashcard rows.

    Args:
        text: Text to import
        separator: Single character separating values, or a separator name
        detect_quotes: Whether values may be quoted
        existing_cards: Cards to check for duplicates

    Returns:
        ImportResult with parsed rows, error rows and an optional separator error
    """
    separator = resolve_separator(separator)
    if len(separator) != 1:
        return ImportResult(rows=[], errors=[], separator_error=SEPARATOR_ERROR)

    by_text = index_by_text(existing_cards)
    rows: list[ParsedRow] = []
    errors: list[ErrorRow] = []

    records = _split_quoted(text, separator) if detect_quotes else _split_lines(text, separator)

    for row, fields, error in records:
        if error is not None:
            errors.append(ErrorRow(row=row, error=error))
        elif len(fields) < 2:
            errors.append(ErrorRow(row=row, error=NOT_ENOUGH_VALUES))
        elif len(fields) > 3:
            errors.append(ErrorRow(row=row, error=TOO_MANY_VALUES))
        else:
            front, back = fields[0], fields[1]
            notes = fields[2] if len(fields) == 3 else ""
            conflict = by_text.get(front.lower()) or by_text.get(back.lower())
            rows.append(ParsedRow(row=row, front=front, back=back, notes=notes, conflicts_with=conflict))

    logger.debug("Parsed %d row(s) with %d error(s)", len(rows), len(errors))
    return ImportResult(rows=rows, errors=errors)


def _split_lines(text: str, separator: str) -> Iterator[tuple[int, list[str], str | None]]:
    for row, line in enumerate(text.splitlines(), start=1):
        if not line:
            continue
        yield row, [field for field in line.split(separator) if field], None


def _split_quoted(text: str, separator: str) -> Iterator[tuple[int, list[str], str | None]]:
    """
    Split text into records, honouring double-quoted values.

    Records are numbered by the line they start on, even when a quoted value
    spans several lines.
    """
    row = 1
    start_row = 1
    fields: list[str] = []
    current = ""
    chars = iter(text)

    def skip_line() -> None:
        for char in chars:
            if char == "\n":
                break

    def next_record() -> None:
        nonlocal row, start_row, fields, current
        row += 1
        start_row = row
        fields, current = [], ""

    for char in chars:
        if char == "\r":
            continue

        if char == "\n":
            if fields or current:
                yield start_row, [*fields, current], None
            next_record()
            continue

        if char == separator:
            fields.append(current)
            current = ""
            if len(fields) > 2:
                skip_line()
                yield start_row, [], TOO_MANY_VALUES
                next_record()
            continue

        if char != '"':
            current += char
            continue

        if current:
            skip_line()
            yield start_row, [], QUOTE_NOT_AT_START
            next_record()
            continue

        # Quoted value; may span several lines.
        closed = False
        for quoted_char in chars:
            if quoted_char == "\r":
                continue
            if quoted_char != '"':
                if quoted_char == "\n":
                    row += 1
                current += quoted_char
                continue

            following = next(chars, None)
            if following == '"':
                current += '"'
                continue

            closed = True
            if following in (None, "\n", "\r"):
                if following == "\r":
                    # Rest of a CRLF line ending
                    skip_line()
                yield start_row, [*fields, current], None
                next_record()
            elif following == separator:
                fields.append(current)
                current = ""
                if len(fields) > 2:
                    skip_line()
                    yield start_row, [], TOO_MANY_VALUES
                    next_record()
            else:
                skip_line()
                yield start_row, [], QUOTE_NOT_CLOSED
                next_record()
            break

        if not closed:
            # Unterminated quote runs to the end of the text.
            yield start_row, [*fields, current], None
            fields, current = [], ""

    if fields or current:
        yield start_row, [*fields, current], None


def build_cards(
    result: ImportResult, tag_ids: Iterable[str] = (), now: datetime | None = None
) -> list[Flashcard]:
    """
    Create new flashcards from the parsed rows of an import.

    Error rows are ignored; they never prevent valid rows from being imported.
    """
    tag_ids = list(tag_ids)
    now = now or datetime.now()
    return [
        create_card(front=row.front, back=row.back, notes=row.notes, tag_ids=tag_ids, created_at=now)
        for row in result.rows
    ]


def parse_flashcard_file(
    file_path: str, separator: str = ",", detect_quotes: bool = True
) -> ImportResult:
    """Parse a delimited text file containing flashcards."""
    with open(file_path, encoding="utf-8") as f:
        content = f.read()

    return parse_rows(content, separator=separator, detect_quotes=detect_quotes)
