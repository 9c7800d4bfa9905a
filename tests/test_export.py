"""
Tests for exporting flashcards.
"""

import json
from datetime import datetime, timedelta

from cardstack.export import export_delimited, export_json, quote_for_csv
from cardstack.ledger import create_card, record_review
from cardstack.parser import parse_rows
from cardstack.schemas import Tag
from cardstack.spaced_repetition import Outcome

T0 = datetime(2025, 1, 15, 12, 0, 0)


def test_quote_for_csv():
    assert quote_for_csv('said "hi"') == '"said ""hi"""'
    assert quote_for_csv("") == '""'


class TestExportDelimited:
    """Test delimited text export."""

    def test_quoted_export(self):
        cards = [
            create_card(front="Hello, world", back="안녕", created_at=T0),
            create_card(front='say "hi"', back="b", created_at=T0),
        ]

        assert export_delimited(cards) == '"Hello, world","안녕"\n"say ""hi""","b"\n'

    def test_unquoted_export_with_named_separator(self):
        cards = [create_card(front="a", back="b", notes="not exported", created_at=T0)]

        assert export_delimited(cards, separator="tab", quote_values=False) == "a\tb\n"

    def test_quoted_export_can_be_imported_back(self):
        cards = [create_card(front="line\nbreak", back='with "quotes", commas', created_at=T0)]

        result = parse_rows(export_delimited(cards))

        assert result.errors == []
        assert (result.rows[0].front, result.rows[0].back) == ("line\nbreak", 'with "quotes", commas')

    def test_no_cards(self):
        assert export_delimited([]) == ""


class TestExportJson:
    """Test JSON export."""

    def test_card_with_tags_and_reviews(self):
        tags = {"t1": Tag(id="t1", name="Verbs"), "t2": Tag(id="t2", name="Animals")}
        card = create_card(
            front="고양이", back="cat", notes="n", tag_ids=["t1", "t2", "gone"], created_at=T0
        )
        record_review(card, Outcome.FAIL, now=T0 + timedelta(minutes=1))
        record_review(card, Outcome.OK, now=T0 + timedelta(minutes=2))

        exported = json.loads(export_json([card], tags))

        assert len(exported) == 1
        item = exported[0]
        assert item["front"] == "고양이"
        assert item["back"] == "cat"
        assert item["notes"] == "n"
        assert item["tags"] == [{"name": "Animals"}, {"name": "Verbs"}]
        assert [review["rating"] for review in item["reviews"]] == ["fail", "ok"]

        created = datetime.fromisoformat(item["created"])
        assert created.tzinfo is not None
        assert created.replace(tzinfo=None) == T0
        next_review = datetime.fromisoformat(item["nextReview"]).replace(tzinfo=None)
        assert next_review == card.next_review_date.replace(microsecond=0)

    def test_non_ascii_is_kept(self):
        card = create_card(front="한국어", back="Korean", created_at=T0)

        assert "한국어" in export_json([card])

    def test_no_tags_known(self):
        card = create_card(front="a", back="b", tag_ids=["t1"], created_at=T0)

        assert json.loads(export_json([card]))[0]["tags"] == []
