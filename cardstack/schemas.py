"""
Pydantic schemas for the flashcard domain and API request/response validation.
"""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cardstack.spaced_repetition import Outcome, SchedulerState


def new_id() -> str:
    return str(uuid.uuid4())


class StudyMode(str, Enum):
    """Which side(s) of a flashcard the learner is prompted to recall."""

    RECALL_BACK = "recall_back"
    RECALL_FRONT = "recall_front"
    RECALL_BOTH_SIDES = "recall_both_sides"

    @property
    def has_recall_back(self) -> bool:
        return self in (StudyMode.RECALL_BACK, StudyMode.RECALL_BOTH_SIDES)

    @property
    def has_recall_front(self) -> bool:
        return self in (StudyMode.RECALL_FRONT, StudyMode.RECALL_BOTH_SIDES)

    def toggle_recall_back(self) -> "StudyMode":
        if self.has_recall_back:
            return StudyMode.RECALL_FRONT
        return StudyMode.RECALL_BOTH_SIDES

    def toggle_recall_front(self) -> "StudyMode":
        if self.has_recall_front:
            return StudyMode.RECALL_BACK
        return StudyMode.RECALL_BOTH_SIDES


class TagBucket(str, Enum):
    """Filter bucket a tag is placed in while selecting cards to study."""

    ALL = "all"
    ANY = "any"
    EXCLUDE = "exclude"


# Domain schemas
class ReviewEvent(BaseModel):
    """A single review of a flashcard. Immutable once created."""

    id: str = Field(default_factory=new_id)
    card_id: str
    reviewed_at: datetime
    outcome: Outcome

    model_config = ConfigDict(frozen=True, from_attributes=True)


class Tag(BaseModel):
    """A tag grouping flashcards."""

    id: str = Field(default_factory=new_id)
    name: str = "New tag"
    study_mode: StudyMode | None = None
    selection: TagBucket | None = None

    model_config = ConfigDict(from_attributes=True)


class Flashcard(BaseModel):
    """A flashcard with its schedule and review history."""

    id: str = Field(default_factory=new_id)
    front: str = ""
    back: str = ""
    notes: str = ""
    created_at: datetime
    modified_at: datetime
    next_review_date: datetime
    scheduler_state: SchedulerState
    reviews: list[ReviewEvent] = Field(default_factory=list)
    tag_ids: set[str] = Field(default_factory=set)

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_empty(self) -> bool:
        return not self.front and not self.back

    def touch(self, now: datetime | None = None) -> None:
        """Record a direct edit."""
        self.modified_at = now or datetime.now()


class TagSelection(BaseModel):
    """
    Tag filter made of three disjoint buckets of tag ids.

    - ``all``: a shown card must carry every tag
    - ``any``: a shown card must carry at least one tag (ignored when empty)
    - ``exclude``: a card carrying any of these tags is hidden
    """

    all: frozenset[str] = frozenset()
    any: frozenset[str] = frozenset()
    exclude: frozenset[str] = frozenset()

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_disjoint(self) -> "TagSelection":
        if self.all & self.any or self.all & self.exclude or self.any & self.exclude:
            raise ValueError("a tag can only belong to one selection bucket")
        return self

    @classmethod
    def from_tags(cls, tags: list[Tag]) -> "TagSelection":
        """Build the selection from the bucket marker stored on each tag."""
        buckets: dict[TagBucket, set[str]] = {bucket: set() for bucket in TagBucket}
        for tag in tags:
            if tag.selection is not None:
                buckets[tag.selection].add(tag.id)
        return cls(
            all=frozenset(buckets[TagBucket.ALL]),
            any=frozenset(buckets[TagBucket.ANY]),
            exclude=frozenset(buckets[TagBucket.EXCLUDE]),
        )

    @property
    def is_active(self) -> bool:
        return bool(self.all or self.any or self.exclude)

    def bucket_of(self, tag_id: str) -> TagBucket | None:
        for bucket in TagBucket:
            if tag_id in getattr(self, bucket.value):
                return bucket
        return None

    def without_tag(self, tag_id: str) -> "TagSelection":
        return TagSelection(
            all=self.all - {tag_id},
            any=self.any - {tag_id},
            exclude=self.exclude - {tag_id},
        )

    def with_tag(self, tag_id: str, bucket: TagBucket) -> "TagSelection":
        """Move ``tag_id`` into ``bucket``, removing it from the other buckets."""
        cleared = self.without_tag(tag_id)
        return cleared.model_copy(
            update={bucket.value: getattr(cleared, bucket.value) | {tag_id}}
        )


class DueGroup(BaseModel):
    """Cards sharing the same due label in the flashcard list."""

    label: str
    day_offset: int | None = None  # None for never studied cards
    flashcards: list[Flashcard]


# Flashcard API schemas
class FlashcardCreate(BaseModel):
    """Schema for creating a flashcard."""

    front: str = Field("", description="Front side text")
    back: str = Field("", description="Back side text")
    notes: str = Field("", description="Free-text notes")
    tag_ids: list[str] = Field(default_factory=list, description="Tags of the flashcard")

    @model_validator(mode="after")
    def check_not_empty(self) -> "FlashcardCreate":
        if not self.front and not self.back:
            raise ValueError("A flashcard needs a front or a back")
        return self


class FlashcardUpdate(BaseModel):
    """Schema for editing a flashcard."""

    front: str | None = None
    back: str | None = None
    notes: str | None = None
    tag_ids: list[str] | None = None
    next_review_date: datetime | None = Field(
        None, description="Manual override of the next review date"
    )


# Tag API schemas
class TagCreate(BaseModel):
    """Schema for creating a tag."""

    name: str = Field("New tag", description="Tag name")
    study_mode: StudyMode | None = None


class TagUpdate(BaseModel):
    """Schema for editing a tag."""

    name: str | None = None
    study_mode: StudyMode | None = None
    clear_study_mode: bool = Field(False, description="Stop studying this tag")
    selection: TagBucket | None = None
    clear_selection: bool = Field(False, description="Remove the tag from the study filter")


class TagWithCounts(Tag):
    """Tag with flashcard counts."""

    total_cards: int = 0
    due_cards: int = 0


class StudyProgress(BaseModel):
    """Progress over the whole study queue."""

    name: str = "All"
    total_cards: int = 0
    due_cards: int = 0


class StudyTags(BaseModel):
    """Progress shown above the study prompt: the whole queue, then each displayed tag."""

    all: StudyProgress
    tags: list[TagWithCounts]


# Study schemas
class ReviewRequest(BaseModel):
    """Request to record the outcome of a review."""

    flashcard_id: str
    outcome: Outcome


class ReviewResponse(BaseModel):
    """Result of a recorded review."""

    flashcard: Flashcard
    review: ReviewEvent
    done_for_now: bool
    undo_available: int


class StudyCard(BaseModel):
    """The card currently presented to the learner."""

    flashcard: Flashcard | None = None
    study_mode: StudyMode | None = None
    due_count: int = 0
    message: str | None = None


class UndoResponse(BaseModel):
    """Result of undoing the most recent review."""

    flashcard: Flashcard | None = None
    undone: bool
    undo_available: int


# Import schemas
class ImportRequest(BaseModel):
    """Request to import flashcards from delimited text."""

    text: str
    separator: str = Field(",", description="Single character separating values")
    detect_quotes: bool = True
    tag_ids: list[str] = Field(default_factory=list, description="Tags added to new flashcards")


class ImportedRow(BaseModel):
    """A parsed import row."""

    row: int
    front: str
    back: str
    notes: str
    conflicts_with: str | None = None


class ImportErrorRow(BaseModel):
    """An import row that could not be parsed."""

    row: int
    error: str


class ImportPreview(BaseModel):
    """Parsed rows and errors for an import."""

    rows: list[ImportedRow]
    errors: list[ImportErrorRow]
    separator_error: str | None = None
    imported_count: int = 0


# Config schemas
class ConfigUpdate(BaseModel):
    """Update configuration."""

    undo_depth: int | None = Field(None, ge=1, le=100, description="Number of undoable reviews")
    request_retention: float | None = Field(
        None, gt=0.7, lt=1.0, description="Target recall probability at due time"
    )
    maximum_interval_days: int | None = Field(
        None, ge=1, le=36500, description="Maximum interval between reviews (days)"
    )


class ConfigResponse(BaseModel):
    """Configuration response."""

    undo_depth: int = 10
    request_retention: float = 0.9
    maximum_interval_days: int = 36500
